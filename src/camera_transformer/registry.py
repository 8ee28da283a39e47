"""
Transform Registry
==================

Ordered, validated list of stream mappings collected from configuration.

Each mapping pairs an input stream with the output stream its transformed
images are republished on. The position of a mapping in the registry is
its binding index, so order is preserved exactly as configured.

Example:
    registry = TransformRegistry.from_pairs([
        ["cam1/image", "cam1/image_transformed"],
        ["cam2/image", "cam2/image_transformed", "180"],
    ])

    for index, mapping in enumerate(registry):
        print(index, mapping.input_name, "->", mapping.output_name)

Design Rules:
    - Order is stable and deterministic (it is the correlation index)
    - A malformed entry fails the whole registry, never a partial one
    - Duplicate inputs are allowed (fan-out to several outputs)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from camera_transformer.image.transforms import TransformKind


logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when stream mapping configuration is malformed or incomplete."""
    pass


@dataclass(frozen=True, slots=True)
class StreamMapping:
    """
    Association of one input stream to one output stream.

    Attributes:
        input_name: Stream to subscribe to
        output_name: Stream to republish transformed images on
        transform: Transform applied to every image of the stream
        rotation: Reserved third configuration token, stored verbatim
            and not yet wired to behavior
    """

    input_name: str
    output_name: str
    transform: TransformKind = TransformKind.ROTATE_180
    rotation: Optional[str] = None

    def __repr__(self) -> str:
        return f"StreamMapping({self.input_name} -> {self.output_name}, {self.transform.value})"


class TransformRegistry:
    """
    Ordered sequence of stream mappings.

    Attributes:
        mappings: Tuple of StreamMapping in configuration order
    """

    MIN_TOKENS = 2
    MAX_TOKENS = 3

    def __init__(self, mappings: Sequence[StreamMapping]) -> None:
        self._mappings: Tuple[StreamMapping, ...] = tuple(mappings)

    @classmethod
    def from_pairs(cls, pairs: Sequence[Sequence[str]]) -> "TransformRegistry":
        """
        Build a registry from stream-pair token lists.

        Args:
            pairs: One token list per configured camera, each of the form
                ``[input_name, output_name]`` or
                ``[input_name, output_name, rotation]``

        Returns:
            TransformRegistry preserving the order of ``pairs``

        Raises:
            ConfigurationError: If any entry has too few or too many
                tokens, or an empty stream name
        """
        mappings: List[StreamMapping] = []

        for position, tokens in enumerate(pairs):
            tokens = list(tokens)
            if len(tokens) < cls.MIN_TOKENS:
                raise ConfigurationError(
                    f"Camera entry {position} must have at least {cls.MIN_TOKENS} values "
                    f"(<input stream> <output stream>), got {tokens}"
                )
            if len(tokens) > cls.MAX_TOKENS:
                raise ConfigurationError(
                    f"Camera entry {position} accepts at most {cls.MAX_TOKENS} values "
                    f"(<input stream> <output stream> [rotation]), got {tokens}"
                )

            input_name = str(tokens[0]).strip()
            output_name = str(tokens[1]).strip()
            if not input_name or not output_name:
                raise ConfigurationError(
                    f"Camera entry {position} has an empty stream name: {tokens}"
                )

            rotation = str(tokens[2]) if len(tokens) > 2 else None
            mappings.append(
                StreamMapping(
                    input_name=input_name,
                    output_name=output_name,
                    rotation=rotation,
                )
            )

        registry = cls(mappings)
        registry._log_fan_out()
        return registry

    @property
    def mappings(self) -> Tuple[StreamMapping, ...]:
        return self._mappings

    def inputs(self) -> List[str]:
        """Distinct input stream names in first-seen order."""
        return list(dict.fromkeys(m.input_name for m in self._mappings))

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self) -> Iterator[StreamMapping]:
        return iter(self._mappings)

    def __getitem__(self, index: int) -> StreamMapping:
        return self._mappings[index]

    def _log_fan_out(self) -> None:
        """Log inputs shared by several mappings."""
        outputs: Dict[str, List[str]] = defaultdict(list)
        for mapping in self._mappings:
            outputs[mapping.input_name].append(mapping.output_name)

        for input_name, names in outputs.items():
            if len(names) > 1:
                logger.info(f"Input {input_name} fans out to {len(names)} outputs: {names}")
