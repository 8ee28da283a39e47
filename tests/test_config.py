"""
Configuration Tests
===================

Tests for YAML loading and environment overrides.
"""

import pytest

from camera_transformer.config import Settings, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "CAMERA_TRANSFORMER_URL",
        "CAMERA_TRANSFORMER_RECONNECT_BACKOFF_MS",
        "CAMERA_TRANSFORMER_MAX_RECONNECTS",
        "CAMERA_TRANSFORMER_STATUS_PORT",
        "CAMERA_TRANSFORMER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self):
        settings = load_config()

        assert settings == Settings()
        assert settings.transport.url == "ws://localhost:9090"
        assert settings.relay.publish_queue_size == 5
        assert settings.relay.subscribe_queue_size == 10
        assert settings.cameras == []
        assert settings.server.enabled is False

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text(
            "transport:\n"
            "  url: ws://robot:9090\n"
            "cameras:\n"
            "  - [cam1/image, cam1/out]\n"
            "  - [cam2/image, cam2/out, 180]\n"
        )

        settings = load_config(str(path))

        assert settings.transport.url == "ws://robot:9090"
        assert settings.cameras == [["cam1/image", "cam1/out"], ["cam2/image", "cam2/out", "180"]]

    def test_config_yaml_in_working_directory(self, tmp_path):
        (tmp_path / "config.yaml").write_text("relay:\n  publish_queue_size: 2\n")
        assert load_config().relay.publish_queue_size == 2

    def test_missing_explicit_file(self):
        with pytest.raises(FileNotFoundError):
            load_config("does-not-exist.yaml")

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "relay.yaml"
        path.write_text("transport:\n  url: ws://robot:9090\n")
        monkeypatch.setenv("CAMERA_TRANSFORMER_URL", "ws://override:9090")
        monkeypatch.setenv("CAMERA_TRANSFORMER_LOG_LEVEL", "DEBUG")

        settings = load_config(str(path))

        assert settings.transport.url == "ws://override:9090"
        assert settings.logging.level == "DEBUG"

    def test_env_status_port_enables_server(self, monkeypatch):
        monkeypatch.setenv("CAMERA_TRANSFORMER_STATUS_PORT", "9000")

        settings = load_config()

        assert settings.server.enabled is True
        assert settings.server.port == 9000

    def test_invalid_value_rejected(self, tmp_path):
        from pydantic import ValidationError

        path = tmp_path / "relay.yaml"
        path.write_text("relay:\n  publish_queue_size: 0\n")

        with pytest.raises(ValidationError):
            load_config(str(path))

    @pytest.mark.parametrize("name", [
        "CAMERA_TRANSFORMER_STATUS_PORT",
        "CAMERA_TRANSFORMER_RECONNECT_BACKOFF_MS",
        "CAMERA_TRANSFORMER_MAX_RECONNECTS",
    ])
    def test_non_integer_env_value(self, monkeypatch, name):
        monkeypatch.setenv(name, "eighty")

        with pytest.raises(ValueError, match=name):
            load_config()

    def test_top_level_list_rejected(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text("- cam1/image\n- cam1/out\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config(str(path))

    def test_section_must_be_mapping(self, tmp_path, monkeypatch):
        path = tmp_path / "relay.yaml"
        path.write_text("transport:\n  - ws://robot:9090\n")
        monkeypatch.setenv("CAMERA_TRANSFORMER_URL", "ws://override:9090")

        with pytest.raises(ValueError, match="transport"):
            load_config(str(path))
