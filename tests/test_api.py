"""
Status API Tests
================

Tests for the FastAPI status endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from camera_transformer.api import create_app
from camera_transformer.registry import TransformRegistry
from camera_transformer.relay import StreamRelay
from camera_transformer.transport.memory import InMemoryTransport


@pytest.fixture
def wired():
    transport = InMemoryTransport()
    relay = StreamRelay(transport, TransformRegistry.from_pairs([["cam1/image", "cam1/out"]]))
    relay.start()
    return relay, transport


class TestEndpoints:
    """Tests for /, /health, /ready and /metrics."""

    def test_root_lists_bindings(self, wired):
        relay, transport = wired
        client = TestClient(create_app(relay, transport))

        body = client.get("/").json()

        assert body["service"] == "camera-transformer"
        assert body["bindings"] == [{"input": "cam1/image", "output": "cam1/out"}]

    def test_health(self, wired):
        client = TestClient(create_app(*wired))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_not_ready_until_transport_delivers(self, wired):
        relay, transport = wired
        client = TestClient(create_app(relay, transport))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["bindings_active"] is True
        assert response.json()["transport_connected"] is False

    def test_ready(self, wired):
        relay, transport = wired
        transport.start_delivery()
        client = TestClient(create_app(relay, transport))

        assert client.get("/ready").status_code == 200

    def test_not_ready_after_shutdown(self, wired):
        relay, transport = wired
        transport.start_delivery()
        relay.shutdown()
        client = TestClient(create_app(relay, transport))

        assert client.get("/ready").status_code == 503

    def test_metrics(self, wired, corner_message):
        relay, transport = wired
        transport.start_delivery()
        transport.deliver("cam1/image", corner_message)
        client = TestClient(create_app(relay, transport))

        body = client.get("/metrics").json()

        assert body["bindings"][0]["published"] == 1
        assert body["transport"]["connected"] is True
