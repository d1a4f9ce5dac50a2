"""
Tests for server/app.py - websocket endpoint and HTTP read-outs.

Tests cover:
- Subscriber registration on connect and removal on disconnect
- Disconnecting subscribers whose sends fail
- Broadcast from a sensor thread to connected websocket clients
- Health and state endpoints
- Sensor lifecycle tied to the app lifespan
- Importing the module without side effects
"""

import importlib
import json
import os
import time
from unittest.mock import patch

import pytest
from conftest import make_body, make_frame, make_pointer
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

import handcast.server.app as app_module
from handcast.server.app import create_app
from handcast.server.channels import DROPPED_CLOSE_CODE
from handcast.shared.types import HandType, SensorHandState, ServerSettings

# =============================================================================
# Helpers
# =============================================================================


def wait_for(condition, timeout=2.0):
    """Poll until `condition()` is true or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def app():
    """App without a sensor, so tests drive the tracker directly."""
    return create_app(ServerSettings(sensor="none", send_timeout_s=1.0))


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


# =============================================================================
# Websocket
# =============================================================================


class TestWebSocketEndpoint:
    """Tests for the subscriber websocket."""

    def test_connect_registers(self, app, client):
        """A connecting client should be added to the registry."""
        registry = app.state.registry

        with client.websocket_connect("/"):
            assert wait_for(lambda: len(registry) == 1)

        assert wait_for(lambda: len(registry) == 0)

    def test_receives_scenario(self, app, client):
        """Engaging then closing the left hand should reach the client."""
        tracker = app.state.tracker

        with client.websocket_connect("/") as websocket:
            assert wait_for(lambda: len(app.state.registry) == 1)

            tracker.on_pointer_moved(
                make_pointer(x=0.5, y=0.3, body_id=7, hand_type=HandType.LEFT)
            )
            tracker.on_body_frame(make_frame(make_body(7, left=SensorHandState.CLOSED)))
            tracker.on_body_frame(make_frame(make_body(7, left=SensorHandState.CLOSED)))

            first = websocket.receive_text()
            second = websocket.receive_text()

        assert json.loads(first) == {"closed": False, "posX": 0.5, "posY": 0.3}
        assert second == '{"closed":true,"posX":0.5,"posY":0.3}'
        assert app.state.dispatcher.messages_sent == 2

    def test_fan_out_to_multiple_clients(self, app, client):
        """Every connected client should receive the same message."""
        tracker = app.state.tracker

        with client.websocket_connect("/") as first, client.websocket_connect("/") as second:
            assert wait_for(lambda: len(app.state.registry) == 2)

            tracker.on_pointer_moved(make_pointer(x=0.1, y=0.9))

            assert first.receive_text() == second.receive_text()

    def test_inbound_messages_ignored(self, app, client):
        """Messages sent by a subscriber should be ignored."""
        with client.websocket_connect("/") as websocket:
            assert wait_for(lambda: len(app.state.registry) == 1)
            websocket.send_text("hello")
            websocket.send_bytes(b"\x00\x01")

            app.state.tracker.on_pointer_moved(make_pointer(x=0.2, y=0.2))

            assert json.loads(websocket.receive_text())["posX"] == 0.2

    def test_failed_send_disconnects_client(self, app, client):
        """A subscriber dropped after a failed send should be disconnected."""
        registry = app.state.registry

        with client.websocket_connect("/") as websocket:
            assert wait_for(lambda: len(registry) == 1)
            channel = registry.snapshot()[0]

            async def failing_send_text(message):
                raise RuntimeError("connection reset by peer")

            channel._websocket.send_text = failing_send_text
            app.state.tracker.on_pointer_moved(make_pointer(x=0.3, y=0.3))

            assert len(registry) == 0
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_text()

        assert exc_info.value.code == DROPPED_CLOSE_CODE

    def test_other_clients_kept_after_a_drop(self, app, client):
        """Dropping one subscriber should leave the others connected."""
        registry = app.state.registry

        with client.websocket_connect("/"):
            assert wait_for(lambda: len(registry) == 1)
            failing = registry.snapshot()[0]

            async def failing_send_text(message):
                raise RuntimeError("connection reset by peer")

            failing._websocket.send_text = failing_send_text

            with client.websocket_connect("/") as healthy:
                assert wait_for(lambda: len(registry) == 2)
                app.state.tracker.on_pointer_moved(make_pointer(x=0.4, y=0.4))
                app.state.tracker.on_pointer_moved(make_pointer(x=0.5, y=0.5))

                received = [json.loads(healthy.receive_text()) for _ in range(2)]
                assert [m["posX"] for m in received] == [0.4, 0.5]
                assert len(registry) == 1

    def test_custom_path(self):
        """The endpoint should follow the configured path."""
        app = create_app(ServerSettings(sensor="none", ws_path="/ws/hand"))

        with TestClient(app) as client:
            with client.websocket_connect("/ws/hand"):
                assert wait_for(lambda: len(app.state.registry) == 1)


# =============================================================================
# HTTP
# =============================================================================


class TestHttpEndpoints:
    """Tests for /health and /state."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "subscribers": 0}

    def test_state_before_engagement(self, client):
        """Should report the initial open hand and no engagement."""
        body = client.get("/state").json()

        assert body["hand"] == {"closed": False, "posX": 0.0, "posY": 0.0}
        assert body["engaged_body_id"] is None
        assert body["engaged_hand_type"] == "none"

    def test_state_after_engagement(self, app, client):
        """Should report the engaged body and hand."""
        app.state.tracker.on_pointer_moved(
            make_pointer(x=0.4, y=0.6, body_id=11, hand_type=HandType.RIGHT)
        )

        body = client.get("/state").json()

        assert body["engaged_body_id"] == 11
        assert body["engaged_hand_type"] == "right"
        assert body["hand"]["posX"] == 0.4


# =============================================================================
# Lifespan
# =============================================================================


class TestLifespan:
    """Tests for sensor start/stop with the app."""

    def test_sensor_started_and_stopped(self):
        """The simulated sensor should run only while the app is up."""
        app = create_app(ServerSettings(sensor="simulated", sensor_rate_hz=120.0))

        with TestClient(app):
            sensor = app.state.sensor
            assert sensor is not None
            assert sensor.is_running
            assert wait_for(lambda: app.state.tracker.snapshot().engaged_body_id is not None)

        assert not sensor.is_running

    def test_simulated_sensor_reaches_client(self):
        """A subscriber should receive hand states from the simulated sensor."""
        app = create_app(ServerSettings(sensor="simulated", sensor_rate_hz=120.0))

        with TestClient(app) as client:
            with client.websocket_connect("/") as websocket:
                message = json.loads(websocket.receive_text())

        assert set(message) == {"closed", "posX", "posY"}


# =============================================================================
# Module Import
# =============================================================================


class TestModuleImport:
    """Tests for importing the app module."""

    def test_import_reads_no_settings(self):
        """Importing should neither load settings nor build an app."""
        with patch.dict(os.environ, {"HANDCAST_PORT": "not-a-port"}):
            module = importlib.reload(app_module)

        assert not hasattr(module, "app")
        assert callable(module.create_app)
