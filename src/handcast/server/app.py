"""
FastAPI application serving the engaged-hand broadcast.

Subscribers connect to the websocket endpoint (ws://127.0.0.1:8181/ by default)
and receive one JSON object per hand state change. No handshake payload is
expected from them and anything they send is ignored.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket

from handcast import __version__
from handcast.server.channels import WebSocketChannel
from handcast.server.config import settings_from_env
from handcast.server.dispatcher import BroadcastDispatcher
from handcast.server.registry import SubscriberRegistry
from handcast.server.sensor import build_sensor
from handcast.server.tracker import HandTracker
from handcast.shared.types import ServerSettings, TrackingSnapshot

logger = logging.getLogger(__name__)


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """
    Build the application and its tracking pipeline.

    Also used by uvicorn as the app factory (`handcast.server.app:create_app`).

    Args:
        settings: Server settings. If None, they are loaded from the settings file
                  and HANDCAST_* environment variables.

    Returns:
        FastAPI app. The registry, dispatcher, tracker and sensor are exposed on
        `app.state`.
    """
    if settings is None:
        settings = settings_from_env()

    registry = SubscriberRegistry()
    dispatcher = BroadcastDispatcher(registry)
    tracker = HandTracker(publisher=dispatcher.publish)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sensor = build_sensor(settings, tracker)
        app.state.sensor = sensor
        if sensor is not None:
            sensor.start()
        else:
            logger.info("No sensor configured, waiting for external events")

        try:
            yield
        finally:
            registry.clear()
            # stop() joins a thread that may be waiting on this loop
            if sensor is not None:
                await asyncio.to_thread(sensor.stop)
            logger.info(f"Server stopped after {dispatcher.messages_sent} messages")

    app = FastAPI(title="HANDCAST", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.tracker = tracker
    app.state.sensor = None

    @app.get("/health")
    def health():
        return {"status": "ok", "subscribers": len(registry)}

    @app.get("/state", response_model=TrackingSnapshot)
    def state():
        snapshot = tracker.snapshot()
        return snapshot.model_copy(update={"subscribers": len(registry)})

    @app.websocket(settings.ws_path)
    async def subscribe(websocket: WebSocket):
        await websocket.accept()
        channel = WebSocketChannel(
            websocket,
            asyncio.get_running_loop(),
            send_timeout=settings.send_timeout_s,
        )
        registry.add(channel)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            registry.remove(channel)

    return app
