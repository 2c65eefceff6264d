"""Websocket endpoint for the live location channel."""
from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from litestar import WebSocket, websocket
from litestar.di import Provide
from litestar.exceptions import SerializationException, WebSocketDisconnect
from litestar.serialization import decode_json
from litestar.status_codes import WS_1008_POLICY_VIOLATION

from livetrack.config.settings import Settings
from livetrack.services.broker.service import LocationBroker
from livetrack.api.dependencies import provide_settings

logger = logging.getLogger(__name__)


def client_ip(socket: WebSocket) -> str | None:
    """Return the peer address, preferring the first X-Forwarded-For hop."""
    forwarded = socket.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return socket.client.host if socket.client else None


class WebSocketConnection:
    """Adapts a Litestar websocket to the broker's ``Connection`` protocol."""

    def __init__(self, socket: WebSocket, connection_id: str | None = None) -> None:
        self.socket = socket
        self.connection_id = connection_id or uuid4().hex
        self.ip_address = client_ip(socket)
        self.user_agent = socket.headers.get("user-agent")

    async def send(self, event: str, data: Any) -> None:
        await self.socket.send_json({"event": event, "data": data})


@websocket(
    "/ws",
    dependencies={
        "settings": Provide(provide_settings, sync_to_thread=False),
    },
)
async def live_socket(socket: WebSocket, broker: LocationBroker, settings: Settings) -> None:
    """Live location channel.

    Frames are JSON text using the ``{"event": ..., "data": ...}`` envelope.
    """
    allowed_origins = settings.api.allowed_origins
    origin = socket.headers.get("origin")
    if allowed_origins and origin not in allowed_origins:
        logger.warning("Rejected websocket from origin %r", origin)
        await socket.close(code=WS_1008_POLICY_VIOLATION, reason="Origin not allowed")
        return

    await socket.accept()
    connection = WebSocketConnection(socket)
    await broker.connect(connection)
    try:
        while True:
            raw = await socket.receive_data(mode="text")
            try:
                message = decode_json(raw)
            except SerializationException as e:
                broker.handle_transport_error(connection.connection_id, e)
                continue
            await broker.dispatch(connection.connection_id, message)
    except WebSocketDisconnect as e:
        logger.debug("Websocket %s closed by client (code=%s)", connection.connection_id, e.code)
    finally:
        await broker.disconnect(connection.connection_id)
