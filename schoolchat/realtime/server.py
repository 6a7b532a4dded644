"""Socket.IO server and event registration."""

from __future__ import annotations

from typing import Any

import socketio
import structlog
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused
from schoolchat.core.config import Settings
from schoolchat.core.errors import ChatError
from schoolchat.realtime.gateway import ChatGateway

logger = structlog.get_logger()


def create_socket_server(settings: Settings) -> socketio.AsyncServer:
    origins: Any = list(settings.cors_origins)
    if "*" in origins:
        origins = "*"
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=origins,
        # Sequential handlers keep per-connection event order
        async_handlers=settings.socket_async_handlers,
        logger=False,
        engineio_logger=False,
    )


def register_handlers(sio: socketio.AsyncServer, gateway: ChatGateway) -> None:
    """Bind the live-channel events of ``gateway`` to ``sio``."""

    async def connect(sid: str, environ: dict, auth: Any = None) -> None:
        try:
            user = await gateway.authenticate(auth, environ)
        except ChatError as exc:
            await logger.awarning("socket_auth_rejected", sid=sid, reason=str(exc))
            raise SocketConnectionRefused(f"Authentication error: {exc}") from exc
        await gateway.connect(sid, user)

    async def disconnect(sid: str, *args: Any) -> None:
        await gateway.disconnect(sid)

    async def get_contacts(sid: str, *args: Any) -> dict:
        return await gateway.get_contacts(sid)

    async def send_message(sid: str, data: Any = None) -> dict:
        return await gateway.send_message(sid, data)

    async def typing(sid: str, data: Any = None) -> None:
        await gateway.typing(sid, data)

    async def stop_typing(sid: str, data: Any = None) -> None:
        await gateway.stop_typing(sid, data)

    async def mark_read(sid: str, data: Any = None) -> dict:
        return await gateway.mark_read(sid, data)

    sio.on("connect", connect)
    sio.on("disconnect", disconnect)
    sio.on("get_contacts", get_contacts)
    sio.on("send_message", send_message)
    sio.on("typing", typing)
    sio.on("stop_typing", stop_typing)
    sio.on("mark_read", mark_read)
