"""Process-scoped wiring of stores, caches and the live channel."""

from __future__ import annotations

from dataclasses import dataclass

import socketio
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from schoolchat.core.config import Settings, get_settings
from schoolchat.domain.services import ChatService, ContactResolver, PermissionResolver, UserCache
from schoolchat.infrastructure.repositories import DirectoryStore, MessageStore
from schoolchat.realtime.gateway import ChatGateway, LiveServer
from schoolchat.realtime.notifications import ClassroomNotifier
from schoolchat.realtime.registry import LiveSessionRegistry
from schoolchat.realtime.server import create_socket_server, register_handlers

logger = structlog.get_logger()


@dataclass
class ChatRuntime:
    """Everything a process needs to serve chat, created once at startup.

    Handlers receive this object instead of reaching for module globals, so
    tests can build one over a throwaway database and a fake live server.
    """

    settings: Settings
    directory: DirectoryStore
    messages: MessageStore
    user_cache: UserCache
    registry: LiveSessionRegistry
    chat: ChatService
    gateway: ChatGateway
    notifier: ClassroomNotifier
    server: LiveServer

    def shutdown(self) -> None:
        """Drop process-local state (live sessions, cached users)."""
        sessions = len(self.registry)
        self.registry.clear()
        self.user_cache.clear()
        logger.info("chat_runtime_shutdown", sessions=sessions)


def build_runtime(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    settings: Settings | None = None,
    server: LiveServer | None = None,
) -> ChatRuntime:
    """Assemble the chat runtime.

    Without an explicit ``server`` a Socket.IO ``AsyncServer`` is created and
    the gateway's handlers are registered on it.
    """
    settings = settings or get_settings()
    directory = DirectoryStore(session_factory)
    messages = MessageStore(session_factory)
    user_cache = UserCache(directory, ttl_seconds=settings.user_cache_ttl_seconds)
    registry = LiveSessionRegistry()
    chat = ChatService(
        messages=messages,
        permissions=PermissionResolver(directory),
        contacts=ContactResolver(directory, messages),
    )

    sio = server if server is not None else create_socket_server(settings)
    gateway = ChatGateway(
        server=sio,
        registry=registry,
        chat=chat,
        directory=directory,
        user_cache=user_cache,
        auth_timeout_seconds=settings.socket_auth_timeout_seconds,
    )
    if isinstance(sio, socketio.AsyncServer):
        register_handlers(sio, gateway)

    return ChatRuntime(
        settings=settings,
        directory=directory,
        messages=messages,
        user_cache=user_cache,
        registry=registry,
        chat=chat,
        gateway=gateway,
        notifier=ClassroomNotifier(sio),
        server=sio,
    )
