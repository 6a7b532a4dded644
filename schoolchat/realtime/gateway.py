"""Live-channel side of the chat delivery gateway.

Transport-agnostic: the server object only needs the ``emit`` and
``enter_room`` coroutines of ``socketio.AsyncServer``. Handlers return the
acknowledgement payload, which Socket.IO correlates with the client's ack id.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import pydantic
import structlog
from schoolchat.api.schemas.chat import (
    ContactOut,
    MarkReadPayload,
    MessageOut,
    NewMessageEvent,
    RecipientPayload,
    SendMessagePayload,
    UserSummary,
)
from schoolchat.core.auth import Role, TokenError, decode_access_token, extract_bearer_token
from schoolchat.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ChatError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from schoolchat.domain.models import UserRecord
from schoolchat.domain.services.chat import MISSING_CONTENT, ChatService
from schoolchat.domain.services.user_cache import UserCache
from schoolchat.infrastructure.repositories.directory import DirectoryStore
from schoolchat.realtime.registry import LiveSession, LiveSessionRegistry, SessionState
from schoolchat.realtime.rooms import class_room, grade_room, user_room

logger = structlog.get_logger()


class LiveServer(Protocol):
    """The subset of ``socketio.AsyncServer`` the gateway relies on."""

    async def emit(
        self,
        event: str,
        data: Any = None,
        to: str | None = None,
        room: str | None = None,
        skip_sid: str | None = None,
        namespace: str | None = None,
        callback: Callable[..., Any] | None = None,
    ) -> None: ...

    async def enter_room(self, sid: str, room: str, namespace: str | None = None) -> None: ...


def ok(data: Any = None) -> dict[str, Any]:
    return {"success": True, "data": data}


def fail(error: str, code: str) -> dict[str, Any]:
    return {"success": False, "error": error, "code": code}


def token_from_handshake(auth: Any, environ: Mapping[str, Any] | None) -> str | None:
    """``auth.token`` first, then an ``Authorization: Bearer`` header."""
    if isinstance(auth, Mapping):
        token = auth.get("token")
        if isinstance(token, str) and token.strip():
            return token.strip()
    if environ:
        return extract_bearer_token(environ.get("HTTP_AUTHORIZATION"))
    return None


class ChatGateway:
    """Connection lifecycle and chat events for the live channel."""

    def __init__(
        self,
        *,
        server: LiveServer,
        registry: LiveSessionRegistry,
        chat: ChatService,
        directory: DirectoryStore,
        user_cache: UserCache,
        auth_timeout_seconds: float = 10.0,
    ) -> None:
        self.server = server
        self.registry = registry
        self.chat = chat
        self.directory = directory
        self.user_cache = user_cache
        self.auth_timeout_seconds = auth_timeout_seconds

    # --- connection lifecycle ---

    async def authenticate(self, auth: Any, environ: Mapping[str, Any] | None = None) -> UserRecord:
        token = token_from_handshake(auth, environ)
        if not token:
            raise AuthenticationError("No token provided")
        try:
            return await asyncio.wait_for(self._resolve_user(token), self.auth_timeout_seconds)
        except TimeoutError as exc:
            raise AuthenticationError("Authentication timed out") from exc

    async def _resolve_user(self, token: str) -> UserRecord:
        try:
            payload = decode_access_token(token)
        except TokenError as exc:
            raise AuthenticationError(str(exc)) from exc

        user = await self.user_cache.get(payload["sub"])
        if user is None:
            raise AuthenticationError("User not found")
        if not user.is_active:
            raise AuthenticationError("Account inactive")
        return user

    async def connect(self, sid: str, user: UserRecord) -> LiveSession:
        """Register an authenticated connection and join its personal room.

        Class and grade rooms are joined in a background task so a slow
        directory never delays messaging.
        """
        first_connection = not self.registry.is_online(user.id)
        session = self.registry.register(sid, user)
        await self.server.enter_room(sid, user_room(user.id))
        session.room_task = asyncio.create_task(self.join_broadcast_rooms(session))

        if first_connection:
            await self.server.emit("user_online", {"userId": user.id}, skip_sid=sid)
        await logger.ainfo("socket_connected", sid=sid, user_id=user.id, role=user.role)
        return session

    async def join_broadcast_rooms(self, session: LiveSession) -> set[str]:
        """Best effort: failures are logged and the session stays usable."""
        joined: set[str] = set()
        try:
            for room in await self.broadcast_rooms_for(session.user):
                if session.connection_id not in self.registry:
                    break
                await self.server.enter_room(session.connection_id, room)
                self.registry.join(session.connection_id, room)
                joined.add(room)
        except Exception:
            await logger.aexception(
                "socket_room_join_failed", sid=session.connection_id, user_id=session.user_id
            )

        if session.state is SessionState.AUTHENTICATED:
            session.advance(SessionState.ROOMS_JOINED)
            session.advance(SessionState.ACTIVE)
        return joined

    async def broadcast_rooms_for(self, user: UserRecord) -> list[str]:
        role = Role.parse(user.role)
        if role is Role.STUDENT:
            student = await self.directory.find_student_profile(user.id)
            if student is None:
                return []
            rooms = []
            if student.class_id:
                rooms.append(class_room(student.class_id))
            if student.grade is not None:
                rooms.append(grade_room(student.grade))
            return rooms

        if role is Role.TEACHER:
            teacher = await self.directory.find_teacher_profile(user.id)
            if teacher is None:
                return []
            assignments = await self.directory.find_assignments_by_teacher(teacher.id)
            class_ids = dict.fromkeys(item.class_id for item in assignments)
            return [class_room(class_id) for class_id in class_ids]

        return []

    async def disconnect(self, sid: str) -> None:
        session = self.registry.remove(sid)
        if session is None:
            return
        if not self.registry.is_online(session.user_id):
            await self.server.emit("user_offline", {"userId": session.user_id}, skip_sid=sid)
        await logger.ainfo("socket_disconnected", sid=sid, user_id=session.user_id)

    # --- events ---

    async def get_contacts(self, sid: str) -> dict[str, Any]:
        async def operation() -> Any:
            user = self._user_for(sid)
            contacts = await self.chat.list_contacts(user)
            return [ContactOut.from_domain(entry).to_wire() for entry in contacts]

        return await self._acknowledge("get_contacts", sid, operation, "Failed to fetch contacts")

    async def send_message(self, sid: str, data: Any) -> dict[str, Any]:
        async def operation() -> Any:
            sender = self._user_for(sid)
            payload = _parse(SendMessagePayload, data, MISSING_CONTENT)
            message = await self.chat.send(
                sender,
                recipient_id=payload.recipient_id,
                content=payload.content,
                attachments=[item.to_domain() for item in payload.attachments],
            )
            event = NewMessageEvent(
                message=MessageOut.from_domain(message), sender=UserSummary.from_domain(sender)
            ).to_wire()
            # Persisted from here on: a failed fan-out must not fail the ack
            await self._fan_out(event, room=user_room(message.recipient_id), message_id=message.id)
            await self._fan_out(
                event, room=user_room(sender.id), message_id=message.id, skip_sid=sid
            )
            return event["message"]

        return await self._acknowledge("send_message", sid, operation, "Failed to send message")

    async def _fan_out(
        self, event: dict[str, Any], *, room: str, message_id: str, skip_sid: str | None = None
    ) -> bool:
        try:
            await self.server.emit("new_message", event, room=room, skip_sid=skip_sid)
        except Exception:
            await logger.aexception("new_message_fan_out_failed", room=room, message_id=message_id)
            return False
        return True

    async def typing(self, sid: str, data: Any) -> None:
        await self._relay_typing(sid, data, "user_typing")

    async def stop_typing(self, sid: str, data: Any) -> None:
        await self._relay_typing(sid, data, "user_stop_typing")

    async def _relay_typing(self, sid: str, data: Any, event: str) -> None:
        session = self.registry.get(sid)
        if session is None:
            return
        try:
            payload = RecipientPayload.model_validate(data or {})
        except pydantic.ValidationError:
            return
        if payload.recipient_id:
            await self.server.emit(
                event,
                {"userId": session.user_id},
                room=user_room(payload.recipient_id),
                skip_sid=sid,
            )

    async def mark_read(self, sid: str, data: Any) -> dict[str, Any]:
        async def operation() -> Any:
            reader = self._user_for(sid)
            payload = _parse(MarkReadPayload, data, "messageId or senderId is required")
            result = await self.chat.mark_read(
                reader, message_id=payload.message_id, sender_id=payload.sender_id
            )
            for sender_id in result.notify:
                await self.server.emit(
                    "messages_read", {"userId": reader.id}, room=user_room(sender_id)
                )
            return {"updated": result.updated}

        return await self._acknowledge("mark_read", sid, operation, "Failed to mark messages read")

    # --- helpers ---

    def _user_for(self, sid: str) -> UserRecord:
        session = self.registry.get(sid)
        if session is None:
            raise AuthenticationError("Session is not authenticated")
        return session.user

    async def _acknowledge(
        self,
        event: str,
        sid: str,
        operation: Callable[[], Awaitable[Any]],
        failure_message: str,
    ) -> dict[str, Any]:
        """Turn the outcome of ``operation`` into an ack payload.

        Validation and permission failures become typed negative acks; store
        and unexpected failures are logged and reported as ``server_error``.
        """
        with structlog.contextvars.bound_contextvars(sid=sid, socket_event=event):
            try:
                return ok(await operation())
            except (ValidationError, AuthenticationError) as exc:
                return fail(str(exc), exc.code)
            except (AuthorizationError, NotFoundError):
                return fail(str(AuthorizationError()), AuthorizationError.code)
            except StoreError:
                await logger.aexception("socket_event_store_failed")
                return fail(failure_message, StoreError.code)
            except Exception:
                await logger.aexception("socket_event_unhandled")
                return fail(failure_message, ChatError.code)


def _parse(model: type[pydantic.BaseModel], data: Any, message: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValidationError(message)
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(message) from exc
