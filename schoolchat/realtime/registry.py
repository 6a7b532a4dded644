from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field

import structlog
from schoolchat.domain.models import UserRecord
from schoolchat.realtime.rooms import user_room

logger = structlog.get_logger()


class SessionState(str, enum.Enum):
    """Lifecycle of one live connection. ``DISCONNECTED`` is terminal."""

    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ROOMS_JOINED = "rooms_joined"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CONNECTING: frozenset({SessionState.AUTHENTICATED, SessionState.DISCONNECTED}),
    SessionState.AUTHENTICATED: frozenset({SessionState.ROOMS_JOINED, SessionState.DISCONNECTED}),
    SessionState.ROOMS_JOINED: frozenset({SessionState.ACTIVE, SessionState.DISCONNECTED}),
    SessionState.ACTIVE: frozenset({SessionState.DISCONNECTED}),
    SessionState.DISCONNECTED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a session is moved to a state its current state cannot reach."""


@dataclass(slots=True)
class LiveSession:
    connection_id: str
    user: UserRecord
    state: SessionState = SessionState.AUTHENTICATED
    joined_rooms: set[str] = field(default_factory=set)
    room_task: asyncio.Task | None = None

    @property
    def user_id(self) -> str:
        return self.user.id

    def advance(self, state: SessionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"{self.state.value} -> {state.value}")
        self.state = state


class LiveSessionRegistry:
    """Process-scoped map of live connections and the rooms they joined.

    Only sessions that passed authentication are registered, so a refused
    connection leaves nothing behind. A session is mutated only by its own
    connection's lifecycle events. Not shared across processes.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, LiveSession] = {}
        self._by_user: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def register(self, connection_id: str, user: UserRecord) -> LiveSession:
        """Record an authenticated connection; it is always in its user room."""
        if connection_id in self._sessions:
            raise InvalidTransitionError(f"connection {connection_id} already registered")
        session = LiveSession(connection_id=connection_id, user=user)
        session.joined_rooms.add(user_room(user.id))
        self._sessions[connection_id] = session
        self._by_user.setdefault(user.id, set()).add(connection_id)
        logger.debug("live_session_registered", sid=connection_id, user_id=user.id)
        return session

    def get(self, connection_id: str) -> LiveSession | None:
        return self._sessions.get(connection_id)

    def join(self, connection_id: str, room: str) -> bool:
        session = self._sessions.get(connection_id)
        if session is None:
            return False
        session.joined_rooms.add(room)
        return True

    def remove(self, connection_id: str) -> LiveSession | None:
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return None
        connections = self._by_user.get(session.user_id)
        if connections is not None:
            connections.discard(connection_id)
            if not connections:
                del self._by_user[session.user_id]
        session.state = SessionState.DISCONNECTED
        if session.room_task is not None and not session.room_task.done():
            session.room_task.cancel()
        logger.debug("live_session_removed", sid=connection_id, user_id=session.user_id)
        return session

    def connections_for(self, user_id: str) -> set[str]:
        return set(self._by_user.get(user_id, ()))

    def is_online(self, user_id: str) -> bool:
        return bool(self._by_user.get(user_id))

    def members(self, room: str) -> set[str]:
        return {sid for sid, session in self._sessions.items() if room in session.joined_rooms}

    def online_user_ids(self) -> set[str]:
        return set(self._by_user)

    def clear(self) -> None:
        for connection_id in list(self._sessions):
            self.remove(connection_id)
