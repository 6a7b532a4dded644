from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

# Sort key for contacts that have never exchanged a message.
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(slots=True, frozen=True)
class UserRecord:
    """Directory snapshot of a user as seen by the chat core."""

    id: str
    username: str
    role: str
    is_active: bool = True
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.username


@dataclass(slots=True, frozen=True)
class TeacherProfile:
    id: str
    user_id: str


@dataclass(slots=True, frozen=True)
class StudentProfile:
    id: str
    user_id: str
    class_id: str | None = None
    grade: int | None = None


@dataclass(slots=True, frozen=True)
class Assignment:
    """Assignment row linking a teacher profile to a class and subject."""

    teacher_id: str
    class_id: str
    subject_id: str


@dataclass(slots=True, frozen=True)
class Attachment:
    url: str
    name: str
    mime_type: str | None = None


@dataclass(slots=True)
class Message:
    id: str
    sender_id: str
    recipient_id: str
    content: str | None
    attachments: list[Attachment] = field(default_factory=list)
    read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class MessageStats:
    """Per-counterpart aggregate returned by the message store."""

    counterpart_id: str
    last_message: Message
    unread_count: int


@dataclass(slots=True)
class ContactEntry:
    """Derived contact-list row; valid only as of computation time."""

    user: UserRecord
    last_message: Message | None = None
    unread_count: int = 0

    @property
    def last_message_time(self) -> datetime:
        if self.last_message is None:
            return EPOCH
        return as_utc(self.last_message.created_at)
