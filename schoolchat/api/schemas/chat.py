"""Wire shapes shared by the REST endpoints and the live channel."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from schoolchat.domain.models import Attachment, ContactEntry, Message, UserRecord

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Live channel payloads ---


class AttachmentPayload(CamelModel):
    """Attachment reference produced by the upload subsystem."""

    url: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    mime_type: str | None = Field(
        None, validation_alias=AliasChoices("mimeType", "mime_type", "file_type")
    )

    def to_domain(self) -> Attachment:
        return Attachment(url=self.url, name=self.name, mime_type=self.mime_type)


class SendMessagePayload(CamelModel):
    recipient_id: str | None = Field(None, description="User id of the recipient")
    content: str | None = Field(None, description="Message text")
    attachments: list[AttachmentPayload] = Field(default_factory=list)


class RecipientPayload(CamelModel):
    recipient_id: str | None = None


class MarkReadPayload(CamelModel):
    message_id: str | None = None
    sender_id: str | None = None


# --- Responses / server-to-client payloads ---


class AttachmentOut(CamelModel):
    url: str
    name: str
    mime_type: str | None = None


class MessageOut(CamelModel):
    id: str
    sender_id: str
    recipient_id: str
    content: str | None
    attachments: list[AttachmentOut]
    read: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, message: Message) -> MessageOut:
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            recipient_id=message.recipient_id,
            content=message.content,
            attachments=[
                AttachmentOut(url=item.url, name=item.name, mime_type=item.mime_type)
                for item in message.attachments
            ],
            read=message.read,
            created_at=message.created_at,
        )


class UserSummary(CamelModel):
    id: str
    username: str
    display_name: str
    role: str

    @classmethod
    def from_domain(cls, user: UserRecord) -> UserSummary:
        return cls(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            role=user.role,
        )


class ContactOut(CamelModel):
    user: UserSummary
    last_message: MessageOut | None
    last_message_time: datetime
    unread_count: int

    @classmethod
    def from_domain(cls, entry: ContactEntry) -> ContactOut:
        return cls(
            user=UserSummary.from_domain(entry.user),
            last_message=MessageOut.from_domain(entry.last_message)
            if entry.last_message
            else None,
            last_message_time=entry.last_message_time,
            unread_count=entry.unread_count,
        )


class NewMessageEvent(CamelModel):
    """``new_message`` payload."""

    message: MessageOut
    sender: UserSummary


class Envelope(CamelModel, Generic[T]):
    """``{success, data}`` body used by REST responses and live acks."""

    success: bool = True
    data: T
