"""Chat operations shared by the REST and live delivery paths."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog
from schoolchat.core.errors import ValidationError
from schoolchat.domain.models import Attachment, ContactEntry, Message, UserRecord
from schoolchat.domain.services.contacts import ContactResolver
from schoolchat.domain.services.permissions import PermissionResolver
from schoolchat.infrastructure.repositories.messages import MessageStore

logger = structlog.get_logger()

MISSING_CONTENT = "Recipient and content/attachments are required"


@dataclass(slots=True)
class ReadResult:
    """Outcome of a mark-read request."""

    updated: int = 0
    # Original senders whose messages flipped to read, for read receipts
    notify: list[str] = field(default_factory=list)


class ChatService:
    """Send, history, contacts and read-state operations.

    Permission is re-checked on every send and every history read.
    """

    def __init__(
        self,
        *,
        messages: MessageStore,
        permissions: PermissionResolver,
        contacts: ContactResolver,
    ) -> None:
        self.messages = messages
        self.permissions = permissions
        self.contacts = contacts

    async def list_contacts(self, user: UserRecord) -> list[ContactEntry]:
        return await self.contacts.list_contacts(user)

    async def history(
        self, user: UserRecord, counterpart_id: str, *, page: int = 1, limit: int = 50
    ) -> list[Message]:
        await self.permissions.ensure_can_exchange(user, counterpart_id)
        return await self.messages.find_between(user.id, counterpart_id, page=page, page_size=limit)

    async def send(
        self,
        sender: UserRecord,
        *,
        recipient_id: str | None,
        content: str | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> Message:
        content = content.strip() if content else None
        if not recipient_id or (not content and not attachments):
            raise ValidationError(MISSING_CONTENT)
        if recipient_id == sender.id:
            raise ValidationError("You cannot send a message to yourself")

        await self.permissions.ensure_can_exchange(sender, recipient_id)

        message = await self.messages.create(
            sender_id=sender.id,
            recipient_id=recipient_id,
            content=content or None,
            attachments=list(attachments),
        )
        await logger.ainfo(
            "chat_message_sent",
            message_id=message.id,
            sender_id=sender.id,
            recipient_id=recipient_id,
            attachments=len(message.attachments),
        )
        return message

    async def mark_read(
        self,
        reader: UserRecord,
        *,
        message_id: str | None = None,
        sender_id: str | None = None,
    ) -> ReadResult:
        """Mark one message, or everything unread from one sender, as read.

        Only messages addressed to ``reader`` are touched.
        """
        if message_id:
            message = await self.messages.mark_one_read(message_id, reader_id=reader.id)
            if message is None:
                return ReadResult()
            return ReadResult(updated=1, notify=[message.sender_id])

        if sender_id:
            updated = await self.messages.mark_all_read_from(sender_id, reader.id)
            return ReadResult(updated=updated, notify=[sender_id] if updated else [])

        raise ValidationError("messageId or senderId is required")
