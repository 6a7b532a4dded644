"""Persisted direct messages between two users."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased
from schoolchat.core.errors import StoreError
from schoolchat.domain.models import Attachment, Message, MessageStats, as_utc
from schoolchat.infrastructure.db.models import MessageModel

logger = structlog.get_logger()


def to_message(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        content=model.content,
        attachments=[
            Attachment(url=item["url"], name=item["name"], mime_type=item.get("mime_type"))
            for item in model.attachments or []
        ],
        read=model.read,
        created_at=as_utc(model.created_at),
    )


class MessageStore:
    """Message persistence.

    Creation and the read-flag updates are single statements; no caller holds
    a session across awaits of other stores.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            await logger.aerror("message_store_failed", operation=operation, error=str(exc))
            raise StoreError(f"Message store failure: {operation}") from exc

    async def create(
        self,
        *,
        sender_id: str,
        recipient_id: str,
        content: str | None,
        attachments: Sequence[Attachment] = (),
    ) -> Message:
        model = MessageModel(
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            attachments=[
                {"url": item.url, "name": item.name, "mime_type": item.mime_type}
                for item in attachments
            ],
            read=False,
        )
        async with self._session("create") as session:
            session.add(model)
            await session.commit()
            return to_message(model)

    async def get(self, message_id: str) -> Message | None:
        async with self._session("get") as session:
            model = await session.get(MessageModel, message_id)
            return to_message(model) if model is not None else None

    async def find_between(
        self, user_a: str, user_b: str, *, page: int = 1, page_size: int = 50
    ) -> list[Message]:
        """Conversation between two users, oldest first, one page at a time."""
        page = max(page, 1)
        stmt = (
            select(MessageModel)
            .where(
                or_(
                    and_(MessageModel.sender_id == user_a, MessageModel.recipient_id == user_b),
                    and_(MessageModel.sender_id == user_b, MessageModel.recipient_id == user_a),
                )
            )
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        async with self._session("find_between") as session:
            result = await session.scalars(stmt)
            return [to_message(model) for model in result]

    async def aggregate_stats_for_candidates(
        self, self_id: str, candidate_ids: Iterable[str]
    ) -> list[MessageStats]:
        """Latest message and unread count per counterpart, in a single query.

        Groups every message exchanged between ``self_id`` and the candidates
        by the other party. Only messages addressed to ``self_id`` count as
        unread.
        """
        candidates = sorted(set(candidate_ids))
        if not candidates:
            return []

        counterpart = case(
            (MessageModel.sender_id == self_id, MessageModel.recipient_id),
            else_=MessageModel.sender_id,
        )
        unread_flag = case(
            (and_(MessageModel.recipient_id == self_id, MessageModel.read.is_(False)), 1),
            else_=0,
        )
        ranked = (
            select(
                MessageModel,
                counterpart.label("counterpart_id"),
                func.row_number()
                .over(
                    partition_by=counterpart,
                    order_by=(MessageModel.created_at.desc(), MessageModel.id.desc()),
                )
                .label("thread_rank"),
                func.sum(unread_flag).over(partition_by=counterpart).label("unread_count"),
            )
            .where(
                or_(
                    and_(
                        MessageModel.sender_id == self_id,
                        MessageModel.recipient_id.in_(candidates),
                    ),
                    and_(
                        MessageModel.sender_id.in_(candidates),
                        MessageModel.recipient_id == self_id,
                    ),
                )
            )
            .subquery()
        )
        latest = aliased(MessageModel, ranked)
        stmt = select(latest, ranked.c.counterpart_id, ranked.c.unread_count).where(
            ranked.c.thread_rank == 1
        )

        async with self._session("aggregate_stats_for_candidates") as session:
            rows = (await session.execute(stmt)).all()
            return [
                MessageStats(
                    counterpart_id=row.counterpart_id,
                    last_message=to_message(row[0]),
                    unread_count=int(row.unread_count or 0),
                )
                for row in rows
            ]

    async def mark_one_read(
        self, message_id: str, *, reader_id: str | None = None
    ) -> Message | None:
        """Flip one message to read.

        Returns the message when this call changed it, ``None`` when it was
        already read, missing, or not addressed to ``reader_id``.
        """
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .where(MessageModel.read.is_(False))
            .values(read=True)
        )
        if reader_id is not None:
            stmt = stmt.where(MessageModel.recipient_id == reader_id)

        async with self._session("mark_one_read") as session:
            result = await session.execute(stmt)
            await session.commit()
            if not result.rowcount:
                return None
            model = await session.get(MessageModel, message_id)
            return to_message(model) if model is not None else None

    async def mark_all_read_from(self, sender_id: str, recipient_id: str) -> int:
        """Mark every unread message from ``sender_id`` to ``recipient_id``; returns the count."""
        stmt = (
            update(MessageModel)
            .where(MessageModel.sender_id == sender_id)
            .where(MessageModel.recipient_id == recipient_id)
            .where(MessageModel.read.is_(False))
            .values(read=True)
        )
        async with self._session("mark_all_read_from") as session:
            result = await session.execute(stmt)
            await session.commit()
            return int(result.rowcount or 0)
