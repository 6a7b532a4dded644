from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from schoolchat.core.errors import StoreError
from schoolchat.domain.models import Attachment
from schoolchat.infrastructure.repositories.messages import MessageStore

from tests.utils import School


@pytest.fixture()
def store(session_factory: async_sessionmaker[AsyncSession]) -> MessageStore:
    return MessageStore(session_factory)


@pytest.mark.asyncio
async def test_create_persists_unread_message_with_attachments(
    school: School, store: MessageStore
) -> None:
    message = await store.create(
        sender_id=school.teacher,
        recipient_id=school.student,
        content="See attached",
        attachments=[Attachment(url="/files/hw.pdf", name="hw.pdf", mime_type="application/pdf")],
    )

    stored = await store.get(message.id)

    assert stored is not None
    assert stored.read is False
    assert stored.content == "See attached"
    assert stored.attachments == [
        Attachment(url="/files/hw.pdf", name="hw.pdf", mime_type="application/pdf")
    ]
    assert stored.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_find_between_returns_both_directions_oldest_first(
    school: School, store: MessageStore
) -> None:
    for index in range(5):
        sender, recipient = (
            (school.teacher, school.student) if index % 2 == 0 else (school.student, school.teacher)
        )
        await store.create(sender_id=sender, recipient_id=recipient, content=f"m{index}")
    await store.create(sender_id=school.admin, recipient_id=school.student, content="other thread")

    first_page = await store.find_between(school.student, school.teacher, page=1, page_size=2)
    last_page = await store.find_between(school.teacher, school.student, page=3, page_size=2)
    beyond = await store.find_between(school.teacher, school.student, page=4, page_size=2)

    assert [item.content for item in first_page] == ["m0", "m1"]
    assert [item.content for item in last_page] == ["m4"]
    assert beyond == []


@pytest.mark.asyncio
async def test_aggregate_stats_counts_only_incoming_unread(
    school: School, store: MessageStore
) -> None:
    await store.create(sender_id=school.student, recipient_id=school.teacher, content="q1")
    await store.create(sender_id=school.student, recipient_id=school.teacher, content="q2")
    await store.create(sender_id=school.teacher, recipient_id=school.student, content="a1")
    await store.create(sender_id=school.admin, recipient_id=school.teacher, content="memo")

    stats = await store.aggregate_stats_for_candidates(
        school.teacher, [school.student, school.admin, school.super_admin]
    )
    by_counterpart = {item.counterpart_id: item for item in stats}

    assert set(by_counterpart) == {school.student, school.admin}
    assert by_counterpart[school.student].last_message.content == "a1"
    assert by_counterpart[school.student].unread_count == 2
    assert by_counterpart[school.admin].unread_count == 1

    student_view = await store.aggregate_stats_for_candidates(school.student, [school.teacher])
    assert student_view[0].unread_count == 1


@pytest.mark.asyncio
async def test_aggregate_stats_without_candidates_is_empty(store: MessageStore) -> None:
    assert await store.aggregate_stats_for_candidates("anyone", []) == []


@pytest.mark.asyncio
async def test_mark_all_read_from_touches_one_direction_only(
    school: School, store: MessageStore
) -> None:
    await store.create(sender_id=school.student, recipient_id=school.teacher, content="q1")
    await store.create(sender_id=school.student, recipient_id=school.teacher, content="q2")
    reply = await store.create(sender_id=school.teacher, recipient_id=school.student, content="a")

    assert await store.mark_all_read_from(school.student, school.teacher) == 2
    assert await store.mark_all_read_from(school.student, school.teacher) == 0

    untouched = await store.get(reply.id)
    assert untouched is not None and untouched.read is False


@pytest.mark.asyncio
async def test_mark_one_read_is_idempotent_and_recipient_only(
    school: School, store: MessageStore
) -> None:
    message = await store.create(sender_id=school.student, recipient_id=school.teacher, content="q")

    assert await store.mark_one_read(message.id, reader_id=school.student) is None
    flipped = await store.mark_one_read(message.id, reader_id=school.teacher)
    assert flipped is not None and flipped.read is True
    assert await store.mark_one_read(message.id, reader_id=school.teacher) is None
    assert await store.mark_one_read("missing-id") is None


@pytest.mark.asyncio
async def test_database_errors_surface_as_store_error(tmp_path: Path) -> None:
    # No tables created
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = MessageStore(async_sessionmaker(engine, expire_on_commit=False))

    try:
        with pytest.raises(StoreError):
            await store.create(sender_id="a", recipient_id="b", content="hello")
        with pytest.raises(StoreError):
            await store.find_between("a", "b")
    finally:
        await engine.dispose()
