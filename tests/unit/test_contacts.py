"""Unit tests for the role-scoped contact resolver."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from schoolchat.core.auth import Role
from schoolchat.domain.models import EPOCH
from schoolchat.domain.services.contacts import ContactResolver
from schoolchat.infrastructure.db.models import UserModel
from schoolchat.infrastructure.repositories.directory import DirectoryStore
from schoolchat.infrastructure.repositories.messages import MessageStore

from tests.utils import School


class ExplodingMessageStore(MessageStore):
    async def aggregate_stats_for_candidates(self, self_id, candidate_ids):  # type: ignore[override]
        raise AssertionError("message store must not be queried without candidates")


@pytest.fixture()
def directory(session_factory: async_sessionmaker[AsyncSession]) -> DirectoryStore:
    return DirectoryStore(session_factory)


@pytest.fixture()
def messages(session_factory: async_sessionmaker[AsyncSession]) -> MessageStore:
    return MessageStore(session_factory)


@pytest.fixture()
def resolver(directory: DirectoryStore, messages: MessageStore) -> ContactResolver:
    return ContactResolver(directory, messages)


async def contact_ids(resolver: ContactResolver, directory: DirectoryStore, user_id: str) -> list:
    user = await directory.require_user(user_id)
    return [entry.user.id for entry in await resolver.list_contacts(user)]


def test_every_known_role_has_a_candidate_finder(resolver: ContactResolver) -> None:
    for role in Role:
        assert resolver.finder_for(role.value) is not None
    assert resolver.finder_for("parent") == resolver._admins_only


@pytest.mark.asyncio
async def test_admin_sees_all_other_active_users(
    school: School, resolver: ContactResolver, directory: DirectoryStore
) -> None:
    ids = await contact_ids(resolver, directory, school.admin)

    # no messages yet: tie-break on user id
    assert ids == [
        school.parent,
        school.student,
        school.other_student,
        school.super_admin,
        school.teacher,
        school.other_teacher,
        school.unassigned_teacher,
    ]


@pytest.mark.asyncio
async def test_teacher_sees_admins_and_students_of_assigned_classes(
    school: School, resolver: ContactResolver, directory: DirectoryStore
) -> None:
    ids = await contact_ids(resolver, directory, school.teacher)

    # two assignment rows in class C still yield the student once
    assert sorted(ids) == sorted([school.admin, school.super_admin, school.student])
    assert school.other_student not in ids
    assert school.inactive_student not in ids
    assert school.inactive_admin not in ids


@pytest.mark.asyncio
async def test_student_sees_admins_and_teachers_of_their_class(
    school: School, resolver: ContactResolver, directory: DirectoryStore
) -> None:
    ids = await contact_ids(resolver, directory, school.student)

    assert sorted(ids) == sorted([school.admin, school.super_admin, school.teacher])


@pytest.mark.asyncio
@pytest.mark.parametrize("who", ["unassigned_teacher", "parent"])
async def test_profile_less_and_unknown_roles_see_admins_only(
    school: School, resolver: ContactResolver, directory: DirectoryStore, who: str
) -> None:
    ids = await contact_ids(resolver, directory, getattr(school, who))

    assert ids == [school.admin, school.super_admin]


@pytest.mark.asyncio
async def test_contacts_sorted_by_last_message_with_unread_counts(
    school: School,
    resolver: ContactResolver,
    directory: DirectoryStore,
    messages: MessageStore,
) -> None:
    await messages.create(sender_id=school.admin, recipient_id=school.teacher, content="t1")
    await messages.create(sender_id=school.student, recipient_id=school.admin, content="s1")
    await messages.create(sender_id=school.student, recipient_id=school.admin, content="s2")
    await messages.create(sender_id=school.admin, recipient_id=school.student, content="reply")
    await messages.create(sender_id=school.other_student, recipient_id=school.admin, content="o1")

    admin = await directory.require_user(school.admin)
    contacts = await resolver.list_contacts(admin)
    by_id = {entry.user.id: entry for entry in contacts}

    assert [entry.user.id for entry in contacts[:3]] == [
        school.other_student,
        school.student,
        school.teacher,
    ]
    # never-messaged contacts follow, still ordered by id
    assert [entry.user.id for entry in contacts[3:]] == [
        school.parent,
        school.super_admin,
        school.other_teacher,
        school.unassigned_teacher,
    ]
    assert by_id[school.student].last_message.content == "reply"
    assert by_id[school.student].unread_count == 2
    assert by_id[school.teacher].unread_count == 0
    assert by_id[school.other_student].unread_count == 1
    assert by_id[school.parent].last_message is None
    assert by_id[school.parent].last_message_time == EPOCH


@pytest.mark.asyncio
async def test_messages_with_non_candidates_are_ignored(
    school: School,
    resolver: ContactResolver,
    directory: DirectoryStore,
    messages: MessageStore,
) -> None:
    # allowed at some point, then the student moved classes: no longer a contact
    await messages.create(sender_id=school.other_student, recipient_id=school.teacher, content="hi")

    teacher = await directory.require_user(school.teacher)
    contacts = await resolver.list_contacts(teacher)

    assert school.other_student not in {entry.user.id for entry in contacts}
    assert all(entry.unread_count == 0 for entry in contacts)


@pytest.mark.asyncio
async def test_empty_candidate_set_skips_message_store(
    session_factory: async_sessionmaker[AsyncSession], directory: DirectoryStore
) -> None:
    async with session_factory() as session:
        session.add(UserModel(id="lonely", username="lonely", role="student"))
        await session.commit()

    resolver = ContactResolver(directory, ExplodingMessageStore(session_factory))
    user = await directory.require_user("lonely")

    assert await resolver.list_contacts(user) == []
