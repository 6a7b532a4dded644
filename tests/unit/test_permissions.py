"""Unit tests for the chat permission table."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from schoolchat.core.errors import AuthorizationError
from schoolchat.domain.services.permissions import PermissionResolver
from schoolchat.infrastructure.repositories.directory import DirectoryStore

from tests.utils import School

S = School()

PERMISSION_TABLE = [
    # admins reach everyone
    (S.admin, S.student, True),
    (S.admin, S.teacher, True),
    (S.super_admin, S.admin, True),
    (S.admin, S.parent, True),
    # everyone reaches admins
    (S.student, S.admin, True),
    (S.teacher, S.super_admin, True),
    (S.parent, S.admin, True),
    (S.unassigned_teacher, S.admin, True),
    # teacher/student only with a shared class, both directions
    (S.teacher, S.student, True),
    (S.student, S.teacher, True),
    (S.teacher, S.other_student, False),
    (S.other_student, S.teacher, False),
    (S.other_teacher, S.other_student, True),
    (S.unassigned_teacher, S.student, False),
    # same-role pairs and unknown roles
    (S.student, S.other_student, False),
    (S.teacher, S.other_teacher, False),
    (S.parent, S.student, False),
    # admin rules come first, even for deactivated accounts
    (S.student, S.inactive_admin, True),
    (S.admin, S.inactive_student, True),
    # otherwise inactive or missing recipients are denied
    (S.teacher, S.inactive_student, False),
    (S.admin, "u-missing", False),
    (S.teacher, "u-missing", False),
]


@pytest.fixture()
def directory(session_factory: async_sessionmaker[AsyncSession]) -> DirectoryStore:
    return DirectoryStore(session_factory)


@pytest.mark.asyncio
@pytest.mark.parametrize(("sender_id", "recipient_id", "expected"), PERMISSION_TABLE)
async def test_can_exchange_matches_permission_table(
    school: School,
    directory: DirectoryStore,
    sender_id: str,
    recipient_id: str,
    expected: bool,
) -> None:
    sender = await directory.require_user(sender_id)
    resolver = PermissionResolver(directory)

    assert await resolver.can_exchange(sender, recipient_id) is expected


@pytest.mark.asyncio
async def test_ensure_can_exchange_raises_for_denied_pair(
    school: School, directory: DirectoryStore
) -> None:
    sender = await directory.require_user(school.student)
    resolver = PermissionResolver(directory)

    with pytest.raises(AuthorizationError, match="not allowed"):
        await resolver.ensure_can_exchange(sender, school.other_student)


@pytest.mark.asyncio
async def test_teacher_without_profile_teaches_nobody(
    school: School, directory: DirectoryStore
) -> None:
    resolver = PermissionResolver(directory)

    assert await resolver.teaches(school.teacher, school.student) is True
    assert await resolver.teaches(school.unassigned_teacher, school.student) is False
    assert await resolver.teaches(school.teacher, "u-missing") is False
