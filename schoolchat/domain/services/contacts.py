"""Role-scoped contact list with last message and unread counts."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable

import structlog
from schoolchat.core.auth import Role
from schoolchat.domain.models import ContactEntry, UserRecord
from schoolchat.infrastructure.repositories.directory import DirectoryStore
from schoolchat.infrastructure.repositories.messages import MessageStore

logger = structlog.get_logger()

CandidateFinder = Callable[[UserRecord], Awaitable[list[UserRecord]]]


class ContactResolver:
    """Computes the contact list for a user.

    The candidate set depends on the user's role; every known role has an
    entry in the dispatch table and anything else falls back to admins only.
    Contacts are ordered by last message time, newest first; contacts that
    never exchanged a message sort last (epoch 0). Ties are broken by user id.
    """

    def __init__(self, directory: DirectoryStore, messages: MessageStore) -> None:
        self._directory = directory
        self._messages = messages
        self._finders: dict[Role, CandidateFinder] = {
            Role.SUPER_ADMIN: self._everyone,
            Role.ADMIN: self._everyone,
            Role.TEACHER: self._teacher_candidates,
            Role.STUDENT: self._student_candidates,
        }

    def finder_for(self, role: str) -> CandidateFinder:
        parsed = Role.parse(role)
        if parsed is None:
            return self._admins_only
        return self._finders[parsed]

    async def candidates(self, user: UserRecord) -> list[UserRecord]:
        found = await self.finder_for(user.role)(user)
        return _dedupe(found, exclude_id=user.id)

    async def list_contacts(self, user: UserRecord) -> list[ContactEntry]:
        candidates = await self.candidates(user)
        if not candidates:
            return []

        stats = await self._messages.aggregate_stats_for_candidates(
            user.id, [candidate.id for candidate in candidates]
        )
        by_counterpart = {item.counterpart_id: item for item in stats}

        entries = []
        for candidate in candidates:
            item = by_counterpart.get(candidate.id)
            entries.append(
                ContactEntry(
                    user=candidate,
                    last_message=item.last_message if item else None,
                    unread_count=item.unread_count if item else 0,
                )
            )

        # Two stable passes: id ascending, then time descending
        entries.sort(key=lambda entry: entry.user.id)
        entries.sort(key=lambda entry: entry.last_message_time, reverse=True)

        logger.debug(
            "contacts_resolved",
            user_id=user.id,
            role=user.role,
            contacts=len(entries),
            with_messages=len(by_counterpart),
        )
        return entries

    async def _everyone(self, user: UserRecord) -> list[UserRecord]:
        return await self._directory.find_active_users(exclude_id=user.id)

    async def _admins_only(self, user: UserRecord) -> list[UserRecord]:
        return await self._directory.find_active_users(Role.admin_roles(), exclude_id=user.id)

    async def _teacher_candidates(self, user: UserRecord) -> list[UserRecord]:
        admins, teacher = await asyncio.gather(
            self._directory.find_active_users(Role.admin_roles()),
            self._directory.find_teacher_profile(user.id),
        )
        if teacher is None:
            return admins

        assignments = await self._directory.find_assignments_by_teacher(teacher.id)
        students = await self._directory.find_active_students_in_classes(
            assignment.class_id for assignment in assignments
        )
        return admins + students

    async def _student_candidates(self, user: UserRecord) -> list[UserRecord]:
        admins, student = await asyncio.gather(
            self._directory.find_active_users(Role.admin_roles()),
            self._directory.find_student_profile(user.id),
        )
        if student is None or student.class_id is None:
            return admins

        teachers = await self._directory.find_active_teachers_for_class(student.class_id)
        return admins + teachers


def _dedupe(users: Iterable[UserRecord], *, exclude_id: str) -> list[UserRecord]:
    seen: dict[str, UserRecord] = {}
    for user in users:
        if user.id != exclude_id and user.id not in seen:
            seen[user.id] = user
    return list(seen.values())
