"""Who may exchange direct messages with whom."""

from __future__ import annotations

import asyncio

import structlog
from schoolchat.core.auth import Role, is_admin_role
from schoolchat.core.errors import AuthorizationError, NotFoundError
from schoolchat.domain.models import UserRecord
from schoolchat.infrastructure.repositories.directory import DirectoryStore

logger = structlog.get_logger()


class PermissionResolver:
    """Decides whether a sender may message a recipient.

    Rules, first match wins:

    1. admin or super_admin senders reach everyone;
    2. everyone reaches admins and super_admins;
    3. a teacher/student pair is allowed when the teacher is assigned to at
       least one subject in the student's class;
    4. everything else is denied, including an inactive recipient.

    A missing recipient is always denied. Admin rules apply regardless of
    the recipient's active flag, so past conversations stay readable.

    Read-only. Decisions are never cached.
    """

    def __init__(self, directory: DirectoryStore) -> None:
        self._directory = directory

    async def can_exchange(self, sender: UserRecord, recipient_id: str) -> bool:
        try:
            recipient = await self._directory.require_user(recipient_id)
        except NotFoundError:
            return False

        if is_admin_role(sender.role) or is_admin_role(recipient.role):
            return True
        if not recipient.is_active:
            return False

        pair = {Role.parse(sender.role), Role.parse(recipient.role)}
        if pair != {Role.TEACHER, Role.STUDENT}:
            return False

        if Role.parse(sender.role) is Role.TEACHER:
            return await self.teaches(sender.id, recipient.id)
        return await self.teaches(recipient.id, sender.id)

    async def ensure_can_exchange(self, sender: UserRecord, recipient_id: str) -> None:
        if not await self.can_exchange(sender, recipient_id):
            await logger.ainfo(
                "chat_permission_denied",
                sender_id=sender.id,
                sender_role=sender.role,
                recipient_id=recipient_id,
            )
            raise AuthorizationError()

    async def teaches(self, teacher_user_id: str, student_user_id: str) -> bool:
        """True when the teacher has an assignment row in the student's class."""
        teacher, student = await asyncio.gather(
            self._directory.find_teacher_profile(teacher_user_id),
            self._directory.find_student_profile(student_user_id),
        )
        if teacher is None or student is None or student.class_id is None:
            return False
        return await self._directory.assignment_exists(teacher.id, student.class_id)
