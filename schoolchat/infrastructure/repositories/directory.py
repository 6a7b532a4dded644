"""Read-only access to the school directory (users, profiles, assignments)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from schoolchat.core.auth import Role
from schoolchat.core.errors import NotFoundError, StoreError
from schoolchat.domain.models import Assignment, StudentProfile, TeacherProfile, UserRecord
from schoolchat.infrastructure.db.models import (
    ClassModel,
    ClassSubjectModel,
    ClassSubjectTeacherModel,
    StudentModel,
    TeacherModel,
    UserModel,
)

logger = structlog.get_logger()


def to_user_record(user: UserModel) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        role=user.role,
        is_active=user.is_active,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def _role_value(role: Role | str) -> str:
    # str(Role.ADMIN) is "Role.ADMIN" on 3.11+
    return role.value if isinstance(role, Role) else role


class DirectoryStore:
    """Directory lookups.

    Every call opens its own session, so independent lookups may be awaited
    concurrently with ``asyncio.gather``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            await logger.aerror("directory_store_failed", operation=operation, error=str(exc))
            raise StoreError(f"Directory lookup failed: {operation}") from exc

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        async with self._session("find_user_by_id") as session:
            user = await session.get(UserModel, user_id)
            return to_user_record(user) if user is not None else None

    async def require_user(self, user_id: str) -> UserRecord:
        user = await self.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def find_active_users(
        self,
        roles: Iterable[Role | str] | None = None,
        *,
        exclude_id: str | None = None,
    ) -> list[UserRecord]:
        """Active users, optionally restricted to ``roles`` and excluding one id."""
        stmt = select(UserModel).where(UserModel.is_active.is_(True))
        if roles is not None:
            stmt = stmt.where(UserModel.role.in_([_role_value(role) for role in roles]))
        if exclude_id is not None:
            stmt = stmt.where(UserModel.id != exclude_id)
        stmt = stmt.order_by(UserModel.id)

        async with self._session("find_active_users") as session:
            result = await session.scalars(stmt)
            return [to_user_record(user) for user in result]

    async def find_teacher_profile(self, user_id: str) -> TeacherProfile | None:
        stmt = select(TeacherModel).where(TeacherModel.user_id == user_id)
        async with self._session("find_teacher_profile") as session:
            teacher = await session.scalar(stmt)
            if teacher is None:
                return None
            return TeacherProfile(id=teacher.id, user_id=teacher.user_id)

    async def find_student_profile(self, user_id: str) -> StudentProfile | None:
        stmt = (
            select(StudentModel.id, StudentModel.user_id, StudentModel.class_id, ClassModel.grade)
            .outerjoin(ClassModel, ClassModel.id == StudentModel.class_id)
            .where(StudentModel.user_id == user_id)
        )
        async with self._session("find_student_profile") as session:
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            return StudentProfile(
                id=row.id, user_id=row.user_id, class_id=row.class_id, grade=row.grade
            )

    async def find_assignments_by_teacher(self, teacher_id: str) -> list[Assignment]:
        stmt = (
            select(ClassSubjectModel.class_id, ClassSubjectModel.subject_id)
            .join(
                ClassSubjectTeacherModel,
                ClassSubjectTeacherModel.class_subject_id == ClassSubjectModel.id,
            )
            .where(ClassSubjectTeacherModel.teacher_id == teacher_id)
            .order_by(ClassSubjectModel.class_id, ClassSubjectModel.subject_id)
        )
        async with self._session("find_assignments_by_teacher") as session:
            rows = (await session.execute(stmt)).all()
            return [
                Assignment(teacher_id=teacher_id, class_id=row.class_id, subject_id=row.subject_id)
                for row in rows
            ]

    async def assignment_exists(self, teacher_id: str, class_id: str) -> bool:
        stmt = select(
            exists()
            .where(ClassSubjectTeacherModel.class_subject_id == ClassSubjectModel.id)
            .where(ClassSubjectTeacherModel.teacher_id == teacher_id)
            .where(ClassSubjectModel.class_id == class_id)
        )
        async with self._session("assignment_exists") as session:
            return bool(await session.scalar(stmt))

    async def find_active_students_in_classes(self, class_ids: Iterable[str]) -> list[UserRecord]:
        wanted = sorted(set(class_ids))
        if not wanted:
            return []
        stmt = (
            select(UserModel)
            .join(StudentModel, StudentModel.user_id == UserModel.id)
            .where(StudentModel.class_id.in_(wanted))
            .where(UserModel.is_active.is_(True))
            .order_by(UserModel.id)
        )
        async with self._session("find_active_students_in_classes") as session:
            result = await session.scalars(stmt)
            return [to_user_record(user) for user in result.unique()]

    async def find_active_teachers_for_class(self, class_id: str) -> list[UserRecord]:
        stmt = (
            select(UserModel)
            .join(TeacherModel, TeacherModel.user_id == UserModel.id)
            .join(ClassSubjectTeacherModel, ClassSubjectTeacherModel.teacher_id == TeacherModel.id)
            .join(
                ClassSubjectModel,
                ClassSubjectModel.id == ClassSubjectTeacherModel.class_subject_id,
            )
            .where(ClassSubjectModel.class_id == class_id)
            .where(UserModel.is_active.is_(True))
            .distinct()
            .order_by(UserModel.id)
        )
        async with self._session("find_active_teachers_for_class") as session:
            result = await session.scalars(stmt)
            return [to_user_record(user) for user in result]
