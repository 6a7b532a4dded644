from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from schoolchat.core.auth import create_access_token
from schoolchat.infrastructure.db.models import (
    ClassModel,
    ClassSubjectModel,
    ClassSubjectTeacherModel,
    StudentModel,
    SubjectModel,
    TeacherModel,
    UserModel,
)


@dataclass(frozen=True)
class School:
    """User ids of the seeded school.

    Teacher ``teacher`` teaches math and science in class C (grade 7), where
    ``student`` is enrolled. ``other_teacher`` and ``other_student`` belong to
    class D (grade 8). ``unassigned_teacher`` has no teacher profile.
    """

    super_admin: str = "u-super"
    admin: str = "u-admin"
    inactive_admin: str = "u-admin-off"
    teacher: str = "u-teacher"
    other_teacher: str = "u-teacher-2"
    unassigned_teacher: str = "u-teacher-3"
    student: str = "u-student"
    other_student: str = "u-student-2"
    inactive_student: str = "u-student-off"
    parent: str = "u-parent"
    class_c: str = "class-c"
    class_d: str = "class-d"

    @property
    def roles(self) -> dict[str, str]:
        return {
            self.super_admin: "super_admin",
            self.admin: "admin",
            self.inactive_admin: "admin",
            self.teacher: "teacher",
            self.other_teacher: "teacher",
            self.unassigned_teacher: "teacher",
            self.student: "student",
            self.other_student: "student",
            self.inactive_student: "student",
            self.parent: "parent",
        }


async def seed_school(session: AsyncSession) -> School:
    school = School()
    inactive = {school.inactive_admin, school.inactive_student}

    for user_id, role in school.roles.items():
        first, _, last = user_id.removeprefix("u-").partition("-")
        session.add(
            UserModel(
                id=user_id,
                username=user_id.removeprefix("u-"),
                email=f"{user_id}@school.test",
                role=role,
                is_active=user_id not in inactive,
                first_name=first.title(),
                last_name=last.title() or None,
            )
        )
    await session.flush()

    session.add_all(
        [
            ClassModel(id=school.class_c, class_name="7C", grade=7, section="C"),
            ClassModel(id=school.class_d, class_name="8D", grade=8, section="D"),
            SubjectModel(id="math", name="Mathematics"),
            SubjectModel(id="science", name="Science"),
            TeacherModel(id="t-profile-1", user_id=school.teacher),
            TeacherModel(id="t-profile-2", user_id=school.other_teacher),
        ]
    )
    await session.flush()

    session.add_all(
        [
            StudentModel(id="s-profile-1", user_id=school.student, class_id=school.class_c),
            StudentModel(id="s-profile-2", user_id=school.other_student, class_id=school.class_d),
            StudentModel(
                id="s-profile-3", user_id=school.inactive_student, class_id=school.class_c
            ),
            ClassSubjectModel(id="cs-c-math", class_id=school.class_c, subject_id="math"),
            ClassSubjectModel(id="cs-c-science", class_id=school.class_c, subject_id="science"),
            ClassSubjectModel(id="cs-d-math", class_id=school.class_d, subject_id="math"),
        ]
    )
    await session.flush()

    session.add_all(
        [
            ClassSubjectTeacherModel(
                class_subject_id="cs-c-math", teacher_id="t-profile-1", is_primary=True
            ),
            ClassSubjectTeacherModel(class_subject_id="cs-c-science", teacher_id="t-profile-1"),
            ClassSubjectTeacherModel(class_subject_id="cs-d-math", teacher_id="t-profile-2"),
        ]
    )
    await session.commit()
    return school


def token_for(user_id: str, role: str = "student") -> str:
    return create_access_token(user_id, role=role)


def auth_headers(user_id: str, role: str = "student") -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


@dataclass
class Emitted:
    event: str
    data: Any
    room: str | None
    skip_sid: str | None


@dataclass
class FakeLiveServer:
    """Records what a Socket.IO server would have emitted and joined."""

    emitted: list[Emitted] = field(default_factory=list)
    rooms: dict[str, set[str]] = field(default_factory=lambda: defaultdict(set))
    fail_emits: bool = False

    async def emit(
        self,
        event: str,
        data: Any = None,
        to: str | None = None,
        room: str | None = None,
        skip_sid: str | None = None,
        namespace: str | None = None,
        callback: Any = None,
    ) -> None:
        if self.fail_emits:
            raise RuntimeError("transport down")
        self.emitted.append(Emitted(event=event, data=data, room=to or room, skip_sid=skip_sid))

    async def enter_room(self, sid: str, room: str, namespace: str | None = None) -> None:
        self.rooms[sid].add(room)

    def events(self, name: str) -> list[Emitted]:
        return [item for item in self.emitted if item.event == name]
