from __future__ import annotations

from typing import Any

import structlog
from schoolchat.realtime.gateway import LiveServer
from schoolchat.realtime.rooms import class_room, grade_room

logger = structlog.get_logger()


class ClassroomNotifier:
    """Class- and grade-wide broadcasts for collaborator subsystems.

    Schedules, courses, materials and exams reuse the chat room model. A
    failed emit is logged and never propagates into the caller's request.
    """

    def __init__(self, server: LiveServer) -> None:
        self._server = server

    async def schedule_update(self, class_id: str, *, change: str, schedule_id: str | None) -> bool:
        return await self._emit(
            "schedule_update",
            {"type": change, "scheduleId": schedule_id},
            class_room(class_id),
        )

    async def new_course(self, class_id: str, *, title: str, course_id: str) -> bool:
        return await self._emit(
            "new_course", {"title": title, "courseId": course_id}, class_room(class_id)
        )

    async def new_material(
        self, class_id: str, *, title: str, material_id: str, course_id: str | None = None
    ) -> bool:
        payload = {"title": title, "materialId": material_id, "courseId": course_id}
        return await self._emit("new_material", payload, class_room(class_id))

    async def new_exam(
        self,
        exam: dict[str, Any],
        *,
        class_id: str | None = None,
        grade: int | None = None,
    ) -> bool:
        """Class room when the exam targets a class, otherwise the grade room."""
        if class_id:
            return await self._emit("new_exam", exam, class_room(class_id))
        if grade is not None:
            return await self._emit("new_exam", exam, grade_room(grade))
        return False

    async def _emit(self, event: str, payload: dict[str, Any], room: str) -> bool:
        try:
            await self._server.emit(event, payload, room=room)
        except Exception:
            await logger.aexception("classroom_broadcast_failed", event_name=event, room=room)
            return False
        await logger.ainfo("classroom_broadcast", event_name=event, room=room)
        return True
