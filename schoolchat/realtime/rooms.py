"""Room identifiers for live fan-out."""

from __future__ import annotations


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def class_room(class_id: str) -> str:
    return f"class:{class_id}"


def grade_room(grade: int | str) -> str:
    return f"grade:{grade}"
