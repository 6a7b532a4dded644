from .models import (
    EPOCH,
    Assignment,
    Attachment,
    ContactEntry,
    Message,
    MessageStats,
    StudentProfile,
    TeacherProfile,
    UserRecord,
)

__all__ = [
    "EPOCH",
    "Assignment",
    "Attachment",
    "ContactEntry",
    "Message",
    "MessageStats",
    "StudentProfile",
    "TeacherProfile",
    "UserRecord",
]
