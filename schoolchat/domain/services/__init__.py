"""Domain services."""

from schoolchat.domain.services.chat import ChatService, ReadResult
from schoolchat.domain.services.contacts import ContactResolver
from schoolchat.domain.services.permissions import PermissionResolver
from schoolchat.domain.services.user_cache import UserCache

__all__ = [
    "ChatService",
    "ContactResolver",
    "PermissionResolver",
    "ReadResult",
    "UserCache",
]
