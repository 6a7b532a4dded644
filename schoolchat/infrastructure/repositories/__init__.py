from .directory import DirectoryStore
from .messages import MessageStore

__all__ = ["DirectoryStore", "MessageStore"]
