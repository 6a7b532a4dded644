"""Error taxonomy shared by the REST and live delivery paths."""

from __future__ import annotations


class ChatError(Exception):
    """Base exception for chat core errors."""

    code = "server_error"


class AuthenticationError(ChatError):
    """Missing, invalid or expired credential, or inactive user."""

    code = "unauthenticated"


class AuthorizationError(ChatError):
    """The permission resolver denied the exchange."""

    code = "not_allowed"

    def __init__(self, message: str = "You are not allowed to chat with this user") -> None:
        super().__init__(message)


class NotFoundError(ChatError):
    """Recipient or profile absent. Rendered as a denial at the boundary."""

    code = "not_allowed"


class ValidationError(ChatError):
    """Malformed payload, rejected before any store access."""

    code = "invalid_payload"


class StoreError(ChatError):
    """Persistence or lookup failure in the directory or message store."""

    code = "server_error"
