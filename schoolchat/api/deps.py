from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from schoolchat.core.auth import TokenError, decode_access_token
from schoolchat.domain.models import UserRecord
from schoolchat.domain.services.chat import ChatService
from schoolchat.runtime import ChatRuntime

bearer_scheme = HTTPBearer(auto_error=False)


def get_runtime(request: Request) -> ChatRuntime:
    """The process-scoped runtime attached by ``create_app``."""
    return request.app.state.chat_runtime


def get_chat_service(runtime: ChatRuntime = Depends(get_runtime)) -> ChatService:  # noqa: B008
    return runtime.chat


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
    runtime: ChatRuntime = Depends(get_runtime),  # noqa: B008
) -> UserRecord:
    """Resolve the authenticated, active user from a bearer token."""
    if credentials is None:
        raise _unauthorized("No token provided")

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc

    # REST always reads the directory; the TTL cache is for socket handshakes
    user = await runtime.directory.find_user_by_id(payload["sub"])
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("User account is deactivated")
    return user


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
