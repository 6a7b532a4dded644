"""REST side of the chat delivery gateway: contacts and history."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from schoolchat.api.deps import get_chat_service, get_current_user, get_runtime
from schoolchat.api.schemas.chat import ContactOut, Envelope, MessageOut
from schoolchat.core.errors import AuthorizationError
from schoolchat.domain.models import UserRecord
from schoolchat.domain.services.chat import ChatService
from schoolchat.runtime import ChatRuntime

logger = structlog.get_logger()
router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get(
    "/contacts",
    response_model=Envelope[list[ContactOut]],
    response_model_by_alias=True,
    summary="List chat contacts",
    description="Role-permitted contacts with last message and unread count, newest first.",
)
async def get_contacts(
    user: UserRecord = Depends(get_current_user),  # noqa: B008
    chat: ChatService = Depends(get_chat_service),  # noqa: B008
) -> Envelope[list[ContactOut]]:
    contacts = await chat.list_contacts(user)
    return Envelope[list[ContactOut]](data=[ContactOut.from_domain(entry) for entry in contacts])


@router.get(
    "/history/{user_id}",
    response_model=Envelope[list[MessageOut]],
    response_model_by_alias=True,
    summary="Conversation history",
    description="Messages exchanged with another user, oldest first, paginated.",
)
async def get_history(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    user: UserRecord = Depends(get_current_user),  # noqa: B008
    chat: ChatService = Depends(get_chat_service),  # noqa: B008
    runtime: ChatRuntime = Depends(get_runtime),  # noqa: B008
) -> Envelope[list[MessageOut]]:
    settings = runtime.settings
    page_size = min(limit or settings.history_default_limit, settings.history_max_limit)

    try:
        messages = await chat.history(user, user_id, page=page, limit=page_size)
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return Envelope[list[MessageOut]](data=[MessageOut.from_domain(item) for item in messages])
