from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter(tags=["Observability"])
logger = structlog.get_logger()


async def check_database(request: Request) -> dict:
    """Check database connectivity through the runtime's session factory."""
    session_factory = request.app.state.session_factory
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            return {"status": "ok"}
    except (SQLAlchemyError, OSError) as e:
        return {"status": "error", "message": str(e)[:100]}


@router.get("/health", summary="Service health probe")
async def health_check(request: Request) -> dict:
    """Return service, database and live-channel status information."""
    runtime = request.app.state.chat_runtime
    settings = runtime.settings

    database_status = await check_database(request)
    overall_status = "ok" if database_status.get("status") == "ok" else "degraded"

    payload = {
        "service": settings.app_name,
        "version": settings.version,
        "status": overall_status,
        "timestamp": datetime.now(UTC).isoformat(),
        "datastores": {"database": database_status},
        "live": {
            "sessions": len(runtime.registry),
            "online_users": len(runtime.registry.online_user_ids()),
        },
    }
    logger.info("health_probe", **payload)
    return payload
