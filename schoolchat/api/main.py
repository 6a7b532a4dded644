from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

import socketio
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from schoolchat.api.routes import register_routes
from schoolchat.core.config import get_settings
from schoolchat.core.errors import StoreError
from schoolchat.core.logging import setup_logging
from schoolchat.infrastructure.db.session import dispose_engine, get_session_factory
from schoolchat.runtime import ChatRuntime, build_runtime
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger()


def create_app(
    *,
    runtime: ChatRuntime | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Application factory for the REST API.

    The chat runtime is built here rather than in the lifespan so it exists
    even when a transport skips lifespan events (in-process test clients).
    """
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment not in ("local", "test"))

    owns_engine = session_factory is None
    session_factory = session_factory or get_session_factory()
    runtime = runtime or build_runtime(session_factory, settings=settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "service_startup",
            service=settings.app_name,
            environment=settings.environment,
            version=settings.version,
        )
        yield
        runtime.shutdown()
        if owns_engine:
            await dispose_engine()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.chat_runtime = runtime
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        await logger.aerror("request_store_failed", error=str(exc), path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Something went wrong, please try again"},
        )

    @app.middleware("http")
    async def correlation_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid4()))
        bind_contextvars(
            request_id=request_id,
            path=str(request.url.path),
            method=request.method,
        )
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_contextvars()

    return app


def create_asgi_app(app: FastAPI | None = None) -> socketio.ASGIApp:
    """Socket.IO in front of the REST app; serve this one with uvicorn."""
    app = app or create_app()
    runtime: ChatRuntime = app.state.chat_runtime
    return socketio.ASGIApp(
        runtime.server,
        other_asgi_app=app,
        socketio_path=runtime.settings.socket_path,
    )


app = create_app()
asgi_app = create_asgi_app(app)
