from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jirasync.core.config import settings
from jirasync.core.exceptions import SyncEngineException
from jirasync.core.logging import setup_logging
from jirasync.integrations.jira.scheduler import start_sync_scheduler, stop_sync_scheduler
from jirasync.routers import sync


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await start_sync_scheduler()
        try:
            yield
        finally:
            await stop_sync_scheduler()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sync.router, prefix="/api", tags=["sync"])

    @app.exception_handler(SyncEngineException)
    async def handle_sync_exception(_: Request, exc: SyncEngineException) -> JSONResponse:
        headers = exc.headers if getattr(exc, "headers", None) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    return app


app = create_app()
