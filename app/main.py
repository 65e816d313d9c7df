from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router
from app.middleware import RequestLoggingMiddleware
from logging_config import configure_logging
from services.relay import build_default_context
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    context = build_default_context()
    try:
        yield
    finally:
        logger.info("Shutting down relay", extra={"waiter_count": context.commands.waiter_count})
        context.shutdown()
        build_default_context.cache_clear()


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"method": request.method, "path": request.url.path})
    body = {
        "message": "Internal server error",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    if get_settings().is_development:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(
        title="Telemetry Relay",
        description="Relays IoT sensor readings to dashboards and actuator commands to devices.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(Exception, internal_error_handler)
    app.include_router(router)
    return app

app = create_app()
