"""Uvicorn entry point that answers parked long-polls before draining."""

from __future__ import annotations

import asyncio
import logging
from types import FrameType
from typing import Optional

import uvicorn

from services.relay import build_default_context
from settings import get_settings

logger = logging.getLogger(__name__)


class RelayServer(uvicorn.Server):
    """Uvicorn server that releases long-poll waiters as soon as exit is requested.

    Uvicorn waits for open connections to finish before it runs the lifespan
    shutdown, so parked devices must be answered here or they hold the process
    until their own timeout.
    """

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is None:
            self._release_waiters()
        else:
            loop.call_soon_threadsafe(self._release_waiters)
        super().handle_exit(sig, frame)

    def _release_waiters(self) -> None:
        context = build_default_context()
        logger.info(
            "Exit requested, releasing waiters",
            extra={"waiter_count": context.commands.waiter_count},
        )
        context.shutdown()


def run() -> None:
    settings = get_settings()
    config = uvicorn.Config(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,
        log_config=None,
    )
    RelayServer(config).run()


if __name__ == "__main__":
    run()
