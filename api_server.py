from __future__ import annotations  # FastAPI server exposing candidate lifecycle and persistence

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import get_runtime, persistence_router, router, set_runtime
from config.settings import settings
from services.sessions import InterviewRuntime


logger = logging.getLogger(__name__)


def _tick_once(runtime: InterviewRuntime) -> None:
    try:
        runtime.tick()
    except Exception:
        logger.exception("Runtime tick failed")


async def _tick_forever(runtime: InterviewRuntime) -> None:  # Drive clock, throttle and flushes on the event loop
    while True:
        await asyncio.sleep(settings.TICK_SECONDS)
        _tick_once(runtime)


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    runtime = get_runtime()
    task = asyncio.create_task(_tick_forever(runtime))
    try:
        yield
    finally:
        task.cancel()
        if not runtime.flush_now():
            logger.warning("Final flush on shutdown reported a failed write")
        try:
            await task
        except asyncio.CancelledError:
            pass


def create_app(runtime: Optional[InterviewRuntime] = None) -> FastAPI:  # Build the app, optionally around a given runtime
    if runtime is not None:
        set_runtime(runtime)
    application = FastAPI(title="Interview Persistence API", lifespan=_lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"]
    )
    application.include_router(router)
    application.include_router(persistence_router)
    return application


app = create_app()
