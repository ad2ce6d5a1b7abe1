"""
RSB Schools API entry point.

Run with ``uvicorn schools_api.main:app``. Startup order is Redis (optional,
rate limits fall back to process memory), then the database, then the
scheduler with the code purge job. Shutdown runs in reverse.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from schools_api.api import api_router
from schools_api.core.config import settings
from schools_api.core.database import async_session_maker, close_db, init_db
from schools_api.core.redis import close_redis, init_redis
from schools_api.core.scheduler import start_scheduler, stop_scheduler
from schools_api.modules.auth.jobs import register_auth_jobs

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


async def _startup() -> None:
    try:
        await init_redis()
    except Exception as e:
        logger.warning(f"Redis unavailable, rate limits are per process: {e}")

    # Outside production the API may start without a database; /ready reports it
    try:
        await init_db()
    except Exception as e:
        logger.error(f"Database unavailable at startup: {e}")
        if settings.is_production:
            raise

    register_auth_jobs()
    await start_scheduler()


async def _shutdown() -> None:
    await stop_scheduler()
    await close_redis()
    await close_db()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(f"RSB Schools API starting ({settings.python_env})")
    await _startup()
    yield
    logger.info("RSB Schools API shutting down")
    await _shutdown()


app = FastAPI(
    title="RSB Schools API",
    description="Two-step sign-in and student applications for RSB Schools",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {"service": "rsb-schools-api", "environment": settings.python_env}


@app.get("/health", tags=["Health"])
async def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


@app.get("/ready", tags=["Health"])
async def ready():
    """Readiness check: 503 until the database answers."""
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ready"}
