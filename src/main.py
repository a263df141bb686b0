"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8080
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text

from config.settings import settings
from src.ua_common.context import APP_VERSION
from src.ua_common.database import async_session_factory, engine
from src.ua_common.errors import AppError, InternalError
from src.ua_common.redis_client import close_redis, get_redis
from src.ua_common.redis_log import log_meta, start_redis_logging
from src.ua_common.response import error_response
from src.ua_gateway.api.router import router as auth_router
from src.ua_gateway.middleware.request_log import RequestLogMiddleware
from src.ua_user.api.router import router as users_router
from src.ua_user.application.service import UserService
from src.ua_user.infrastructure.persistence import UserRepository
from src.ua_user.infrastructure.redis_cache import RedisUserCache

logger = logging.getLogger("ua.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, wire cache + log shipping, build the service. Shutdown: dispose."""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    log_listener = None
    if settings.REDIS_LOG_ENABLED:
        log_listener = start_redis_logging(
            settings.REDIS_URL,
            settings.REDIS_LOG_KEY,
            settings.REDIS_LOG_MAX_ENTRIES,
            timedelta(hours=settings.REDIS_LOG_RETENTION_HOURS),
        )

    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    cache = None
    if settings.CACHE_ENABLED:
        redis = await get_redis()
        try:
            await redis.ping()
        except RedisError as exc:
            # Cache is best-effort: keep it wired, every call will log and fall through
            logger.warning("redis ping failed", extra=log_meta(url=settings.REDIS_URL, err=exc))
        cache = RedisUserCache(redis)

    app.state.user_service = UserService(UserRepository(async_session_factory), cache)
    logger.info(
        "app boot",
        extra=log_meta(env=settings.APP_ENV, cache=cache is not None, version=APP_VERSION),
    )
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()
    if log_listener is not None:
        log_listener.stop()


app = FastAPI(
    title=settings.APP_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, request)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with traceback, answer 500, keep serving."""
    logger.exception(
        "unhandled error", extra=log_meta(method=request.method, path=request.url.path)
    )
    err = InternalError()
    resp = error_response(err.code, err.message, request)
    return JSONResponse(status_code=err.http_status, content=resp.model_dump())


app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}
