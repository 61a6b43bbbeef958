"""
FastAPI main application entry point
AI Pictionary 派对游戏主应用入口
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.database import init_db, close_db
from app.core.redis_client import init_redis, close_redis
from app.api.v1.api import api_router
from app.schemas.common import ErrorResponse
from app.middleware.security import SecurityMiddleware, LoggingMiddleware
from app.services.background_tasks import start_background_tasks, stop_background_tasks

APP_VERSION = "1.0.0"

# Libraries that are chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "httpx", "httpcore")


def configure_logging():
    """控制台 + 文件日志"""
    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        handlers=handlers,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting AI Pictionary ({settings.ENVIRONMENT})")
    await init_db()
    await init_redis()
    await start_background_tasks()
    logger.info("Startup complete")

    yield

    logger.info("Shutting down")
    try:
        await stop_background_tasks()
        await close_redis()
    finally:
        await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="AI Pictionary",
    description="AI Pictionary - 多人 AI 提示词派对游戏后端",
    version=APP_VERSION,
    lifespan=lifespan,
    redirect_slashes=False
)

app.add_middleware(SecurityMiddleware, enable_rate_limiting=True)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    """所有错误统一为 {"error": "<message>"}"""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
    logger.warning(f"Validation failed on {request.url.path}: {message}")
    return error_response(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Unexpected server error.")


@app.get("/")
async def root():
    return {
        "message": "AI Pictionary API",
        "status": "running",
        "version": APP_VERSION,
    }


@app.get("/health")
async def health_check():
    """Liveness probe"""
    return {
        "status": "healthy",
        "service": "ai-pictionary",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }
