# Руководство к файлу (FAST_API/fast_api.py)
# Назначение:
# - Точка входа приложения FastAPI для DocIntel: фабрика create_app(settings).
# - Подключение всех роутеров и базовая инфраструктура (CORS, логирование
#   запросов, обработчики ошибок, lifespan сервисов).
# Важно:
# - Сервисы (AppServices) создаются здесь и лежат в app.state.services;
#   lifespan вызывает services.startup()/shutdown().
# - Ошибки отдаются в виде {"message": ...}; валидация запроса -> 400,
#   конфликт уникальности -> 409, прочее -> 500 без деталей.

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .logging_config import setup_logging
from .ROUTES import auth as auth_router
from .ROUTES import documents as documents_router
from .ROUTES import messages as messages_router
from .ROUTES import microsoft as microsoft_router
from .ROUTES import settings as settings_router
from .ROUTES import system as system_router
from BACKEND.SERVICES import AppServices
from BACKEND.STORAGE import DuplicateRecordError

# Загружаем переменные окружения из BACKEND/.env до чтения настроек
_BASE_DIR = Path(__file__).resolve().parent.parent
_DOTENV_PATH = _BASE_DIR / ".env"
if _DOTENV_PATH.exists():  # в Docker .env можно не класть
    load_dotenv(dotenv_path=_DOTENV_PATH)

logger = logging.getLogger("docintel.fastapi")


def _install_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc.errors()} for request: {request.url}")
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "errors": json.loads(json.dumps(exc.errors(), default=str))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"HTTP error: {exc.detail} for request: {request.url}, status: {exc.status_code}")
        else:
            logger.info(f"HTTP error: {exc.detail} for request: {request.url}, status: {exc.status_code}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)

    @app.exception_handler(DuplicateRecordError)
    async def duplicate_exception_handler(request: Request, exc: DuplicateRecordError):
        logger.info(f"Duplicate record: {exc} for request: {request.url}")
        return JSONResponse(status_code=409, content={"message": "Record already exists"})

    @app.exception_handler(SQLAlchemyError)
    async def db_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Database error for request: {request.url}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error for request: {request.url}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    *,
    services: Optional[AppServices] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Собрать приложение DocIntel.

    services можно передать готовыми (тесты подменяют хранилище, часы и Graph).
    """

    settings = settings or (services.settings if services is not None else Settings())
    if configure_logging:
        setup_logging()
    services = services or AppServices.build(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.startup()
        try:
            yield
        finally:
            await services.shutdown()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list() or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.debug(f"Response: {request.method} {request.url.path} -> {response.status_code}")
        return response

    _install_handlers(app)

    app.include_router(system_router.router)
    app.include_router(auth_router.router)
    app.include_router(documents_router.router)
    app.include_router(messages_router.router)
    app.include_router(settings_router.router)
    app.include_router(microsoft_router.router)

    @app.get("/")
    async def root():
        return {"message": settings.app_name, "version": settings.version, "docs": "/docs"}

    return app


app = create_app()
