"""FastAPI application factory and main entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from mastery_engine import __version__
from mastery_engine.api.v1.router import api_router
from mastery_engine.common.request_id import RequestIDMiddleware
from mastery_engine.core.config import settings
from mastery_engine.core.errors import (
    engine_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from mastery_engine.core.exceptions import EngineError
from mastery_engine.core.logging import setup_logging
from mastery_engine.db.base import Base
from mastery_engine.db.engine import engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Schema is managed by migrations outside dev/test
    if settings.ENV in ("dev", "test"):
        Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.PROJECT_NAME} {__version__} started (env={settings.ENV})")
    yield


def _install_exception_handlers(app: FastAPI) -> None:
    # Most specific first; Exception is the 500 fallback
    app.add_exception_handler(EngineError, engine_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    expose_docs = settings.ENV != "prod"
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=__version__,
        description="Mastery tracking and adaptive assessment API",
        openapi_url="/openapi.json" if expose_docs else None,
        docs_url="/docs" if expose_docs else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Last added is outermost: CORS answers preflights before request ids are minted
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    _install_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
