from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from handoff.api.routes import (
    auth,
    clients,
    dashboard,
    files,
    health,
    invoices,
    live,
    portal,
    profile,
    projects,
    storage,
)
from handoff.core.config import settings
from handoff.core.errors import HandoffError, TransientIOFailure
from handoff.core.logging_setup import logger
from handoff.db.session import init_db


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    yield


def _normalize_origin(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().rstrip("/")
    return cleaned or None


async def handoff_error_handler(_: Request, exc: HandoffError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s: %s", type(exc).__name__, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def database_error_handler(_: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": TransientIOFailure.default_detail},
    )


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.project_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    logger.info("Handoff API initialized")

    origins: list[str] = []
    for item in settings.allowed_origins + [settings.resolved_public_app_url()]:
        normalized = _normalize_origin(item)
        if normalized and normalized not in origins:
            origins.append(normalized)

    logger.info("CORS origins: %s", origins)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(HandoffError, handoff_error_handler)
    application.add_exception_handler(SQLAlchemyError, database_error_handler)

    application.include_router(health.router, prefix="/health")
    application.include_router(auth.router, prefix=settings.api_v1_str)
    application.include_router(profile.router, prefix=settings.api_v1_str)
    application.include_router(clients.router, prefix=settings.api_v1_str)
    application.include_router(projects.router, prefix=settings.api_v1_str)
    application.include_router(files.router, prefix=settings.api_v1_str)
    application.include_router(invoices.router, prefix=settings.api_v1_str)
    application.include_router(dashboard.router, prefix=settings.api_v1_str)
    application.include_router(live.router, prefix=settings.api_v1_str)
    application.include_router(portal.router, prefix="")
    application.include_router(storage.router, prefix="")

    @application.get("/")
    def root():
        return {"service": settings.project_name}

    return application


app = create_app()
