import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from toolrent.api.routes import router
from toolrent.config import Settings, settings
from toolrent.db.connection import run_migrations
from toolrent.errors import (
    ModerationError,
    PermissionDenied,
    PreconditionError,
    ProductNotFound,
    RemoteFailure,
    SubmissionNotFound,
    SubmissionValidationError,
)
from toolrent.repositories.product_repository import ProductRepository
from toolrent.repositories.submission_repository import SubmissionRepository
from toolrent.services.catalogue_service import CatalogueService
from toolrent.services.moderation_service import ModerationService

# most specific first; first isinstance match wins
_STATUS_CODES: list[tuple[type[ModerationError], int]] = [
    (SubmissionValidationError, 422),
    (PreconditionError, 409),
    (PermissionDenied, 403),
    (SubmissionNotFound, 404),
    (ProductNotFound, 404),
    (RemoteFailure, 502),
]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def wire_services(app: FastAPI, config: Settings) -> None:
    """Run migrations and attach repositories and services to ``app.state``."""
    run_migrations(config.DB_PATH)
    app.state.settings = config
    app.state.moderator_tokens = dict(config.MODERATOR_TOKENS)
    products = ProductRepository(config.DB_PATH)
    app.state.product_repository = products
    app.state.submission_repository = SubmissionRepository(config.DB_PATH)
    app.state.moderation_service = ModerationService(
        app.state.submission_repository, products, delete_policy=config.PRODUCT_DELETE_POLICY
    )
    app.state.catalogue_service = CatalogueService(products)


def create_app(config: Settings | None = None) -> FastAPI:
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _configure_logging(config.LOG_LEVEL)
        logger = logging.getLogger(__name__)
        logger.info(
            "toolrent starting | db=%s | port=%s | delete_policy=%s | moderators=%d",
            config.DB_PATH,
            config.PORT,
            config.PRODUCT_DELETE_POLICY,
            len(config.MODERATOR_TOKENS),
        )
        wire_services(app, config)
        yield
        logger.info("toolrent shutting down")

    app = FastAPI(title="toolrent moderation", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(ModerationError)
    async def moderation_exception_handler(request: Request, exc: ModerationError) -> JSONResponse:
        status_code = next(
            (code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 400
        )
        log = logging.getLogger(__name__)
        if status_code >= 500:
            log.error("[api] %s %s failed | %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        else:
            log.info("[api] %s %s refused | %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        return JSONResponse(
            status_code=status_code,
            content={"status": "error", "code": type(exc).__name__, "message": str(exc)},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.getLogger(__name__).exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "code": "InternalError", "message": "Internal server error"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("toolrent.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL)
