from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.explorer_client import ExplorerClient
from config import (
    TokenSyncConfig,
    get_log_dir,
    get_log_level,
    get_token_sync_config,
    is_development,
    load_env_file,
)
from db.db_conn import DbConn
from log_setup import setup_logging
from pipeline.aggregator import PageFetcher
from pipeline.errors import FetchError, PersistenceError, RefreshTimeoutError, UnknownNetworkError
from pipeline.refresh import TokenRefreshService
from pipeline.scheduler import RefreshScheduler
from web.responses import api_error
from web.routes import tokens

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, message: str, exc: Exception) -> JSONResponse:
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed",
        extra={
            "ctx": {
                "error": str(exc),
                "path": request.url.path,
                "method": request.method,
                "statusCode": status_code,
            }
        },
    )
    stack = None
    if is_development():
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return api_error(status_code, message, stack=stack)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            return api_error(404, f"Route {request.method} {request.url.path} not found")
        return api_error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return api_error(422, "Invalid request parameters")

    @app.exception_handler(UnknownNetworkError)
    async def unknown_network(request: Request, exc: UnknownNetworkError) -> JSONResponse:
        return api_error(404, str(exc))

    @app.exception_handler(FetchError)
    async def upstream_error(request: Request, exc: FetchError) -> JSONResponse:
        return _error_response(request, 502, "Upstream token API unavailable", exc)

    @app.exception_handler(RefreshTimeoutError)
    async def refresh_timeout(request: Request, exc: RefreshTimeoutError) -> JSONResponse:
        return _error_response(request, 503, "Token data is being refreshed, retry shortly", exc)

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        message = str(exc) if is_development() else "Internal Server Error"
        return _error_response(request, 500, message, exc)

    @app.exception_handler(SQLAlchemyError)
    async def store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        message = str(exc) if is_development() else "Internal Server Error"
        return _error_response(request, 500, message, exc)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        message = (str(exc) or "Internal Server Error") if is_development() else "Internal Server Error"
        return _error_response(request, 500, message, exc)


def create_app(
    db: Optional[DbConn] = None,
    fetcher: Optional[PageFetcher] = None,
    sync_config: Optional[TokenSyncConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The database handle, refresh service and scheduler are built when the
    app starts and released when it stops. ``db``, ``fetcher`` and
    ``sync_config`` override the environment-derived defaults.
    """
    load_env_file()
    setup_logging(get_log_level(), get_log_dir())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cfg = sync_config or get_token_sync_config()
        conn = db or DbConn()
        service = TokenRefreshService(conn, fetcher or ExplorerClient(), cfg)
        scheduler = RefreshScheduler.from_config(service, cfg)
        app.state.db = conn
        app.state.refresh_service = service
        app.state.scheduler = scheduler
        if cfg.refresh_enabled:
            scheduler.start()
        logger.info(
            "Token board started",
            extra={"ctx": {"network": cfg.network, "scheduler": cfg.refresh_enabled, "development": is_development()}},
        )
        try:
            yield
        finally:
            if scheduler.is_running:
                scheduler.stop()
            else:
                service.shutdown(wait=True)
            logger.info("Token board stopped")

    app = FastAPI(
        title="Token Board API",
        version="0.1.0",
        description="Top tokens by circulating market cap, cached from the network explorer.",
        lifespan=lifespan,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(tokens.router)
    register_error_handlers(app)

    return app


app = create_app()
