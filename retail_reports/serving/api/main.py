"""
FastAPI Application Factory

Creates and configures the reporting API application.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from retail_reports.config import get_settings
from retail_reports.config.logging import configure_logging
from retail_reports.database.connection import close_database, init_database
from retail_reports.reporting import (
    InvalidFilterError,
    PeriodResolver,
    QueryExecutionError,
    ReportingError,
    ReportStore,
)
from retail_reports.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from retail_reports.serving.api.routes import health_router, reports_router
from retail_reports.stores import FrameReportStore, SqlReportStore

logger = structlog.get_logger(__name__)


async def _open_store(app: FastAPI) -> None:
    """Open the configured report store unless one was injected"""
    if app.state.report_store is not None:
        return

    settings = get_settings()
    if settings.reporting.store == "frame":
        app.state.report_store = FrameReportStore.from_parquet(settings.reporting.data_path)
        logger.info("Frame report store loaded", path=settings.reporting.data_path)
        return

    await init_database()
    app.state.report_store = SqlReportStore()
    app.state.owns_database = True
    logger.info("SQL report store initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Retail Reports API")

    await _open_store(app)

    yield

    logger.info("Shutting down...")
    if app.state.owns_database:
        await close_database()


def _error_response(status_code: int, error: ReportingError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error.to_dict())


def create_api_app(
    report_store: Optional[ReportStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        report_store: Store to serve from; when omitted the store named
            by ``REPORTS_STORE`` is opened at startup
        clock: Clock used to resolve default periods

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Retail Reports API",
        description="Sales and inventory reporting for a retail shop",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.state.report_store = report_store
    app.state.owns_database = False
    app.state.period_resolver = PeriodResolver(settings.reporting, clock=clock) if clock else None

    # Middleware (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(InvalidFilterError)
    async def invalid_filter_handler(request: Request, exc: InvalidFilterError) -> JSONResponse:
        logger.info("Rejected report filters", message=exc.message)
        return _error_response(400, exc)

    @app.exception_handler(QueryExecutionError)
    async def query_error_handler(request: Request, exc: QueryExecutionError) -> JSONResponse:
        return _error_response(502, exc)

    @app.exception_handler(ReportingError)
    async def reporting_error_handler(request: Request, exc: ReportingError) -> JSONResponse:
        return _error_response(500, exc)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])

    if settings.monitoring.metrics_enabled:
        # Compression is left to GZipMiddleware
        app.mount("/metrics", make_asgi_app(disable_compression=True))

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Retail Reports API",
            "version": settings.version,
            "environment": settings.app_env,
            "store": type(app.state.report_store).__name__ if app.state.report_store else None,
        }

    return app
