"""
Narrative trace service: event ingestion and running aggregates.

Features:
- Choice and annotation ingestion with write-through persistence
- Aggregate snapshot queries per context
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.responses import TraceJSONResponse, error_response
from .api.router import router
from .config import Settings, get_settings
from .health import HealthChecker
from .logging import get_logger, setup_logging
from .metrics import Metrics
from .middleware import (
    BodySizeLimitMiddleware,
    CorrelationIdMiddleware,
    CorsHeadersMiddleware,
    ErrorHandlerMiddleware,
    MetricsMiddleware,
)
from .services.recorder import TraceRecorder
from .stats.store import AggregationStore
from .storage.persistence import SnapshotPersistence

SERVICE_NAME = "storytrace"

logger = get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the service with its own store, persistence and metrics.

    Args:
        settings: Configuration (defaults to the environment-derived settings)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    persistence = SnapshotPersistence(settings.TRACE_DATA_DIR)
    store = AggregationStore(persistence)
    metrics = Metrics(service_name=SERVICE_NAME, version=__version__)
    recorder = TraceRecorder(store, persistence, metrics)
    health_checker = HealthChecker(store, persistence)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=__version__,
            env=settings.ENV,
            data_dir=str(persistence.data_dir),
        )
        await store.ensure_loaded()
        metrics.set_aggregate_sizes(
            contexts=store.context_count(),
            sessions=len(store.snapshot.sessions),
        )
        yield
        logger.info("service_stopping")
        metrics.app_up.labels(service=SERVICE_NAME, version=__version__).set(0)

    app = FastAPI(
        title="Storytrace",
        version=__version__,
        description="Telemetry ingestion and aggregation for branching-narrative clients",
        default_response_class=TraceJSONResponse,
        redirect_slashes=False,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.persistence = persistence
    app.state.metrics = metrics
    app.state.recorder = recorder
    app.state.health_checker = health_checker

    # Added innermost first: the last one added runs first
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_size=settings.MAX_BODY_SIZE)
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(CorsHeadersMiddleware)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and wrong methods both read as "no such route"
        if exc.status_code in (404, 405):
            return error_response(404, "not_found")
        return error_response(exc.status_code, "http_error", message=exc.detail)

    app.include_router(router)

    @app.get("/health/ready")
    async def health_ready():
        """
        Readiness probe.

        Returns:
            200: Snapshot loaded and the data directory can take writes
            503: Service is not ready
        """
        await store.ensure_loaded()
        result = health_checker.readiness()
        return TraceJSONResponse(status_code=200 if result["ok"] else 503, content=result)

    @app.get("/metrics")
    async def prometheus_metrics():
        return Response(generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)

    return app


setup_logging(json_output=get_settings().LOG_JSON, service_name=SERVICE_NAME)
app = create_app()


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storytrace.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    run()
