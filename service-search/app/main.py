"""Documentation search service main application."""

import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from docsearch.common.config import ServiceConfig
from docsearch.common.logging import configure_logging
from docsearch.hybrid.engine import SearchEngine, create_search_engine

from .api.routes import router as api_router
from .runtime.metrics import MetricsCollector

logger = structlog.get_logger("search_service")

EngineFactory = Callable[[ServiceConfig, MetricsCollector], SearchEngine]


def default_engine_factory(config: ServiceConfig, metrics: MetricsCollector) -> SearchEngine:
    return create_search_engine(config, metrics=metrics)


def create_app(
    config: Optional[ServiceConfig] = None,
    engine_factory: EngineFactory = default_engine_factory,
) -> FastAPI:
    """Create the FastAPI application.

    ``engine_factory`` builds the ``SearchEngine`` during startup so tests
    can supply one wired to fakes.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        service_config = config or ServiceConfig()
        configure_logging(
            service_config.docsearch_service_name,
            service_config.docsearch_log_level,
            service_config.docsearch_log_format,
        )
        logger.info("Starting search service")

        app.state.metrics_collector = MetricsCollector(service_config.docsearch_service_name)
        app.state.engine = engine_factory(service_config, app.state.metrics_collector)
        await app.state.engine.initialize()

        logger.info("Search service started successfully", **app.state.engine.stats())

        yield

        # Shutdown
        logger.info("Shutting down search service")
        await app.state.engine.close()
        logger.info("Search service shutdown complete")

    app = FastAPI(
        title="Documentation Search Service",
        description="Hybrid keyword and semantic documentation search",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests."""
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            logger.error("Unhandled request error", path=request.url.path, error=str(e))
            status_code = 500
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "detail": str(e)}
            )

        duration = time.time() - start_time
        response.headers["X-Process-Time"] = str(duration)

        metrics_collector = getattr(request.app.state, "metrics_collector", None)
        if metrics_collector is not None:
            metrics_collector.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status=status_code,
                duration=duration
            )

        return response

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint.

        An empty index is still healthy: search degrades to no results.
        """
        engine = getattr(request.app.state, "engine", None)
        if engine is None:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "service": "search-service"}
            )
        return {"status": "healthy", "service": "search-service", **engine.stats()}

    @app.get("/metrics")
    async def metrics(request: Request):
        """Prometheus metrics endpoint."""
        metrics_collector = getattr(request.app.state, "metrics_collector", None)
        if metrics_collector is None:
            return Response(content="# No metrics available\n", media_type="text/plain")
        return Response(content=metrics_collector.get_metrics(), media_type="text/plain")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "search-service",
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "health": "/health",
                "metrics": "/metrics",
                "search": "/api/v1/search",
                "suggest": "/api/v1/suggest",
                "enhancement": "/api/v1/enhancement",
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=ServiceConfig().docsearch_service_port,
        reload=True,
        log_level="info"
    )
