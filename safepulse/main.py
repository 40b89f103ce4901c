"""SafePulse FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the broadcast services (location store,
registry, proximity engine, push dispatcher, orchestrator).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import Settings, settings
from safepulse.api.router import api_router
from safepulse.errors import InvalidArgumentError, RateLimitExceededError
from safepulse.services.broadcast import BroadcastOrchestrator
from safepulse.services.location_store import (
    InMemoryLocationStore,
    LocationStore,
    RedisLocationStore,
)
from safepulse.services.proximity import ProximityQueryEngine
from safepulse.services.push_dispatcher import PushDispatcher
from safepulse.services.rate_limiter import SlidingWindowLimiter
from safepulse.services.registry import DeviceLocationRegistry

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging(config: Settings) -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[config.log_level.upper()],
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _build_store(config: Settings) -> LocationStore:
    if config.redis_url:
        logger.info("app.store_redis")
        return RedisLocationStore(url=config.redis_url, namespace="safepulse:")
    logger.info("app.store_inmemory")
    return InMemoryLocationStore()


def _instrument(app: FastAPI, config: Settings) -> None:
    """Expose Prometheus metrics on ``/metrics``."""
    try:
        from prometheus_fastapi_instrumentator import Instrumentator
    except ImportError:
        logger.warning("app.prometheus_not_available")
        return

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["^/metrics$", "^/health", "^/$"],
    ).instrument(app).expose(
        app,
        endpoint="/metrics",
        include_in_schema=not config.is_production,
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    config: Settings | None = None,
    *,
    store: LocationStore | None = None,
    push_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application.

    *store* and *push_transport* replace the configured registry backend
    and the real push gateway connection (used by tests).
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Start the registry and dispatcher; close them on shutdown."""
        _configure_logging(config)
        logger.info("app.startup", env=config.env)

        app.state.start_time = time.time()
        app.state.default_radius_m = config.default_radius_m

        # -- 1. Registry ------------------------------------------------------
        registry = DeviceLocationRegistry(
            store if store is not None else _build_store(config),
            cell_degrees=config.grid_cell_degrees,
        )
        await registry.load()
        app.state.registry = registry

        # -- 2. Proximity engine ----------------------------------------------
        proximity = ProximityQueryEngine(registry, max_age=config.location_max_age)
        app.state.proximity = proximity

        # -- 3. Push dispatcher -----------------------------------------------
        dispatcher = PushDispatcher(
            config.push_gateway_url,
            batch_size=config.push_batch_size,
            timeout_seconds=config.push_timeout_seconds,
            max_concurrency=config.push_max_concurrency,
            access_token=config.push_access_token,
            transport=push_transport,
        )
        app.state.dispatcher = dispatcher

        # -- 4. Orchestrator --------------------------------------------------
        app.state.orchestrator = BroadcastOrchestrator(registry, proximity, dispatcher)

        # -- 5. Request budgets ----------------------------------------------
        app.state.device_limiter = SlidingWindowLimiter("device", config.rate_limit_per_minute)
        app.state.broadcast_limiter = SlidingWindowLimiter(
            "broadcast", config.broadcast_rate_limit_per_minute
        )
        app.state.trusted_proxy_count = config.trusted_proxy_count
        logger.info("app.startup_complete")

        yield

        logger.info("app.shutdown_start")
        await dispatcher.close()
        await registry.close()
        logger.info("app.shutdown_complete")

    app = FastAPI(
        title="SafePulse API",
        description="Proximity-based SOS broadcast service for the tourist safety app.",
        version="1.0.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if not config.is_production else None,
        redoc_url="/redoc" if not config.is_production else None,
    )

    # -- CORS middleware ------------------------------------------------------
    # Mobile clients do not send Origin; this only matters for web tooling.
    if config.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origin_list,
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
            allow_headers=["*"],
        )

    # -- Prometheus metrics ---------------------------------------------------
    if config.metrics_enabled:
        _instrument(app, config)

    # -- Error mapping --------------------------------------------------------

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(request: Request, exc: InvalidArgumentError) -> ORJSONResponse:
        logger.info("api.invalid_argument", path=request.url.path, error=str(exc))
        return ORJSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=429,
            content={"error": str(exc), "retry_after_seconds": exc.retry_after_seconds},
            headers={
                "Retry-After": str(exc.retry_after_seconds),
                "X-RateLimit-Limit": str(exc.limit),
            },
        )

    # -- Routes ---------------------------------------------------------------

    @app.get("/")
    async def root() -> dict:
        """Liveness check used by the mobile app."""
        return {"ok": True}

    app.include_router(api_router)

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn (``safepulse`` console script)."""
    import uvicorn

    uvicorn.run(
        "safepulse.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )
