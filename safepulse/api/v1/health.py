"""Health check endpoints.

Provides liveness and readiness probes for container deployments.  The
readiness check verifies that the registry store answers.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual component statuses."""

    status: str
    checks: dict[str, str]
    registered_devices: int | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.  Does *not* check downstream dependencies."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe: registry store reachable and dispatcher configured."""
    checks: dict[str, str] = {}
    all_ok = True
    registered: int | None = None

    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        checks["registry"] = "not_initialised"
        all_ok = False
    else:
        try:
            if await registry.store.ping():
                checks["registry"] = "ok"
                registered = await registry.count()
            else:
                checks["registry"] = "unreachable"
                all_ok = False
        except Exception as exc:
            checks["registry"] = f"error: {exc!s}"
            all_ok = False

    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is not None:
        checks["push_dispatcher"] = "ok"
    else:
        checks["push_dispatcher"] = "not_initialised"
        all_ok = False

    status = "ready" if all_ok else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)

    return ReadinessResponse(status=status, checks=checks, registered_devices=registered)
