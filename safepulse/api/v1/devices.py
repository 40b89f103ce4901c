"""Device registration and location reporting endpoints.

Called by the mobile app when push permission is granted (``/register``)
and periodically while location sharing is on (``/updateLocation``).
Both share one request budget per push token.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request

from safepulse.api.payload import is_latitude, is_longitude, is_token, read_json_object
from safepulse.errors import InvalidArgumentError

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["devices"])


@router.post("/register")
async def register_device(request: Request) -> dict:
    """Register a push token, optionally with an initial location.

    ``lat``/``lng`` are applied only when both are valid coordinates;
    otherwise the token is registered without a location.
    """
    data = await read_json_object(request)
    token = data.get("token")
    if not is_token(token):
        raise InvalidArgumentError("token required")
    request.app.state.device_limiter.hit(token)

    lat, lng = data.get("lat"), data.get("lng")
    if is_latitude(lat) and is_longitude(lng):
        await request.app.state.orchestrator.register(token, lat, lng)
    else:
        await request.app.state.orchestrator.register(token)

    return {"ok": True}


@router.post("/updateLocation")
async def update_location(request: Request) -> dict:
    """Report the device's current coordinates."""
    data = await read_json_object(request)
    token, lat, lng = data.get("token"), data.get("lat"), data.get("lng")
    if not (is_token(token) and is_latitude(lat) and is_longitude(lng)):
        raise InvalidArgumentError("token, lat, lng required")
    request.app.state.device_limiter.hit(token)

    await request.app.state.orchestrator.update_location(token, lat, lng)
    return {"ok": True}
