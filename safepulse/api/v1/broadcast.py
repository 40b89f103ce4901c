"""SOS broadcast endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from safepulse.api.payload import (
    client_address,
    is_latitude,
    is_longitude,
    is_number,
    read_json_object,
)
from safepulse.errors import InvalidArgumentError
from safepulse.models.broadcast import DEFAULT_BODY, DEFAULT_TITLE, BroadcastRequest

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["broadcast"])


@router.post("/broadcast")
async def broadcast_sos(request: Request) -> ORJSONResponse:
    """Push an SOS alert to every registered device near ``lat``/``lng``.

    ``sent`` counts recipients whose batch the push gateway accepted.
    The ``X-Push-*`` headers tell an empty neighbourhood apart from a
    gateway outage.  Alerts are limited per caller address on a budget
    separate from location traffic.
    """
    state = request.app.state
    state.broadcast_limiter.hit(client_address(request, state.trusted_proxy_count))

    data = await read_json_object(request)
    lat, lng = data.get("lat"), data.get("lng")
    if not (is_latitude(lat) and is_longitude(lng)):
        raise InvalidArgumentError("lat,lng required")

    radius = data.get("radius")
    if radius is None:
        radius = request.app.state.default_radius_m
    elif not (is_number(radius) and radius > 0):
        raise InvalidArgumentError("radius must be a positive number")

    title = data.get("title")
    body = data.get("body")
    sos = BroadcastRequest(
        latitude=lat,
        longitude=lng,
        radius_m=radius,
        title=title if isinstance(title, str) else DEFAULT_TITLE,
        body=body if isinstance(body, str) else DEFAULT_BODY,
    )

    result = await request.app.state.orchestrator.broadcast(sos)

    dispatch = result.dispatch
    headers = {
        "X-Push-Recipients": str(result.recipients),
        "X-Push-Batches": str(dispatch.batches if dispatch else 0),
        "X-Push-Failed-Batches": str(dispatch.failed_batches if dispatch else 0),
    }
    return ORJSONResponse({"ok": True, "sent": result.sent_count}, headers=headers)
