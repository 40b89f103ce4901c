"""Request helpers for the public device API: lenient JSON parsing and
the caller address used for rate limiting.

The mobile clients send loosely typed bodies and expect a short
``{"error": ...}`` message rather than a 422 validation report, so the
endpoints read the raw body and check fields themselves.
"""

from __future__ import annotations

import math
from typing import Any

import orjson
from fastapi import Request


async def read_json_object(request: Request) -> dict[str, Any]:
    """Return the request body as a dict; anything else becomes ``{}``."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def is_number(value: object) -> bool:
    """True for finite JSON numbers (``true``/``false`` do not count)."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_latitude(value: object) -> bool:
    return is_number(value) and -90.0 <= value <= 90.0


def is_longitude(value: object) -> bool:
    return is_number(value) and -180.0 <= value <= 180.0


def is_token(value: object) -> bool:
    return isinstance(value, str) and value != ""


def client_address(request: Request, trusted_proxy_count: int) -> str:
    """Caller address as seen by the outermost of our trusted proxies.

    Each trusted proxy appends one entry to ``X-Forwarded-For``, so the
    client is the entry just before the last *trusted_proxy_count*.
    """
    forwarded = [part.strip() for part in request.headers.get("X-Forwarded-For", "").split(",")]
    forwarded = [part for part in forwarded if part]
    if forwarded and trusted_proxy_count > 0:
        return forwarded[max(0, len(forwarded) - trusted_proxy_count - 1)]
    if request.client:
        return request.client.host
    return "unknown"
