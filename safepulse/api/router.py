"""Main API router combining all route modules.

The device and broadcast routes live at the root (``/register``,
``/updateLocation``, ``/broadcast``) because deployed mobile clients
call those exact paths.
"""

from __future__ import annotations

from fastapi import APIRouter

from safepulse.api.v1 import broadcast, devices, health

api_router = APIRouter()

api_router.include_router(devices.router)
api_router.include_router(broadcast.router)
api_router.include_router(health.router)
