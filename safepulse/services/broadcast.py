"""Broadcast orchestrator: registry -> proximity query -> push dispatch."""

from __future__ import annotations

import structlog

from safepulse.models.broadcast import BroadcastRequest, BroadcastResult, PushPayload
from safepulse.models.device import DeviceLocation
from safepulse.services.proximity import ProximityQueryEngine
from safepulse.services.push_dispatcher import PushDispatcher
from safepulse.services.registry import DeviceLocationRegistry

logger = structlog.get_logger(__name__)


class BroadcastOrchestrator:
    """Composes the registry, proximity engine and dispatcher.

    Every call is a single self-contained operation; no lock is held
    while the dispatcher waits on the push gateway.
    """

    __slots__ = ("_dispatcher", "_proximity", "_registry")

    def __init__(
        self,
        registry: DeviceLocationRegistry,
        proximity: ProximityQueryEngine,
        dispatcher: PushDispatcher,
    ) -> None:
        self._registry = registry
        self._proximity = proximity
        self._dispatcher = dispatcher

    async def register(
        self,
        identity: str,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> DeviceLocation:
        return await self._registry.register(identity, latitude, longitude)

    async def update_location(
        self, identity: str, latitude: float, longitude: float
    ) -> DeviceLocation:
        return await self._registry.update_location(identity, latitude, longitude)

    async def broadcast(self, request: BroadcastRequest) -> BroadcastResult:
        """Notify every device within ``request.radius_m`` of the origin.

        Returns ``sent_count == 0`` without contacting the gateway when
        nobody is in range.
        """
        recipients = await self._proximity.find_within(
            request.latitude, request.longitude, request.radius_m
        )
        if not recipients:
            logger.info("broadcast.no_recipients", radius_m=request.radius_m)
            return BroadcastResult()

        dispatch = await self._dispatcher.deliver(
            sorted(recipients), PushPayload.for_sos(request)
        )
        logger.info(
            "broadcast.sent",
            radius_m=request.radius_m,
            recipients=len(recipients),
            sent=dispatch.accepted,
            failed_batches=dispatch.failed_batches,
        )
        return BroadcastResult(
            sent_count=dispatch.accepted,
            recipients=len(recipients),
            dispatch=dispatch,
        )
