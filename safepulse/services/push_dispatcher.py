"""Batched delivery of push notifications to the Expo push gateway.

Recipients are split into batches of at most 100 (the gateway's
per-request limit) and each batch is sent as one HTTP POST whose body
is a JSON array of messages.  A batch is *accepted* when the gateway
answers with a 2xx status; that is the only guarantee given, actual
device delivery is up to the gateway.

Failure policy
--------------
* A non-2xx answer raises :class:`GatewayDeliveryError` for that batch.
* A timeout or transport error raises :class:`GatewayUnavailableError`.
* Either is logged and counted as a failed batch; the remaining batches
  still go out.  There are no automatic retries.

Batches are sent concurrently, bounded by an ``asyncio.Semaphore``.
Each batch is issued once and contributes to the accepted count at most
once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence

import httpx
import structlog

from safepulse.errors import GatewayDeliveryError, GatewayUnavailableError
from safepulse.models.broadcast import DispatchResult, PushMessage, PushPayload

logger = structlog.get_logger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
MAX_BATCH_SIZE = 100


def chunk_identities(identities: Iterable[str], size: int) -> list[list[str]]:
    """De-duplicate *identities* (first occurrence wins) and split into batches."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    unique = list(dict.fromkeys(identities))
    return [unique[i : i + size] for i in range(0, len(unique), size)]


class PushDispatcher:
    """Client for the push gateway.

    Parameters
    ----------
    gateway_url:
        Absolute URL of the gateway's send endpoint.
    batch_size:
        Recipients per request, capped at 100.
    timeout_seconds:
        Upper bound for every gateway call.
    max_concurrency:
        Maximum number of batches in flight at once.
    access_token:
        Optional bearer token for gateways with push security enabled.
    transport:
        Custom ``httpx`` transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        gateway_url: str = EXPO_PUSH_URL,
        *,
        batch_size: int = MAX_BATCH_SIZE,
        timeout_seconds: float = 10.0,
        max_concurrency: int = 4,
        access_token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        self._gateway_url = gateway_url
        self._batch_size = min(max(batch_size, 1), MAX_BATCH_SIZE)
        self._semaphore = asyncio.Semaphore(max(max_concurrency, 1))
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            headers=headers,
            transport=transport,
            limits=httpx.Limits(
                max_connections=max(max_concurrency, 1),
                max_keepalive_connections=max(max_concurrency, 1),
            ),
        )

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def deliver(self, identities: Iterable[str], payload: PushPayload) -> DispatchResult:
        """Send *payload* to every identity and report gateway acceptance."""
        batches = chunk_identities(identities, self._batch_size)
        if not batches:
            return DispatchResult()

        outcomes = await asyncio.gather(
            *(self._deliver_batch(n, batch, payload) for n, batch in enumerate(batches))
        )

        result = DispatchResult(batches=len(batches))
        for batch, error in zip(batches, outcomes, strict=True):
            if error is None:
                result.accepted += len(batch)
                continue
            result.failed_batches += 1
            if isinstance(error, GatewayUnavailableError):
                result.unavailable_batches += 1

        log = logger.warning if result.failed_batches else logger.info
        log(
            "dispatch.completed",
            batches=result.batches,
            accepted=result.accepted,
            failed_batches=result.failed_batches,
            unavailable_batches=result.unavailable_batches,
        )
        return result

    async def _deliver_batch(
        self, number: int, batch: Sequence[str], payload: PushPayload
    ) -> GatewayDeliveryError | None:
        """Send one batch.  Returns the error instead of raising it."""
        messages = [
            PushMessage(to=to, title=payload.title, body=payload.body, data=payload.data).model_dump()
            for to in batch
        ]
        try:
            async with self._semaphore:
                await self._post(messages)
        except GatewayDeliveryError as exc:
            logger.warning(
                "dispatch.batch_failed",
                batch=number,
                size=len(batch),
                status_code=exc.status_code,
                error=str(exc),
            )
            return exc
        return None

    async def _post(self, messages: list[dict]) -> None:
        try:
            response = await self._client.post(self._gateway_url, json=messages)
        except httpx.TimeoutException as exc:
            raise GatewayUnavailableError(f"push gateway timed out: {exc!s}") from exc
        except httpx.TransportError as exc:
            raise GatewayUnavailableError(f"push gateway unreachable: {exc!s}") from exc

        if not response.is_success:
            raise GatewayDeliveryError(
                f"push gateway returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
