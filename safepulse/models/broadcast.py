from __future__ import annotations

from typing import Any, Final, Literal

from pydantic import BaseModel, Field, computed_field

DEFAULT_RADIUS_M: Final[float] = 500.0
DEFAULT_TITLE: Final[str] = "SOS Alert"
DEFAULT_BODY: Final[str] = "A nearby user needs help"


class BroadcastRequest(BaseModel):
    """One SOS broadcast, built per request and never persisted."""

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    radius_m: float = Field(default=DEFAULT_RADIUS_M, gt=0)
    title: str = DEFAULT_TITLE
    body: str = DEFAULT_BODY


class PushPayload(BaseModel):
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_sos(cls, request: BroadcastRequest) -> PushPayload:
        return cls(
            title=request.title,
            body=request.body,
            data={"type": "sos", "lat": request.latitude, "lng": request.longitude},
        )


class PushMessage(BaseModel):
    """A single message in a push gateway batch."""

    to: str
    sound: Literal["default"] | None = "default"
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)


class DispatchResult(BaseModel):
    """Outcome of handing recipients to the push gateway.

    ``accepted`` counts recipients in batches the gateway accepted; it is
    not a device delivery confirmation.
    """

    accepted: int = 0
    batches: int = 0
    failed_batches: int = 0
    unavailable_batches: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_failed(self) -> bool:
        return self.batches > 0 and self.failed_batches == self.batches


class BroadcastResult(BaseModel):
    sent_count: int = 0
    recipients: int = 0
    dispatch: DispatchResult | None = None
