from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class DeviceLocation(BaseModel):
    """Last known position of one push destination.

    ``latitude``/``longitude`` stay ``None`` after a bare register until
    the first location report arrives.
    """

    identity: str = Field(min_length=1)
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    updated_at: datetime | None = None
    registered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
