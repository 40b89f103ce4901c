from safepulse.models.broadcast import (
    DEFAULT_BODY,
    DEFAULT_RADIUS_M,
    DEFAULT_TITLE,
    BroadcastRequest,
    BroadcastResult,
    DispatchResult,
    PushMessage,
    PushPayload,
)
from safepulse.models.device import DeviceLocation

__all__ = [
    "DEFAULT_BODY",
    "DEFAULT_RADIUS_M",
    "DEFAULT_TITLE",
    "BroadcastRequest",
    "BroadcastResult",
    "DeviceLocation",
    "DispatchResult",
    "PushMessage",
    "PushPayload",
]
