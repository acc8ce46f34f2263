from .base import (
    BaseTransport,
    ConnectionUpdate,
    DisconnectInfo,
    DisconnectReason,
    TransportContext,
    TransportFactory,
    reason_name,
)
from .disconnect import classify_disconnect, classify_error, stream_error_code

__all__ = [
    "BaseTransport",
    "ConnectionUpdate",
    "DisconnectInfo",
    "DisconnectReason",
    "TransportContext",
    "TransportFactory",
    "classify_disconnect",
    "classify_error",
    "reason_name",
    "stream_error_code",
]
