"""
miaw: a multi-instance WhatsApp client wrapper.

The protocol work is done by a transport (pyaileys by default); miaw adds the
connection lifecycle with reconnects, LID to phone resolution, in-memory
contact/chat/message/label stores and a flat command API returning result
records.
"""

from __future__ import annotations

from .client import MiawClient
from .config import ClientOptions
from .exceptions import (
    MiawError,
    NotConnectedError,
    ReconnectLimitError,
    SessionError,
    TransportRequestError,
    UnsupportedOperationError,
    ValidationError,
)
from .transport.base import BaseTransport, ConnectionUpdate, DisconnectReason, TransportContext
from .types import (
    Chat,
    Contact,
    ConnectionState,
    Label,
    MessageDelete,
    MessageEdit,
    MessageReaction,
    MiawMessage,
    PresenceUpdate,
)

__all__ = [
    "BaseTransport",
    "Chat",
    "ClientOptions",
    "ConnectionState",
    "ConnectionUpdate",
    "Contact",
    "DisconnectReason",
    "Label",
    "MessageDelete",
    "MessageEdit",
    "MessageReaction",
    "MiawClient",
    "MiawError",
    "MiawMessage",
    "NotConnectedError",
    "PresenceUpdate",
    "ReconnectLimitError",
    "SessionError",
    "TransportContext",
    "TransportRequestError",
    "UnsupportedOperationError",
    "ValidationError",
]

__version__ = "0.1.0"
