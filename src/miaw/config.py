from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import DEFAULT_SESSION_PATH, LID_MAP_MAX_SIZE, TIMEOUTS
from .exceptions import ValidationError

if TYPE_CHECKING:
    from .transport.base import TransportFactory


@dataclass(slots=True)
class ClientOptions:
    """
    Options for one `MiawClient` instance.

    `instance_id` scopes everything per account: the session folder is
    `<session_path>/<instance_id>` and each instance gets its own LID mapping
    and stores. `max_reconnect_attempts=None` retries forever.
    """

    instance_id: str
    session_path: str = DEFAULT_SESSION_PATH
    debug: bool = False
    logger: logging.Logger | None = None

    auto_reconnect: bool = True
    max_reconnect_attempts: int | None = None
    reconnect_delay_ms: int = TIMEOUTS.RECONNECT_DELAY

    lid_cache_size: int = LID_MAP_MAX_SIZE

    # Builds the transport on every connect; defaults to the pyaileys transport.
    transport_factory: TransportFactory | None = None

    def __post_init__(self) -> None:
        if not self.instance_id or not self.instance_id.strip():
            raise ValidationError("instance_id is required")
        if any(sep in self.instance_id for sep in ("/", "\\")) or self.instance_id in (".", ".."):
            raise ValidationError(f"instance_id must be a plain name: {self.instance_id!r}")
        if not self.session_path:
            raise ValidationError("session_path cannot be empty")
        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 0:
            raise ValidationError("max_reconnect_attempts must be >= 0")
        if self.reconnect_delay_ms < 0:
            raise ValidationError("reconnect_delay_ms must be >= 0")
        if self.lid_cache_size < 1:
            raise ValidationError("lid_cache_size must be >= 1")

    @property
    def reconnect_delay_s(self) -> float:
        return self.reconnect_delay_ms / 1000.0
