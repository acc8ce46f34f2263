from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from websockets.exceptions import ConnectionClosed

from .base import DisconnectInfo, DisconnectReason

# Stream-error child tags without an explicit numeric code.
_STREAM_ERROR_CODES = {
    "conflict": DisconnectReason.CONNECTION_REPLACED,
}


def _causes(exc: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def stream_error_code(
    attrs: Mapping[str, Any], children: Sequence[tuple[str, Mapping[str, Any]]]
) -> int:
    """
    Status code for a `<stream:error>` stanza, given its attrs and `(tag, attrs)` children.

    An explicit `code` attribute wins; a `conflict` child means the session was
    replaced, or logged out when its type is `device_removed`.
    """

    first_tag, first_attrs = children[0] if children else ("", {})
    if first_tag == "conflict" and first_attrs.get("type") == "device_removed":
        return DisconnectReason.LOGGED_OUT

    raw = attrs.get("code")
    if isinstance(raw, str) and raw.isdigit():
        return int(raw)
    if isinstance(raw, int):
        return raw
    return int(_STREAM_ERROR_CODES.get(first_tag, DisconnectReason.BAD_SESSION))


def classify_error(exc: BaseException | None) -> int | None:
    """Status code for a transport failure, from the first recognized cause."""

    for cause in _causes(exc):
        if isinstance(cause, ConnectionClosed):
            if cause.rcvd is None:
                return DisconnectReason.CONNECTION_LOST
            return DisconnectReason.CONNECTION_CLOSED
        if isinstance(cause, (asyncio.TimeoutError, TimeoutError)):
            return DisconnectReason.TIMED_OUT
        code = getattr(cause, "status_code", None)
        if isinstance(code, int):
            return code
    return None


def classify_disconnect(
    exc: BaseException | None, *, stream_error: int | None = None
) -> DisconnectInfo:
    """
    Combine what is known about a close into a `DisconnectInfo`.

    A stream error received just before the close is the most specific signal;
    otherwise the exception chain is inspected, and a clean close without
    either reports `connectionClosed`.
    """

    if stream_error is not None:
        return DisconnectInfo(status_code=stream_error, error=exc)
    code = classify_error(exc)
    if code is None and exc is not None:
        code = DisconnectReason.CONNECTION_LOST
    elif code is None:
        code = DisconnectReason.CONNECTION_CLOSED
    return DisconnectInfo(status_code=int(code), error=exc)
