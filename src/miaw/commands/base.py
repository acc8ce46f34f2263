from __future__ import annotations

import asyncio
import logging
import mimetypes
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from ..constants import GROUP_SUFFIX, NEWSLETTER_SUFFIX
from ..exceptions import NotConnectedError, ValidationError
from ..results import OperationResult
from ..transport.base import BaseTransport

if TYPE_CHECKING:
    from ..connection import ConnectionController
    from ..lid_cache import LidMapping
    from ..store import ChatStore, ContactStore, LabelStore, MessageStore

R = TypeVar("R", bound=OperationResult)

MediaSource = bytes | str | Path


class CommandBase:
    """
    Shared plumbing for the command mixins.

    `_command` runs one transport call and folds the outcome into a result
    record: any exception becomes `success=False` with its message.
    """

    logger: logging.Logger
    contacts: ContactStore
    chats: ChatStore
    messages: MessageStore
    labels: LabelStore
    lid_mapping: LidMapping
    _controller: ConnectionController

    def _connected_transport(self) -> BaseTransport:
        transport = self._controller.transport
        if self._controller.state != "connected" or transport is None:
            raise NotConnectedError(self._controller.state)
        return transport

    async def _command(
        self,
        operation: str,
        result_cls: type[R],
        call: Callable[[BaseTransport], Awaitable[Mapping[str, Any] | None]],
        *,
        check: Callable[[], None] | None = None,
    ) -> R:
        try:
            if check is not None:
                check()
            transport = self._connected_transport()
            fields = await call(transport)
        except Exception as e:
            self.logger.error("%s failed: %s", operation, e)
            return result_cls(success=False, error=str(e))
        return result_cls(success=True, **dict(fields or {}))


async def read_media(source: MediaSource) -> tuple[bytes, str | None]:
    """Raw bytes plus a file name (when `source` is a path)."""

    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source), None
    path = Path(source).expanduser()
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise ValidationError(f"cannot read media file {path}: {e}") from e
    return data, path.name


def guess_mimetype(file_name: str | None, default: str | None = None) -> str | None:
    if not file_name:
        return default
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or default


def require_group_jid(jid: str) -> None:
    if not jid or not jid.endswith(GROUP_SUFFIX):
        raise ValidationError(f"Invalid group JID: {jid!r} (must end with {GROUP_SUFFIX})")


def require_newsletter_jid(jid: str) -> None:
    if not jid or not jid.endswith(NEWSLETTER_SUFFIX):
        raise ValidationError(
            f"Invalid newsletter JID: {jid!r} (must end with {NEWSLETTER_SUFFIX})"
        )
