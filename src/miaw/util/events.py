from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import Any

from pyaileys.util.events import AsyncEventEmitter as _EventEmitter
from pyaileys.util.events import Listener

__all__ = ["AsyncEventEmitter", "Listener"]


class AsyncEventEmitter(_EventEmitter):
    """
    pyaileys' emitter with `once`, `listener_count` and listener isolation.

    Listeners reach the base emitter through a small wrapper, so `emit`,
    `wait_for` and `wait_for_future` are inherited as-is. With `error_logger`
    set, a failing listener is logged and the remaining listeners still run;
    without it the exception propagates to the emitter.
    """

    def __init__(self, *, error_logger: logging.Logger | None = None) -> None:
        super().__init__()
        self._error_logger = error_logger
        # event -> [(listener as registered, wrapper handed to the base emitter)]
        self._wrapped: dict[str, list[tuple[Listener, Listener]]] = defaultdict(list)

    def _register(self, event: str, listener: Listener, *, once: bool) -> None:
        async def call(*args: Any, **kwargs: Any) -> None:
            if once:
                self._unregister(event, listener, call)
            try:
                res = listener(*args, **kwargs)
                if inspect.isawaitable(res):
                    await res
            except Exception:
                if self._error_logger is None:
                    raise
                self._error_logger.exception("listener for %r failed", event)

        self._wrapped[event].append((listener, call))
        super().on(event, call)

    def _unregister(self, event: str, listener: Listener, wrapper: Listener | None = None) -> None:
        entries = self._wrapped.get(event)
        if not entries:
            return
        for i, (orig, wrapped) in enumerate(entries):
            if orig == listener and (wrapper is None or wrapped is wrapper):
                del entries[i]
                super().off(event, wrapped)
                return

    def on(self, event: str, listener: Listener) -> None:
        self._register(event, listener, once=False)

    def once(self, event: str, listener: Listener) -> None:
        self._register(event, listener, once=True)

    def off(self, event: str, listener: Listener) -> None:
        self._unregister(event, listener)

    def listener_count(self, event: str) -> int:
        return len(self._wrapped.get(event, []))

    def remove_all_listeners(self, event: str | None = None) -> None:
        """Drop listeners (of one event, or all) and cancel their pending waiters."""

        if event is None:
            pending = [w for waiters in self._waiters.values() for w in waiters]
            self._wrapped.clear()
        else:
            pending = list(self._waiters.get(event, []))
            self._wrapped.pop(event, None)
        for _, fut in pending:
            fut.cancel()
        super().remove_all_listeners(event)
