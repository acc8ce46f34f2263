from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .config import ClientOptions
from .constants import LABEL_COLLECTIONS, TIMEOUTS
from .exceptions import ReconnectLimitError, SessionError, UnsupportedOperationError
from .session import SessionStore
from .transport.base import (
    BaseTransport,
    ConnectionUpdate,
    DisconnectInfo,
    TransportContext,
    TransportFactory,
)
from .types import ConnectionState
from .util.asyncio import cancel_suppress, ensure_task
from .util.events import AsyncEventEmitter

logger = logging.getLogger(__name__)


class ConnectionController:
    """
    Owns the transport and the connection state machine.

    States move `disconnected -> connecting -> (qr_required ->) connected`, and
    back to `disconnected` on close. A non-logout close schedules one reconnect
    timer (`reconnecting`), bounded by `max_reconnect_attempts`; the counter
    resets on every successful open. A logged-out close purges the session
    folder and never retries.

    `attach` is called with every new transport so the caller can bind its own
    listeners (the event projector) before the transport starts connecting.
    """

    def __init__(
        self,
        *,
        options: ClientOptions,
        factory: TransportFactory,
        session: SessionStore,
        notify: AsyncEventEmitter,
        attach: Callable[[BaseTransport], None] | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.options = options
        self.session = session
        self._factory = factory
        self._notify = notify
        self._attach_hook = attach
        self._log = log or logger

        self.state: ConnectionState = "disconnected"
        self.transport: BaseTransport | None = None
        self.reconnect_attempts = 0
        # Bumped by disconnect/logout; a connect() started under an older value gives up.
        self._generation = 0
        self._reconnect_task: asyncio.Task[None] | None = None
        self._label_task: asyncio.Task[None] | None = None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self._log.debug("connection state %s -> %s", self.state, state)
        self.state = state
        await self._notify.emit("connection", state)

    # -- transport wiring --

    def _attach(self, transport: BaseTransport) -> None:
        async def on_update(update: ConnectionUpdate) -> None:
            if transport is self.transport:
                await self._on_connection_update(transport, update)

        async def on_creds(_creds: Any = None) -> None:
            if transport is self.transport:
                await self._on_creds_update(transport)

        transport.events.on("connection.update", on_update)
        transport.events.on("creds.update", on_creds)
        if self._attach_hook is not None:
            self._attach_hook(transport)
        self.transport = transport

    def _detach(self) -> BaseTransport | None:
        """Forget the current transport so nothing it emits afterwards is handled."""

        transport, self.transport = self.transport, None
        if transport is not None:
            transport.events.remove_all_listeners()
        return transport

    async def _close_quietly(self, transport: BaseTransport) -> None:
        try:
            await transport.close()
        except Exception as e:
            self._log.warning("closing transport failed: %s", e)

    # -- lifecycle --

    async def connect(self) -> None:
        if self.state in ("connected", "connecting"):
            self._log.debug("connect() ignored while %s", self.state)
            return

        # The reconnect task keeps its handle while it runs this connect(), so
        # disconnect() can still cancel it.
        pending = self._reconnect_task
        if pending is not asyncio.current_task():
            self._reconnect_task = None
            await cancel_suppress(pending)
        previous = self._detach()
        if previous is not None:
            await self._close_quietly(previous)

        generation = self._generation
        await self._set_state("connecting")
        try:
            session_dir = self.session.ensure()
            ctx = TransportContext(
                instance_id=self.options.instance_id, session_dir=session_dir, logger=self._log
            )
            transport = await self._factory(ctx)
            if generation != self._generation:
                self._log.debug("connect abandoned: client was disconnected meanwhile")
                await self._close_quietly(transport)
                return
            self._attach(transport)
            await transport.connect()
        except Exception as e:
            if generation != self._generation:
                self._log.debug("connect failed after disconnect: %s", e)
                return
            self._log.error("connect failed: %s", e)
            failed = self._detach()
            if failed is not None:
                await self._close_quietly(failed)
            await self._set_state("disconnected")
            await self._notify.emit("error", e)
            if self.options.auto_reconnect and generation == self._generation:
                await self.schedule_reconnect()

    async def disconnect(self) -> None:
        """Close the transport; credentials stay on disk."""

        self._generation += 1
        await self._cancel_tasks()
        transport = self._detach()
        if transport is not None:
            await self._close_quietly(transport)
        await self._set_state("disconnected")

    async def logout(self) -> None:
        """Unlink this device (best effort) and wipe its session folder."""

        self._generation += 1
        await self._cancel_tasks()
        transport = self._detach()
        if transport is not None:
            try:
                await transport.logout()
            except Exception as e:
                self._log.warning("logout request failed: %s", e)
                await self._close_quietly(transport)
        self.reconnect_attempts = 0
        await self._set_state("disconnected")
        await self._purge_session()

    async def wait_for_state(
        self, state: ConnectionState, timeout_s: float = TIMEOUTS.WAIT_FOR_STATE / 1000
    ) -> None:
        """Return once `state` is reached; raises `asyncio.TimeoutError` after `timeout_s`."""

        if self.state == state:
            return
        await self._notify.wait_for(
            "connection", predicate=lambda s: s == state, timeout_s=timeout_s
        )

    async def _cancel_tasks(self) -> None:
        reconnect, self._reconnect_task = self._reconnect_task, None
        label, self._label_task = self._label_task, None
        await cancel_suppress(reconnect)
        await cancel_suppress(label)

    # -- transport events --

    async def _on_connection_update(
        self, transport: BaseTransport, update: ConnectionUpdate
    ) -> None:
        if update.qr:
            await self._set_state("qr_required")
            await self._notify.emit("qr", update.qr)

        if update.connection == "open":
            self.reconnect_attempts = 0
            await self._set_state("connected")
            self._log.info("connected")
            await self._notify.emit("ready")
            self._start_label_sync(transport)
        elif update.connection == "close":
            await self._on_close(update.last_disconnect or DisconnectInfo())

    async def _on_close(self, info: DisconnectInfo) -> None:
        self._log.info("disconnected: %s (code %s)", info.reason, info.status_code)
        transport = self._detach()
        await cancel_suppress(self._label_task)
        self._label_task = None
        if transport is not None:
            await self._close_quietly(transport)

        await self._set_state("disconnected")
        await self._notify.emit("disconnected", info.reason)

        if info.is_logged_out:
            self._log.info("logged out, not reconnecting")
            self.reconnect_attempts = 0
            await self._purge_session()
            return
        if self.options.auto_reconnect:
            await self.schedule_reconnect()

    async def _on_creds_update(self, transport: BaseTransport) -> None:
        try:
            await transport.save_credentials()
        except Exception as e:
            self._log.error("saving credentials failed: %s", e)
            await self._notify.emit("error", e)
            return
        await self._notify.emit("session_saved")

    # -- reconnect --

    async def schedule_reconnect(self) -> bool:
        """
        Arm the reconnect timer, replacing any pending one.

        Returns False (and emits `error`) once the attempt limit is reached.
        """

        limit = self.options.max_reconnect_attempts
        if limit is not None and self.reconnect_attempts >= limit:
            err = ReconnectLimitError(self.reconnect_attempts)
            self._log.error("%s", err)
            await self._notify.emit("error", err)
            return False

        pending, self._reconnect_task = self._reconnect_task, None
        await cancel_suppress(pending)

        self.reconnect_attempts += 1
        await self._set_state("reconnecting")
        await self._notify.emit("reconnecting", self.reconnect_attempts)
        self._reconnect_task = ensure_task(
            self._reconnect_after(self.options.reconnect_delay_s),
            name=f"miaw.{self.options.instance_id}.reconnect",
            logger=self._log,
        )
        return True

    async def _reconnect_after(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        self._log.info("reconnecting, attempt %d", self.reconnect_attempts)
        try:
            await self.connect()
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    # -- background work --

    def _start_label_sync(self, transport: BaseTransport) -> None:
        if self._label_task is not None and not self._label_task.done():
            self._label_task.cancel()
        self._label_task = ensure_task(
            self._sync_labels(transport),
            name=f"miaw.{self.options.instance_id}.label_sync",
            logger=self._log,
        )

    async def _sync_labels(self, transport: BaseTransport) -> None:
        try:
            await transport.resync_app_state(LABEL_COLLECTIONS)
        except UnsupportedOperationError:
            self._log.debug("transport has no app-state sync; labels fill from live events only")
        except Exception as e:
            self._log.warning("label sync failed: %s", e)

    async def _purge_session(self) -> None:
        try:
            removed = await self.session.purge()
        except SessionError as e:
            self._log.error("%s", e)
            await self._notify.emit("error", e)
            return
        if removed:
            self._log.info("session %s purged", self.session.path)
