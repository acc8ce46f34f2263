from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from miaw import ClientOptions, MiawClient
from miaw.transport.base import (
    BaseTransport,
    ConnectionUpdate,
    DisconnectInfo,
    MediaKind,
    ParticipantAction,
    PresenceKind,
    TransportContext,
)
from miaw.types import (
    Contact,
    GroupInfo,
    GroupParticipant,
    Label,
    ParticipantOperationResult,
)


class FakeTransport(BaseTransport):
    """
    Scripted transport: records every call and lets tests drive the events.

    `resync_labels` is what a resync emits on `labels.edit`; with
    `hang_resync=True` the resync never completes.
    """

    def __init__(self, *, registered: Sequence[str] = (), hang_resync: bool = False) -> None:
        super().__init__()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.registered = set(registered)
        self.hang_resync = hang_resync
        self.resync_labels: list[dict[str, Any]] = []
        self.resynced = asyncio.Event()
        self.closed = False
        self.logged_out = False
        self.fail_save = False

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]

    # -- test drivers --

    async def open(self) -> None:
        await self.events.emit("connection.update", ConnectionUpdate(connection="open"))

    async def drop(self, status_code: int | None) -> None:
        info = DisconnectInfo(status_code=status_code)
        await self.events.emit(
            "connection.update", ConnectionUpdate(connection="close", last_disconnect=info)
        )

    # -- lifecycle --

    async def connect(self) -> None:
        self._record("connect")

    async def close(self) -> None:
        self._record("close")
        self.closed = True

    async def logout(self) -> None:
        self._record("logout")
        self.logged_out = True
        self.closed = True

    async def save_credentials(self) -> None:
        self._record("save_credentials")
        if self.fail_save:
            raise OSError("disk full")

    def me(self) -> Contact | None:
        return Contact(jid="6281100000000@s.whatsapp.net", phone="6281100000000", name="Me")

    # -- requests --

    async def send_text(
        self, jid: str, text: str, *, quoted: Mapping[str, Any] | None = None
    ) -> str:
        self._record("send_text", jid, text, quoted)
        return f"MSG{len(self.calls)}"

    async def send_media(
        self,
        jid: str,
        kind: MediaKind,
        data: bytes,
        *,
        mimetype: str | None = None,
        caption: str | None = None,
        file_name: str | None = None,
        ptt: bool = False,
        gif_playback: bool = False,
        view_once: bool = False,
        quoted: Mapping[str, Any] | None = None,
    ) -> str:
        self._record("send_media", jid, kind, data, mimetype, caption, file_name, ptt)
        return "MEDIA1"

    async def send_reaction(self, key: Mapping[str, Any], emoji: str) -> str:
        self._record("send_reaction", dict(key), emoji)
        return "REACT1"

    async def edit_message(self, key: Mapping[str, Any], text: str) -> str:
        self._record("edit_message", dict(key), text)
        return str(key.get("id"))

    async def read_messages(self, keys: Sequence[Mapping[str, Any]]) -> None:
        self._record("read_messages", [dict(k) for k in keys])

    async def send_presence(self, presence: PresenceKind, jid: str | None = None) -> None:
        self._record("send_presence", presence, jid)

    async def on_whatsapp(self, jids: Sequence[str]) -> list[tuple[str, bool]]:
        self._record("on_whatsapp", list(jids))
        return [(j, j in self.registered) for j in jids]

    async def fetch_status(self, jid: str) -> str | None:
        return "Hey there! I am using WhatsApp."

    async def profile_picture_url(self, jid: str, *, high_res: bool = True) -> str | None:
        self._record("profile_picture_url", jid, high_res)
        return None if jid.startswith("0") else f"https://pps.example/{jid}"

    async def group_metadata(self, jid: str) -> GroupInfo:
        self._record("group_metadata", jid)
        participants = [
            GroupParticipant(jid="6281100000000@s.whatsapp.net", role="superadmin"),
            GroupParticipant(jid="6281200000000@s.whatsapp.net"),
        ]
        return GroupInfo(
            jid=jid, name="Team", participant_count=len(participants), participants=participants
        )

    async def group_fetch_all_participating(self) -> list[GroupInfo]:
        return [await self.group_metadata("120363000000000001@g.us")]

    async def group_participants_update(
        self, jid: str, participants: Sequence[str], action: ParticipantAction
    ) -> list[ParticipantOperationResult]:
        self._record("group_participants_update", jid, list(participants), action)
        return [ParticipantOperationResult(jid=p, status="200", success=True) for p in participants]

    async def group_invite_code(self, jid: str) -> str:
        return "AbCdEf123"

    async def group_accept_invite(self, code: str) -> str | None:
        self._record("group_accept_invite", code)
        return "120363000000000002@g.us"

    async def resync_app_state(self, collections: Sequence[str]) -> None:
        self._record("resync_app_state", list(collections))
        if self.hang_resync:
            await asyncio.Event().wait()
        if self.resync_labels:
            await self.events.emit("labels.edit", list(self.resync_labels))
        self.resynced.set()

    async def add_label(self, label: Label) -> None:
        self._record("add_label", label)

    async def add_or_edit_contact(self, jid: str, contact: Mapping[str, Any]) -> None:
        self._record("add_or_edit_contact", jid, dict(contact))


class FakeFactory:
    """
    `TransportFactory` handing out a fresh `FakeTransport` per connect.

    With `gate` set, every call signals `entered` and then blocks until the
    gate opens.
    """

    def __init__(self, **transport_kwargs: Any) -> None:
        self.transport_kwargs = transport_kwargs
        self.created: list[FakeTransport] = []
        self.contexts: list[TransportContext] = []
        self.calls = 0
        self.fail: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def __call__(self, ctx: TransportContext) -> BaseTransport:
        self.calls += 1
        self.contexts.append(ctx)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        transport = FakeTransport(**self.transport_kwargs)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


class Recorder:
    """Collects client notifications by name."""

    def __init__(self, client: MiawClient, *events: str) -> None:
        self.events: dict[str, list[Any]] = {e: [] for e in events}
        for e in events:
            client.on(e, self._collector(e))

    def _collector(self, event: str) -> Any:
        def collect(*args: Any) -> None:
            if not args:
                self.events[event].append(None)
            else:
                self.events[event].append(args[0] if len(args) == 1 else args)

        return collect

    def __getitem__(self, event: str) -> list[Any]:
        return self.events[event]


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def make_client(tmp_path, factory):
    def make(**overrides: Any) -> MiawClient:
        opts: dict[str, Any] = {
            "instance_id": "test",
            "session_path": str(tmp_path / "sessions"),
            "reconnect_delay_ms": 60_000,
            "transport_factory": factory,
        }
        opts.update(overrides)
        return MiawClient(ClientOptions(**opts))

    return make


@pytest.fixture
def client(make_client) -> MiawClient:
    return make_client()


@pytest.fixture
def connected(client, factory):
    """Async helper: connect `client` and open its fake transport."""

    async def go() -> FakeTransport:
        await client.connect()
        await factory.last.open()
        return factory.last

    return go


@pytest.fixture
def record(client):
    def make(*events: str) -> Recorder:
        return Recorder(client, *events)

    return make
