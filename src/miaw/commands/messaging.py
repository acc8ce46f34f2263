from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from ..exceptions import ValidationError
from ..jid import format_phone_to_jid
from ..results import DownloadMediaResult, OperationResult, SendMessageResult
from ..transport.base import BaseTransport, MediaKind
from ..types import MiawMessage
from ..validation import require_message_text
from .base import CommandBase, MediaSource, guess_mimetype, read_media


def message_key(msg: MiawMessage) -> dict[str, Any]:
    """Protocol key of a stored message, preferring the key it arrived with."""

    raw_key = msg.raw.get("key") if isinstance(msg.raw, Mapping) else None
    if isinstance(raw_key, Mapping) and raw_key.get("id"):
        return dict(raw_key)
    key: dict[str, Any] = {"remoteJid": msg.from_jid, "fromMe": msg.from_me, "id": msg.id}
    if msg.participant:
        key["participant"] = msg.participant
    return key


def _quoted_raw(quoted: MiawMessage | None) -> Mapping[str, Any] | None:
    if quoted is None or not isinstance(quoted.raw, Mapping):
        return None
    return quoted.raw


def _raw_payload(msg: MiawMessage, operation: str) -> Mapping[str, Any]:
    if not isinstance(msg.raw, Mapping) or not msg.raw.get("message"):
        raise ValidationError(f"{operation}: message has no raw payload")
    return msg.raw


class MessagingCommands(CommandBase):
    async def send_text(
        self, to: str, text: str, *, quoted: MiawMessage | None = None
    ) -> SendMessageResult:
        jid = format_phone_to_jid(to)

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"message_id": await t.send_text(jid, text, quoted=_quoted_raw(quoted))}

        return await self._command(
            "send_text", SendMessageResult, call, check=lambda: require_message_text(text)
        )

    async def _send_media(
        self,
        kind: MediaKind,
        to: str,
        source: MediaSource,
        *,
        mimetype: str | None = None,
        caption: str | None = None,
        file_name: str | None = None,
        ptt: bool = False,
        gif_playback: bool = False,
        view_once: bool = False,
        quoted: MiawMessage | None = None,
    ) -> SendMessageResult:
        jid = format_phone_to_jid(to)

        async def call(t: BaseTransport) -> dict[str, Any]:
            data, source_name = await read_media(source)
            name = file_name or source_name
            msg_id = await t.send_media(
                jid,
                kind,
                data,
                mimetype=mimetype or guess_mimetype(name),
                caption=caption,
                file_name=name,
                ptt=ptt,
                gif_playback=gif_playback,
                view_once=view_once,
                quoted=_quoted_raw(quoted),
            )
            return {"message_id": msg_id}

        return await self._command(f"send_{kind}", SendMessageResult, call)

    async def send_image(
        self,
        to: str,
        image: MediaSource,
        *,
        caption: str | None = None,
        mimetype: str | None = None,
        view_once: bool = False,
        quoted: MiawMessage | None = None,
    ) -> SendMessageResult:
        return await self._send_media(
            "image",
            to,
            image,
            caption=caption,
            mimetype=mimetype,
            view_once=view_once,
            quoted=quoted,
        )

    async def send_video(
        self,
        to: str,
        video: MediaSource,
        *,
        caption: str | None = None,
        mimetype: str | None = None,
        gif_playback: bool = False,
        view_once: bool = False,
        quoted: MiawMessage | None = None,
    ) -> SendMessageResult:
        return await self._send_media(
            "video",
            to,
            video,
            caption=caption,
            mimetype=mimetype,
            gif_playback=gif_playback,
            view_once=view_once,
            quoted=quoted,
        )

    async def send_audio(
        self,
        to: str,
        audio: MediaSource,
        *,
        ptt: bool = False,
        mimetype: str | None = None,
        quoted: MiawMessage | None = None,
    ) -> SendMessageResult:
        return await self._send_media("audio", to, audio, ptt=ptt, mimetype=mimetype, quoted=quoted)

    async def send_document(
        self,
        to: str,
        document: MediaSource,
        *,
        file_name: str | None = None,
        mimetype: str | None = None,
        caption: str | None = None,
        quoted: MiawMessage | None = None,
    ) -> SendMessageResult:
        return await self._send_media(
            "document",
            to,
            document,
            file_name=file_name,
            mimetype=mimetype,
            caption=caption,
            quoted=quoted,
        )

    async def send_reaction(self, message: MiawMessage, emoji: str) -> SendMessageResult:
        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"message_id": await t.send_reaction(message_key(message), emoji)}

        return await self._command("send_reaction", SendMessageResult, call)

    async def remove_reaction(self, message: MiawMessage) -> SendMessageResult:
        return await self.send_reaction(message, "")

    async def forward_message(self, to: str, message: MiawMessage) -> SendMessageResult:
        jid = format_phone_to_jid(to)

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"message_id": await t.forward_message(jid, _raw_payload(message, "forward"))}

        return await self._command("forward_message", SendMessageResult, call)

    async def edit_message(self, message: MiawMessage, new_text: str) -> SendMessageResult:
        def check() -> None:
            if not message.from_me:
                raise ValidationError("Can only edit your own messages")
            require_message_text(new_text)

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"message_id": await t.edit_message(message_key(message), new_text)}

        return await self._command("edit_message", SendMessageResult, call, check=check)

    async def delete_message(self, message: MiawMessage) -> OperationResult:
        """Delete for everyone."""

        async def call(t: BaseTransport) -> None:
            await t.delete_message(message_key(message))

        return await self._command("delete_message", OperationResult, call)

    async def delete_message_for_me(self, message: MiawMessage) -> OperationResult:
        async def call(t: BaseTransport) -> None:
            await t.delete_message_for_me(message_key(message), message.timestamp)

        return await self._command("delete_message_for_me", OperationResult, call)

    async def mark_as_read(self, message: MiawMessage) -> OperationResult:
        async def call(t: BaseTransport) -> None:
            await t.read_messages([message_key(message)])

        return await self._command("mark_as_read", OperationResult, call)

    async def _chat_presence(
        self, operation: str, to: str, presence: Literal["composing", "recording", "paused"]
    ) -> OperationResult:
        jid = format_phone_to_jid(to)

        async def call(t: BaseTransport) -> None:
            await t.send_presence(presence, jid)

        return await self._command(operation, OperationResult, call)

    async def send_typing(self, to: str) -> OperationResult:
        return await self._chat_presence("send_typing", to, "composing")

    async def send_recording(self, to: str) -> OperationResult:
        return await self._chat_presence("send_recording", to, "recording")

    async def stop_typing(self, to: str) -> OperationResult:
        return await self._chat_presence("stop_typing", to, "paused")

    async def set_presence(self, status: Literal["available", "unavailable"]) -> OperationResult:
        def check() -> None:
            if status not in ("available", "unavailable"):
                raise ValidationError(
                    f"presence must be 'available' or 'unavailable', got {status!r}"
                )

        async def call(t: BaseTransport) -> None:
            await t.send_presence(status)

        return await self._command("set_presence", OperationResult, call, check=check)

    async def subscribe_presence(self, to: str) -> OperationResult:
        jid = format_phone_to_jid(to)

        async def call(t: BaseTransport) -> None:
            await t.subscribe_presence(jid)

        return await self._command("subscribe_presence", OperationResult, call)

    async def download_media(self, message: MiawMessage) -> DownloadMediaResult:
        def check() -> None:
            if message.media is None:
                raise ValidationError("message has no media")

        async def call(t: BaseTransport) -> dict[str, Any]:
            return {"data": await t.download_media(_raw_payload(message, "download_media"))}

        return await self._command("download_media", DownloadMediaResult, call, check=check)
