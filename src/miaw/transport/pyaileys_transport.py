"""
Default transport built on the `pyaileys` WhatsApp Web client.

pyaileys exposes decrypted messages, raw stanzas and its own small store; this
module reshapes them into the Baileys-style events the projector consumes and
maps the request surface onto pyaileys calls or plain w:g2 / usync IQs.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Mapping, Sequence
from typing import Any

from google.protobuf.json_format import MessageToDict, ParseDict
from pyaileys import WhatsAppClient
from pyaileys.auth.state import AuthenticationState
from pyaileys.auth.store import MultiFileAuthState
from pyaileys.client import ClientConfig
from pyaileys.socket import ConnectionUpdate as PyConnectionUpdate
from pyaileys.socket_config import SocketConfig
from pyaileys.wabinary import BinaryNode

from ..constants import GROUP_SUFFIX, S_WHATSAPP_NET
from ..exceptions import TransportRequestError
from ..jid import digits_only, is_group_jid, jid_normalized_user
from ..lid_cache import LRUCache
from ..types import (
    BusinessProfile,
    Contact,
    GroupInfo,
    GroupInviteInfo,
    ParticipantOperationResult,
)
from .base import (
    BaseTransport,
    ConnectionUpdate,
    MediaKind,
    ParticipantAction,
    PresenceKind,
    TransportContext,
)
from .disconnect import classify_disconnect, stream_error_code
from .nodes import (
    child,
    children,
    description_id,
    iq,
    node_text,
    parse_group,
    parse_invite_info,
    parse_participant_results,
)

logger = logging.getLogger(__name__)

# Stanza attrs carrying alternate sender addressing.
_ADDRESSING_ATTRS = {
    "sender_pn": "senderPn",
    "sender_lid": "senderLid",
    "participant_pn": "participantPn",
    "participant_lid": "participantLid",
}

_MEDIA_TYPES = {
    "imageMessage": "image",
    "videoMessage": "video",
    "audioMessage": "ptt",
    "documentMessage": "document",
    "stickerMessage": "sticker",
}


def _proto_module() -> Any:
    # Import lazily; the generated WAProto module is large.
    from pyaileys.proto import WAProto_pb2 as proto

    return proto


def _to_proto_message(content: Mapping[str, Any]) -> Any:
    proto = _proto_module()
    return ParseDict(dict(content), proto.Message(), ignore_unknown_fields=True)


def message_to_dict(msg: Any) -> dict[str, Any]:
    return MessageToDict(msg)


def label_from_mutation(mutation: Any) -> dict[str, Any] | None:
    """`labels.edit` payload for a `label_edit` app-state mutation, else None."""

    index = list(getattr(mutation, "index", None) or [])
    if len(index) < 2 or index[0] != "label_edit":
        return None
    action = getattr(mutation, "action_value", None)
    if action is None or not action.HasField("labelEditAction"):
        return None
    edit = MessageToDict(action.labelEditAction)
    return {
        "id": str(index[1]),
        "name": edit.get("name") or "",
        "color": edit.get("color") or 0,
        "predefinedId": edit.get("predefinedId"),
        "deleted": bool(edit.get("deleted")),
    }


class LabelAwareClient(WhatsAppClient):
    """`WhatsAppClient` that also collects label edits seen during app-state sync."""

    def __init__(self, *, auth: AuthenticationState, config: ClientConfig | None = None) -> None:
        super().__init__(auth=auth, config=config)
        self.label_edits: list[dict[str, Any]] = []

    def _apply_app_state_mutation(self, mutation: Any) -> None:
        super()._apply_app_state_mutation(mutation)
        label = label_from_mutation(mutation)
        if label is not None:
            self.label_edits.append(label)


class PyaileysTransport(BaseTransport):
    def __init__(
        self,
        client: WhatsAppClient,
        auth_state: MultiFileAuthState,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        super().__init__()
        self.client = client
        self.auth_state = auth_state
        self._log = log or logger
        self._stream_error: int | None = None
        self._restart_pending = False
        # message id -> addressing attrs of the enclosing stanza
        self._stanza_attrs: LRUCache[str, dict[str, str]] = LRUCache(512)
        self._wire()

    @classmethod
    async def open(cls, ctx: TransportContext) -> PyaileysTransport:
        auth_state = await MultiFileAuthState.load(ctx.session_dir)
        auth = AuthenticationState(creds=auth_state.creds, keys=auth_state.keys)
        client = LabelAwareClient(auth=auth, config=ClientConfig(socket=SocketConfig()))
        return cls(client, auth_state, log=ctx.logger)

    def _wire(self) -> None:
        on = self.client.on
        on("connection.update", self._on_connection_update)
        on("creds.update", self._on_creds_update)
        on("node", self._on_node)
        on("stanza.stream:error", self._on_stream_error)
        on("message.decrypted", self._on_message_decrypted)
        on("stanza.presence", self._on_presence)
        on("stanza.chatstate", self._on_chatstate)
        on("history.sync", self._on_store_changed)
        on("app_state.sync", self._on_app_state_sync)

    # -- inbound --

    async def _on_connection_update(self, update: PyConnectionUpdate) -> None:
        if update.connection == "close":
            if self._restart_pending:
                # pyaileys reconnects in place after a 515 stream error.
                self._log.debug("server requested restart; socket reconnects in place")
                return
            info = classify_disconnect(update.last_disconnect, stream_error=self._stream_error)
            self._stream_error = None
            await self.events.emit(
                "connection.update", ConnectionUpdate(connection="close", last_disconnect=info)
            )
            return

        if update.connection == "open":
            self._restart_pending = False
            self._stream_error = None
        await self.events.emit(
            "connection.update",
            ConnectionUpdate(
                connection=update.connection,  # type: ignore[arg-type]
                qr=update.qr,
                is_new_login=update.is_new_login,
            ),
        )

    async def _on_creds_update(self, creds: Any) -> None:
        await self.events.emit("creds.update", creds)

    async def _on_stream_error(self, node: BinaryNode) -> None:
        kids = [(c.tag, c.attrs) for c in children(node)]
        code = stream_error_code(node.attrs, kids)
        self._log.debug("stream error %s (%s)", code, node.attrs)
        if code == 515:
            self._restart_pending = True
        else:
            self._stream_error = code

    async def _on_node(self, node: BinaryNode) -> None:
        # Runs before decryption, so addressing attrs are ready for message.decrypted.
        if node.tag != "message":
            return
        mid = node.attrs.get("id")
        if not mid:
            return
        attrs = {k: node.attrs[k] for k in (*_ADDRESSING_ATTRS, "notify") if node.attrs.get(k)}
        self._stanza_attrs.set(mid, attrs)

    def _is_me(self, jid: str | None) -> bool:
        me = self.client.socket.auth.creds.me
        if not jid or me is None:
            return False
        user = jid_normalized_user(jid)
        return user in (jid_normalized_user(me.id), jid_normalized_user(me.lid))

    async def _on_message_decrypted(self, event: Mapping[str, Any]) -> None:
        chat_jid = event.get("chat_jid")
        mid = event.get("id") or ""
        if not chat_jid:
            return
        sender = event.get("sender_jid")
        attrs = self._stanza_attrs.get(mid) or {}

        key: dict[str, Any] = {
            "remoteJid": chat_jid,
            "fromMe": self._is_me(sender),
            "id": mid,
        }
        if is_group_jid(chat_jid) and sender:
            key["participant"] = sender
        for attr, field_name in _ADDRESSING_ATTRS.items():
            if attrs.get(attr):
                key[field_name] = attrs[attr]

        web_msg: dict[str, Any] = {
            "key": key,
            "messageTimestamp": event.get("timestamp_s") or int(time.time()),
            "message": {},
        }
        if event.get("message") is not None:
            web_msg["message"] = message_to_dict(event["message"])
        if attrs.get("notify"):
            web_msg["pushName"] = attrs["notify"]
        await self.events.emit("messages.upsert", {"type": "notify", "messages": [web_msg]})

    async def _on_presence(self, node: BinaryNode) -> None:
        jid = node.attrs.get("from")
        if not jid:
            return
        status = "unavailable" if node.attrs.get("type") == "unavailable" else "available"
        last = node.attrs.get("last")
        presence = {
            "lastKnownPresence": status,
            "lastSeen": int(last) if last and last.isdigit() else None,
        }
        await self.events.emit("presence.update", {"id": jid, "presences": {jid: presence}})

    async def _on_chatstate(self, node: BinaryNode) -> None:
        chat = node.attrs.get("from")
        kids = children(node)
        if not chat or not kids:
            return
        state = kids[0]
        status = state.tag
        if status == "composing" and state.attrs.get("media") == "audio":
            status = "recording"
        participant = node.attrs.get("participant") or chat
        await self.events.emit(
            "presence.update",
            {"id": chat, "presences": {participant: {"lastKnownPresence": status}}},
        )

    async def _on_store_changed(self, _event: Any = None) -> None:
        store = self.client.store
        chats = [
            {
                "id": c.jid,
                "name": c.name,
                **({"pnJid": c.pn_jid} if c.pn_jid else {}),
                **({"lidJid": c.lid_jid} if c.lid_jid else {}),
            }
            for c in store.list_chats()
        ]
        contacts = []
        for c in store.list_contacts():
            entry: dict[str, Any] = {
                "id": c.jid,
                "name": c.name,
                "notify": c.notify,
                "verifiedName": c.verified_name,
            }
            if c.lid_jid and c.lid_jid != c.jid:
                entry["lid"] = c.lid_jid
            if c.pn_jid and c.pn_jid != c.jid:
                entry["phoneNumber"] = c.pn_jid
            contacts.append(entry)
        if chats:
            await self.events.emit("chats.upsert", chats)
        if contacts:
            await self.events.emit("contacts.upsert", contacts)

    async def _on_app_state_sync(self, event: Any) -> None:
        await self._on_store_changed(event)
        edits = getattr(self.client, "label_edits", None)
        if not edits:
            return
        pending, edits[:] = list(edits), []
        for label in pending:
            await self.events.emit("labels.edit", label)

    # -- lifecycle --

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        await self.client.disconnect()

    async def logout(self) -> None:
        me = self.client.socket.auth.creds.me
        if me is not None:
            node = iq(
                S_WHATSAPP_NET,
                "set",
                "md",
                [
                    BinaryNode(
                        tag="remove-companion-device",
                        attrs={"jid": me.id, "reason": "user_initiated"},
                    )
                ],
            )
            await self._query("logout", node)
        await self.close()

    async def save_credentials(self) -> None:
        await self.auth_state.save_creds()

    def me(self) -> Contact | None:
        me = self.client.socket.auth.creds.me
        if me is None:
            return None
        jid = jid_normalized_user(me.id) or me.id
        return Contact(jid=jid, phone=digits_only(jid.split("@", 1)[0]) or None, name=me.name)

    async def _query(self, operation: str, node: BinaryNode) -> BinaryNode:
        res = await self.client.socket.query(node)
        if res.attrs.get("type") == "error":
            err = child(res, "error")
            detail = err.attrs.get("text") or err.attrs.get("code") if err is not None else None
            raise TransportRequestError(operation, detail or "error response")
        return res

    # -- messaging --

    async def _send_proto(
        self, jid: str, content: Mapping[str, Any], *, stanza_type: str = "text"
    ) -> str:
        msg = _to_proto_message(content)
        if stanza_type != "reaction":
            msg.messageContextInfo.messageSecret = secrets.token_bytes(32)
        media_type = next((v for k, v in _MEDIA_TYPES.items() if k in content), None)
        return await self.client._send_message(
            jid,
            msg,
            stanza_type="media" if media_type else stanza_type,
            enc_extra_attrs={"mediatype": media_type} if media_type else None,
            fanout=True,
            include_phash=False,
            wait_ack=False,
            timeout_s=15.0,
        )

    async def send_text(
        self, jid: str, text: str, *, quoted: Mapping[str, Any] | None = None
    ) -> str:
        if not quoted:
            return await self.client.send_text(jid, text)
        key = quoted.get("key") or {}
        context = {
            "stanzaId": key.get("id"),
            "participant": key.get("participant") or key.get("remoteJid"),
            "quotedMessage": quoted.get("message") or {},
        }
        return await self._send_proto(
            jid, {"extendedTextMessage": {"text": text, "contextInfo": context}}
        )

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
        if view_once or quoted:
            self._log.debug("view_once/quoted are not applied to %s messages", kind)
        c = self.client
        if kind == "image":
            return await c.send_image(jid, data, mimetype=mimetype or "image/jpeg", caption=caption)
        if kind == "video":
            return await c.send_video(
                jid,
                data,
                mimetype=mimetype or "video/mp4",
                caption=caption,
                gif_playback=gif_playback,
            )
        if kind == "audio":
            # pyaileys only sends audio as a voice note.
            return await c.send_voice_note(jid, data, mimetype=mimetype or "audio/ogg; codecs=opus")
        if kind == "document":
            return await c.send_document(
                jid,
                data,
                mimetype=mimetype or "application/octet-stream",
                filename=file_name,
                caption=caption,
            )
        if kind == "sticker":
            return await c.send_sticker(jid, data, mimetype=mimetype or "image/webp")
        raise self._unsupported(f"send_{kind}")

    async def send_reaction(self, key: Mapping[str, Any], emoji: str) -> str:
        content = {
            "reactionMessage": {
                "key": dict(key),
                "text": emoji,
                "senderTimestampMs": str(int(time.time() * 1000)),
            }
        }
        return await self._send_proto(key["remoteJid"], content, stanza_type="reaction")

    async def forward_message(self, jid: str, message: Mapping[str, Any]) -> str:
        content = dict(message.get("message") or {})
        if "conversation" in content:
            content = {"extendedTextMessage": {"text": content["conversation"]}}
        for name, body in content.items():
            if isinstance(body, Mapping):
                ctx = dict(body.get("contextInfo") or {})
                score = int(ctx.get("forwardingScore") or 0)
                content[name] = {
                    **body,
                    "contextInfo": {**ctx, "forwardingScore": score + 1, "isForwarded": True},
                }
                break
        return await self._send_proto(jid, content)

    async def edit_message(self, key: Mapping[str, Any], text: str) -> str:
        content = {
            "protocolMessage": {
                "key": dict(key),
                "type": "MESSAGE_EDIT",
                "editedMessage": {"conversation": text},
                "timestampMs": str(int(time.time() * 1000)),
            }
        }
        return await self._send_proto(key["remoteJid"], content)

    async def delete_message(self, key: Mapping[str, Any]) -> str:
        content = {"protocolMessage": {"key": dict(key), "type": "REVOKE"}}
        return await self._send_proto(key["remoteJid"], content)

    async def read_messages(self, keys: Sequence[Mapping[str, Any]]) -> None:
        grouped: dict[tuple[str, str | None], list[str]] = {}
        for key in keys:
            if key.get("fromMe"):
                continue
            grouped.setdefault((key["remoteJid"], key.get("participant")), []).append(key["id"])
        for (jid, participant), ids in grouped.items():
            attrs = {"id": ids[0], "to": jid, "type": "read", "t": str(int(time.time()))}
            if participant:
                attrs["participant"] = participant
            content = None
            if len(ids) > 1:
                content = [
                    BinaryNode(
                        tag="list",
                        attrs={},
                        content=[BinaryNode(tag="item", attrs={"id": i}) for i in ids[1:]],
                    )
                ]
            receipt = BinaryNode(tag="receipt", attrs=attrs, content=content)
            await self.client.socket.send_node(receipt)

    async def send_presence(self, presence: PresenceKind, jid: str | None = None) -> None:
        if presence in ("available", "unavailable"):
            await self.client.set_presence(presence == "available")
            return
        if not jid:
            raise TransportRequestError("send_presence", f"{presence} requires a chat jid")
        await self.client.send_chatstate(jid, presence)

    async def subscribe_presence(self, jid: str) -> None:
        attrs = {"to": jid, "id": secrets.token_hex(8), "type": "subscribe"}
        await self.client.socket.send_node(BinaryNode(tag="presence", attrs=attrs))

    async def download_media(self, message: Mapping[str, Any]) -> bytes:
        content = message.get("message") if "message" in message else message
        return await self.client.download_message_media(_to_proto_message(content or {}))

    # -- lookups --

    async def on_whatsapp(self, jids: Sequence[str]) -> list[tuple[str, bool]]:
        phones = {digits_only(j.split("@", 1)[0]) or j: j for j in jids}
        node = iq(
            S_WHATSAPP_NET,
            "get",
            "usync",
            [
                BinaryNode(
                    tag="usync",
                    attrs={
                        "context": "interactive",
                        "mode": "query",
                        "sid": f"check-{int(time.time() * 1000)}",
                        "last": "true",
                        "index": "0",
                    },
                    content=[
                        BinaryNode(
                            tag="query", attrs={}, content=[BinaryNode(tag="contact", attrs={})]
                        ),
                        BinaryNode(
                            tag="list",
                            attrs={},
                            content=[
                                BinaryNode(
                                    tag="user",
                                    attrs={},
                                    content=[BinaryNode(tag="contact", attrs={}, content=f"+{p}")],
                                )
                                for p in phones
                            ],
                        ),
                    ],
                )
            ],
        )
        res = await self._query("on_whatsapp", node)

        found: dict[str, bool] = {}
        for user in children(child(child(res, "usync"), "list"), "user"):
            jid = user.attrs.get("jid")
            contact = child(user, "contact")
            if jid and contact is not None:
                found[digits_only(jid.split("@", 1)[0]) or jid] = contact.attrs.get("type") == "in"
        return [(jid, found.get(phone, False)) for phone, jid in phones.items()]

    async def fetch_status(self, jid: str) -> str | None:
        res = await self.client.fetch_status(jid)
        return next(iter(res.values()), None)

    async def business_profile(self, jid: str) -> BusinessProfile | None:
        node = iq(
            S_WHATSAPP_NET,
            "get",
            "w:biz",
            [
                BinaryNode(
                    tag="business_profile",
                    attrs={"v": "244"},
                    content=[BinaryNode(tag="profile", attrs={"jid": jid})],
                )
            ],
        )
        res = await self._query("business_profile", node)
        profile = child(child(res, "business_profile"), "profile")
        if profile is None:
            return None
        category = child(child(profile, "categories"), "category")
        return BusinessProfile(
            description=node_text(child(profile, "description")),
            category=node_text(category),
            website=node_text(child(profile, "website")),
            email=node_text(child(profile, "email")),
            address=node_text(child(profile, "address")),
        )

    async def profile_picture_url(self, jid: str, *, high_res: bool = True) -> str | None:
        return await self.client.profile_picture_url(
            jid, picture_type="image" if high_res else "preview"
        )

    # -- profile --

    async def update_profile_picture(self, jid: str, data: bytes) -> None:
        target = {} if self._is_me(jid) else {"target": jid}
        node = iq(
            S_WHATSAPP_NET,
            "set",
            "w:profile:picture",
            [BinaryNode(tag="picture", attrs={"type": "image"}, content=data)],
            **target,
        )
        await self._query("update_profile_picture", node)

    async def remove_profile_picture(self, jid: str) -> None:
        target = {} if self._is_me(jid) else {"target": jid}
        await self._query(
            "remove_profile_picture", iq(S_WHATSAPP_NET, "set", "w:profile:picture", **target)
        )

    async def update_profile_status(self, status: str) -> None:
        node = iq(
            S_WHATSAPP_NET,
            "set",
            "status",
            [BinaryNode(tag="status", attrs={}, content=status.encode("utf-8"))],
        )
        await self._query("update_profile_status", node)

    # -- groups --

    async def _group_query(
        self, operation: str, jid: str, type_: str, content: list[BinaryNode]
    ) -> BinaryNode:
        return await self._query(operation, iq(jid, type_, "w:g2", content))

    async def _group_node(self, jid: str) -> BinaryNode:
        query = BinaryNode(tag="query", attrs={"request": "interactive"})
        res = await self._group_query("group_metadata", jid, "get", [query])
        group = res if res.tag == "group" else child(res, "group")
        if group is None:
            raise TransportRequestError("group_metadata", "response missing <group/>")
        return group

    async def group_metadata(self, jid: str) -> GroupInfo:
        return parse_group(await self._group_node(jid))

    async def group_fetch_all_participating(self) -> list[GroupInfo]:
        res = await self._group_query(
            "group_fetch_all_participating",
            GROUP_SUFFIX,
            "get",
            [
                BinaryNode(
                    tag="participating",
                    attrs={},
                    content=[
                        BinaryNode(tag="participants", attrs={}),
                        BinaryNode(tag="description", attrs={}),
                    ],
                )
            ],
        )
        return [parse_group(g) for g in children(child(res, "groups"), "group")]

    async def group_create(self, subject: str, participants: Sequence[str]) -> GroupInfo:
        res = await self._group_query(
            "group_create",
            GROUP_SUFFIX,
            "set",
            [
                BinaryNode(
                    tag="create",
                    attrs={"subject": subject, "key": secrets.token_hex(8).upper()},
                    content=[BinaryNode(tag="participant", attrs={"jid": p}) for p in participants],
                )
            ],
        )
        group = child(res, "group")
        if group is None:
            raise TransportRequestError("group_create", "response missing <group/>")
        return parse_group(group)

    async def group_leave(self, jid: str) -> None:
        await self._group_query(
            "group_leave",
            GROUP_SUFFIX,
            "set",
            [
                BinaryNode(
                    tag="leave", attrs={}, content=[BinaryNode(tag="group", attrs={"id": jid})]
                )
            ],
        )

    async def group_update_subject(self, jid: str, subject: str) -> None:
        await self._group_query(
            "group_update_subject",
            jid,
            "set",
            [BinaryNode(tag="subject", attrs={}, content=subject.encode("utf-8"))],
        )

    async def group_update_description(self, jid: str, description: str | None) -> None:
        prev = description_id(await self._group_node(jid))
        attrs = {"id": secrets.token_hex(8).upper()} if description else {"delete": "true"}
        if prev:
            attrs["prev"] = prev
        content = (
            [BinaryNode(tag="body", attrs={}, content=description.encode("utf-8"))]
            if description
            else None
        )
        await self._group_query(
            "group_update_description",
            jid,
            "set",
            [BinaryNode(tag="description", attrs=attrs, content=content)],
        )

    async def group_participants_update(
        self, jid: str, participants: Sequence[str], action: ParticipantAction
    ) -> list[ParticipantOperationResult]:
        res = await self._group_query(
            f"group_participants_{action}",
            jid,
            "set",
            [
                BinaryNode(
                    tag=action,
                    attrs={},
                    content=[BinaryNode(tag="participant", attrs={"jid": p}) for p in participants],
                )
            ],
        )
        return parse_participant_results(child(res, action))

    async def group_invite_code(self, jid: str) -> str:
        res = await self._group_query(
            "group_invite_code", jid, "get", [BinaryNode(tag="invite", attrs={})]
        )
        code = (child(res, "invite") or BinaryNode(tag="invite", attrs={})).attrs.get("code")
        if not code:
            raise TransportRequestError("group_invite_code", "response missing invite code")
        return code

    async def group_revoke_invite(self, jid: str) -> str:
        res = await self._group_query(
            "group_revoke_invite", jid, "set", [BinaryNode(tag="invite", attrs={})]
        )
        code = (child(res, "invite") or BinaryNode(tag="invite", attrs={})).attrs.get("code")
        if not code:
            raise TransportRequestError("group_revoke_invite", "response missing invite code")
        return code

    async def group_accept_invite(self, code: str) -> str | None:
        res = await self._group_query(
            "group_accept_invite",
            GROUP_SUFFIX,
            "set",
            [BinaryNode(tag="invite", attrs={"code": code})],
        )
        group = child(res, "group")
        return group.attrs.get("jid") if group is not None else None

    async def group_get_invite_info(self, code: str) -> GroupInviteInfo:
        res = await self._group_query(
            "group_get_invite_info",
            GROUP_SUFFIX,
            "get",
            [BinaryNode(tag="invite", attrs={"code": code})],
        )
        group = child(res, "group")
        if group is None:
            raise TransportRequestError("group_get_invite_info", "response missing <group/>")
        return parse_invite_info(group)

    # -- app state --

    async def resync_app_state(self, collections: Sequence[str]) -> None:
        await self.client.resync_app_state(collections=list(collections))


async def create_pyaileys_transport(ctx: TransportContext) -> BaseTransport:
    """Default `TransportFactory`."""

    transport = await PyaileysTransport.open(ctx)
    return transport
