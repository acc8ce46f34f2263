from __future__ import annotations

from pyaileys.wabinary import BinaryNode

from ..constants import GROUP_SUFFIX
from ..types import (
    GroupInfo,
    GroupInviteInfo,
    GroupParticipant,
    ParticipantOperationResult,
    ParticipantRole,
)


def child(node: BinaryNode | None, tag: str) -> BinaryNode | None:
    if node is None or not isinstance(node.content, list):
        return None
    for c in node.content:
        if isinstance(c, BinaryNode) and c.tag == tag:
            return c
    return None


def children(node: BinaryNode | None, tag: str | None = None) -> list[BinaryNode]:
    if node is None or not isinstance(node.content, list):
        return []
    return [c for c in node.content if isinstance(c, BinaryNode) and (tag is None or c.tag == tag)]


def node_text(node: BinaryNode | None) -> str | None:
    if node is None or node.content is None:
        return None
    raw = node.content
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw).decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw
    return None


def _int_attr(node: BinaryNode, name: str) -> int | None:
    raw = node.attrs.get(name)
    if raw is None or not str(raw).isdigit():
        return None
    return int(raw)


def iq(
    to: str, type_: str, xmlns: str, content: list[BinaryNode] | None = None, **attrs: str
) -> BinaryNode:
    return BinaryNode(
        tag="iq", attrs={"to": to, "type": type_, "xmlns": xmlns, **attrs}, content=content
    )


def group_jid(raw: str) -> str:
    return raw if "@" in raw else f"{raw}{GROUP_SUFFIX}"


def _role(raw: str | None) -> ParticipantRole:
    if raw == "superadmin":
        return "superadmin"
    if raw == "admin":
        return "admin"
    return "member"


def description_id(group: BinaryNode | None) -> str | None:
    desc = child(group, "description")
    return desc.attrs.get("id") if desc is not None else None


def parse_group(group: BinaryNode) -> GroupInfo:
    """`<group>` element of a w:g2 response into a `GroupInfo`."""

    participants = [
        GroupParticipant(jid=p.attrs["jid"], role=_role(p.attrs.get("type")))
        for p in children(group, "participant")
        if p.attrs.get("jid")
    ]
    return GroupInfo(
        jid=group_jid(group.attrs.get("id") or ""),
        name=group.attrs.get("subject") or "",
        participant_count=len(participants),
        participants=participants,
        description=node_text(child(child(group, "description"), "body")),
        owner=group.attrs.get("creator"),
        created_at=_int_attr(group, "creation"),
        announce=child(group, "announcement") is not None,
        restrict=child(group, "locked") is not None,
    )


def parse_invite_info(group: BinaryNode) -> GroupInviteInfo:
    info = parse_group(group)
    size = _int_attr(group, "size")
    return GroupInviteInfo(
        jid=info.jid,
        name=info.name,
        participant_count=size if size is not None else info.participant_count,
        description=info.description,
        created_at=info.created_at,
    )


def parse_participant_results(action_node: BinaryNode | None) -> list[ParticipantOperationResult]:
    out: list[ParticipantOperationResult] = []
    for p in children(action_node, "participant"):
        jid = p.attrs.get("jid")
        if not jid:
            continue
        status = p.attrs.get("error") or "200"
        out.append(ParticipantOperationResult(jid=jid, status=status, success=status == "200"))
    return out
