from __future__ import annotations

from .types import Chat, Contact, Label, MiawMessage


class ContactStore:
    """Contacts keyed by JID. Every upsert replaces the whole record."""

    def __init__(self) -> None:
        self._contacts: dict[str, Contact] = {}

    def upsert(self, contact: Contact) -> None:
        self._contacts[contact.jid] = contact

    def get(self, jid: str) -> Contact | None:
        return self._contacts.get(jid)

    def values(self) -> list[Contact]:
        return list(self._contacts.values())

    def clear(self) -> None:
        self._contacts.clear()

    def __len__(self) -> int:
        return len(self._contacts)


class ChatStore:
    """Chats keyed by JID. Every upsert replaces the whole record."""

    def __init__(self) -> None:
        self._chats: dict[str, Chat] = {}

    def upsert(self, chat: Chat) -> None:
        self._chats[chat.jid] = chat

    def get(self, jid: str) -> Chat | None:
        return self._chats.get(jid)

    def values(self) -> list[Chat]:
        return list(self._chats.values())

    def clear(self) -> None:
        self._chats.clear()

    def __len__(self) -> int:
        return len(self._chats)


class MessageStore:
    """
    Per-chat message history in arrival order.

    Append-only: edits and deletes are reported as notifications and never
    rewrite stored records.
    """

    def __init__(self) -> None:
        self._messages: dict[str, list[MiawMessage]] = {}

    def append(self, msg: MiawMessage) -> None:
        self._messages.setdefault(msg.from_jid, []).append(msg)

    def get(self, chat_jid: str, *, limit: int | None = None) -> list[MiawMessage]:
        msgs = self._messages.get(chat_jid) or []
        if limit is None:
            return list(msgs)
        if limit <= 0:
            return []
        return msgs[-limit:]

    def find(self, chat_jid: str, msg_id: str) -> MiawMessage | None:
        """Linear scan from the newest message."""

        if not msg_id:
            return None
        for m in reversed(self._messages.get(chat_jid) or []):
            if m.id == msg_id:
                return m
        return None

    def chat_ids(self) -> list[str]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return sum(len(v) for v in self._messages.values())


class LabelStore:
    """Local label cache, authoritative until the next remote resync lands."""

    def __init__(self) -> None:
        self._labels: dict[str, Label] = {}

    def upsert(self, label: Label) -> None:
        self._labels[label.id] = label

    def remove(self, label_id: str) -> None:
        self._labels.pop(label_id, None)

    def get(self, label_id: str) -> Label | None:
        return self._labels.get(label_id)

    def values(self) -> list[Label]:
        return list(self._labels.values())

    def clear(self) -> None:
        self._labels.clear()

    def __len__(self) -> int:
        return len(self._labels)
