from __future__ import annotations

from collections import OrderedDict
from typing import Generic, TypeVar

from .constants import LID_MAP_MAX_SIZE
from .jid import ensure_lid, ensure_phone_jid, is_lid_user, jid_normalized_user, phone_from_jid

K = TypeVar("K")
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """
    Fixed-capacity map with least-recently-used eviction.

    Both `get` and `set` mark the key as most recently used. When a `set`
    pushes the size past `max_size`, exactly one entry (the oldest) is evicted.
    """

    def __init__(self, max_size: int = LID_MAP_MAX_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._data: OrderedDict[K, V] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: K) -> V | None:
        try:
            value = self._data[key]
        except KeyError:
            return None
        self._data.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        self._data[key] = value
        if len(self._data) > self._max_size:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def snapshot(self) -> dict[K, V]:
        """Copy of the entries, least recently used first. Does not touch recency."""

        return dict(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def _user_jid(jid: str) -> str:
    """Device and agent parts dropped: `111:5@lid -> 111@lid`."""

    return jid_normalized_user(jid) or jid


class LidMapping:
    """
    Privacy identifier (`<n>@lid`) to phone JID (`<digits>@s.whatsapp.net`) resolution.

    Mappings are learned from contacts, chats and incoming messages as they
    arrive; later observations overwrite earlier ones for the same LID. An
    unknown LID resolves to itself.
    """

    def __init__(self, max_size: int = LID_MAP_MAX_SIZE) -> None:
        self._cache: LRUCache[str, str] = LRUCache(max_size)

    def remember(self, lid: str, phone_jid: str) -> None:
        if not lid or not phone_jid:
            return
        self._cache.set(_user_jid(ensure_lid(lid)), _user_jid(phone_jid))

    def register(self, lid: str, phone: str) -> None:
        """
        Manually record a mapping, e.g. one persisted from a previous session.

        Accepts bare values: `register("123", "62811")` stores
        `123@lid -> 62811@s.whatsapp.net`.
        """

        self._cache.set(_user_jid(ensure_lid(lid)), _user_jid(ensure_phone_jid(phone)))

    def resolve(self, jid: str) -> str:
        if not is_lid_user(jid):
            return jid
        return self._cache.get(_user_jid(jid)) or jid

    def phone_for(self, jid: str) -> str | None:
        return phone_from_jid(self.resolve(jid))

    def export(self) -> dict[str, str]:
        return self._cache.snapshot()

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
