from __future__ import annotations

from enum import IntEnum
from types import MappingProxyType

S_WHATSAPP_NET = "@s.whatsapp.net"
LID_SUFFIX = "@lid"
GROUP_SUFFIX = "@g.us"
BROADCAST_SUFFIX = "@broadcast"
NEWSLETTER_SUFFIX = "@newsletter"
LEGACY_USER_SUFFIX = "@c.us"

# Suffixes a caller may pass through untouched (everything else is a phone number).
KNOWN_JID_SUFFIXES = (
    S_WHATSAPP_NET,
    LID_SUFFIX,
    GROUP_SUFFIX,
    LEGACY_USER_SUFFIX,
    BROADCAST_SUFFIX,
    NEWSLETTER_SUFFIX,
)

DEFAULT_SESSION_PATH = "./sessions"

# Upper bound for the LID -> phone JID mapping cache.
LID_MAP_MAX_SIZE = 1000

# App-state collections that carry label edits.
LABEL_COLLECTIONS = ("regular_high", "regular_low", "regular")


class TIMEOUTS:
    """Timing constants, in milliseconds unless the name says otherwise."""

    RECONNECT_DELAY = 3_000
    WAIT_FOR_STATE = 10_000
    # Upper bound on a forced label resync before the store is read anyway.
    LABEL_SYNC_WAIT = 3_000
    QR_SCAN_TIMEOUT = 60_000
    CONNECTION_TIMEOUT = 120_000


class LabelColor(IntEnum):
    COLOR_1 = 0
    COLOR_2 = 1
    COLOR_3 = 2
    COLOR_4 = 3
    COLOR_5 = 4
    COLOR_6 = 5
    COLOR_7 = 6
    COLOR_8 = 7
    COLOR_9 = 8
    COLOR_10 = 9
    COLOR_11 = 10
    COLOR_12 = 11
    COLOR_13 = 12
    COLOR_14 = 13
    COLOR_15 = 14
    COLOR_16 = 15
    COLOR_17 = 16
    COLOR_18 = 17
    COLOR_19 = 18
    COLOR_20 = 19


class PredefinedLabelId(IntEnum):
    NEW_CUSTOMER = 1
    NEW_ORDER = 2
    PENDING_PAYMENT = 3
    PAID = 4
    SHIPPED = 5


LABEL_COLOR_NAMES = MappingProxyType(
    {
        0: "Color 1 (Dark Blue)",
        1: "Color 2 (Green)",
        2: "Color 3 (Purple)",
        3: "Color 4 (Pink)",
        4: "Color 5 (Red)",
        5: "Color 6 (Orange)",
        6: "Color 7 (Yellow)",
        7: "Color 8 (Light Blue)",
        8: "Color 9 (Teal)",
        9: "Color 10 (Lime)",
        10: "Color 11 (Magenta)",
        11: "Color 12 (Brown)",
        12: "Color 13 (Gray)",
        13: "Color 14 (Light Gray)",
        14: "Color 15 (Indigo)",
        15: "Color 16 (Cyan)",
        16: "Color 17 (Violet)",
        17: "Color 18 (Coral)",
        18: "Color 19 (Gold)",
        19: "Color 20 (Silver)",
    }
)


def get_label_color_name(color: int) -> str:
    """Human-readable name for a label color index, e.g. `0 -> "Color 1 (Dark Blue)"`."""

    return LABEL_COLOR_NAMES.get(int(color), f"Unknown ({color})")
