"""Helpers of the feed service: time checks, key padding and video serialisation."""

from __future__ import annotations

import json
import re
from typing import Iterable

from magikarp.models import Video

FEED_LIST = "feedlist"
MONGO_DATABASE_NAME = "default"
MONGO_COLLECTION = "feed"
MONGO_MARKED_TIME = "feedmarkedtime"

USER_ID_WIDTH = 20

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")


def _parse_int(text: str) -> int:
    """Parse a signed decimal; unparsable text gives 0, out-of-range values saturate."""
    if not _DECIMAL.fullmatch(text):
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, int(text)))


def judge_time_diff(t1: int, t2: str, diff: int) -> bool:
    """Tell whether ``t1 - t2 >= diff``, with ``t2`` given as decimal text."""
    return t1 - _parse_int(t2) >= diff


def lfill(num: str, bit: int) -> str:
    """Left-pad ``num`` with zeros up to ``bit`` bytes."""
    length = len(num.encode("utf-8"))
    if length >= bit:
        return num
    return "0" * (bit - length) + num


def fill_user_id(user_id: str) -> str:
    """Pad a user id to the fixed width used for cache keys."""
    return lfill(user_id, USER_ID_WIDTH)


def _escape_html(text: str) -> str:
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def videos_to_json(videos: Iterable[Video]) -> list[str]:
    """Serialise each video to a compact JSON string."""
    return [
        _escape_html(json.dumps(video.to_dict(), ensure_ascii=False, separators=(",", ":")))
        for video in videos
    ]


def videos_from_json(items: Iterable[str]) -> list[Video]:
    """Decode JSON strings into videos; any malformed item raises ValueError."""
    return [Video.from_dict(json.loads(item)) for item in items]