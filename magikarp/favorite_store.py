"""Like storage: a hash-per-user cache with per-video counters, and a document archive."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Protocol

from magikarp.feed_store import _text
from magikarp.feed_util import _parse_int

FAV_CACHE = "favcache"
FAV_COUNT = "favcount"
MONGO_DATABASE_NAME = "default"
MONGO_COLLECTION = "feed"

LIKED = "1"
NOT_LIKED = "0"
COUNT_OFFSET = 100

_DECIMAL = re.compile(r"[+-]?[0-9]+")


class HashClient(Protocol):
    """The hash and string operations of a key-value cache client."""

    def hset(self, name: str, key: str, value: str) -> Any: ...

    def hgetall(self, name: str) -> Mapping[Any, Any]: ...

    def get(self, name: str) -> Any: ...

    def set(self, name: str, value: str) -> Any: ...


class DocumentCollection(Protocol):
    """The operations of a document collection used for likes."""

    def find_one(self, filter: Mapping[str, Any]) -> Mapping[str, Any] | None: ...

    def find(self, filter: Mapping[str, Any]) -> Iterable[Mapping[str, Any]]: ...

    def replace_one(self, filter: Mapping[str, Any], replacement: Mapping[str, Any]) -> Any: ...

    def insert_one(self, document: Mapping[str, Any]) -> Any: ...


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class FavoriteCache:
    """Per-user like flags and per-video like counters."""

    def __init__(self, client: HashClient) -> None:
        self._client = client

    def write_favorite(self, user_id: int, video_id: int, is_favorite: bool) -> None:
        """Record whether the user likes the video."""
        self._client.hset(str(user_id), str(video_id), LIKED if is_favorite else NOT_LIKED)

    def update_count(self, video_id: int, is_favorite: bool) -> None:
        """Move a video's counter by one; a counter not yet present starts at 1."""
        key = str(video_id)
        try:
            current = self._client.get(key)
        except Exception:
            current = None
        if current is None:
            self._client.set(key, LIKED)
            return
        step = 1 if is_favorite else -1
        self._client.set(key, str(_parse_int(_text(current)) + step))

    def favorite_list(self, user_id: int) -> list[int]:
        """Return the ids of the videos the user likes, in ascending order."""
        flags = self._client.hgetall(str(user_id)) or {}
        liked = (
            int(_text(video))
            for video, flag in flags.items()
            if _text(flag) == LIKED and _DECIMAL.fullmatch(_text(video))
        )
        return sorted(liked)

    def favorite_counts(self, video_ids: Iterable[int]) -> dict[int, int]:
        """Return each video's counter; absent counters are 0, malformed ones raise ValueError."""
        counts: dict[int, int] = {}
        for video_id in video_ids:
            try:
                raw = self._client.get(str(video_id))
            except Exception:
                raw = None
            text = "" if raw is None else _text(raw)
            if not text:
                counts[video_id] = 0
                continue
            if not _DECIMAL.fullmatch(text):
                raise ValueError(f"like counter of video {video_id} is not a number: {text!r}")
            counts[video_id] = int(text)
        return counts

    def updated_counts(self, video_ids: Iterable[int]) -> dict[int, int]:
        """Return the counters as reported to clients, each raised by a fixed offset."""
        return {video_id: count + COUNT_OFFSET for video_id, count in self.favorite_counts(video_ids).items()}


class FavoriteArchive:
    """Like records kept as documents."""

    def __init__(self, collection: DocumentCollection) -> None:
        self._collection = collection

    def write_favorite(self, user_id: int, video_id: int, is_favorite: bool) -> None:
        """Update the user's record for the video, creating it when absent."""
        query = {"user_id": user_id, "video_id": video_id}
        existing = self._collection.find_one(query)
        if existing is not None:
            updated = dict(existing)
            updated["favorite"] = is_favorite
            self._collection.replace_one(query, updated)
            return
        self._collection.insert_one({"user_id": user_id, "video_id": video_id, "favorite": is_favorite})

    def favorite_list(self, user_id: int) -> list[int]:
        """Return the ids of the videos the user likes; a non-integer id raises ValueError."""
        liked = []
        for document in self._collection.find({"user_id": user_id}):
            video_id = document.get("video_id")
            if not _is_int(video_id):
                raise ValueError("video_id is not an int64")
            if document.get("favorite", True) is False:
                continue
            liked.append(video_id)
        return liked