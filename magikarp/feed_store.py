"""Feed storage: the per-user delivery box in a key-value cache and the video archive."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

from magikarp.feed_util import _parse_int, judge_time_diff, videos_from_json, videos_to_json
from magikarp.models import Video, mongo_video_from_document

DAY = 24 * 60 * 60
LATER_STEP = 6 * 60 * 60
MARKED_TIME_TTL = 24 * 60 * 60
FEED_LIMIT = 30
FULL_BATCH = 10


class NotFound(LookupError):
    """Raised when a key or document is absent."""


class ListClient(Protocol):
    """The list operations of a key-value cache client."""

    def lpop(self, name: str, count: int | None = None) -> Any: ...

    def lpush(self, name: str, *values: str) -> Any: ...

    def rpush(self, name: str, *values: str) -> Any: ...


class KeyValueClient(Protocol):
    """The string operations of a key-value cache client."""

    def get(self, name: str) -> Any: ...

    def set(self, name: str, value: str, ex: int | None = None) -> Any: ...


class Collection(Protocol):
    """The query operations of a document collection."""

    def find_one(self, filter: Mapping[str, Any]) -> Mapping[str, Any] | None: ...

    def find(self, filter: Mapping[str, Any]) -> Iterable[Mapping[str, Any]]: ...


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, (bytes, bytearray)) else str(value)


class FeedCache:
    """A user's feed delivery box and the time up to which it has been refreshed."""

    def __init__(self, feed_client: ListClient, marked_client: KeyValueClient) -> None:
        self._feed = feed_client
        self._marked = marked_client

    def get_feed_cache(self, key: str, num: int) -> tuple[list[Video], bool]:
        """Pop up to ``num`` videos; the flag is true only when more than a full batch came back."""
        try:
            popped = self._feed.lpop(key, num)
        except Exception:  # a cache failure reads as an empty box
            return [], False
        if popped is None:
            return [], False
        if isinstance(popped, (str, bytes, bytearray)):
            popped = [popped]
        try:
            videos = videos_from_json(_text(item) for item in popped)
        except ValueError:
            return [], False
        return videos, len(videos) > FULL_BATCH

    def set_feed_cache(self, method: str, key: str, videos: Iterable[Video]) -> None:
        """Push videos to the left (``"l"``) or right (``"r"``) end of the box."""
        payload = videos_to_json(videos)
        if method == "l":
            push = self._feed.lpush
        elif method == "r":
            push = self._feed.rpush
        else:
            raise ValueError("unknown method, only accept 'l' or 'r'")
        if not payload:
            raise ValueError("no videos to push")
        push(key, *payload)

    def get_marked_time(self, key: str) -> str:
        """Return the stored marked time; raise NotFound when there is none."""
        value = self._marked.get(key)
        if value is None:
            raise NotFound(key)
        return _text(value)

    def set_marked_time(self, key: str, marked_time: str) -> None:
        """Store the marked time for one day."""
        self._marked.set(key, marked_time, ex=MARKED_TIME_TTL)


class FeedArchive:
    """Queries over the archived video documents."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def get_video(self, video_id: int) -> Video:
        """Return the first document whose ``user_id`` field equals the given id."""
        document = self._collection.find_one({"user_id": video_id})
        if document is None:
            raise NotFound(video_id)
        return mongo_video_from_document(document).to_video()

    def find_feed(self, start_time: int, end_time: int) -> list[Video]:
        """Return videos with ``start_time < timestamp <= end_time``; undecodable ones are skipped."""
        query = {
            "$and": [
                {"timestamp": {"$gt": start_time}},
                {"timestamp": {"$lte": end_time}},
            ]
        }
        videos = []
        for document in self._collection.find(query):
            try:
                videos.append(mongo_video_from_document(document).to_video())
            except ValueError:
                continue
        return videos

    def search_earlier(self, latest_time: int, stop_time: int) -> list[Video]:
        """Walk back a day at a time until more than 30 videos or past ``stop_time``."""
        videos: list[Video] = []
        next_time = latest_time - DAY
        while True:
            videos.extend(self.find_feed(next_time, latest_time))
            if len(videos) > FEED_LIMIT or next_time < stop_time:
                break
            latest_time = next_time
            next_time -= DAY
        return videos

    def search_later(self, marked_time: str, current_time: str) -> tuple[list[Video], str]:
        """Walk forward six hours at a time from ``marked_time``; return the videos and the new mark."""
        marked = _parse_int(marked_time)
        current = _parse_int(current_time)
        next_marked = marked + LATER_STEP
        videos: list[Video] = []
        while True:
            videos.extend(self.find_feed(marked, next_marked))
            if len(videos) > FEED_LIMIT or not judge_time_diff(next_marked, str(current), LATER_STEP):
                break
            marked = next_marked
            next_marked += LATER_STEP
        return videos, str(next_marked)