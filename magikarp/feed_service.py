"""The feed service: builds a user's video feed from the cache, the archive and peer services."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Protocol

from magikarp.feed_store import DAY, FeedArchive, FeedCache
from magikarp.feed_util import _parse_int, fill_user_id, judge_time_diff
from magikarp.models import Video

log = logging.getLogger(__name__)

FEED_BATCH = 10
LOOKBACK = 14 * DAY
REFRESH_INTERVAL = 6 * 60 * 60
NO_NEXT_TIME = "9777777777"


class FeedPeers(Protocol):
    """The services the feed asks for likes, comments and authors; failures raise."""

    def is_favorite(self, user_id: int, video_ids: list[int]) -> Mapping[int, bool]: ...

    def favorite_count(self, video_ids: list[int]) -> Mapping[int, int]: ...

    def comment_count(self, video_ids: list[int]) -> Mapping[int, int]: ...

    def get_user(self, user_id: int) -> Any: ...


@dataclass
class FeedVideo:
    """A video as returned to clients, with counts and author filled in."""

    id: int = 0
    author: Any = None
    play_url: str = ""
    cover_url: str = ""
    favorite_count: int = 0
    comment_count: int = 0
    is_favorite: bool = False
    title: str = ""
    star_count: int = 0
    duration: str = ""
    play_count: int = 0


@dataclass
class FeedListResp:
    """A page of the feed and the time the next page starts before."""

    code: int = 0
    msg: str = ""
    video_list: list[FeedVideo] = field(default_factory=list)
    next_time: int = 0


def _rune_string(value: int) -> str:
    if 0 <= value <= 0x10FFFF and not 0xD800 <= value <= 0xDFFF:
        return chr(value)
    return "\ufffd"


def _now() -> int:
    return int(time.time())


class FeedService:
    """Serves feed pages and single videos."""

    def __init__(
        self,
        archive: FeedArchive,
        cache: FeedCache,
        peers: FeedPeers,
        clock: Callable[[], int] = _now,
    ) -> None:
        self._archive = archive
        self._cache = cache
        self._peers = peers
        self._clock = clock

    def list_videos(self, user_id: int, last_time: int = 0) -> FeedListResp | None:
        """Return the next feed page for a user; the page always starts from the current time."""
        key = fill_user_id(str(user_id))
        problems: list[str] = []
        latest = self._clock()

        videos, full = self._cache.get_feed_cache(key, FEED_BATCH)
        if not full:
            try:
                found = self._archive.search_earlier(latest, latest - LOOKBACK)
                if len(found) < FEED_BATCH:
                    latest = self._clock()
                    found = self._archive.search_earlier(latest, latest - LOOKBACK)
            except Exception:
                log.exception("searching the archive failed")
                return self.pack_feed_list([], 1, "search mongo failed", user_id)
            try:
                self._cache.set_feed_cache("r", key, found)
            except Exception:
                log.exception("filling the delivery box failed")
                return self.pack_feed_list([], 1, "set send box failed", user_id)
            videos, full = self._cache.get_feed_cache(key, min(FEED_BATCH, len(found)))

        current = self._clock()
        try:
            marked = self._cache.get_marked_time(key)
        except Exception:
            marked = str(current)
            try:
                self._cache.set_marked_time(key, marked)
            except Exception:
                problems.append(f"user_id为{key}的用户设置marked_time失败")

        if judge_time_diff(current, marked, REFRESH_INTERVAL):
            try:
                later, new_marked = self._archive.search_later(marked, str(current))
            except Exception:
                problems.append(f"user_id为{key}的用户查询mongo失败")
                later, new_marked = [], marked
            try:
                self._cache.set_marked_time(key, new_marked)
            except Exception:
                problems.append(f"user_id为{key}的用户设置新的marked_time失败")
            try:
                self._cache.set_feed_cache("r", key, later)
            except Exception:
                problems.append(f"user_id为{key}的用户设置send box失败")

        if problems:
            log.warning(";  ".join(problems) + ";  ")
        return self.pack_feed_list(videos, 0, "Success", user_id)

    def get_video_by_id(self, video_id: int) -> FeedVideo:
        """Return one video with its counts, or an empty video when it cannot be found."""
        try:
            video = self._archive.get_video(video_id)
        except Exception:
            return FeedVideo()
        return self.pack_video_info(video)

    def pack_feed_list(
        self, videos: Iterable[Video], code: int, msg: str, user_id: int
    ) -> FeedListResp | None:
        """Fill in likes, comments and authors; return None when a peer lookup fails."""
        videos = list(videos)
        ids = [video.id for video in videos]
        try:
            liked = self._peers.is_favorite(user_id, ids)
            likes = self._peers.favorite_count(ids)
            comments = self._peers.comment_count(ids)
        except Exception:
            log.exception("peer lookup failed")
            return None

        next_time = NO_NEXT_TIME
        packed = []
        for video in videos:
            try:
                author = self._peers.get_user(video.author_id)
            except Exception:
                continue
            packed.append(
                FeedVideo(
                    id=video.id,
                    author=author,
                    play_url=video.play_url,
                    cover_url=video.cover_url,
                    favorite_count=likes.get(video.id, 0),
                    comment_count=comments.get(video.id, 0),
                    is_favorite=liked.get(video.id, False),
                    title=video.title,
                    duration=_rune_string(video.duration),
                )
            )
            if video.timestamp < next_time:
                next_time = video.timestamp

        return FeedListResp(code=code, msg=msg, video_list=packed, next_time=_parse_int(next_time))

    def pack_video_info(self, video: Video) -> FeedVideo:
        """Fill in the like and comment counts of one video."""
        ids = [video.id]
        return FeedVideo(
            id=video.id,
            play_url=video.play_url,
            cover_url=video.cover_url,
            title=video.title,
            duration=_rune_string(video.duration),
            favorite_count=self._peers.favorite_count(ids).get(video.id, 0),
            comment_count=self._peers.comment_count(ids).get(video.id, 0),
            is_favorite=True,
        )