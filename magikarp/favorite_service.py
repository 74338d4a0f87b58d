"""The favorite service: liking videos and answering like queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from magikarp.favorite_store import FavoriteArchive, FavoriteCache
from magikarp.feed_service import FeedVideo
from magikarp.models import Status

log = logging.getLogger(__name__)

ACTION_LIKE = 1
ACTION_UNLIKE = 2


class VideoSource(Protocol):
    """Looks up a video by id; failures raise."""

    def get_video_by_id(self, video_id: int) -> FeedVideo: ...


@dataclass
class FavoriteActionResp:
    status_code: int = 0
    status_msg: str = ""


@dataclass
class FavoriteListResp:
    status_code: int = 0
    status_msg: str = ""
    video_list: list[FeedVideo] = field(default_factory=list)


@dataclass
class IsFavoriteResp:
    status_code: int = 0
    status_msg: str = ""
    is_favorite: dict[int, bool] = field(default_factory=dict)


@dataclass
class FavoriteCountResp:
    status_code: int = 0
    status_msg: str = ""
    video_favorite_count: dict[int, int] = field(default_factory=dict)


def apply_favorite(
    cache: FavoriteCache, archive: FavoriteArchive, user_id: int, video_id: int, op: bool
) -> None:
    """Like (``op`` true) or unlike a video in the cache, its counter and the archive."""
    cache.write_favorite(user_id, video_id, op)
    cache.update_count(video_id, op)
    archive.write_favorite(user_id, video_id, op)


class FavoriteService:
    """Handles like actions and like queries."""

    def __init__(self, cache: FavoriteCache, archive: FavoriteArchive, videos: VideoSource) -> None:
        self._cache = cache
        self._archive = archive
        self._videos = videos

    def favorite_action(self, user_id: int, video_id: int, action_type: int) -> FavoriteActionResp:
        """Like (1) or unlike (2) a video; any other action is invalid."""
        if action_type == ACTION_LIKE:
            op, failure = True, "点赞失败"
        elif action_type == ACTION_UNLIKE:
            op, failure = False, "取消点赞失败"
        else:
            return FavoriteActionResp(Status.INVALID_PARAMS, "参数错误")
        try:
            apply_favorite(self._cache, self._archive, user_id, video_id, op)
        except Exception:
            log.exception("favorite action failed")
            return FavoriteActionResp(Status.ERROR, failure)
        return FavoriteActionResp()

    def favorite_list(self, user_id: int) -> FavoriteListResp:
        """List the videos the user likes, from the cache or else from the archive."""
        try:
            liked = self._cache.favorite_list(user_id)
        except Exception:
            return FavoriteListResp(Status.ERROR, "查询缓存失败")
        if not liked:
            try:
                liked = self._archive.favorite_list(user_id)
            except Exception:
                return FavoriteListResp(Status.ERROR, "查询MongoDB失败")
        return FavoriteListResp(Status.SUCCESS, "查询成功", self._load_videos(liked))

    def is_favorite(self, user_id: int, video_ids: Iterable[int] = ()) -> IsFavoriteResp:
        """Map every video the user likes to True.

        ``video_ids`` is accepted for the caller's convenience; the answer covers all liked
        videos. Likes found only in the archive are written back to the cache.
        """
        try:
            liked = self._cache.favorite_list(user_id)
        except Exception:
            return IsFavoriteResp(Status.ERROR, "查询缓存失败")
        if liked:
            return IsFavoriteResp(Status.SUCCESS, "查询成功", dict.fromkeys(liked, True))

        try:
            liked = self._archive.favorite_list(user_id)
        except Exception:
            return IsFavoriteResp(Status.ERROR, "查询MongoDB失败")
        if not liked:
            return IsFavoriteResp(Status.SUCCESS, "没有视频数据")

        found: dict[int, bool] = {}
        for video_id in liked:
            found[video_id] = True
            try:
                self._cache.write_favorite(user_id, video_id, True)
            except Exception:
                return IsFavoriteResp(Status.ERROR, "插入缓存失败")
        return IsFavoriteResp(Status.SUCCESS, "查询成功", found)

    def favorite_count(self, video_ids: Iterable[int]) -> FavoriteCountResp:
        """Return the reported like count of each video; cache failures propagate."""
        ids = list(video_ids)
        if not ids:
            return FavoriteCountResp(Status.ERROR, "错误")
        return FavoriteCountResp(Status.SUCCESS, "更新成功", self._cache.updated_counts(ids))

    def _load_videos(self, video_ids: Iterable[int]) -> list[FeedVideo]:
        videos = []
        for video_id in video_ids:
            try:
                videos.append(self._videos.get_video_by_id(video_id))
            except Exception:
                continue
        return videos