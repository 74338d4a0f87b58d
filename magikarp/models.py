"""Data records shared by the gateway and the feed, comment and favorite services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Mapping

DEFAULT_NICK_NAME = "系统用户"


class Status(IntEnum):
    """Status codes carried in response bodies."""

    DOUYIN_SUCCESS = 0
    SUCCESS = 200
    INVALID_PARAMS = 400
    ERROR_AUTH_NOT_FOUND = 401
    ERROR = 500


@dataclass
class CommonResp:
    """The minimal response body: a status code and a message."""

    status_code: int = 0
    status_msg: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"status_code": int(self.status_code), "status_msg": self.status_msg}


@dataclass
class UserResp:
    """Response to a login or registration request."""

    user_id: str = ""
    token: str = ""
    status_code: int = 0
    status_msg: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "token": self.token,
            "status_code": int(self.status_code),
            "status_msg": self.status_msg,
        }


@dataclass
class Login:
    """Credentials bound from a login or registration request; both are required."""

    username: str
    password: str

    def __post_init__(self) -> None:
        for name in ("username", "password"):
            if not getattr(self, name):
                raise ValueError(f"field {name!r} is required")


@dataclass
class PublishAction:
    """An uploaded video together with the uploader's token and the title."""

    data: bytes = b""
    token: str = ""
    title: str = ""


@dataclass
class User:
    """A user account row."""

    id: int = 0
    email: str = ""
    password: str = field(default="", repr=False)
    nick_name: str = DEFAULT_NICK_NAME
    avatar: str = ""
    sex: int = 1
    dec: str = ""
    enable: int = 1
    default_favorites_id: int = 0
    follow_count: int = 0
    follower_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Comment:
    """A comment left by a user on a video."""

    user_id: int
    video_id: int
    content: str
    id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Favorite:
    """A like given by a user to a video."""

    user_id: int
    video_id: int
    status: int = 0
    id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class FavoriteCount:
    """The stored like count of one video."""

    video_id: int
    favorite_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


# JSON key -> (attribute, accepted type)
_VIDEO_FIELDS: dict[str, tuple[str, type]] = {
    "id": ("id", int),
    "author_id": ("author_id", int),
    "title": ("title", str),
    "cover_url": ("cover_url", str),
    "play_url": ("play_url", str),
    "play_count": ("play_count", int),
    "favorite_count": ("favorite_count", int),
    "star_count": ("star_count", int),
    "comment_count": ("comment_count", int),
    "category": ("category", str),
    "duration": ("duration", int),
    "label": ("label", str),
    "open": ("open", bool),
    "timestamp": ("timestamp", str),
}


def _check_type(key: str, value: Any, expected: type) -> None:
    if expected is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, expected)
    if not ok:
        raise ValueError(f"field {key!r} expects {expected.__name__}, got {type(value).__name__}")


@dataclass
class Video:
    """A published video as kept in the feed."""

    id: int = 0
    author_id: int = 0
    title: str = ""
    cover_url: str = ""
    play_url: str = ""
    play_count: int = 0
    favorite_count: int = 0
    star_count: int = 0
    comment_count: int = 0
    category: str = ""
    duration: int = 0
    label: str = ""
    open: bool = False
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the video as a JSON-ready mapping keyed by its wire names."""
        return {key: getattr(self, attr) for key, (attr, _) in _VIDEO_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Video":
        """Build a video from a wire mapping; absent or null keys keep their defaults."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"a video must be an object, got {type(data).__name__}")
        values: dict[str, Any] = {}
        for key, (attr, expected) in _VIDEO_FIELDS.items():
            value = data.get(key)
            if value is None:
                continue
            _check_type(key, value, expected)
            values[attr] = value
        return cls(**values)


@dataclass
class MongoVideo:
    """A video document as stored in the feed archive."""

    id: int = 0
    user_id: int = 0
    title: str = ""
    play_url: str = ""
    cover_url: str = ""
    label: str = ""
    category: str = ""
    timestamp: int = 0

    def to_video(self) -> Video:
        """Convert the archived document into a feed video."""
        return Video(
            id=self.id,
            author_id=self.user_id,
            title=self.title,
            cover_url=self.cover_url,
            play_url=self.play_url,
            category=self.category,
            label=self.label,
            timestamp=str(self.timestamp),
        )


_MONGO_FIELDS: dict[str, type] = {
    "id": int,
    "user_id": int,
    "title": str,
    "play_url": str,
    "cover_url": str,
    "label": str,
    "category": str,
    "timestamp": int,
}


def mongo_video_from_document(document: Mapping[str, Any]) -> MongoVideo:
    """Decode an archive document; missing keys keep their defaults, wrong types raise ValueError."""
    values: dict[str, Any] = {}
    for key, expected in _MONGO_FIELDS.items():
        value = document.get(key)
        if value is None:
            continue
        _check_type(key, value, expected)
        values[key] = value
    return MongoVideo(**values)