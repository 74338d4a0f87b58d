"""The comment service: storing comments and answering count and list queries."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from magikarp.feed_store import NotFound
from magikarp.models import Comment, Status, User

ACTION_ADD = 1
ACTION_DELETE = 2

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL DEFAULT '',
    nick_name TEXT NOT NULL DEFAULT '系统用户',
    avatar TEXT NOT NULL DEFAULT '',
    sex INTEGER NOT NULL DEFAULT 1,
    "dec" TEXT NOT NULL DEFAULT '',
    enable INTEGER NOT NULL DEFAULT 1,
    default_favorites_id INTEGER NOT NULL DEFAULT 0,
    follow_count INTEGER NOT NULL DEFAULT 0,
    follower_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    video_id INTEGER NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_comments_user_id ON comments(user_id);
"""

_USER_COLUMNS = (
    "id, email, password, nick_name, avatar, sex, \"dec\", enable, "
    "default_favorites_id, follow_count, follower_count, created_at, updated_at"
)


def _parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class CommentInfo:
    """A comment as returned to clients, with its author."""

    id: int
    user: User
    content: str
    create_date: str


@dataclass
class CommentActionResp:
    status_code: int = 0
    status_msg: str = ""


@dataclass
class CommentCountResp:
    status_code: int = 0
    status_msg: str = ""
    comment_count: dict[int, int] = field(default_factory=dict)


@dataclass
class CommentListResp:
    status_code: int = 0
    status_msg: str = ""
    comment_list: list[CommentInfo] = field(default_factory=list)


class CommentStore:
    """Comments and their authors kept in a relational database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.executescript(_SCHEMA)

    def add_comment(self, user_id: int, video_id: int, content: str) -> Comment:
        """Store a new comment and return it with its id and creation time."""
        now = datetime.now(timezone.utc)
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO comments (user_id, video_id, content, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (user_id, video_id, content, now.isoformat(), now.isoformat()),
            )
        return Comment(
            user_id=user_id,
            video_id=video_id,
            content=content,
            id=cursor.lastrowid or 0,
            created_at=now,
            updated_at=now,
        )

    def delete_comment(self, user_id: int, video_id: int) -> int:
        """Delete every comment the user left on the video; return how many went."""
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM comments WHERE user_id = ? AND video_id = ?",
                (user_id, video_id),
            )
        return cursor.rowcount

    def comment_count(self, video_ids: Iterable[int]) -> dict[int, int]:
        """Count the comments of each video."""
        counts: dict[int, int] = {}
        for video_id in video_ids:
            (count,) = self._conn.execute(
                "SELECT COUNT(*) FROM comments WHERE video_id = ?", (video_id,)
            ).fetchone()
            counts[video_id] = count
        return counts

    def comment_list(self, video_id: int) -> list[CommentInfo]:
        """List a video's comments with their authors; a missing author raises NotFound."""
        rows = self._conn.execute(
            "SELECT id, user_id, content, created_at FROM comments "
            "WHERE video_id = ? ORDER BY id",
            (video_id,),
        ).fetchall()
        comments = []
        for comment_id, user_id, content, created_at in rows:
            author = self.get_user(user_id)
            comments.append(
                CommentInfo(
                    id=comment_id,
                    user=User(id=author.id, nick_name=author.nick_name),
                    content=content,
                    create_date=str(_parse_time(created_at)),
                )
            )
        return comments

    def get_user(self, user_id: int) -> User:
        """Return the user with the given id; raise NotFound when there is none."""
        row = self._conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ? LIMIT 1", (user_id,)
        ).fetchone()
        if row is None:
            raise NotFound(user_id)
        (uid, email, password, nick_name, avatar, sex, dec, enable,
         favorites_id, follow_count, follower_count, created_at, updated_at) = row
        return User(
            id=uid,
            email=email,
            password=password,
            nick_name=nick_name,
            avatar=avatar,
            sex=sex,
            dec=dec,
            enable=enable,
            default_favorites_id=favorites_id,
            follow_count=follow_count,
            follower_count=follower_count,
            created_at=_parse_time(created_at),
            updated_at=_parse_time(updated_at),
        )


class CommentService:
    """Handles comment actions and queries."""

    def __init__(self, store: CommentStore) -> None:
        self._store = store

    def comment_action(
        self, user_id: int, video_id: int, action_type: int, comment_text: str = ""
    ) -> CommentActionResp:
        """Add (1) or delete (2) a comment; store failures propagate.

        The reply always carries the invalid-parameters status, whatever the action did.
        """
        if action_type == ACTION_ADD:
            self._store.add_comment(user_id, video_id, comment_text)
        elif action_type == ACTION_DELETE:
            self._store.delete_comment(user_id, video_id)
        return CommentActionResp(Status.INVALID_PARAMS, "无效参数")

    def comment_count(self, video_ids: Iterable[int]) -> CommentCountResp:
        try:
            counts = self._store.comment_count(video_ids)
        except (sqlite3.Error, NotFound):
            return CommentCountResp(Status.ERROR, "获取评论数量失败")
        return CommentCountResp(Status.SUCCESS, "获取评论数量成功", counts)

    def comment_list(self, video_id: int) -> CommentListResp:
        try:
            comments = self._store.comment_list(video_id)
        except (sqlite3.Error, NotFound):
            return CommentListResp(Status.ERROR, "获取评论列表失败")
        return CommentListResp(Status.SUCCESS, "获取评论列表成功", comments)