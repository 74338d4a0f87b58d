"""The HTTP gateway: routes client requests to the user, feed, like, comment, publish and relation services."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Iterable, Mapping, Protocol

from flask import Flask, g, jsonify, request

from magikarp.feed_util import _parse_int
from magikarp.middleware import TokenParser, install, require_token
from magikarp.models import CommonResp, Login, Status

log = logging.getLogger(__name__)


class _Users(Protocol):
    def login(self, email: str, password: str) -> Any: ...

    def register(self, email: str, password: str) -> Any: ...

    def get_user(self, user_id: int) -> Any: ...


class _Feed(Protocol):
    def list_videos(self, user_id: int, last_time: int) -> Any: ...


class _Favorites(Protocol):
    def favorite_action(self, user_id: int, video_id: int, action_type: int) -> Any: ...

    def favorite_list(self, user_id: int) -> Any: ...

    def is_favorite(self, user_id: int, video_ids: Iterable[int]) -> Any: ...

    def favorite_count(self, video_ids: Iterable[int]) -> Any: ...


class _Comments(Protocol):
    def comment_action(self, user_id: int, video_id: int, action_type: int, comment_text: str) -> Any: ...

    def comment_count(self, video_ids: Iterable[int]) -> Any: ...

    def comment_list(self, video_id: int) -> Any: ...


class _Publisher(Protocol):
    def create_video(self, actor_id: int, title: str, data: bytes) -> Any: ...

    def list_video(self, user_id: int) -> Any: ...


class _Relations(Protocol):
    def action(self, user_id: int, params: dict[str, str]) -> Any: ...

    def follow_list(self, user_id: int, params: dict[str, str]) -> Any: ...

    def follower_list(self, user_id: int, params: dict[str, str]) -> Any: ...

    def friend_list(self, user_id: int, params: dict[str, str]) -> Any: ...


@dataclass
class Backends:
    """The services the gateway forwards to; each call raises when the service fails."""

    users: _Users
    feed: _Feed
    favorites: _Favorites
    comments: _Comments
    publisher: _Publisher
    relations: _Relations


class _BindError(ValueError):
    """A request parameter is missing or malformed."""


def _plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return dict(value)
    return value


def _int_value(name: str, required: bool = True) -> int:
    raw = request.values.get(name, "")
    if raw == "":
        if required:
            raise _BindError(f"missing parameter {name!r}")
        return 0
    try:
        return int(raw)
    except ValueError:
        raise _BindError(f"parameter {name!r} is not an integer") from None


def _int_list(name: str) -> list[int]:
    try:
        return [int(raw) for raw in request.values.getlist(name)]
    except ValueError:
        raise _BindError(f"parameter {name!r} is not a list of integers") from None


def _bind_failed(exc: Exception) -> Any:
    log.error("绑定参数错误: %s", exc)
    return jsonify(CommonResp(Status.INVALID_PARAMS, "绑定参数错误").to_dict())


def _unauthorized() -> Any:
    return jsonify(CommonResp(Status.ERROR, "解析错误").to_dict()), HTTPStatus.UNAUTHORIZED


def _current_user() -> int:
    return int(g.get("user_id", 0))


def create_app(backends: Backends, tokens: TokenParser) -> Flask:
    """Build the gateway application with all routes under ``/douyin``."""
    app = Flask(__name__)
    install(app)
    auth = require_token(tokens)

    def sign_in(call: Any, failure: str) -> Any:
        try:
            credentials = Login(request.args.get("username", ""), request.args.get("password", ""))
        except ValueError:
            return jsonify(CommonResp(Status.ERROR, "ShouldBind绑定错误").to_dict())
        try:
            reply = _plain(call(credentials.username, credentials.password))
        except Exception:
            log.exception(failure)
            return jsonify(None)
        if reply.get("status_code") == Status.SUCCESS:
            try:
                token = tokens.generate_token(reply.get("user_id", 0), credentials.username)
            except Exception:
                log.exception("加密错误")
                reply["status_msg"] = "加密错误"
                return jsonify(reply)
            reply["status_code"] = Status.DOUYIN_SUCCESS
            reply["token"] = token
        return jsonify(reply)

    @app.post("/douyin/user/login/")
    def user_login() -> Any:
        return sign_in(backends.users.login, "UserLogin RPC服务调用错误")

    @app.post("/douyin/user/register/")
    def user_register() -> Any:
        return sign_in(backends.users.register, "UserRegister RPC服务调用错误")

    @app.get("/douyin/user/")
    @auth
    def user_info() -> Any:
        try:
            reply = _plain(backends.users.get_user(_current_user()))
        except Exception:
            log.exception("RPC GetUserById 调用错误")
            return jsonify(None)
        reply["status_code"] = Status.DOUYIN_SUCCESS
        return jsonify(reply)

    @app.get("/douyin/feed/")
    def list_feed() -> Any:
        token = request.args.get("token", "")
        user_id = 0
        if token:
            try:
                user_id = tokens.parse_token(token)
            except Exception:
                log.exception("解析错误")
                return _unauthorized()
        latest_time = _parse_int(request.args.get("latest_time", ""))
        try:
            reply = backends.feed.list_videos(user_id, latest_time)
        except Exception:
            log.exception("FeedClient.ListVideos error")
            return jsonify(None)
        if reply is None:
            raise RuntimeError("feed service returned no response")
        reply = _plain(reply)
        if reply.get("code") != Status.SUCCESS:
            log.error("获取视频流失败: r.Code is unsuccessful")
        reply["code"] = Status.DOUYIN_SUCCESS
        return jsonify(reply)

    @app.post("/douyin/comment/action/")
    @auth
    def comment_action() -> Any:
        try:
            video_id = _int_value("video_id")
            action_type = _int_value("action_type")
        except _BindError as exc:
            return _bind_failed(exc)
        text = request.values.get("comment_text", "")
        try:
            reply = backends.comments.comment_action(_current_user(), video_id, action_type, text)
        except Exception:
            log.exception("调用RPC服务错误")
            return jsonify(None)
        return jsonify(_plain(reply))

    @app.get("/douyin/comment/count/")
    @auth
    def comment_count() -> Any:
        try:
            video_ids = _int_list("video_id")
        except _BindError as exc:
            return _bind_failed(exc)
        try:
            reply = backends.comments.comment_count(video_ids)
        except Exception:
            log.exception("调用RPC服务错误")
            return jsonify(None)
        return jsonify(_plain(reply))

    @app.get("/douyin/comment/list/")
    @auth
    def comment_list() -> Any:
        try:
            video_id = _int_value("video_id")
        except _BindError as exc:
            return _bind_failed(exc)
        try:
            reply = backends.comments.comment_list(video_id)
        except Exception:
            log.exception("调用RPC服务错误")
            return jsonify(None)
        return jsonify(_plain(reply))

    @app.post("/douyin/favorite/action/")
    @auth
    def favorite_action() -> Any:
        try:
            video_id = _int_value("video_id")
            action_type = _int_value("action_type")
        except _BindError as exc:
            return _bind_failed(exc)
        try:
            reply = _plain(backends.favorites.favorite_action(_current_user(), video_id, action_type))
        except Exception:
            log.exception("FavoriteAction RPC服务调用错误")
            return jsonify(CommonResp(Status.ERROR, "FavoriteAction RPC服务调用错误").to_dict())
        reply["status_code"] = Status.DOUYIN_SUCCESS
        return jsonify(reply)

    @app.get("/douyin/favorite/list/")
    @auth
    def favorite_list() -> Any:
        try:
            reply = _plain(backends.favorites.favorite_list(_current_user()))
        except Exception:
            return jsonify(CommonResp(Status.DOUYIN_SUCCESS, "").to_dict())
        reply["status_code"] = Status.DOUYIN_SUCCESS
        return jsonify(reply)

    @app.get("/douyin/favorite/is/")
    @auth
    def is_favorite() -> Any:
        try:
            video_ids = _int_list("video_id")
        except _BindError as exc:
            return _bind_failed(exc)
        try:
            reply = backends.favorites.is_favorite(_current_user(), video_ids)
        except Exception:
            log.exception("RPC服务调用错误")
            return jsonify(None)
        return jsonify(_plain(reply))

    @app.get("/douyin/favorite/count/")
    def favorite_count() -> Any:
        try:
            video_ids = _int_list("video_id")
        except _BindError as exc:
            return _bind_failed(exc)
        try:
            reply = backends.favorites.favorite_count(video_ids)
        except Exception:
            return jsonify(None)
        return jsonify(_plain(reply))

    @app.get("/douyin/publish/list/")
    @auth
    def publish_list() -> Any:
        try:
            reply = backends.publisher.list_video(_current_user())
        except Exception:
            log.exception("rpc ListVideo 调用失败")
            return jsonify(CommonResp(Status.ERROR, "rpc ListVideo 调用失败").to_dict())
        return jsonify(_plain(reply))

    @app.post("/douyin/publish/action/")
    def publish_action() -> Any:
        upload = request.files.get("data")
        if upload is None:
            return jsonify({"error": "missing file field 'data'"}), HTTPStatus.BAD_REQUEST
        try:
            data = upload.read()
        except OSError as exc:
            return jsonify({"error": str(exc)}), HTTPStatus.INTERNAL_SERVER_ERROR
        token = request.form.get("token", "")
        title = request.form.get("title", "")
        if not token:
            return jsonify(CommonResp(Status.INVALID_PARAMS, "用户不存在").to_dict())
        try:
            actor_id = tokens.parse_token(token)
        except Exception:
            log.exception("解析错误")
            return _unauthorized()
        try:
            reply = backends.publisher.create_video(actor_id, title, data)
        except Exception:
            log.exception("rpc CreateVideo 调用失败")
            return jsonify(None)
        return jsonify(_plain(reply))

    def relation_call(call: Any) -> Any:
        params = {key: value for key, value in request.values.items()}
        try:
            reply = call(_current_user(), params)
        except Exception:
            log.exception("relation RPC服务调用错误")
            return jsonify(None)
        return jsonify(_plain(reply))

    @app.post("/douyin/relation/action/")
    @auth
    def relation_action() -> Any:
        return relation_call(backends.relations.action)

    @app.get("/douyin/relation/follow/")
    @auth
    def relation_follow() -> Any:
        return relation_call(backends.relations.follow_list)

    @app.get("/douyin/relation/follower/")
    @auth
    def relation_follower() -> Any:
        return relation_call(backends.relations.follower_list)

    @app.get("/douyin/relation/friend/")
    @auth
    def relation_friend() -> Any:
        return relation_call(backends.relations.friend_list)

    return app