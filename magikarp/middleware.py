"""Request middleware of the HTTP gateway: CORS headers, error capture and token checks."""

from __future__ import annotations

import functools
import logging
from http import HTTPStatus
from typing import Any, Callable, Protocol

from flask import Flask, Response, g, jsonify, request

from magikarp.models import CommonResp, Status

log = logging.getLogger(__name__)

ALLOW_HEADERS = "Content-Type,AccessToken,X-CSRF-Token, Authorization, Token,X-Token,X-User-Id"
ALLOW_METHODS = "POST, GET, OPTIONS,DELETE,PUT"
EXPOSE_HEADERS = (
    "Content-Length, Access-Control-Allow-Origin, Access-Control-Allow-Headers, "
    "Content-Type, New-Token, New-Expires-At"
)
PANIC_CODE = 500


class TokenParser(Protocol):
    """Issues and checks login tokens; ``parse_token`` raises on a bad token."""

    def parse_token(self, token: str) -> int: ...

    def generate_token(self, user_id: int, email: str) -> str: ...


def cors_headers(origin: str) -> dict[str, str]:
    """Return the headers that let any origin call the gateway."""
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
        "Access-Control-Expose-Headers": EXPOSE_HEADERS,
        "Access-Control-Allow-Credentials": "true",
    }


def _is_http_error(exc: Exception) -> bool:
    return isinstance(getattr(exc, "code", None), int) and callable(getattr(exc, "get_response", None))


def install(app: Flask) -> None:
    """Answer preflight requests, add CORS headers and turn uncaught errors into JSON."""

    @app.before_request
    def _preflight() -> Response | None:
        if request.method == "OPTIONS":
            return Response(status=HTTPStatus.NO_CONTENT)
        return None

    @app.after_request
    def _add_cors(response: Response) -> Response:
        response.headers.update(cors_headers(request.headers.get("Origin", "")))
        return response

    @app.errorhandler(Exception)
    def _recover(exc: Exception) -> Any:
        if _is_http_error(exc):
            return exc
        log.exception("request failed")
        return jsonify({"code": PANIC_CODE, "msg": str(exc)}), HTTPStatus.OK


def require_token(tokens: TokenParser) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Build a view decorator that demands a valid ``token`` query parameter.

    The authenticated user id is left in ``flask.g.user_id``.
    """

    def decorate(view: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            token = request.args.get("token", "")
            if not token:
                body = CommonResp(Status.ERROR_AUTH_NOT_FOUND, "未登录,token不存在")
                return jsonify(body.to_dict())
            try:
                user_id = tokens.parse_token(token)
            except Exception:
                log.exception("解析错误")
                return jsonify(CommonResp(Status.ERROR, "解析错误").to_dict()), HTTPStatus.UNAUTHORIZED
            g.user_id = user_id
            return view(*args, **kwargs)

        return wrapper

    return decorate