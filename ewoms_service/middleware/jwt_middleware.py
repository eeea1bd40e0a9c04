"""
JWT middleware for everything under /api/.

Public paths pass straight through. For the rest the token is read from the
``token`` header or ``Authorization: Bearer``, checked against the blacklist,
decoded, and its claims are stored on ``request.state``.
"""
import logging
from typing import Callable

import jwt
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..auth import TokenConfigError, decode_token, extract_token, is_token_blacklisted
from ..errors import UNAUTHORIZED
from .paths import is_public_path

logger = logging.getLogger(__name__)


def _unauthorized(msg: str) -> JSONResponse:
    return JSONResponse(status_code=401, content={"code": UNAUTHORIZED, "msg": msg, "data": None})


def _as_int(value, default=None):
    # Numeric claims may arrive as int or float
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    return default


class JWTMiddleware(BaseHTTPMiddleware):
    """Authenticate /api/ requests from their bearer token"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not path.startswith("/api/") or request.method == "OPTIONS" or is_public_path(path):
            return await call_next(request)

        logger.debug("JWTMiddleware path: %s", path)
        token = extract_token(request.headers)

        if not token or await run_in_threadpool(is_token_blacklisted, token):
            return _unauthorized("token无效")

        try:
            claims = decode_token(token)
        except (jwt.PyJWTError, TokenConfigError) as e:
            logger.error("ParseJWTToken error: %s", e)
            return _unauthorized("无效的token")

        request.state.token = token
        request.state.user_id = _as_int(claims.get("user_id"))
        request.state.username = claims.get("username")
        request.state.is_admin = _as_int(claims.get("is_admin"), 0)
        logger.debug(
            "Token claims: user_id=%s, username=%s, is_admin=%s",
            request.state.user_id, request.state.username, request.state.is_admin
        )

        return await call_next(request)
