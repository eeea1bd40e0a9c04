"""
Request dependencies resolving the caller from the JWT middleware state.
"""
import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .db import get_db
from .errors import TOKEN_INVALID, UNAUTHORIZED, ApiError
from .models import AdminUser
from .utils.ip_whitelist import is_ip_in_whitelist
from .utils.operation_logger import client_ip

logger = logging.getLogger(__name__)


def get_current_user_id(request: Request) -> int:
    user_id = getattr(request.state, "user_id", None)
    if not isinstance(user_id, int) or user_id <= 0:
        raise ApiError(UNAUTHORIZED, "请先登录")
    return user_id


def get_current_token(request: Request) -> str:
    token = getattr(request.state, "token", None)
    if not token:
        raise ApiError(TOKEN_INVALID)
    return token


def get_current_admin(request: Request, db: Session = Depends(get_db)) -> AdminUser:
    """
    Resolve the admin panel caller.

    The client IP must pass the whitelist before the account is loaded.
    """
    ip = client_ip(request) or ""
    if not is_ip_in_whitelist(ip):
        logger.warning("[Admin] IP %s rejected by whitelist, path=%s", ip, request.url.path)
        raise ApiError(UNAUTHORIZED, "IP地址不在白名单内")

    user_id = getattr(request.state, "user_id", None)
    if not isinstance(user_id, int) or user_id <= 0:
        raise ApiError(UNAUTHORIZED)
    if getattr(request.state, "is_admin", 0) != 1:
        # Front-end user tokens never open the admin panel
        raise ApiError(UNAUTHORIZED, "未登录")

    admin = db.query(AdminUser).filter(AdminUser.id == user_id).first()
    if not admin:
        logger.error("[Admin] Failed to load admin user %s", user_id)
        raise ApiError(UNAUTHORIZED)
    return admin
