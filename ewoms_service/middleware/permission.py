"""
Role based permission checks.

Permissions store an api_route pattern such as ``/api/admin/role/detail/:id``
and an HTTP method. A user may call a route when any permission reachable
through their roles matches both.
"""
import logging
from typing import List

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import FORBIDDEN, UNAUTHORIZED, ApiError
from ..models import Permission, RolePermission, UserRole
from .paths import skips_permission_check

logger = logging.getLogger(__name__)


def split_path(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def match_route(pattern: str, path: str) -> bool:
    """
    Match a request path against a route pattern.

    Segments starting with ``:`` match any single segment. One trailing
    slash is ignored on both sides.
    """
    if pattern.endswith("/"):
        pattern = pattern[:-1]
    if path.endswith("/"):
        path = path[:-1]

    if pattern == path:
        return True

    pattern_parts = split_path(pattern)
    path_parts = split_path(path)
    if len(pattern_parts) != len(path_parts):
        return False

    for pattern_part, path_part in zip(pattern_parts, path_parts):
        if pattern_part.startswith(":"):
            continue
        if pattern_part != path_part:
            return False
    return True


def get_user_permission_ids(db: Session, user_id: int) -> List[int]:
    role_ids = [rid for (rid,) in db.query(UserRole.role_id).filter(UserRole.user_id == user_id).all()]
    if not role_ids:
        return []

    seen = set()
    permission_ids = []
    rows = db.query(RolePermission.permission_id).filter(RolePermission.role_id.in_(role_ids)).all()
    for (pid,) in rows:
        if pid not in seen:
            seen.add(pid)
            permission_ids.append(pid)
    return permission_ids


def check_user_permission(db: Session, user_id: int, route: str, method: str) -> bool:
    permission_ids = get_user_permission_ids(db, user_id)
    if not permission_ids:
        logger.debug("[Permission] user %s has no roles or permissions", user_id)
        return False

    permissions = db.query(Permission).filter(Permission.id.in_(permission_ids)).all()
    for perm in permissions:
        if match_route(perm.api_route, route) and perm.http_method == method:
            return True
    return False


def require_permission(request: Request, db: Session = Depends(get_db)) -> None:
    """Dependency rejecting callers whose roles do not grant the current route"""
    path = request.url.path
    if skips_permission_check(path):
        return

    user_id = getattr(request.state, "user_id", None)
    username = getattr(request.state, "username", None)
    is_admin = getattr(request.state, "is_admin", None)
    if not isinstance(user_id, int) or not isinstance(username, str) or not isinstance(is_admin, int):
        raise ApiError(UNAUTHORIZED, msg="未登录或登录信息无效")

    if not check_user_permission(db, user_id, path, request.method):
        logger.warning(
            "[Permission] denied: user_id=%s username=%s method=%s path=%s",
            user_id, username, request.method, path
        )
        raise ApiError(FORBIDDEN, msg="无权限访问")
