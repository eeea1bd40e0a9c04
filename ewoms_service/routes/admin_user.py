"""
Admin panel account endpoints: login, logout, profile and password change.
"""
import logging

import jwt
import redis
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import (
    TokenConfigError,
    add_token_to_blacklist,
    create_admin_token,
    hash_password,
    verify_password,
    verify_totp,
)
from ..config import settings
from ..db import get_db
from ..dependencies import get_current_admin, get_current_token
from ..errors import PARAMS_ERROR, SERVER_ERROR, UNAUTHORIZED, ApiError, success
from ..models import AdminUser, UserRole, now_ts
from ..schemas import AdminChangePasswordRequest, AdminLoginRequest

router = APIRouter(prefix="/api/admin/user", tags=["admin-user"])
logger = logging.getLogger(__name__)


def _user_roles(db: Session, admin_id: int) -> list:
    return [ur.to_dict() for ur in db.query(UserRole).filter(UserRole.user_id == admin_id).all()]


@router.post("/login")
def login(form: AdminLoginRequest, db: Session = Depends(get_db)):
    if not form.username:
        raise ApiError(PARAMS_ERROR, "邮箱或用户名不能为空")
    if not form.password:
        raise ApiError(PARAMS_ERROR, "密码不能为空")
    if not form.verify_code:
        raise ApiError(PARAMS_ERROR, "Google验证码不能为空")

    admin = (
        db.query(AdminUser)
        .filter(AdminUser.username == form.username, AdminUser.status == 1)
        .first()
    )
    if not admin or not verify_password(form.password, admin.password):
        logger.error("[UserController][Login] login error for %s", form.username)
        raise ApiError(UNAUTHORIZED, "邮箱或用户名或密码错误")

    if settings.ADMIN_TOTP_REQUIRED:
        if not admin.verify_code:
            logger.error("[UserController][Login] user %s has no Google Authenticator secret", form.username)
            raise ApiError(UNAUTHORIZED, "账户未绑定Google验证码")
        if not verify_totp(admin.verify_code, form.verify_code):
            logger.error("[UserController][Login] user %s Google Authenticator verification failed", form.username)
            raise ApiError(UNAUTHORIZED, "Google验证码错误")

    admin.last_login_time = now_ts()
    db.commit()

    try:
        token = create_admin_token(admin.id, admin.username)
    except TokenConfigError as e:
        logger.error("[AdminLogin] Failed to generate token: %s", e)
        raise ApiError(SERVER_ERROR, "生成Token失败")

    return success({
        "token": token,
        "user": admin.to_info(),
        "roles": _user_roles(db, admin.id),
    })


@router.post("/logout")
def logout(
    admin: AdminUser = Depends(get_current_admin),
    token: str = Depends(get_current_token),
):
    logger.info("[UserController][Logout] User %s (ID: %s) logged out", admin.username, admin.id)
    try:
        add_token_to_blacklist(token)
    except (jwt.PyJWTError, TokenConfigError, redis.RedisError) as e:
        logger.error("[UserController][Logout] Failed to blacklist token: %s", e)
    return success({"message": "登出成功"})


@router.get("/userinfo")
def userinfo(admin: AdminUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    return success({
        "user": admin.to_info(),
        "roles": _user_roles(db, admin.id),
    })


@router.post("/change-password")
def change_password(
    form: AdminChangePasswordRequest,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not form.old_password:
        raise ApiError(PARAMS_ERROR, "旧密码不能为空")
    if not form.new_password:
        raise ApiError(PARAMS_ERROR, "新密码不能为空")
    if len(form.new_password) < 6:
        raise ApiError(PARAMS_ERROR, "新密码长度不能少于6位")

    if not verify_password(form.old_password, admin.password):
        logger.error("[UserController][ChangePassword] wrong old password for admin %s", admin.id)
        raise ApiError(PARAMS_ERROR, "旧密码错误")

    admin.password = hash_password(form.new_password)
    admin.first_login = 1
    admin.updated_time = now_ts()
    db.commit()
    logger.info("[UserController][ChangePassword] admin %s changed password", admin.id)

    return success({"message": "密码修改成功"})
