"""
Front-end user endpoints: verification codes, registration, login,
password management and profile.
"""
import logging

import jwt
import redis
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import TokenConfigError, add_token_to_blacklist, create_user_token, hash_password, verify_password
from ..cache import get_redis_client
from ..config import settings
from ..db import get_db
from ..dependencies import get_current_token, get_current_user_id
from ..errors import (
    ERROR_ACCOUNT_DISABLED,
    ERROR_EMAIL_ALREADY_REGISTERED,
    ERROR_EMAIL_CODE_EMPTY,
    ERROR_EMAIL_EMPTY,
    ERROR_EMAIL_NOT_REGISTERED,
    ERROR_GET_USER_INFO_FAILED,
    ERROR_INVITE_CODE_EMPTY,
    ERROR_LOGIN_FAILED,
    ERROR_NEW_PASSWORD_EMPTY,
    ERROR_PASSWORD_STRENGTH,
    ERROR_PASSWORD_TYPE_INVALID,
    ERROR_PAY_PASSWORD_FORMAT,
    ERROR_REGISTER_FAILED,
    ERROR_REQUIRED_FIELDS_EMPTY,
    ERROR_RESET_PASSWORD_FAILED,
    ERROR_SEND_CODE_FAILED,
    ERROR_SEND_CODE_TOO_FREQUENT,
    ERROR_TYPE_INVALID,
    ERROR_USERNAME_ALREADY_USED,
    ERROR_USERNAME_PASSWORD_EMPTY,
    ERROR_USERNAME_PASSWORD_WRONG,
    ERROR_VERIFY_CODE_INVALID,
    PASSWORD_ERROR,
    USER_NOT_EXIST,
    ApiError,
    success,
)
from ..models import User, now_ts
from ..schemas import ChangePasswordRequest, ForgotPasswordRequest, LoginRequest, RegisterRequest, SendCodeRequest
from ..services.users import (
    CODE_KEY_PREFIXES,
    CODE_TYPE_FORGOT,
    CODE_TYPE_REGISTER,
    UIDGenerationError,
    clear_email_code,
    code_key,
    create_user,
    lock_key,
    verify_email_code,
)
from ..utils.mail import MailError, generate_numeric_code, send_code_email
from ..utils.password_validator import check_password_strength, is_digit

router = APIRouter(prefix="/api/backend/user", tags=["backend-user"])
logger = logging.getLogger(__name__)


def _is_pay_password(value: str) -> bool:
    return len(value) == 6 and is_digit(value)


def _normalize_email(value: str) -> str:
    return (value or "").strip()


def _check_code(code_type: str, email: str, code: str, action: str) -> None:
    try:
        ok = verify_email_code(code_type, email, code)
    except redis.RedisError as e:
        logger.error("[%s]Failed to read code for %s: %s", action, email, e)
        ok = False
    if not ok:
        logger.warning("[%s]Invalid code for email: %s", action, email)
        raise ApiError(ERROR_VERIFY_CODE_INVALID)


@router.post("/send-code")
def send_code(req: SendCodeRequest, db: Session = Depends(get_db)):
    """Email a 6-digit code for registration (type 1) or password reset (type 2)"""
    email = _normalize_email(req.email)
    if not email:
        raise ApiError(ERROR_EMAIL_EMPTY)
    if req.type not in CODE_KEY_PREFIXES:
        raise ApiError(ERROR_TYPE_INVALID)

    exists = db.query(User.id).filter(User.email == email).first() is not None
    if req.type == CODE_TYPE_REGISTER and exists:
        raise ApiError(ERROR_EMAIL_ALREADY_REGISTERED)
    if req.type == CODE_TYPE_FORGOT and not exists:
        raise ApiError(ERROR_EMAIL_NOT_REGISTERED)

    rdb = get_redis_client()
    code = generate_numeric_code(6)
    try:
        if rdb.exists(lock_key(email)):
            raise ApiError(ERROR_SEND_CODE_TOO_FREQUENT)
        rdb.set(code_key(req.type, email), code, expire=settings.EMAIL_CODE_EXPIRE_SECONDS)
        rdb.set(lock_key(email), "1", expire=settings.EMAIL_CODE_LOCK_SECONDS)
    except redis.RedisError as e:
        logger.error("[SendCode]Failed to save code to redis: %s", e)
        raise ApiError(ERROR_SEND_CODE_FAILED) from e

    try:
        send_code_email(email, code)
    except MailError as e:
        logger.error("[SendCode]Failed to send email: %s", e)
        raise ApiError(ERROR_SEND_CODE_FAILED) from e

    logger.info("[SendCode]Type: %s, Email: %s", req.type, email)
    return success({"expire_time": settings.EMAIL_CODE_EXPIRE_SECONDS})


@router.post("/register")
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    email = _normalize_email(req.email)
    if not (req.username and email and req.password and req.pay_password and req.code):
        raise ApiError(ERROR_REQUIRED_FIELDS_EMPTY)
    if not check_password_strength(req.password):
        raise ApiError(ERROR_PASSWORD_STRENGTH)
    if not _is_pay_password(req.pay_password):
        raise ApiError(ERROR_PAY_PASSWORD_FORMAT)
    if not req.invite_code:
        raise ApiError(ERROR_INVITE_CODE_EMPTY)

    if db.query(User.id).filter(User.username == req.username).first():
        raise ApiError(ERROR_USERNAME_ALREADY_USED)
    if db.query(User.id).filter(User.email == email).first():
        raise ApiError(ERROR_EMAIL_ALREADY_REGISTERED)

    _check_code(CODE_TYPE_REGISTER, email, req.code, "Register")

    try:
        user = create_user(
            db,
            username=req.username,
            email=email,
            password=req.password,
            pay_password=req.pay_password,
            invite_code=req.invite_code,
        )
    except (UIDGenerationError, SQLAlchemyError) as e:
        logger.error("[Register]Failed to create user: %s", e)
        raise ApiError(ERROR_REGISTER_FAILED) from e

    clear_email_code(CODE_TYPE_REGISTER, email)
    logger.info(
        "[Register]User registered successfully: %s, uid: %s, username: %s, email: %s",
        user.id, user.uid, user.username, user.email
    )

    try:
        token = create_user_token(user.id, user.username)
    except TokenConfigError as e:
        logger.error("[Register]Failed to generate token: %s", e)
        raise ApiError(ERROR_LOGIN_FAILED) from e

    return success({
        "token": token,
        "user_info": user.to_info(),
        "has_parent": bool(req.invite_code),
    })


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    if not req.username or not req.password:
        raise ApiError(ERROR_USERNAME_PASSWORD_EMPTY)

    user = db.query(User).filter(User.username == req.username).first()
    if not user or not verify_password(req.password, user.password):
        logger.warning("[Login]Login failed for username: %s", req.username)
        raise ApiError(ERROR_USERNAME_PASSWORD_WRONG)
    if user.status != 1:
        logger.warning("[Login]Account disabled: %s", req.username)
        raise ApiError(ERROR_ACCOUNT_DISABLED)

    user.last_login_time = now_ts()
    db.commit()

    try:
        token = create_user_token(user.id, user.username)
    except TokenConfigError as e:
        logger.error("[Login]Failed to generate token: %s", e)
        raise ApiError(ERROR_LOGIN_FAILED) from e

    logger.info("[Login]User logged in successfully: %s, uid: %s, username: %s", user.id, user.uid, user.username)
    return success({"token": token, "user_info": user.to_info()})


@router.post("/forgot-password")
def forgot_password(req: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Reset the login password (password_type 1) or the pay password (2) with an email code"""
    email = _normalize_email(req.email)
    if not email or not req.code:
        raise ApiError(ERROR_EMAIL_CODE_EMPTY)

    _check_code(CODE_TYPE_FORGOT, email, req.code, "ForgotPassword")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        logger.error("[ForgotPassword]User not found: %s", email)
        raise ApiError(USER_NOT_EXIST)

    if req.password_type == 1:
        if not req.new_password:
            raise ApiError(ERROR_NEW_PASSWORD_EMPTY)
        user.password = hash_password(req.new_password)
    elif req.password_type == 2:
        if not _is_pay_password(req.pay_password):
            raise ApiError(ERROR_PAY_PASSWORD_FORMAT)
        user.pay_password = hash_password(req.pay_password)
    else:
        raise ApiError(ERROR_PASSWORD_TYPE_INVALID)

    user.updated_time = now_ts()
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[ForgotPassword]Failed to update password: %s", e)
        raise ApiError(ERROR_RESET_PASSWORD_FAILED) from e
    logger.info("[ForgotPassword]User %s reset password type %s successfully", user.id, req.password_type)

    clear_email_code(CODE_TYPE_FORGOT, email)
    return success(None)


@router.post("/change-password")
def change_password(
    req: ChangePasswordRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if not req.old_password or not req.new_password:
        raise ApiError(ERROR_REQUIRED_FIELDS_EMPTY)
    if not check_password_strength(req.new_password):
        raise ApiError(ERROR_PASSWORD_STRENGTH)

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ApiError(USER_NOT_EXIST)
    if not verify_password(req.old_password, user.password):
        raise ApiError(PASSWORD_ERROR)

    user.password = hash_password(req.new_password)
    user.updated_time = now_ts()
    db.commit()
    logger.info("[ChangePassword]User %s changed password", user.id)
    return success({"message": "密码修改成功"})


@router.post("/logout")
def logout(
    user_id: int = Depends(get_current_user_id),
    token: str = Depends(get_current_token),
):
    logger.info("[UserController][Logout] user logout: userID=%s", user_id)
    try:
        add_token_to_blacklist(token)
    except (jwt.PyJWTError, TokenConfigError, redis.RedisError) as e:
        logger.error("[UserController][Logout] add token to blacklist error: %s", e)
    return success({"message": "退出登录成功"})


@router.get("/userinfo")
def userinfo(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.error("[GetUserInfo] Get user failed: %s", user_id)
        raise ApiError(ERROR_GET_USER_INFO_FAILED)
    return success(user.to_info())
