"""
Front-end user accounts and email verification codes.
"""
import logging
import secrets
from typing import Optional

import redis
from sqlalchemy.orm import Session

from ..auth import hash_password
from ..cache import get_redis_client
from ..config import settings
from ..models import User, now_ts

logger = logging.getLogger(__name__)

CODE_TYPE_REGISTER = "1"
CODE_TYPE_FORGOT = "2"

CODE_KEY_PREFIXES = {
    CODE_TYPE_REGISTER: "REGISTER_CODE:",
    CODE_TYPE_FORGOT: "FORGOT_CODE:",
}
CODE_LOCK_PREFIX = "EMAIL_CODE_LOCK:"

UID_MAX_ATTEMPTS = 5


class UIDGenerationError(RuntimeError):
    """No free uid was found"""


def code_key(code_type: str, email: str) -> str:
    return CODE_KEY_PREFIXES[code_type] + email


def lock_key(email: str) -> str:
    return CODE_LOCK_PREFIX + email


def generate_uid_random() -> int:
    """Random 10-digit number"""
    return secrets.randbelow(9000000000) + 1000000000


def generate_uid(db: Session) -> int:
    for _ in range(UID_MAX_ATTEMPTS):
        uid = generate_uid_random()
        if not db.query(User.id).filter(User.uid == uid).first():
            return uid
    raise UIDGenerationError("failed to generate unique uid")


def verify_email_code(code_type: str, email: str, code: str) -> bool:
    """
    Compare a submitted code with the stored one.

    The bypass code is accepted only in local environments.

    Raises:
        redis.RedisError: the stored code could not be read
    """
    if settings.is_local_env and settings.EMAIL_CODE_BYPASS and code == settings.EMAIL_CODE_BYPASS:
        logger.warning("[VerifyCode] Bypass code used for %s", email)
        return True
    stored = get_redis_client().get(code_key(code_type, email))
    return bool(stored) and secrets.compare_digest(stored, code)


def clear_email_code(code_type: str, email: str) -> None:
    try:
        get_redis_client().delete(code_key(code_type, email))
    except redis.RedisError as e:
        logger.error("[ClearCode] Failed to delete code for %s: %s", email, e)


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    pay_password: str,
    invite_code: str = "",
    nickname: Optional[str] = None,
) -> User:
    """
    Insert a new front-end user with a fresh uid and hashed passwords.

    Raises:
        UIDGenerationError: every uid attempt collided
        sqlalchemy.exc.SQLAlchemyError: the insert failed
    """
    now = now_ts()
    user = User(
        uid=generate_uid(db),
        username=username,
        email=email,
        password=hash_password(password),
        pay_password=hash_password(pay_password),
        nickname=nickname or username,
        invite_code=invite_code,
        status=1,
        created_time=now,
        updated_time=now,
    )
    try:
        db.add(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user
