from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional
import logging
import time

import jwt
import pyotp
import redis

from .config import settings
from .cache import get_redis_client

logger = logging.getLogger(__name__)

TOKEN_BLACKLIST_PREFIX = "token_blacklist:"
HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]

# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class TokenConfigError(RuntimeError):
    """Raised when JWT_SECRET is not configured"""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def _jwt_secret() -> str:
    if not settings.JWT_SECRET:
        raise TokenConfigError("JWT_SECRET not configured")
    return settings.JWT_SECRET


def _issue_token(claims: dict) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {**claims, "exp": expire}
    return jwt.encode(payload, _jwt_secret(), algorithm=settings.JWT_ALGORITHM)


def create_user_token(user_id: int, username: str) -> str:
    """Token for front-end users"""
    return _issue_token({"user_id": user_id, "username": username})


def create_admin_token(user_id: int, username: str) -> str:
    """Token for admin panel users, flagged with is_admin"""
    return _issue_token({"user_id": user_id, "username": username, "is_admin": 1})


def decode_token(token: str, verify_exp: bool = True) -> dict:
    """
    Decode and validate a token. With verify_exp=False an expired token
    still decodes as long as its signature is valid.

    Raises:
        jwt.PyJWTError: signature, expiry or algorithm check failed
        TokenConfigError: JWT_SECRET is empty
    """
    return jwt.decode(
        token, _jwt_secret(), algorithms=HMAC_ALGORITHMS, options={"verify_exp": verify_exp},
    )


def extract_token(headers: Mapping[str, str]) -> str:
    """Read the raw token from the ``token`` header, falling back to ``Authorization: Bearer``"""
    token = headers.get("token") or ""
    if not token:
        token = headers.get("authorization") or ""
        if token.startswith("Bearer "):
            token = token[len("Bearer "):]
    return token.strip()


def add_token_to_blacklist(token: str) -> None:
    """
    Blacklist a token until it would have expired anyway.

    Raises:
        jwt.PyJWTError: the token can not be decoded
        redis.RedisError: the blacklist entry could not be written
    """
    claims = decode_token(token, verify_exp=False)
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise jwt.InvalidTokenError("invalid token expiration")

    ttl = int(exp - time.time())
    if ttl <= 0:
        # Already expired, nothing to revoke
        return

    try:
        get_redis_client().set(TOKEN_BLACKLIST_PREFIX + token, "1", expire=ttl)
    except redis.RedisError as e:
        logger.error("[AddTokenToBlacklist] Failed to add token to blacklist: %s", e)
        raise


def is_token_blacklisted(token: str) -> bool:
    try:
        return get_redis_client().exists(TOKEN_BLACKLIST_PREFIX + token)
    except redis.RedisError as e:
        logger.error("[IsTokenBlacklisted] Failed to check token blacklist: %s", e)
        return False


def verify_totp(secret: Optional[str], code: str) -> bool:
    """Verify a Google Authenticator code with a 30-second tolerance window"""
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=1)
