"""
JWT issuing, decoding, header extraction and the token blacklist.
"""
import time
from unittest.mock import patch

import jwt
import pytest
import redis

from ewoms_service.auth import (
    TOKEN_BLACKLIST_PREFIX,
    TokenConfigError,
    add_token_to_blacklist,
    create_admin_token,
    create_user_token,
    decode_token,
    extract_token,
    hash_password,
    is_token_blacklisted,
    verify_password,
)
from ewoms_service.config import settings


def test_password_hashing():
    hashed = hash_password("Secret123!")
    assert hashed != "Secret123!"
    assert verify_password("Secret123!", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("Secret123!", "")


def test_user_and_admin_claims():
    user_claims = decode_token(create_user_token(7, "alice"))
    assert user_claims["user_id"] == 7
    assert user_claims["username"] == "alice"
    assert "is_admin" not in user_claims

    admin_claims = decode_token(create_admin_token(1, "root"))
    assert admin_claims["is_admin"] == 1
    assert admin_claims["exp"] > time.time() + 3600


def test_missing_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "")
    with pytest.raises(TokenConfigError):
        create_user_token(1, "a")


def test_decode_rejects_foreign_signature():
    forged = jwt.encode({"user_id": 1, "exp": int(time.time()) + 60}, "other-secret", algorithm="HS256")
    with pytest.raises(jwt.PyJWTError):
        decode_token(forged)


def test_decode_rejects_expired_token():
    expired = jwt.encode({"user_id": 1, "exp": int(time.time()) - 10}, settings.JWT_SECRET, algorithm="HS256")
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(expired)


def test_extract_token_prefers_token_header():
    assert extract_token({"token": "abc", "authorization": "Bearer xyz"}) == "abc"
    assert extract_token({"authorization": "Bearer xyz"}) == "xyz"
    assert extract_token({"authorization": "raw"}) == "raw"
    assert extract_token({}) == ""


def test_blacklist_uses_remaining_lifetime(fake_redis):
    token = create_user_token(3, "bob")
    assert is_token_blacklisted(token) is False

    add_token_to_blacklist(token)
    assert is_token_blacklisted(token) is True
    ttl = fake_redis.ttl(TOKEN_BLACKLIST_PREFIX + token)
    assert settings.JWT_EXPIRE_HOURS * 3600 - 5 <= ttl <= settings.JWT_EXPIRE_HOURS * 3600


def test_blacklist_skips_expired_token(fake_redis):
    expired = jwt.encode({"user_id": 3, "exp": int(time.time()) - 10}, settings.JWT_SECRET, algorithm="HS256")
    add_token_to_blacklist(expired)
    assert fake_redis.exists(TOKEN_BLACKLIST_PREFIX + expired) == 0


def test_blacklist_rejects_expired_token_with_foreign_signature():
    forged = jwt.encode({"user_id": 3, "exp": int(time.time()) - 10}, "other-secret", algorithm="HS256")
    with pytest.raises(jwt.InvalidSignatureError):
        add_token_to_blacklist(forged)


def test_blacklist_invalid_token_raises():
    with pytest.raises(jwt.PyJWTError):
        add_token_to_blacklist("garbage")


def test_blacklist_check_fails_open_on_redis_error(fake_redis):
    with patch.object(fake_redis, "exists", side_effect=redis.ConnectionError("down")):
        assert is_token_blacklisted("whatever") is False
