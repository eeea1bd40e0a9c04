"""
Front-end user flows: verification codes, registration, login and passwords.
"""
from unittest.mock import patch

import pytest

from ewoms_service.auth import verify_password
from ewoms_service.config import settings
from ewoms_service.db import SessionLocal
from ewoms_service.errors import (
    ERROR_ACCOUNT_DISABLED,
    ERROR_EMAIL_ALREADY_REGISTERED,
    ERROR_EMAIL_NOT_REGISTERED,
    ERROR_INVITE_CODE_EMPTY,
    ERROR_PASSWORD_STRENGTH,
    ERROR_PASSWORD_TYPE_INVALID,
    ERROR_PAY_PASSWORD_FORMAT,
    ERROR_SEND_CODE_FAILED,
    ERROR_SEND_CODE_TOO_FREQUENT,
    ERROR_TYPE_INVALID,
    ERROR_USERNAME_ALREADY_USED,
    ERROR_USERNAME_PASSWORD_WRONG,
    ERROR_VERIFY_CODE_INVALID,
    USER_NOT_EXIST,
)
from ewoms_service.models import User
from ewoms_service.utils.mail import MailError
from ewoms_service_tests.conftest import auth_headers, create_user, user_login

REGISTER = {
    "username": "bob",
    "email": "bob@example.com",
    "password": "Str0ng!Pass",
    "pay_password": "654321",
    "code": "",
    "invite_code": "INV001",
}


def _send_code(client, email, code_type):
    with patch("ewoms_service.routes.backend_user.send_code_email") as mocked:
        resp = client.post("/api/backend/user/send-code", json={"email": email, "type": code_type})
    return resp, mocked


def test_send_register_code_stores_code_and_lock(client, fake_redis):
    resp, mocked = _send_code(client, "bob@example.com", "1")

    assert resp.status_code == 200
    assert resp.json()["data"] == {"expire_time": 300}
    code = fake_redis.get("REGISTER_CODE:bob@example.com")
    assert code is not None and len(code) == 6 and code.isdigit()
    assert fake_redis.exists("EMAIL_CODE_LOCK:bob@example.com") == 1
    mocked.assert_called_once_with("bob@example.com", code)


def test_send_code_is_rate_limited(client):
    first, _ = _send_code(client, "bob@example.com", "1")
    assert first.status_code == 200

    second, mocked = _send_code(client, "bob@example.com", "1")
    assert second.status_code == 429
    assert second.json()["code"] == ERROR_SEND_CODE_TOO_FREQUENT
    mocked.assert_not_called()


def test_send_code_validates_type_and_email(client):
    resp, _ = _send_code(client, "bob@example.com", "3")
    assert resp.json()["code"] == ERROR_TYPE_INVALID

    create_user()
    resp, _ = _send_code(client, "alice@example.com", "1")
    assert resp.json()["code"] == ERROR_EMAIL_ALREADY_REGISTERED

    resp, _ = _send_code(client, "nobody@example.com", "2")
    assert resp.json()["code"] == ERROR_EMAIL_NOT_REGISTERED

    resp, _ = _send_code(client, "alice@example.com", "2")
    assert resp.status_code == 200


def test_send_code_mail_failure(client):
    with patch("ewoms_service.routes.backend_user.send_code_email", side_effect=MailError("boom")):
        resp = client.post("/api/backend/user/send-code", json={"email": "bob@example.com", "type": "1"})
    assert resp.status_code == 400
    assert resp.json()["code"] == ERROR_SEND_CODE_FAILED


def test_register_with_emailed_code(client, fake_redis):
    _send_code(client, "bob@example.com", "1")
    code = fake_redis.get("REGISTER_CODE:bob@example.com")

    resp = client.post("/api/backend/user/register", json={**REGISTER, "code": code})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["token"]
    assert data["has_parent"] is True
    assert data["user_info"]["username"] == "bob"
    assert 1000000000 <= data["user_info"]["uid"] <= 9999999999
    assert fake_redis.get("REGISTER_CODE:bob@example.com") is None

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.username == "bob").first()
        assert user.invite_code == "INV001"
        assert verify_password("654321", user.pay_password)
        assert user.password != REGISTER["password"]
    finally:
        db.close()



def test_padded_email_matches_stored_code(client, fake_redis):
    _send_code(client, "  bob@example.com ", "1")
    code = fake_redis.get("REGISTER_CODE:bob@example.com")
    assert code

    resp = client.post("/api/backend/user/register", json={**REGISTER, "email": " bob@example.com", "code": code})
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["user_info"]["email"] == "bob@example.com"

    fake_redis.set("FORGOT_CODE:bob@example.com", "111222")
    reset = client.post("/api/backend/user/forgot-password", json={
        "email": "bob@example.com  ", "code": "111222", "new_password": "N3w!Password",
    })
    assert reset.status_code == 200
    assert fake_redis.get("FORGOT_CODE:bob@example.com") is None


@pytest.mark.parametrize("override,code", [
    ({"password": "weakpass"}, ERROR_PASSWORD_STRENGTH),
    ({"pay_password": "12ab56"}, ERROR_PAY_PASSWORD_FORMAT),
    ({"pay_password": "12345"}, ERROR_PAY_PASSWORD_FORMAT),
    ({"invite_code": ""}, ERROR_INVITE_CODE_EMPTY),
    ({"code": "999999"}, ERROR_VERIFY_CODE_INVALID),
])
def test_register_validation(client, override, code):
    payload = {**REGISTER, "code": "123456", **override}
    resp = client.post("/api/backend/user/register", json=payload)
    assert resp.status_code == 400
    assert resp.json()["code"] == code


def test_register_rejects_taken_username(client):
    create_user(username="bob", email="other@example.com")
    resp = client.post("/api/backend/user/register", json={**REGISTER, "code": "123456"})
    assert resp.json()["code"] == ERROR_USERNAME_ALREADY_USED


def test_bypass_code_only_in_local_environment(client, monkeypatch):
    resp = client.post("/api/backend/user/register", json={**REGISTER, "code": "aaabbb"})
    assert resp.json()["code"] == ERROR_VERIFY_CODE_INVALID

    monkeypatch.setattr(settings, "ENVIRONMENT", "local")
    resp = client.post("/api/backend/user/register", json={**REGISTER, "code": "aaabbb"})
    assert resp.status_code == 200


def test_login_flow(client):
    create_user()

    wrong = client.post("/api/backend/user/login", json={"username": "alice", "password": "bad"})
    assert wrong.json()["code"] == ERROR_USERNAME_PASSWORD_WRONG

    unknown = client.post("/api/backend/user/login", json={"username": "ghost", "password": "bad"})
    assert unknown.json()["code"] == ERROR_USERNAME_PASSWORD_WRONG

    ok = client.post("/api/backend/user/login", json={"username": "alice", "password": "Passw0rd!"})
    assert ok.status_code == 200
    assert ok.json()["data"]["user_info"]["last_login_time"] > 0


def test_disabled_account_checked_after_password(client):
    create_user(status=0)

    wrong = client.post("/api/backend/user/login", json={"username": "alice", "password": "bad"})
    assert wrong.json()["code"] == ERROR_USERNAME_PASSWORD_WRONG

    right = client.post("/api/backend/user/login", json={"username": "alice", "password": "Passw0rd!"})
    assert right.status_code == 403
    assert right.json()["code"] == ERROR_ACCOUNT_DISABLED


def test_forgot_password_resets_login_password(client, fake_redis):
    create_user()
    _send_code(client, "alice@example.com", "2")
    code = fake_redis.get("FORGOT_CODE:alice@example.com")

    resp = client.post("/api/backend/user/forgot-password", json={
        "email": "alice@example.com", "code": code, "new_password": "N3w!Password",
    })
    assert resp.status_code == 200
    assert fake_redis.get("FORGOT_CODE:alice@example.com") is None

    user_login(client, password="N3w!Password")


def test_forgot_password_resets_pay_password(client, fake_redis):
    user_id = create_user()
    fake_redis.set("FORGOT_CODE:alice@example.com", "111222")

    bad = client.post("/api/backend/user/forgot-password", json={
        "email": "alice@example.com", "code": "111222", "pay_password": "12", "password_type": 2,
    })
    assert bad.json()["code"] == ERROR_PAY_PASSWORD_FORMAT

    ok = client.post("/api/backend/user/forgot-password", json={
        "email": "alice@example.com", "code": "111222", "pay_password": "999888", "password_type": 2,
    })
    assert ok.status_code == 200

    db = SessionLocal()
    try:
        assert verify_password("999888", db.query(User).filter(User.id == user_id).first().pay_password)
    finally:
        db.close()


def test_forgot_password_errors(client, fake_redis):
    fake_redis.set("FORGOT_CODE:ghost@example.com", "111222")
    resp = client.post("/api/backend/user/forgot-password", json={
        "email": "ghost@example.com", "code": "111222", "new_password": "x",
    })
    assert resp.status_code == 404
    assert resp.json()["code"] == USER_NOT_EXIST

    create_user()
    fake_redis.set("FORGOT_CODE:alice@example.com", "111222")
    resp = client.post("/api/backend/user/forgot-password", json={
        "email": "alice@example.com", "code": "111222", "password_type": 9,
    })
    assert resp.json()["code"] == ERROR_PASSWORD_TYPE_INVALID

    resp = client.post("/api/backend/user/forgot-password", json={
        "email": "alice@example.com", "code": "000000", "new_password": "x",
    })
    assert resp.json()["code"] == ERROR_VERIFY_CODE_INVALID


def test_change_password_requires_login_and_strength(client):
    create_user()
    anonymous = client.post("/api/backend/user/change-password",
                            json={"old_password": "Passw0rd!", "new_password": "An0ther!Pass"})
    assert anonymous.status_code == 401

    token = user_login(client)
    weak = client.post("/api/backend/user/change-password",
                       json={"old_password": "Passw0rd!", "new_password": "short"},
                       headers=auth_headers(token))
    assert weak.json()["code"] == ERROR_PASSWORD_STRENGTH

    ok = client.post("/api/backend/user/change-password",
                     json={"old_password": "Passw0rd!", "new_password": "An0ther!Pass"},
                     headers=auth_headers(token))
    assert ok.status_code == 200
    user_login(client, password="An0ther!Pass")


def test_userinfo_and_logout(client):
    create_user()
    token = user_login(client)

    info = client.get("/api/backend/user/userinfo", headers=auth_headers(token))
    assert info.status_code == 200
    data = info.json()["data"]
    for key in ("id", "uid", "username", "email", "nickname", "avatar", "status", "vip",
                "support_total_amount", "support_level", "last_login_time", "created_time", "updated_time"):
        assert key in data
    assert "password" not in data

    out = client.post("/api/backend/user/logout", headers=auth_headers(token))
    assert out.status_code == 200

    again = client.get("/api/backend/user/userinfo", headers=auth_headers(token))
    assert again.status_code == 401


def test_invalid_token_is_rejected(client):
    resp = client.get("/api/backend/user/userinfo", headers={"token": "not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["msg"] == "无效的token"

    resp = client.get("/api/backend/user/userinfo")
    assert resp.status_code == 401
    assert resp.json()["msg"] == "token无效"


def test_accept_language_english(client):
    resp = client.post(
        "/api/backend/user/login",
        json={"username": "", "password": ""},
        headers={"Accept-Language": "en-US,en;q=0.9"},
    )
    assert resp.json()["msg"] == "Username and password are required"
