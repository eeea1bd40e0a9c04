"""
Shared fixtures. Environment variables are set before the service is imported.
"""
import os
import tempfile
import time

_TMP_DIR = tempfile.mkdtemp(prefix="ewoms_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test_ewoms.db')}"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "upload")
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["ENVIRONMENT"] = "production"
os.environ["RUN_MODE"] = "dev"
os.environ["IOS_IAP_SHARED_SECRET"] = "test-shared-secret"
os.environ["IP_WHITELIST_ENABLED"] = "false"
os.environ["SMTP_USERNAME"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from ewoms_service.auth import hash_password  # noqa: E402
from ewoms_service.cache import redis_client  # noqa: E402
from ewoms_service.db import Base, SessionLocal, engine  # noqa: E402
from ewoms_service.main import app  # noqa: E402
from ewoms_service.models import AdminUser, User, UserRole  # noqa: E402
from ewoms_service.services.bootstrap import ensure_super_admin_role, seed_permissions  # noqa: E402


class InMemoryRedis:
    """Subset of the redis-py client used by the service, with key expiry"""

    def __init__(self):
        self._data = {}
        self._expires = {}

    def _alive(self, key):
        exp = self._expires.get(key)
        if exp is not None and exp <= time.monotonic():
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return key in self._data

    def get(self, key):
        if not self._alive(key):
            return None
        return self._data[key]

    def set(self, key, value, ex=None):
        self._data[key] = str(value)
        if ex:
            self._expires[key] = time.monotonic() + ex
        else:
            self._expires.pop(key, None)
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return removed

    def exists(self, *keys):
        return sum(1 for key in keys if self._alive(key))

    def ttl(self, key):
        if not self._alive(key):
            return -2
        exp = self._expires.get(key)
        return -1 if exp is None else int(exp - time.monotonic())

    def sadd(self, key, *members):
        s = self._data.setdefault(key, set())
        before = len(s)
        s.update(members)
        return len(s) - before

    def srem(self, key, *members):
        s = self._data.get(key, set())
        before = len(s)
        s.difference_update(members)
        return before - len(s)

    def sismember(self, key, member):
        return member in self._data.get(key, set())

    def smembers(self, key):
        return set(self._data.get(key, set()))

    def scard(self, key):
        return len(self._data.get(key, set()))

    def ping(self):
        return True

    def close(self):
        pass


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def fake_redis():
    fake = InMemoryRedis()
    redis_client.redis = fake
    yield fake
    redis_client.redis = None


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


def create_admin(username="admin", password="Admin123!", email="admin@example.com", super_admin=True, status=1):
    """Insert an admin account, optionally holding the super admin role. Returns its id."""
    db = SessionLocal()
    try:
        admin = AdminUser(username=username, password=hash_password(password), email=email, status=status)
        db.add(admin)
        db.commit()
        db.refresh(admin)
        if super_admin:
            seed_permissions(db)
            role = ensure_super_admin_role(db)
            db.add(UserRole(user_id=admin.id, role_id=role.id))
            db.commit()
        return admin.id
    finally:
        db.close()


def create_user(username="alice", password="Passw0rd!", email="alice@example.com", status=1, pay_password="123456"):
    """Insert a front-end user and return its id"""
    db = SessionLocal()
    try:
        user = User(
            uid=1234567890 + len(username),
            username=username,
            email=email,
            password=hash_password(password),
            pay_password=hash_password(pay_password),
            status=status,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user.id
    finally:
        db.close()


def admin_login(client, username="admin", password="Admin123!"):
    resp = client.post(
        "/api/admin/user/login",
        json={"username": username, "password": password, "verify_code": "000000"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]


def user_login(client, username="alice", password="Passw0rd!"):
    resp = client.post("/api/backend/user/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
