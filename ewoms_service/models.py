from sqlalchemy import Column, Integer, BigInteger, String, Text, Numeric, DateTime, Index
from datetime import datetime
import time

from .db import Base


def now_ts() -> int:
    return int(time.time())


# ---------------- Admin panel ----------------

class AdminUser(Base):
    __tablename__ = "app_admin_users"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    username = Column(String(64), index=True, nullable=False)
    password = Column(String(255), nullable=False)
    real_name = Column(String(64), default="", nullable=False)
    email = Column(String(128), unique=True, index=True, nullable=False)
    phone = Column(String(32), default="", nullable=False)
    # 0 disabled, 1 enabled
    status = Column(Integer, default=1, nullable=False, index=True)
    # 0 until the initial password has been changed
    first_login = Column(Integer, default=0, nullable=False)
    # Google Authenticator (TOTP) secret
    verify_code = Column(String(64), nullable=True)
    last_login_time = Column(BigInteger, default=0, nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False, index=True)
    updated_time = Column(BigInteger, default=now_ts, nullable=False)

    def to_info(self) -> dict:
        """Public view of the account, without password or TOTP secret"""
        return {
            "id": self.id,
            "username": self.username,
            "real_name": self.real_name,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "last_login_time": self.last_login_time,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
            "first_login": self.first_login,
        }


class Role(Base):
    __tablename__ = "app_roles"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    merchant_id = Column(BigInteger, default=0, nullable=False, index=True)
    role_name = Column(String(64), nullable=False)
    role_code = Column(String(64), nullable=False, index=True)
    # 1 preset by the system, 0 custom
    is_system = Column(Integer, default=0, nullable=False)
    description = Column(String(255), default="", nullable=False)
    status = Column(Integer, default=1, nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False)
    updated_time = Column(BigInteger, default=now_ts, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "role_name": self.role_name,
            "role_code": self.role_code,
            "is_system": self.is_system,
            "description": self.description,
            "status": self.status,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
        }


class Permission(Base):
    __tablename__ = "app_permissions"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    permission_name = Column(String(64), nullable=False)
    permission_name_en = Column(String(64), default="", nullable=False)
    permission_code = Column(String(128), unique=True, nullable=False)
    # May contain path parameters, e.g. /api/admin/role/detail/:id
    api_route = Column(String(255), nullable=False)
    http_method = Column(String(10), nullable=False)
    module = Column(String(64), default="", nullable=False, index=True)
    description = Column(String(255), default="", nullable=False)
    description_en = Column(String(255), default="", nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False)
    updated_time = Column(BigInteger, default=now_ts, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "permission_name": self.permission_name,
            "permission_name_en": self.permission_name_en,
            "permission_code": self.permission_code,
            "api_route": self.api_route,
            "http_method": self.http_method,
            "module": self.module,
            "description": self.description,
            "description_en": self.description_en,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
        }


class RolePermission(Base):
    __tablename__ = "app_role_permissions"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    role_id = Column(BigInteger, nullable=False, index=True)
    permission_id = Column(BigInteger, nullable=False, index=True)
    created_time = Column(BigInteger, default=now_ts, nullable=False)


class UserRole(Base):
    __tablename__ = "app_user_roles"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    role_id = Column(BigInteger, nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role_id": self.role_id,
            "created_time": self.created_time,
        }


class OperationLog(Base):
    __tablename__ = "app_admin_operation_logs"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    admin_user_id = Column(BigInteger, nullable=False, index=True)
    admin_username = Column(String(64), default="", nullable=False)
    # create / update / delete / export
    operation_type = Column(String(20), nullable=False, index=True)
    module = Column(String(64), default="", nullable=False, index=True)
    action = Column(String(128), default="", nullable=False)
    target_type = Column(String(64), default="", nullable=False)
    target_id = Column(BigInteger, default=0, nullable=False)
    request_path = Column(String(255), default="", nullable=False)
    request_method = Column(String(10), default="", nullable=False)
    request_params = Column(Text, default="", nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    # 1 success, 0 failure
    status = Column(Integer, default=1, nullable=False)
    error_msg = Column(Text, default="", nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_user_id": self.admin_user_id,
            "admin_username": self.admin_username,
            "operation_type": self.operation_type,
            "module": self.module,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "request_path": self.request_path,
            "request_method": self.request_method,
            "request_params": self.request_params,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "status": self.status,
            "error_msg": self.error_msg,
            "created_time": self.created_time,
        }


class SystemConfig(Base):
    __tablename__ = "app_system_config"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    config_key = Column(String(100), unique=True, nullable=False)
    config_value = Column(String(255), default="", nullable=False)
    config_desc = Column(String(255), default="", nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False)
    updated_time = Column(BigInteger, default=now_ts, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "config_key": self.config_key,
            "config_value": self.config_value,
            "config_desc": self.config_desc,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
        }


# ---------------- Front-end users ----------------

class User(Base):
    __tablename__ = "app_users"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    uid = Column(BigInteger, unique=True, nullable=False)
    username = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String(128), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    pay_password = Column(String(255), default="", nullable=False)
    nickname = Column(String(64), default="", nullable=False)
    avatar = Column(String(255), default="", nullable=False)
    invite_code = Column(String(32), default="", nullable=False)
    # 1 active, 0 disabled
    status = Column(Integer, default=1, nullable=False)
    vip = Column(Integer, default=0, nullable=False)
    support_total_amount = Column(Numeric(12, 2), default=0, nullable=False)
    support_level = Column(Integer, default=0, nullable=False)
    last_login_time = Column(BigInteger, default=0, nullable=False)
    created_time = Column(BigInteger, default=now_ts, nullable=False, index=True)
    updated_time = Column(BigInteger, default=now_ts, nullable=False)

    def to_info(self) -> dict:
        return {
            "id": self.id,
            "uid": self.uid,
            "username": self.username,
            "email": self.email,
            "nickname": self.nickname,
            "avatar": self.avatar,
            "status": self.status,
            "vip": self.vip,
            "support_total_amount": float(self.support_total_amount or 0),
            "support_level": self.support_level,
            "last_login_time": self.last_login_time,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
        }


class SupportOrder(Base):
    """In-app purchase order, unique per store transaction"""
    __tablename__ = "app_support_orders"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    platform = Column(String(20), default="ios", nullable=False)
    product_id = Column(String(128), nullable=False)
    transaction_id = Column(String(128), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), default=0, nullable=False)
    receipt_data = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_app_support_orders_user_created", "user_id", "created_at"),
    )
