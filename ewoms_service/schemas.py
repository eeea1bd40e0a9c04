from pydantic import BaseModel, Field

from typing import List, Optional


# Admin panel
class AdminLoginRequest(BaseModel):
    username: str = ""
    password: str = ""
    verify_code: str = ""


class AdminChangePasswordRequest(BaseModel):
    old_password: str = ""
    new_password: str = ""


class RoleCreate(BaseModel):
    role_name: str = Field(min_length=1, max_length=64)
    role_code: str = Field(min_length=1, max_length=64)
    merchant_id: int = 0
    description: str = ""
    status: int = 1


class RoleUpdate(BaseModel):
    role_name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[int] = None


class AssignPermissionsRequest(BaseModel):
    permission_ids: List[int] = []


class PermissionCreate(BaseModel):
    permission_name: str = Field(min_length=1, max_length=64)
    permission_name_en: str = ""
    permission_code: str = Field(min_length=1, max_length=128)
    api_route: str = Field(min_length=1, max_length=255)
    http_method: str = Field(min_length=1, max_length=10)
    module: str = ""
    description: str = ""
    description_en: str = ""


class PermissionUpdate(BaseModel):
    permission_name: Optional[str] = None
    permission_name_en: Optional[str] = None
    api_route: Optional[str] = None
    http_method: Optional[str] = None
    module: Optional[str] = None
    description: Optional[str] = None
    description_en: Optional[str] = None


class UserRoleRequest(BaseModel):
    user_id: int
    role_id: int


class SystemConfigCreate(BaseModel):
    config_key: str = Field(min_length=1, max_length=100)
    config_value: str = ""
    config_desc: str = ""


class SystemConfigUpdate(BaseModel):
    config_value: str
    config_desc: str = ""


# Front-end users
class SendCodeRequest(BaseModel):
    email: str = ""
    # "1" register, "2" forgot password
    type: str = ""


class RegisterRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""
    pay_password: str = ""
    code: str = ""
    invite_code: str = ""


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class ForgotPasswordRequest(BaseModel):
    email: str = ""
    code: str = ""
    new_password: str = ""
    pay_password: str = ""
    # 1 login password, 2 pay password
    password_type: int = 1


class ChangePasswordRequest(BaseModel):
    old_password: str = ""
    new_password: str = ""


class VerifyIOSSupportRequest(BaseModel):
    product_id: str = ""
    transaction_id: str = ""
    receipt_data: str = ""


class IPRequest(BaseModel):
    ip: str = ""
