"""
Error codes, localized messages and the response envelope.

Every response body has the shape ``{"code": int, "msg": str, "data": any}``.
Handlers raise ``ApiError`` and the exception handlers registered in
``register_exception_handlers`` render it.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Standard HTTP codes
SUCCESS = 200
PARAMS_ERROR = 400
UNAUTHORIZED = 401
FORBIDDEN = 403
NOT_FOUND = 404
SERVER_ERROR = 500

# Business codes (2000-2099)
USER_NOT_EXIST = 2000
USER_ALREADY_EXIST = 2001
PASSWORD_ERROR = 2002
TOKEN_EXPIRED = 2003
TOKEN_INVALID = 2004
LOGIN_REQUIRED = 2005
VALID_CODE_EXPIRED = 2006
VERIFY_CODE_ERROR = 2007
ACCOUNT_PASSWORD_ERROR = 2008
DATA_NOT_FOUND = 2009
ERROR_PARSE_FAILED = 2009
ERROR_QUERY_FAILED = 2010
ERROR_CREATE_FAILED = 2011
ERROR_UPDATE_FAILED = 2012
ERROR_DELETE_FAILED = 2013
ERROR_RECORD_NOT_FOUND = 2014
ERROR_RECORD_EXISTS = 2015
ERROR_NO_PERMISSION = 2016
ERROR_INVALID_ID = 2017
ERROR_MISSING_FIELDS = 2018
ERROR_INVALID_FORMAT = 2019
ERROR_NO_UPDATE_FIELDS = 2020
ERROR_CHECK_FAILED = 2021
ERROR_SAVE_FAILED = 2022

# Registration / login (2100-2149)
ERROR_EMAIL_EMPTY = 2100
ERROR_EMAIL_ALREADY_REGISTERED = 2101
ERROR_EMAIL_NOT_REGISTERED = 2102
ERROR_USERNAME_ALREADY_USED = 2103
ERROR_PASSWORD_STRENGTH = 2104
ERROR_PAY_PASSWORD_FORMAT = 2105
ERROR_INVITE_CODE_EMPTY = 2106
ERROR_INVITE_CODE_NOT_EXIST = 2107
ERROR_VERIFY_CODE_INVALID = 2108
ERROR_SEND_CODE_FAILED = 2109
ERROR_REGISTER_FAILED = 2110
ERROR_LOGIN_FAILED = 2111
ERROR_USERNAME_PASSWORD_EMPTY = 2112
ERROR_ACCOUNT_DISABLED = 2113
ERROR_USERNAME_PASSWORD_WRONG = 2114
ERROR_REQUIRED_FIELDS_EMPTY = 2115
ERROR_TYPE_INVALID = 2116
ERROR_EMAIL_CODE_EMPTY = 2117
ERROR_PASSWORD_TYPE_INVALID = 2118
ERROR_NEW_PASSWORD_EMPTY = 2119
ERROR_RESET_PASSWORD_FAILED = 2120
ERROR_SUBMIT_FAILED = 2121
ERROR_GET_USER_INFO_FAILED = 2122
ERROR_SEND_CODE_TOO_FREQUENT = 2123

DEFAULT_LANG = "zh"

MESSAGES = {
    SUCCESS: ("成功", "success"),
    PARAMS_ERROR: ("参数错误", "Invalid parameters"),
    UNAUTHORIZED: ("未授权", "Unauthorized"),
    FORBIDDEN: ("禁止访问", "Forbidden"),
    NOT_FOUND: ("未找到", "Not found"),
    SERVER_ERROR: ("服务器错误", "Server error"),
    USER_NOT_EXIST: ("用户不存在", "User does not exist"),
    USER_ALREADY_EXIST: ("用户已存在", "User already exists"),
    PASSWORD_ERROR: ("密码错误", "Wrong password"),
    TOKEN_EXPIRED: ("Token已过期", "Token expired"),
    TOKEN_INVALID: ("Token无效", "Invalid token"),
    LOGIN_REQUIRED: ("需要登录", "Login required"),
    VALID_CODE_EXPIRED: ("验证码已过期", "Verification code expired"),
    VERIFY_CODE_ERROR: ("验证码错误", "Wrong verification code"),
    ACCOUNT_PASSWORD_ERROR: ("账号或密码错误", "Wrong account or password"),
    DATA_NOT_FOUND: ("数据不存在", "Data not found"),
    ERROR_QUERY_FAILED: ("查询失败", "Query failed"),
    ERROR_CREATE_FAILED: ("创建失败", "Create failed"),
    ERROR_UPDATE_FAILED: ("更新失败", "Update failed"),
    ERROR_DELETE_FAILED: ("删除失败", "Delete failed"),
    ERROR_RECORD_NOT_FOUND: ("记录不存在", "Record not found"),
    ERROR_RECORD_EXISTS: ("记录已存在", "Record already exists"),
    ERROR_NO_PERMISSION: ("无权限操作", "No permission"),
    ERROR_INVALID_ID: ("无效的ID参数", "Invalid id"),
    ERROR_MISSING_FIELDS: ("缺少必填字段", "Missing required fields"),
    ERROR_INVALID_FORMAT: ("格式错误", "Invalid format"),
    ERROR_NO_UPDATE_FIELDS: ("没有可更新的字段", "Nothing to update"),
    ERROR_CHECK_FAILED: ("检查失败", "Check failed"),
    ERROR_SAVE_FAILED: ("保存失败", "Save failed"),
    ERROR_EMAIL_EMPTY: ("邮箱不能为空", "Email is required"),
    ERROR_EMAIL_ALREADY_REGISTERED: ("邮箱已被注册", "Email already registered"),
    ERROR_EMAIL_NOT_REGISTERED: ("邮箱未注册", "Email not registered"),
    ERROR_USERNAME_ALREADY_USED: ("用户名已被使用", "Username already taken"),
    ERROR_PASSWORD_STRENGTH: ("密码强度不足", "Password is too weak"),
    ERROR_PAY_PASSWORD_FORMAT: ("支付密码格式错误", "Pay password must be 6 digits"),
    ERROR_INVITE_CODE_EMPTY: ("邀请码不能为空", "Invite code is required"),
    ERROR_INVITE_CODE_NOT_EXIST: ("邀请码不存在", "Invite code does not exist"),
    ERROR_VERIFY_CODE_INVALID: ("验证码错误或已过期", "Verification code is wrong or expired"),
    ERROR_SEND_CODE_FAILED: ("发送验证码失败", "Failed to send verification code"),
    ERROR_REGISTER_FAILED: ("注册失败", "Registration failed"),
    ERROR_LOGIN_FAILED: ("登录失败", "Login failed"),
    ERROR_USERNAME_PASSWORD_EMPTY: ("用户名和密码不能为空", "Username and password are required"),
    ERROR_ACCOUNT_DISABLED: ("账号已被禁用", "Account disabled"),
    ERROR_USERNAME_PASSWORD_WRONG: ("用户名或密码错误", "Wrong username or password"),
    ERROR_REQUIRED_FIELDS_EMPTY: ("必填字段不能为空", "Required fields are empty"),
    ERROR_TYPE_INVALID: ("类型参数错误", "Invalid type"),
    ERROR_EMAIL_CODE_EMPTY: ("邮箱和验证码不能为空", "Email and code are required"),
    ERROR_PASSWORD_TYPE_INVALID: ("密码类型错误", "Invalid password type"),
    ERROR_NEW_PASSWORD_EMPTY: ("新密码不能为空", "New password is required"),
    ERROR_RESET_PASSWORD_FAILED: ("重置密码失败", "Failed to reset password"),
    ERROR_SUBMIT_FAILED: ("提交失败", "Submit failed"),
    ERROR_GET_USER_INFO_FAILED: ("获取用户信息失败", "Failed to get user info"),
    ERROR_SEND_CODE_TOO_FREQUENT: ("验证码发送过于频繁", "Verification code requested too frequently"),
}

_HTTP_STATUS_OVERRIDES = {
    TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    TOKEN_INVALID: status.HTTP_401_UNAUTHORIZED,
    LOGIN_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ERROR_NO_PERMISSION: status.HTTP_403_FORBIDDEN,
    ERROR_ACCOUNT_DISABLED: status.HTTP_403_FORBIDDEN,
    USER_NOT_EXIST: status.HTTP_404_NOT_FOUND,
    ERROR_RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ERROR_SEND_CODE_TOO_FREQUENT: status.HTTP_429_TOO_MANY_REQUESTS,
}


def translate(code: int, lang: str = DEFAULT_LANG) -> str:
    zh, en = MESSAGES.get(code, MESSAGES[SERVER_ERROR])
    return en if lang == "en" else zh


def http_status_for(code: int) -> int:
    if code in _HTTP_STATUS_OVERRIDES:
        return _HTTP_STATUS_OVERRIDES[code]
    if 100 <= code < 600:
        return code
    return status.HTTP_400_BAD_REQUEST


def parse_accept_language(header: Optional[str]) -> str:
    """Reduce an Accept-Language header to ``zh`` or ``en``"""
    if not header:
        return DEFAULT_LANG
    first = header.split(",")[0].split(";")[0].strip().lower()
    if first.startswith("en"):
        return "en"
    return DEFAULT_LANG


def request_language(request: Request) -> str:
    """Admin routes use the ``Language`` header, the rest ``Accept-Language``"""
    if request.url.path.startswith("/api/admin"):
        lang = (request.headers.get("language") or DEFAULT_LANG).strip().lower()
        return "en" if lang.startswith("en") else DEFAULT_LANG
    return parse_accept_language(request.headers.get("accept-language"))


class ApiError(Exception):
    """Business error rendered into the response envelope"""

    def __init__(self, code: int, *details: str, data: Any = None, msg: Optional[str] = None):
        if code < 1:
            code = SERVER_ERROR
        self.code = code
        self.details = [d for d in details if d]
        self.data = data
        # Fixed text replacing the catalogue message
        self.msg = msg
        super().__init__(f"{code}: {', '.join(self.details)}")

    def message(self, lang: str = DEFAULT_LANG) -> str:
        if self.msg is not None:
            return self.msg
        msg = translate(self.code, lang)
        if self.details:
            msg += "(" + ",".join(self.details) + ")"
        return msg


def success(data: Any = None) -> dict:
    return {"code": SUCCESS, "msg": "success", "data": data}


def envelope_response(code: int, msg: str, data: Any = None, http_status: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=http_status or http_status_for(code),
        content={"code": code, "msg": msg, "data": data},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    msg = exc.message(request_language(request))
    logger.error("[Error] Code: %d, Message: %s, path=%s", exc.code, msg, request.url.path)
    return envelope_response(exc.code, msg, exc.data)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()} - {""})
    msg = translate(PARAMS_ERROR, request_language(request))
    if fields:
        msg += "(" + ",".join(fields) + ")"
    logger.warning("[Validation] path=%s fields=%s", request.url.path, fields)
    return envelope_response(PARAMS_ERROR, msg)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception in %s %s: %s",
        request.method, request.url.path, exc,
        exc_info=True,
    )
    return envelope_response(SERVER_ERROR, translate(SERVER_ERROR, request_language(request)))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
