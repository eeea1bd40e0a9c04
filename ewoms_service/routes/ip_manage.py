"""
IP whitelist management, guarded by the X-Manage-Key header instead of a login.
"""
import ipaddress
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ..errors import FORBIDDEN, PARAMS_ERROR, SERVER_ERROR, ApiError, success
from ..schemas import IPRequest
from ..utils import ip_whitelist
from ..utils.operation_logger import client_ip

router = APIRouter(prefix="/api/ip-manage", tags=["ip-manage"])
logger = logging.getLogger(__name__)


def verify_manage_key(request: Request, x_manage_key: Optional[str] = Header(None)) -> None:
    expected = ip_whitelist.get_manage_key()
    if not expected:
        raise ApiError(FORBIDDEN, "IP白名单管理功能未启用")
    if not x_manage_key or not secrets.compare_digest(x_manage_key, expected):
        logger.warning("[IP Whitelist] invalid manage key from %s", client_ip(request))
        raise ApiError(FORBIDDEN, "管理密钥错误")


def _validated_ip(raw: str) -> str:
    raw = raw.strip()
    if not raw:
        raise ApiError(PARAMS_ERROR, "IP地址不能为空")
    try:
        return str(ipaddress.ip_address(raw))
    except ValueError:
        raise ApiError(PARAMS_ERROR, "IP地址格式错误")


@router.get("", dependencies=[Depends(verify_manage_key)])
def list_whitelist():
    try:
        ips = ip_whitelist.list_ips()
    except ip_whitelist.IPWhitelistError as e:
        raise ApiError(SERVER_ERROR, str(e)) from e
    return success({
        "ips": ips,
        "count": len(ips),
        "enabled": ip_whitelist.is_ip_whitelist_enabled(),
    })


@router.post("", dependencies=[Depends(verify_manage_key)])
def add_to_whitelist(req: IPRequest, request: Request):
    ip = _validated_ip(req.ip)
    caller = client_ip(request) or ""
    try:
        ip_whitelist.add_ip(ip)
    except ip_whitelist.IPWhitelistError as e:
        ip_whitelist.log_operation("ADD", ip, caller, False)
        raise ApiError(SERVER_ERROR, str(e)) from e
    ip_whitelist.log_operation("ADD", ip, caller, True)
    return success({"ip": ip})


@router.delete("", dependencies=[Depends(verify_manage_key)])
def remove_from_whitelist(req: IPRequest, request: Request):
    ip = _validated_ip(req.ip)
    caller = client_ip(request) or ""
    try:
        ip_whitelist.remove_ip(ip)
    except ip_whitelist.IPWhitelistError as e:
        ip_whitelist.log_operation("REMOVE", ip, caller, False)
        raise ApiError(SERVER_ERROR, str(e)) from e
    ip_whitelist.log_operation("REMOVE", ip, caller, True)
    return success({"ip": ip})
