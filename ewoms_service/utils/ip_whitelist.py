"""
IP whitelist for the admin panel, stored as a Redis set.
"""
import logging
from datetime import datetime
from typing import List

import redis

from ..cache import get_redis_client
from ..config import settings

logger = logging.getLogger(__name__)

IP_WHITELIST_REDIS_KEY = "ip_whitelist"


class IPWhitelistError(Exception):
    """Raised when the whitelist could not be read or changed"""


def is_ip_whitelist_enabled() -> bool:
    return settings.IP_WHITELIST_ENABLED


def is_ip_in_whitelist(ip: str) -> bool:
    """
    Check whether an IP may access the admin panel.

    Always True while the whitelist is disabled. A Redis failure denies access.
    """
    if not is_ip_whitelist_enabled():
        return True

    logger.debug("[IP Whitelist] Checking IP %s in whitelist", ip)
    try:
        is_member = get_redis_client().sismember(IP_WHITELIST_REDIS_KEY, ip)
    except redis.RedisError as e:
        logger.error("[IP Whitelist] Failed to check IP in whitelist: %s", e)
        return False

    if not is_member:
        logger.warning("[IP Whitelist] IP %s not in whitelist", ip)
    return is_member


def add_ip(ip: str) -> None:
    try:
        get_redis_client().sadd(IP_WHITELIST_REDIS_KEY, ip)
    except redis.RedisError as e:
        logger.error("[IP Whitelist] Failed to add IP %s to whitelist: %s", ip, e)
        raise IPWhitelistError(f"添加 IP 到白名单失败: {e}") from e
    logger.info("[IP Whitelist] Successfully added IP %s to whitelist", ip)


def remove_ip(ip: str) -> None:
    try:
        get_redis_client().srem(IP_WHITELIST_REDIS_KEY, ip)
    except redis.RedisError as e:
        logger.error("[IP Whitelist] Failed to remove IP %s from whitelist: %s", ip, e)
        raise IPWhitelistError(f"从白名单移除 IP 失败: {e}") from e
    logger.info("[IP Whitelist] Successfully removed IP %s from whitelist", ip)


def list_ips() -> List[str]:
    try:
        return sorted(get_redis_client().smembers(IP_WHITELIST_REDIS_KEY))
    except redis.RedisError as e:
        logger.error("[IP Whitelist] Failed to get all whitelist IPs: %s", e)
        raise IPWhitelistError(f"获取白名单失败: {e}") from e


def count_ips() -> int:
    try:
        return get_redis_client().scard(IP_WHITELIST_REDIS_KEY)
    except redis.RedisError as e:
        logger.error("[IP Whitelist] Failed to count whitelist IPs: %s", e)
        raise IPWhitelistError(f"获取白名单数量失败: {e}") from e


def get_manage_key() -> str:
    if not settings.IP_WHITELIST_MANAGE_KEY:
        logger.warning("[IP Whitelist] IP_WHITELIST_MANAGE_KEY not configured")
    return settings.IP_WHITELIST_MANAGE_KEY


def log_operation(action: str, ip: str, client_ip: str, success: bool) -> None:
    logger.info(
        "[IP Whitelist Operation] Action: %s, IP: %s, ClientIP: %s, Status: %s, Time: %s",
        action, ip, client_ip, "SUCCESS" if success else "FAILED",
        datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )
