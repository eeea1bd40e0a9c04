"""
Operation logger for admin panel actions.
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, Request
from sqlalchemy.exc import SQLAlchemyError

from ..models import AdminUser, OperationLog

logger = logging.getLogger(__name__)


ALLOWED_OPERATION_TYPES = {
    "create",
    "update",
    "delete",
    "export",
}


def client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For entry when a proxy set one, otherwise the peer address"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return None


def log_operation(
    admin_user_id: int,
    admin_username: str,
    operation_type: str,
    module: str,
    action: str,
    request_path: str = "",
    request_method: str = "",
    target_type: str = "",
    target_id: int = 0,
    request_params: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    status: int = 1,
    error_msg: str = "",
) -> None:
    """
    Persist one admin operation.

    Runs outside the request, so it opens its own session. Failures are
    logged and never propagate to the caller.

    Raises:
        ValueError: If operation_type is invalid
    """
    if operation_type not in ALLOWED_OPERATION_TYPES:
        raise ValueError(
            f"Invalid operation_type '{operation_type}'. Must be one of: {', '.join(sorted(ALLOWED_OPERATION_TYPES))}"
        )

    params_json = ""
    if request_params is not None:
        try:
            params_json = json.dumps(request_params, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("[LogOperation] Failed to marshal request params: %s", e)

    from ..db import SessionLocal

    db = SessionLocal()
    try:
        entry = OperationLog(
            admin_user_id=admin_user_id,
            admin_username=admin_username,
            operation_type=operation_type,
            module=module,
            action=action,
            target_type=target_type,
            target_id=target_id,
            request_path=request_path,
            request_method=request_method,
            request_params=params_json,
            ip_address=ip_address,
            user_agent=user_agent,
            status=status,
            error_msg=error_msg,
        )
        db.add(entry)
        db.commit()
        logger.info(
            "[LogOperation] Admin operation logged: admin=%s(%s), action=%s, target=%s:%s, status=%s",
            admin_username, admin_user_id, action, target_type, target_id, status
        )
    except SQLAlchemyError as e:
        logger.error("[LogOperation] Insert log failed: %s", e)
        db.rollback()
    finally:
        db.close()


def schedule_operation_log(
    background_tasks: BackgroundTasks,
    request: Request,
    admin: AdminUser,
    operation_type: str,
    module: str,
    action: str,
    target_type: str = "",
    target_id: int = 0,
    request_params: Optional[Dict[str, Any]] = None,
    status: int = 1,
    error_msg: str = "",
) -> None:
    """Queue ``log_operation`` to run after the response has been sent"""
    background_tasks.add_task(
        log_operation,
        admin_user_id=admin.id,
        admin_username=admin.username,
        operation_type=operation_type,
        module=module,
        action=action,
        request_path=request.url.path,
        request_method=request.method,
        target_type=target_type,
        target_id=target_id,
        request_params=request_params,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        status=status,
        error_msg=error_msg,
    )
