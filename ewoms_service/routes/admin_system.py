"""
Operation log browsing and system configuration for the admin panel.
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_current_admin
from ..errors import (
    ERROR_CREATE_FAILED,
    ERROR_DELETE_FAILED,
    ERROR_INVALID_ID,
    ERROR_RECORD_EXISTS,
    ERROR_RECORD_NOT_FOUND,
    ERROR_UPDATE_FAILED,
    ApiError,
    success,
)
from ..middleware.permission import require_permission
from ..models import AdminUser, OperationLog, SystemConfig, now_ts
from ..schemas import SystemConfigCreate, SystemConfigUpdate
from ..utils.operation_logger import schedule_operation_log
from ..utils.pagination import paginate

router = APIRouter(
    prefix="/api/admin",
    tags=["admin-system"],
    dependencies=[Depends(get_current_admin), Depends(require_permission)],
)
logger = logging.getLogger(__name__)


def get_config_by_key(db: Session, key: str) -> Optional[SystemConfig]:
    return db.query(SystemConfig).filter(SystemConfig.config_key == key).first()


def get_all_configs(db: Session) -> Dict[str, str]:
    return {c.config_key: c.config_value for c in db.query(SystemConfig).all()}


def get_system_config_value(db: Session, key: str) -> float:
    """
    Read a numeric config value.

    Raises:
        LookupError: no such key
        ValueError: the stored value is not a number
    """
    config = get_config_by_key(db, key)
    if config is None:
        raise LookupError(f"system config {key} not found")
    return float(config.config_value.strip())


def _get_config(db: Session, config_id: int) -> SystemConfig:
    if config_id <= 0:
        raise ApiError(ERROR_INVALID_ID)
    config = db.query(SystemConfig).filter(SystemConfig.id == config_id).first()
    if not config:
        raise ApiError(ERROR_RECORD_NOT_FOUND)
    return config


def _commit(db: Session, code: int) -> None:
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("[SystemConfig] commit failed: %s", e)
        raise ApiError(code) from e


@router.get("/operation-log/list")
def list_operation_logs(
    page: int = 1,
    page_size: int = 10,
    admin_user_id: int = 0,
    admin_username: str = "",
    operation_type: str = "",
    module: str = "",
    db: Session = Depends(get_db),
):
    query = db.query(OperationLog)
    if admin_user_id > 0:
        query = query.filter(OperationLog.admin_user_id == admin_user_id)
    if admin_username:
        query = query.filter(OperationLog.admin_username == admin_username)
    if operation_type:
        query = query.filter(OperationLog.operation_type == operation_type)
    if module:
        query = query.filter(OperationLog.module == module)
    query = query.order_by(OperationLog.created_time.desc(), OperationLog.id.desc())
    return success(paginate(query, page, page_size))


@router.get("/system-config/list")
def list_system_configs(page: int = 1, page_size: int = 10, db: Session = Depends(get_db)):
    return success(paginate(db.query(SystemConfig).order_by(SystemConfig.id.desc()), page, page_size))


@router.post("/system-config/create")
def create_system_config(
    form: SystemConfigCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if get_config_by_key(db, form.config_key):
        raise ApiError(ERROR_RECORD_EXISTS, "config_key")

    now = now_ts()
    config = SystemConfig(
        config_key=form.config_key,
        config_value=form.config_value,
        config_desc=form.config_desc,
        created_time=now,
        updated_time=now,
    )
    db.add(config)
    _commit(db, ERROR_CREATE_FAILED)
    db.refresh(config)

    schedule_operation_log(
        background_tasks, request, admin, "create", "system-config", "创建系统配置",
        target_type="system_config", target_id=config.id, request_params=form.model_dump(),
    )
    return success(config.to_dict())


@router.put("/system-config/update/{config_id}")
def update_system_config(
    config_id: int,
    form: SystemConfigUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    config = _get_config(db, config_id)
    config.config_value = form.config_value
    if form.config_desc:
        config.config_desc = form.config_desc
    config.updated_time = now_ts()
    _commit(db, ERROR_UPDATE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "update", "system-config", "更新系统配置",
        target_type="system_config", target_id=config.id, request_params=form.model_dump(),
    )
    return success(config.to_dict())


@router.delete("/system-config/delete/{config_id}")
def delete_system_config(
    config_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    config = _get_config(db, config_id)
    db.delete(config)
    _commit(db, ERROR_DELETE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "delete", "system-config", "删除系统配置",
        target_type="system_config", target_id=config_id,
    )
    return success(None)
