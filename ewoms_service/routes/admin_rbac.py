"""
Role, permission and user-role management for the admin panel.

Every route here is permission checked. Changes are recorded in the
operation log after the response is sent.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_current_admin
from ..errors import (
    ERROR_CREATE_FAILED,
    ERROR_DELETE_FAILED,
    ERROR_INVALID_ID,
    ERROR_NO_PERMISSION,
    ERROR_NO_UPDATE_FIELDS,
    ERROR_RECORD_EXISTS,
    ERROR_RECORD_NOT_FOUND,
    ERROR_UPDATE_FAILED,
    ApiError,
    success,
)
from ..middleware.permission import require_permission
from ..models import AdminUser, Permission, Role, RolePermission, UserRole, now_ts
from ..schemas import (
    AssignPermissionsRequest,
    PermissionCreate,
    PermissionUpdate,
    RoleCreate,
    RoleUpdate,
    UserRoleRequest,
)
from ..utils.operation_logger import schedule_operation_log
from ..utils.pagination import paginate

router = APIRouter(
    prefix="/api/admin",
    tags=["admin-rbac"],
    dependencies=[Depends(get_current_admin), Depends(require_permission)],
)
logger = logging.getLogger(__name__)


def _get_role(db: Session, role_id: int) -> Role:
    if role_id <= 0:
        raise ApiError(ERROR_INVALID_ID)
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise ApiError(ERROR_RECORD_NOT_FOUND)
    return role


def _get_permission(db: Session, permission_id: int) -> Permission:
    if permission_id <= 0:
        raise ApiError(ERROR_INVALID_ID)
    perm = db.query(Permission).filter(Permission.id == permission_id).first()
    if not perm:
        raise ApiError(ERROR_RECORD_NOT_FOUND)
    return perm


def _commit(db: Session, code: int) -> None:
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("[AdminRBAC] commit failed: %s", e)
        raise ApiError(code) from e


# ---------------- Roles ----------------

@router.get("/role/list")
def list_roles(
    keyword: str = "",
    status: int = -1,
    page: int = 1,
    page_size: int = 10,
    db: Session = Depends(get_db),
):
    query = db.query(Role)
    if keyword:
        like = f"%{keyword}%"
        query = query.filter(or_(Role.role_name.like(like), Role.role_code.like(like)))
    if status != -1:
        query = query.filter(Role.status == status)
    return success(paginate(query.order_by(Role.created_time.desc(), Role.id.desc()), page, page_size))


@router.get("/role/detail/{role_id}")
def role_detail(role_id: int, db: Session = Depends(get_db)):
    role = _get_role(db, role_id)
    permission_ids = [
        pid for (pid,) in db.query(RolePermission.permission_id).filter(RolePermission.role_id == role.id).all()
    ]
    return success({"role": role.to_dict(), "permission_ids": permission_ids})


@router.post("/role/create")
def create_role(
    form: RoleCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if db.query(Role.id).filter(Role.role_code == form.role_code).first():
        raise ApiError(ERROR_RECORD_EXISTS, "role_code")

    now = now_ts()
    role = Role(
        merchant_id=form.merchant_id,
        role_name=form.role_name,
        role_code=form.role_code,
        is_system=0,
        description=form.description,
        status=form.status,
        created_time=now,
        updated_time=now,
    )
    db.add(role)
    _commit(db, ERROR_CREATE_FAILED)
    db.refresh(role)

    schedule_operation_log(
        background_tasks, request, admin, "create", "role", "创建角色",
        target_type="role", target_id=role.id, request_params=form.model_dump(),
    )
    return success(role.to_dict())


@router.put("/role/update/{role_id}")
def update_role(
    role_id: int,
    form: RoleUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    role = _get_role(db, role_id)
    changes = form.model_dump(exclude_none=True)
    if not changes:
        raise ApiError(ERROR_NO_UPDATE_FIELDS)

    for field, value in changes.items():
        setattr(role, field, value)
    role.updated_time = now_ts()
    _commit(db, ERROR_UPDATE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "update", "role", "更新角色",
        target_type="role", target_id=role.id, request_params=changes,
    )
    return success(role.to_dict())


@router.delete("/role/delete/{role_id}")
def delete_role(
    role_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    role = _get_role(db, role_id)
    if role.is_system == 1:
        raise ApiError(ERROR_NO_PERMISSION, "系统角色不可删除")

    db.query(RolePermission).filter(RolePermission.role_id == role.id).delete(synchronize_session=False)
    db.query(UserRole).filter(UserRole.role_id == role.id).delete(synchronize_session=False)
    db.delete(role)
    _commit(db, ERROR_DELETE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "delete", "role", "删除角色",
        target_type="role", target_id=role_id,
    )
    return success(None)


@router.post("/role/assign-permissions/{role_id}")
def assign_permissions(
    role_id: int,
    form: AssignPermissionsRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Replace the role's whole permission set"""
    role = _get_role(db, role_id)

    wanted = list(dict.fromkeys(form.permission_ids))
    if wanted:
        found = {pid for (pid,) in db.query(Permission.id).filter(Permission.id.in_(wanted)).all()}
        missing = [str(pid) for pid in wanted if pid not in found]
        if missing:
            raise ApiError(ERROR_RECORD_NOT_FOUND, ",".join(missing))

    db.query(RolePermission).filter(RolePermission.role_id == role.id).delete(synchronize_session=False)
    now = now_ts()
    for pid in wanted:
        db.add(RolePermission(role_id=role.id, permission_id=pid, created_time=now))
    _commit(db, ERROR_UPDATE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "update", "role", "分配权限",
        target_type="role", target_id=role.id, request_params={"permission_ids": wanted},
    )
    return success({"role_id": role.id, "permission_ids": wanted})


# ---------------- Permissions ----------------

@router.get("/permission/list")
def list_permissions(
    module: str = "",
    keyword: str = "",
    page: int = 1,
    page_size: int = 10,
    db: Session = Depends(get_db),
):
    query = db.query(Permission)
    if module:
        query = query.filter(Permission.module == module)
    if keyword:
        like = f"%{keyword.lower()}%"
        query = query.filter(or_(
            func.lower(Permission.permission_name).like(like),
            func.lower(Permission.permission_name_en).like(like),
        ))
    return success(paginate(query.order_by(Permission.module.asc(), Permission.id.asc()), page, page_size))


@router.post("/permission/create")
def create_permission(
    form: PermissionCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if db.query(Permission.id).filter(Permission.permission_code == form.permission_code).first():
        raise ApiError(ERROR_RECORD_EXISTS, "permission_code")

    now = now_ts()
    data = form.model_dump()
    data["http_method"] = data["http_method"].upper()
    perm = Permission(**data, created_time=now, updated_time=now)
    db.add(perm)
    _commit(db, ERROR_CREATE_FAILED)
    db.refresh(perm)

    schedule_operation_log(
        background_tasks, request, admin, "create", "permission", "创建权限",
        target_type="permission", target_id=perm.id, request_params=data,
    )
    return success(perm.to_dict())


@router.put("/permission/update/{permission_id}")
def update_permission(
    permission_id: int,
    form: PermissionUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    perm = _get_permission(db, permission_id)
    changes = form.model_dump(exclude_none=True)
    if not changes:
        raise ApiError(ERROR_NO_UPDATE_FIELDS)
    if "http_method" in changes:
        changes["http_method"] = changes["http_method"].upper()

    for field, value in changes.items():
        setattr(perm, field, value)
    perm.updated_time = now_ts()
    _commit(db, ERROR_UPDATE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "update", "permission", "更新权限",
        target_type="permission", target_id=perm.id, request_params=changes,
    )
    return success(perm.to_dict())


@router.delete("/permission/delete/{permission_id}")
def delete_permission(
    permission_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    perm = _get_permission(db, permission_id)
    db.query(RolePermission).filter(RolePermission.permission_id == perm.id).delete(synchronize_session=False)
    db.delete(perm)
    _commit(db, ERROR_DELETE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "delete", "permission", "删除权限",
        target_type="permission", target_id=permission_id,
    )
    return success(None)


# ---------------- User roles ----------------

@router.post("/user-role/assign")
def assign_user_role(
    form: UserRoleRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not db.query(AdminUser.id).filter(AdminUser.id == form.user_id).first():
        raise ApiError(ERROR_RECORD_NOT_FOUND, "user_id")
    _get_role(db, form.role_id)

    existing: Optional[UserRole] = (
        db.query(UserRole)
        .filter(UserRole.user_id == form.user_id, UserRole.role_id == form.role_id)
        .first()
    )
    if existing:
        return success(existing.to_dict())

    user_role = UserRole(user_id=form.user_id, role_id=form.role_id)
    db.add(user_role)
    _commit(db, ERROR_CREATE_FAILED)
    db.refresh(user_role)

    schedule_operation_log(
        background_tasks, request, admin, "create", "user-role", "分配用户角色",
        target_type="admin_user", target_id=form.user_id, request_params=form.model_dump(),
    )
    return success(user_role.to_dict())


@router.post("/user-role/remove")
def remove_user_role(
    form: UserRoleRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    removed = (
        db.query(UserRole)
        .filter(UserRole.user_id == form.user_id, UserRole.role_id == form.role_id)
        .delete(synchronize_session=False)
    )
    if not removed:
        raise ApiError(ERROR_RECORD_NOT_FOUND)
    _commit(db, ERROR_DELETE_FAILED)

    schedule_operation_log(
        background_tasks, request, admin, "delete", "user-role", "移除用户角色",
        target_type="admin_user", target_id=form.user_id, request_params=form.model_dump(),
    )
    return success(None)
