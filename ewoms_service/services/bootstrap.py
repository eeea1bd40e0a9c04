"""
Startup seeding: the admin permission catalogue and the first admin account.
"""
import logging

from sqlalchemy.orm import Session

from ..auth import hash_password
from ..config import settings
from ..models import AdminUser, Permission, Role, RolePermission, UserRole, now_ts

logger = logging.getLogger(__name__)

SUPER_ADMIN_ROLE_CODE = "super_admin"

# (permission_code, name, name_en, api_route, http_method, module)
PERMISSION_CATALOGUE = [
    ("role:list", "角色列表", "Role list", "/api/admin/role/list", "GET", "role"),
    ("role:detail", "角色详情", "Role detail", "/api/admin/role/detail/:id", "GET", "role"),
    ("role:create", "创建角色", "Create role", "/api/admin/role/create", "POST", "role"),
    ("role:update", "更新角色", "Update role", "/api/admin/role/update/:id", "PUT", "role"),
    ("role:delete", "删除角色", "Delete role", "/api/admin/role/delete/:id", "DELETE", "role"),
    ("role:assign-permissions", "分配权限", "Assign permissions",
     "/api/admin/role/assign-permissions/:id", "POST", "role"),
    ("permission:list", "权限列表", "Permission list", "/api/admin/permission/list", "GET", "permission"),
    ("permission:create", "创建权限", "Create permission", "/api/admin/permission/create", "POST", "permission"),
    ("permission:update", "更新权限", "Update permission",
     "/api/admin/permission/update/:id", "PUT", "permission"),
    ("permission:delete", "删除权限", "Delete permission",
     "/api/admin/permission/delete/:id", "DELETE", "permission"),
    ("user-role:assign", "分配用户角色", "Assign user role", "/api/admin/user-role/assign", "POST", "user-role"),
    ("user-role:remove", "移除用户角色", "Remove user role", "/api/admin/user-role/remove", "POST", "user-role"),
    ("operation-log:list", "操作日志列表", "Operation log list",
     "/api/admin/operation-log/list", "GET", "operation-log"),
    ("system-config:list", "系统配置列表", "System config list",
     "/api/admin/system-config/list", "GET", "system-config"),
    ("system-config:create", "创建系统配置", "Create system config",
     "/api/admin/system-config/create", "POST", "system-config"),
    ("system-config:update", "更新系统配置", "Update system config",
     "/api/admin/system-config/update/:id", "PUT", "system-config"),
    ("system-config:delete", "删除系统配置", "Delete system config",
     "/api/admin/system-config/delete/:id", "DELETE", "system-config"),
]


def seed_permissions(db: Session) -> int:
    """Insert catalogue entries whose permission_code is missing. Returns the number added."""
    existing = {code for (code,) in db.query(Permission.permission_code).all()}
    added = 0
    for code, name, name_en, route, method, module in PERMISSION_CATALOGUE:
        if code in existing:
            continue
        db.add(Permission(
            permission_name=name,
            permission_name_en=name_en,
            permission_code=code,
            api_route=route,
            http_method=method,
            module=module,
        ))
        added += 1
    if added:
        db.commit()
        logger.info("[Bootstrap] Seeded %d permissions", added)
    return added


def ensure_super_admin_role(db: Session) -> Role:
    """Create the system super admin role if needed and grant it every permission"""
    role = db.query(Role).filter(Role.role_code == SUPER_ADMIN_ROLE_CODE).first()
    if not role:
        role = Role(
            role_name="超级管理员",
            role_code=SUPER_ADMIN_ROLE_CODE,
            is_system=1,
            description="System preset role with every permission",
            status=1,
        )
        db.add(role)
        db.flush()

    granted = {
        pid for (pid,) in db.query(RolePermission.permission_id).filter(RolePermission.role_id == role.id).all()
    }
    for (pid,) in db.query(Permission.id).all():
        if pid not in granted:
            db.add(RolePermission(role_id=role.id, permission_id=pid))
    db.commit()
    return role


def bootstrap_admin(db: Session):
    """
    Create the first admin from ADMIN_BOOTSTRAP_* settings.

    Does nothing unless username and password are configured, or when an
    admin with that username already exists.
    """
    username = settings.ADMIN_BOOTSTRAP_USERNAME
    password = settings.ADMIN_BOOTSTRAP_PASSWORD
    if not username or not password:
        return None

    admin = db.query(AdminUser).filter(AdminUser.username == username).first()
    if admin:
        return admin

    role = ensure_super_admin_role(db)
    now = now_ts()
    admin = AdminUser(
        username=username,
        password=hash_password(password),
        email=settings.ADMIN_BOOTSTRAP_EMAIL or f"{username}@localhost",
        status=1,
        first_login=0,
        created_time=now,
        updated_time=now,
    )
    db.add(admin)
    db.flush()
    db.add(UserRole(user_id=admin.id, role_id=role.id))
    db.commit()
    db.refresh(admin)
    logger.info("[Bootstrap] Created admin user %s (id=%s)", admin.username, admin.id)
    return admin
