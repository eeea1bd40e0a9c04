"""Public and permission-exempt paths"""

# Reachable without a token - admin panel
NON_LOGIN_PATHS_ADMIN = [
    "/api/admin/user/login",
    "/api/ip-manage",
]

# Reachable without a token - front-end
NON_LOGIN_PATHS_BACKEND = [
    "/api/backend/user/send-code",
    "/api/backend/user/register",
    "/api/backend/user/login",
    "/api/backend/user/forgot-password",
    "/api/common/upload",
]

# Logged in, but not subject to role permission checks - front-end
NO_PERMISSION_CHECK_PATHS_BACKEND = [
    "/api/backend/user/send-code",
    "/api/backend/user/register",
    "/api/backend/user/login",
    "/api/backend/user/forgot-password",
    "/api/backend/user/change-password",
    "/api/common/upload",
]

# Logged in, but not subject to role permission checks - admin panel
NO_PERMISSION_CHECK_PATHS_ADMIN = [
    "/api/admin/user/login",
    "/api/admin/user/logout",
    "/api/admin/user/userinfo",
    "/api/admin/user/change-password",
]


def is_public_path(path: str) -> bool:
    return path in NON_LOGIN_PATHS_BACKEND or path in NON_LOGIN_PATHS_ADMIN


def skips_permission_check(path: str) -> bool:
    return path in NO_PERMISSION_CHECK_PATHS_BACKEND or path in NO_PERMISSION_CHECK_PATHS_ADMIN
