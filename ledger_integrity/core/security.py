"""
Security Core - Phân quyền theo vai trò (Theo Thông tư 99/2025/TT-BTC).

Danh tính người dùng do hệ thống bên ngoài xác thực; ở đây chỉ kiểm tra vai
trò được truyền vào có quyền thực hiện thao tác hay không.
"""

from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    CHIEF_ACCOUNTANT = "CHIEF_ACCOUNTANT"  # Kế toán trưởng
    ACCOUNTANT = "ACCOUNTANT"
    AUDITOR = "AUDITOR"
    VIEWER = "VIEWER"


class Permission(str, Enum):
    PERIOD_LOCK = "PERIOD_LOCK"
    PERIOD_UNLOCK = "PERIOD_UNLOCK"


# Thao tác trên chứng từ không phân quyền ở đây; vai trò được ghi vào audit.
ROLE_PERMISSIONS: dict[UserRole, list[Permission]] = {
    UserRole.SUPER_ADMIN: list(Permission),
    UserRole.ADMIN: list(Permission),
    UserRole.CHIEF_ACCOUNTANT: [Permission.PERIOD_LOCK],
    UserRole.ACCOUNTANT: [],
    UserRole.AUDITOR: [],
    UserRole.VIEWER: [],
}


def _as_role(role: UserRole | str) -> UserRole | None:
    try:
        return UserRole(role)
    except ValueError:
        return None


class RBACService:
    def has_permission(self, role: UserRole | str, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS.get(_as_role(role), [])

    def get_user_permissions(self, role: UserRole | str) -> list[Permission]:
        return ROLE_PERMISSIONS.get(_as_role(role), [])

    def can_lock_period(self, role: UserRole | str) -> bool:
        return self.has_permission(role, Permission.PERIOD_LOCK)

    def can_unlock_period(self, role: UserRole | str) -> bool:
        return self.has_permission(role, Permission.PERIOD_UNLOCK)
