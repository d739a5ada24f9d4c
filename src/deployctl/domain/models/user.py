"""Caller identity and RBAC models."""

from __future__ import annotations

from enum import Enum

from deployctl.domain.models.base import ValueObject


class Role(str, Enum):
    """Caller roles for RBAC."""

    ADMIN = "admin"
    OPERATOR = "operator"
    DEPLOYER = "deployer"
    VIEWER = "viewer"


class Permission(str, Enum):
    """System permissions."""

    DEPLOYMENT_READ = "deployment:read"
    DEPLOYMENT_CREATE = "deployment:create"
    DEPLOYMENT_ROLLBACK = "deployment:rollback"


ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.ADMIN: set(Permission),
    Role.OPERATOR: set(Permission),
    Role.DEPLOYER: {Permission.DEPLOYMENT_READ, Permission.DEPLOYMENT_CREATE},
    Role.VIEWER: {Permission.DEPLOYMENT_READ},
}


class Principal(ValueObject):
    """Authenticated caller; ``subject`` becomes the lifecycle event actor."""

    subject: str
    role: Role = Role.VIEWER

    def has_permission(self, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS.get(self.role, set())

    def has_any_permission(self, *permissions: Permission) -> bool:
        return any(self.has_permission(p) for p in permissions)
