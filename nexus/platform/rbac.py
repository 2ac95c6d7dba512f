"""
Role-Based Access Control (RBAC) enforcement for theNexus.

CRITICAL SECURITY REQUIREMENTS:
- RBAC MUST be enforced server-side for every protected operation
- UI permission gating is NOT security; treat it as UX only
- All permission checks MUST go through this module

Resolution order:
1. ADMIN primary role: allowed, unconditionally
2. Otherwise the effective role (active role for dual-role identities,
   the single role otherwise) is looked up in the permission catalog

A denial is never a soft no-op. require_access raises AuthorizationError,
which the API boundary renders as 401.

Usage:
    from nexus.platform.rbac import require_permission

    @router.post("/v1/introductions")
    def create(identity: Identity = Depends(require_permission(Permission.SEND_INTRODUCTION_REQUESTS))):
        ...
"""

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet

from fastapi import Depends

from nexus.constants.permissions import Permission, Role, get_permissions_for_role
from nexus.platform.errors import AuthorizationError
from nexus.platform.identity_context import Identity, get_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access check. Denials name the effective role and permission."""
    allowed: bool
    effective_role: Role
    permission: Permission

    def __bool__(self) -> bool:
        return self.allowed


def get_effective_permissions(identity: Identity) -> FrozenSet[Permission]:
    """Permissions currently granted to an identity."""
    if identity.role is Role.ADMIN:
        return frozenset(Permission)
    return get_permissions_for_role(identity.effective_role)


def check_access(identity: Identity, permission: Permission) -> AccessDecision:
    """Decide whether an identity may use a permission. Pure, no side effects."""
    if identity.role is Role.ADMIN:
        return AccessDecision(True, Role.ADMIN, permission)

    effective_role = identity.effective_role
    allowed = permission in get_permissions_for_role(effective_role)
    return AccessDecision(allowed, effective_role, permission)


def has_permission(identity: Identity, permission: Permission) -> bool:
    return check_access(identity, permission).allowed


def require_access(identity: Identity, permission: Permission) -> None:
    """
    Enforce a permission.

    Raises:
        AuthorizationError: the effective role lacks the permission
    """
    decision = check_access(identity, permission)
    if decision.allowed:
        return

    logger.warning(
        "Permission denied",
        extra={
            "user_id": identity.user_id,
            "effective_role": decision.effective_role.value,
            "required_permission": permission.value,
            "has_dual_role": identity.has_dual_role,
        },
    )
    raise AuthorizationError(
        effective_role=decision.effective_role.value,
        permission=permission.value,
    )


def require_permission(permission: Permission) -> Callable[..., Identity]:
    """
    Build a FastAPI dependency that resolves the identity and enforces a permission.

    Usage:
        identity: Identity = Depends(require_permission(Permission.ACCEPT_INTRODUCTIONS))
    """
    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        require_access(identity, permission)
        return identity

    return dependency
