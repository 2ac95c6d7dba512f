"""
Canonical permission catalog for theNexus.

IMPORTANT: This is the single source of truth for all permissions.
All permission checks MUST reference these constants.
UI permission gating is UX only - server-side enforcement is security.

Roles come from Clerk user metadata and are normalised in
nexus.platform.identity_context.

Roles:
- PROFESSIONAL: candidates receiving introduction requests
- HR_PARTNER: company recruiters sending introduction requests
- ADMIN: platform operators, granted every permission

verify_permission_catalog() runs once at startup and refuses to boot if the
ADMIN grant is not exactly the full permission enumeration.
"""

from enum import Enum
from typing import FrozenSet

from nexus.platform.errors import ConfigurationError


class Role(str, Enum):
    """User roles from Clerk metadata."""
    PROFESSIONAL = "professional"
    HR_PARTNER = "hr_partner"
    ADMIN = "admin"


# Roles a dual-role identity can toggle between
SWITCHABLE_ROLES: FrozenSet[Role] = frozenset({Role.PROFESSIONAL, Role.HR_PARTNER})


class Permission(str, Enum):
    """Atomic capabilities."""

    # Professional permissions
    VIEW_OWN_PROFILE = "view_own_profile"
    EDIT_OWN_PROFILE = "edit_own_profile"
    ACCEPT_INTRODUCTIONS = "accept_introductions"
    VIEW_INTRODUCTION_REQUESTS = "view_introduction_requests"

    # HR partner permissions
    SEARCH_PROFESSIONALS = "search_professionals"
    VIEW_PROFESSIONAL_PROFILES = "view_professional_profiles"
    SEND_INTRODUCTION_REQUESTS = "send_introduction_requests"
    CREATE_JOB_ROLES = "create_job_roles"
    MANAGE_TEAM = "manage_team"
    VIEW_COMPANY_ANALYTICS = "view_company_analytics"

    # Admin permissions
    VERIFY_PROFESSIONALS = "verify_professionals"
    VERIFY_COMPANIES = "verify_companies"
    VIEW_ALL_USERS = "view_all_users"
    MANAGE_SUBSCRIPTIONS = "manage_subscriptions"
    ACCESS_ADMIN_DASHBOARD = "access_admin_dashboard"


# =============================================================================
# Role to Permissions Mapping
# =============================================================================

PROFESSIONAL_PERMISSIONS: FrozenSet[Permission] = frozenset({
    Permission.VIEW_OWN_PROFILE,
    Permission.EDIT_OWN_PROFILE,
    Permission.ACCEPT_INTRODUCTIONS,
    Permission.VIEW_INTRODUCTION_REQUESTS,
})

# MANAGE_TEAM is not part of the base HR partner grant
HR_PARTNER_PERMISSIONS: FrozenSet[Permission] = frozenset({
    Permission.SEARCH_PROFESSIONALS,
    Permission.VIEW_PROFESSIONAL_PROFILES,
    Permission.SEND_INTRODUCTION_REQUESTS,
    Permission.CREATE_JOB_ROLES,
    Permission.VIEW_COMPANY_ANALYTICS,
})

ROLE_PERMISSIONS: dict[Role, FrozenSet[Permission]] = {
    Role.PROFESSIONAL: PROFESSIONAL_PERMISSIONS,
    Role.HR_PARTNER: HR_PARTNER_PERMISSIONS,
    Role.ADMIN: frozenset(Permission),
}


# =============================================================================
# Domain constants
# =============================================================================

# Validity window of an introduction request, counted from creation
INTRODUCTION_EXPIRY_DAYS = 7

PERSONALIZED_MESSAGE_MIN_LENGTH = 50
PERSONALIZED_MESSAGE_MAX_LENGTH = 1000
RESPONSE_MESSAGE_MAX_LENGTH = 500


# =============================================================================
# Helper Functions
# =============================================================================

def get_permissions_for_role(role: Role) -> FrozenSet[Permission]:
    """
    Get all permissions for a given role.

    Raises:
        ConfigurationError: role has no entry in the catalog
    """
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"No permission grant defined for role {role!r}")


def role_has_permission(role: Role, permission: Permission) -> bool:
    """Check if a role has a specific permission."""
    return permission in get_permissions_for_role(role)


def verify_permission_catalog() -> None:
    """
    Startup self-check of the role grants.

    Every role needs a grant, every grant may only reference defined
    permissions, and ADMIN must hold exactly the full enumeration.

    Raises:
        ConfigurationError: the catalog has drifted
    """
    all_permissions = frozenset(Permission)

    missing_roles = [role.value for role in Role if role not in ROLE_PERMISSIONS]
    if missing_roles:
        raise ConfigurationError(f"Roles without a permission grant: {missing_roles}")

    for role, granted in ROLE_PERMISSIONS.items():
        unknown = [p for p in granted if not isinstance(p, Permission)]
        if unknown:
            raise ConfigurationError(
                f"Role {role.value!r} grants undefined permissions: {unknown}"
            )

    admin_grant = ROLE_PERMISSIONS[Role.ADMIN]
    if admin_grant != all_permissions:
        missing = sorted(p.value for p in all_permissions - admin_grant)
        raise ConfigurationError(
            f"ADMIN grant does not cover every permission; missing {missing}"
        )
