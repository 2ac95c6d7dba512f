"""
Identity context for theNexus.

Turns verified Clerk claims into a normalised identity for the current
request. An identity is one of two shapes:

- SingleRoleIdentity: one role, which is also the effective role
- DualRoleIdentity: an HR partner who is also a professional; the active
  role (HR_PARTNER or PROFESSIONAL) is the effective role

Invalid combinations (an active role without the dual-role flag, an ADMIN
active role) cannot be constructed.

SECURITY:
- Identity is re-derived from the bearer token on every request and never
  cached. The active role can change mid-session.
- company_id only comes from verified claims, never from client input.

Claim lookup: role/userType, hasDualRole, activeRole and companyId are read
from the top level of the token, then from the Clerk metadata objects that
session token templates commonly embed.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Union

from fastapi import Request

from nexus.auth.clerk_verifier import ClerkVerificationError, get_verifier
from nexus.constants.permissions import Role, SWITCHABLE_ROLES
from nexus.platform.errors import AuthenticationError, IdentityError

logger = logging.getLogger(__name__)

_METADATA_KEYS = (
    "metadata",
    "public_metadata",
    "publicMetadata",
    "unsafe_metadata",
    "unsafeMetadata",
)

_ROLE_ALIASES = {
    "hr": Role.HR_PARTNER,
    "hrpartner": Role.HR_PARTNER,
    "hr_partner": Role.HR_PARTNER,
    "professional": Role.PROFESSIONAL,
    "admin": Role.ADMIN,
}


@dataclass(frozen=True)
class SingleRoleIdentity:
    """An identity holding exactly one role."""
    user_id: str
    role: Role
    company_id: Optional[str] = None

    @property
    def effective_role(self) -> Role:
        return self.role

    @property
    def has_dual_role(self) -> bool:
        return False

    @property
    def active_role(self) -> Optional[Role]:
        return None


@dataclass(frozen=True)
class DualRoleIdentity:
    """An identity that is both HR partner and professional."""
    user_id: str
    primary_role: Role
    active_role: Role
    company_id: Optional[str] = None

    def __post_init__(self):
        if self.primary_role not in SWITCHABLE_ROLES:
            raise IdentityError(
                f"Dual-role identity cannot have primary role {self.primary_role.value!r}",
                error_code="invalid_active_role",
            )
        if self.active_role not in SWITCHABLE_ROLES:
            raise IdentityError(
                f"Active role must be professional or hr_partner, got {self.active_role.value!r}",
                error_code="invalid_active_role",
            )

    @property
    def role(self) -> Role:
        return self.primary_role

    @property
    def effective_role(self) -> Role:
        return self.active_role

    @property
    def has_dual_role(self) -> bool:
        return True

    def with_active_role(self, role: Role) -> "DualRoleIdentity":
        return replace(self, active_role=role)


Identity = Union[SingleRoleIdentity, DualRoleIdentity]


def normalize_role(value: Any) -> Role:
    """
    Map a role claim to a Role, case-insensitively.

    Accepts "HR_PARTNER", "hr-partner", "HrPartner", "hr" and the like.

    Raises:
        IdentityError(unknown_role): value is empty or not a known role
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str) or not value.strip():
        raise IdentityError("Role claim is missing", error_code="unknown_role")

    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    role = _ROLE_ALIASES.get(key) or _ROLE_ALIASES.get(key.replace("_", ""))
    if role is None:
        raise IdentityError(f"Unknown role {value!r}", error_code="unknown_role")
    return role


def _claim(claims: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if claims.get(name) is not None:
            return claims[name]
    for metadata_key in _METADATA_KEYS:
        metadata = claims.get(metadata_key)
        if isinstance(metadata, Mapping):
            for name in names:
                if metadata.get(name) is not None:
                    return metadata[name]
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return False


def resolve_identity(claims: Mapping[str, Any]) -> Identity:
    """
    Build an Identity from a verified claims bag.

    Pure transform; callers re-run it for every request.

    Raises:
        IdentityError: subject missing, unknown role, or invalid active role
    """
    user_id = claims.get("sub")
    if not user_id:
        raise IdentityError("Token has no subject", error_code="missing_subject")

    role = normalize_role(_claim(claims, "role", "userType", "user_type"))
    has_dual_role = _as_bool(_claim(claims, "hasDualRole", "has_dual_role"))
    company_id = _claim(claims, "companyId", "company_id")
    company_id = str(company_id) if company_id else None

    if has_dual_role and role is Role.ADMIN:
        logger.warning(
            "Ignoring dual-role flag on admin identity",
            extra={"user_id": user_id},
        )
        has_dual_role = False

    if not has_dual_role:
        # Company affiliation only means something for HR-capable identities
        if role is Role.PROFESSIONAL:
            company_id = None
        return SingleRoleIdentity(user_id=user_id, role=role, company_id=company_id)

    raw_active = _claim(claims, "activeRole", "active_role")
    if raw_active is None:
        active_role = role
    else:
        try:
            active_role = normalize_role(raw_active)
        except IdentityError:
            raise IdentityError(
                f"Unknown active role {raw_active!r}",
                error_code="invalid_active_role",
            )

    return DualRoleIdentity(
        user_id=user_id,
        primary_role=role,
        active_role=active_role,
        company_id=company_id,
    )


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Missing bearer token")
    return token.strip()


def get_identity(request: Request) -> Identity:
    """
    FastAPI dependency: verify the bearer token and resolve the identity.

    Raises:
        AuthenticationError: token missing or rejected by Clerk
        IdentityError: token valid but claims do not form an identity
    """
    token = _bearer_token(request)
    try:
        claims = get_verifier().verify_token(token)
    except ClerkVerificationError as e:
        logger.warning(
            "Bearer token rejected",
            extra={"error_code": e.error_code, "path": request.url.path},
        )
        raise AuthenticationError(e.message, error_code=e.error_code)

    identity = resolve_identity(claims)
    request.state.identity = identity
    return identity
