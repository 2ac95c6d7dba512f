"""
Identity provider client for persisting the active-role choice.

Dual-role users toggle between their HR partner and professional
capabilities. The choice is written back to the user's Clerk profile so the
next session token carries it; the current request's identity is replaced
with the switched one.

Documentation: https://clerk.com/docs/reference/backend-api/tag/Users#operation/UpdateUserMetadata
"""

import logging
from typing import Any, AsyncIterator, Optional, Protocol

import httpx
from fastapi import Depends

from nexus.config.settings import get_settings
from nexus.constants.permissions import Role, SWITCHABLE_ROLES
from nexus.platform.errors import IdentityError, IdentityProviderError
from nexus.platform.identity_context import (
    DualRoleIdentity,
    Identity,
    get_identity,
    normalize_role,
)

logger = logging.getLogger(__name__)

# Values the web client writes into Clerk metadata for activeRole
ACTIVE_ROLE_CLAIM_VALUES = {
    Role.HR_PARTNER: "hr",
    Role.PROFESSIONAL: "professional",
}


class IdentityProvider(Protocol):
    """Profile store that owns the activeRole choice."""

    async def persist_active_role(self, user_id: str, role: Role) -> None:
        ...


class ClerkIdentityProvider:
    """
    Clerk Backend API client.

    Writes activeRole into both public and unsafe metadata: session token
    templates read the public copy, the web client reads the unsafe copy.
    """

    def __init__(
        self,
        secret_key: str,
        api_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise IdentityProviderError(
                "CLERK_SECRET_KEY is required to update user metadata",
                error_code="identity_provider_not_configured",
            )
        self.api_url = api_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, connect=5.0),
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def persist_active_role(self, user_id: str, role: Role) -> None:
        """
        Write the active role to the user's Clerk metadata.

        Raises:
            IdentityProviderError: Clerk unreachable or returned an error status
        """
        value = ACTIVE_ROLE_CLAIM_VALUES[role]
        payload: dict[str, Any] = {
            "public_metadata": {"activeRole": value},
            "unsafe_metadata": {"activeRole": value},
        }
        url = f"{self.api_url}/users/{user_id}/metadata"

        try:
            response = await self._client.patch(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "Clerk metadata update failed",
                extra={"user_id": user_id, "error": f"{type(e).__name__}: {e}"},
            )
            raise IdentityProviderError(f"Identity provider unreachable: {e}")

        if response.status_code >= 400:
            logger.error(
                "Clerk rejected metadata update",
                extra={"user_id": user_id, "status": response.status_code},
            )
            raise IdentityProviderError(
                f"Identity provider returned {response.status_code}"
            )

        logger.info(
            "Persisted active role",
            extra={"user_id": user_id, "active_role": role.value},
        )


def require_dual_role(identity: Identity) -> DualRoleIdentity:
    """
    Narrow an identity to one that holds both roles.

    Raises:
        IdentityError(not_dual_role): identity holds a single role
    """
    if not isinstance(identity, DualRoleIdentity):
        raise IdentityError(
            "Only dual-role users can switch their active role",
            error_code="not_dual_role",
        )
    return identity


def get_dual_role_identity(identity: Identity = Depends(get_identity)) -> DualRoleIdentity:
    """FastAPI dependency: the caller's identity, which must hold both roles."""
    return require_dual_role(identity)


async def get_identity_provider(
    identity: DualRoleIdentity = Depends(get_dual_role_identity),
) -> AsyncIterator[ClerkIdentityProvider]:
    """
    FastAPI dependency yielding a Clerk client for the duration of a request.

    Resolved only for dual-role callers; the client is never built for a
    single-role identity.
    """
    settings = get_settings()
    provider = ClerkIdentityProvider(
        secret_key=settings.clerk_secret_key,
        api_url=settings.clerk_api_url,
    )
    try:
        yield provider
    finally:
        await provider.close()


async def switch_active_role(
    identity: Identity,
    target_role: Any,
    provider: IdentityProvider,
) -> DualRoleIdentity:
    """
    Switch a dual-role identity's active role and persist the choice.

    Always writes to the provider, even when the role is unchanged, so a
    retried call converges on the same stored value.

    Raises:
        IdentityError(not_dual_role): identity holds a single role
        IdentityError(invalid_active_role): target is not professional or hr_partner
        IdentityProviderError: persisting the choice failed
    """
    identity = require_dual_role(identity)

    try:
        role = normalize_role(target_role)
    except IdentityError:
        raise IdentityError(
            f"Unknown active role {target_role!r}",
            error_code="invalid_active_role",
        )
    if role not in SWITCHABLE_ROLES:
        raise IdentityError(
            "Active role must be professional or hr_partner",
            error_code="invalid_active_role",
        )

    await provider.persist_active_role(identity.user_id, role)

    if role != identity.active_role:
        logger.info(
            "Active role switched",
            extra={
                "user_id": identity.user_id,
                "from_role": identity.active_role.value,
                "to_role": role.value,
            },
        )
    return identity.with_active_role(role)
