"""
Identity API routes.

- GET  /v1/identity/me           effective role and permissions of the caller
- POST /v1/identity/active-role  switch a dual-role user's active role

The switch is persisted to Clerk so the next session token carries it.
Calling it again with the same role is harmless.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from nexus.auth.identity_provider import (
    ClerkIdentityProvider,
    get_dual_role_identity,
    get_identity_provider,
    switch_active_role,
)
from nexus.platform.identity_context import DualRoleIdentity, Identity, get_identity
from nexus.platform.rbac import get_effective_permissions

router = APIRouter(prefix="/v1/identity", tags=["identity"])


class IdentityResponse(BaseModel):
    user_id: str
    role: str
    has_dual_role: bool
    active_role: Optional[str] = None
    effective_role: str
    company_id: Optional[str] = None
    permissions: List[str]


class SwitchActiveRoleRequest(BaseModel):
    active_role: str = Field(..., description="professional or hr_partner")


def _to_response(identity: Identity) -> IdentityResponse:
    return IdentityResponse(
        user_id=identity.user_id,
        role=identity.role.value,
        has_dual_role=identity.has_dual_role,
        active_role=identity.active_role.value if identity.active_role else None,
        effective_role=identity.effective_role.value,
        company_id=identity.company_id,
        permissions=sorted(p.value for p in get_effective_permissions(identity)),
    )


@router.get("/me", response_model=IdentityResponse)
def get_me(identity: Identity = Depends(get_identity)) -> IdentityResponse:
    return _to_response(identity)


@router.post("/active-role", response_model=IdentityResponse)
async def post_active_role(
    body: SwitchActiveRoleRequest,
    identity: DualRoleIdentity = Depends(get_dual_role_identity),
    provider: ClerkIdentityProvider = Depends(get_identity_provider),
) -> IdentityResponse:
    switched = await switch_active_role(identity, body.active_role, provider)
    return _to_response(switched)
