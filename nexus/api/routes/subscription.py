"""
Subscription API routes.

GET /v1/subscription/status reports the caller's company entitlements.
Professionals (no company) receive the non-HR default: TRIAL, active,
no AI features, zero credits.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from nexus.api.dependencies.entitlements import get_current_entitlements
from nexus.services.entitlements import Entitlements

router = APIRouter(prefix="/v1/subscription", tags=["subscription"])


class SubscriptionStatusResponse(BaseModel):
    """Entitlements of the caller's company."""
    model_config = ConfigDict(populate_by_name=True)

    tier: str
    is_active: bool = Field(..., alias="isActive")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    has_ai_features: bool = Field(..., alias="hasAiFeatures")
    credits_remaining: int = Field(..., alias="creditsRemaining")


@router.get("/status", response_model=SubscriptionStatusResponse)
def get_subscription_status(
    entitlements: Entitlements = Depends(get_current_entitlements),
) -> SubscriptionStatusResponse:
    return SubscriptionStatusResponse.model_validate(entitlements.to_dict())
