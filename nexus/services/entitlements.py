"""
Subscription entitlements for theNexus.

Maps a company's subscription state onto what it may do:
- is_active: subscription has no expiry, or expires strictly after now
- has_ai_features: tier is PROFESSIONAL or ENTERPRISE
- credits_remaining: the company's available introduction credits

Identities without a company (professionals) get NO_COMPANY_ENTITLEMENTS.
That default has zero credits and means "not an HR context", never
"unlimited".
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional

from nexus.models.base import utcnow
from nexus.models.company import Company
from nexus.platform.errors import EntitlementDeniedError, InsufficientCreditsError

logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
    TRIAL = "TRIAL"
    BASIC = "BASIC"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class EntitlementFeature(str, Enum):
    """Features gated by subscription tier."""
    INTRODUCTION_REQUESTS = "introduction_requests"
    AI_FEATURES = "ai_features"


TIER_FEATURES: Dict[SubscriptionTier, FrozenSet[EntitlementFeature]] = {
    SubscriptionTier.TRIAL: frozenset({EntitlementFeature.INTRODUCTION_REQUESTS}),
    SubscriptionTier.BASIC: frozenset({EntitlementFeature.INTRODUCTION_REQUESTS}),
    SubscriptionTier.PROFESSIONAL: frozenset({
        EntitlementFeature.INTRODUCTION_REQUESTS,
        EntitlementFeature.AI_FEATURES,
    }),
    SubscriptionTier.ENTERPRISE: frozenset({
        EntitlementFeature.INTRODUCTION_REQUESTS,
        EntitlementFeature.AI_FEATURES,
    }),
}


@dataclass(frozen=True)
class Entitlements:
    """Derived entitlements for one company at one instant."""
    tier: SubscriptionTier
    is_active: bool
    credits_remaining: int
    has_ai_features: bool
    expires_at: Optional[datetime] = None
    company_id: Optional[str] = None

    @property
    def is_hr_context(self) -> bool:
        return self.company_id is not None

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "isActive": self.is_active,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "hasAiFeatures": self.has_ai_features,
            "creditsRemaining": self.credits_remaining,
        }


NO_COMPANY_ENTITLEMENTS = Entitlements(
    tier=SubscriptionTier.TRIAL,
    is_active=True,
    credits_remaining=0,
    has_ai_features=False,
)


def parse_tier(value: Optional[str]) -> SubscriptionTier:
    """Parse a stored tier. Unknown values fall back to TRIAL, the least-entitled tier."""
    try:
        return SubscriptionTier((value or "").upper())
    except ValueError:
        logger.warning("Unknown subscription tier, treating as TRIAL", extra={"tier": value})
        return SubscriptionTier.TRIAL


class EntitlementResolver:
    """
    Resolves and enforces company entitlements.

    The clock is injectable so boundary behaviour can be tested exactly.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def resolve(self, company: Optional[Company]) -> Entitlements:
        """Compute entitlements for a company, or the default when there is none."""
        if company is None:
            return NO_COMPANY_ENTITLEMENTS

        tier = parse_tier(company.subscription_tier)
        expires_at = company.subscription_expires_at
        is_active = expires_at is None or expires_at > self.clock()

        return Entitlements(
            tier=tier,
            is_active=is_active,
            credits_remaining=int(company.introduction_credits or 0),
            has_ai_features=EntitlementFeature.AI_FEATURES in TIER_FEATURES[tier],
            expires_at=expires_at,
            company_id=company.id,
        )

    def require_feature(self, entitlements: Entitlements, feature: EntitlementFeature) -> None:
        """
        Enforce that the subscription is active and the tier includes a feature.

        Raises:
            EntitlementDeniedError: inactive subscription or feature not in tier
        """
        if not entitlements.is_active:
            logger.info(
                "Entitlement denied: subscription inactive",
                extra={"company_id": entitlements.company_id, "feature": feature.value},
            )
            raise EntitlementDeniedError(
                feature=feature.value,
                reason="subscription has expired",
                tier=entitlements.tier.value,
            )
        if feature not in TIER_FEATURES[entitlements.tier]:
            logger.info(
                "Entitlement denied: feature not in tier",
                extra={
                    "company_id": entitlements.company_id,
                    "feature": feature.value,
                    "tier": entitlements.tier.value,
                },
            )
            raise EntitlementDeniedError(
                feature=feature.value,
                reason=f"{feature.value} is not included in the {entitlements.tier.value} plan",
                tier=entitlements.tier.value,
            )

    def require_introduction_credit(self, entitlements: Entitlements) -> None:
        """
        Pre-check for creating an introduction request.

        This is advisory only. The atomic debit in the ledger decides.

        Raises:
            EntitlementDeniedError: subscription inactive
            InsufficientCreditsError: no credits available
        """
        self.require_feature(entitlements, EntitlementFeature.INTRODUCTION_REQUESTS)
        if entitlements.credits_remaining < 1:
            raise InsufficientCreditsError(entitlements.company_id)
