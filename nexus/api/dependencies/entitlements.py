"""
FastAPI dependencies for subscription entitlements.

Usage:
    @router.post("/v1/ai/match")
    def match(entitlements: Entitlements = Depends(require_ai_features)):
        ...
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from nexus.api.dependencies.services import get_entitlement_resolver
from nexus.database.session import get_db_session
from nexus.platform.errors import NotFoundError
from nexus.platform.identity_context import Identity, get_identity
from nexus.repositories.introduction_repository import IntroductionRepository
from nexus.services.entitlements import (
    EntitlementFeature,
    EntitlementResolver,
    Entitlements,
)


def get_current_entitlements(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db_session),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
) -> Entitlements:
    """
    Entitlements of the caller's company.

    Identities without a company get the fixed non-HR default.

    Raises:
        NotFoundError: the identity names a company that does not exist
    """
    if identity.company_id is None:
        return resolver.resolve(None)

    company = IntroductionRepository(db).find_company(identity.company_id)
    if company is None:
        raise NotFoundError("Company", identity.company_id)
    return resolver.resolve(company)


def require_ai_features(
    entitlements: Entitlements = Depends(get_current_entitlements),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
) -> Entitlements:
    """
    Gate a route on AI features.

    Raises:
        EntitlementDeniedError: subscription inactive or tier below PROFESSIONAL
    """
    resolver.require_feature(entitlements, EntitlementFeature.AI_FEATURES)
    return entitlements
