"""
Dual-role privacy route.

GET /v1/dual-role/privacy-status reports which companies cannot see the
caller's professional profile. A dual-role user's own company is always
among them.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from nexus.database.session import get_db_session
from nexus.platform.errors import NotFoundError
from nexus.platform.identity_context import Identity, get_identity
from nexus.repositories.introduction_repository import IntroductionRepository

router = APIRouter(prefix="/v1/dual-role", tags=["dual-role"])


class PrivacyStatusResponse(BaseModel):
    professional_id: str
    blocked_companies_count: int
    hidden_from_own_company: bool
    own_company_id: Optional[str] = None


@router.get("/privacy-status", response_model=PrivacyStatusResponse)
def get_privacy_status(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> PrivacyStatusResponse:
    professional = IntroductionRepository(db).get_professional_by_user_id(identity.user_id)
    if professional is None:
        raise NotFoundError("Professional profile")

    own_company_id = identity.company_id if identity.has_dual_role else None
    blocked = professional.blocked_company_ids(own_company_id)
    return PrivacyStatusResponse(
        professional_id=professional.id,
        blocked_companies_count=len(blocked),
        hidden_from_own_company=own_company_id is not None,
        own_company_id=own_company_id,
    )
