"""
Admin credit grant route.

POST /v1/admin/companies/{company_id}/credits adds introduction credits to a
company. Requires MANAGE_SUBSCRIPTIONS (admins).
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from nexus.api.dependencies.services import get_ledger
from nexus.platform.identity_context import Identity, get_identity
from nexus.services.introduction_ledger import IntroductionRequestLedger

router = APIRouter(prefix="/v1/admin/companies", tags=["admin"])


class GrantCreditsRequest(BaseModel):
    amount: int = Field(..., gt=0, le=10000, description="Credits to add")


class GrantCreditsResponse(BaseModel):
    company_id: str
    introduction_credits: int


@router.post("/{company_id}/credits", response_model=GrantCreditsResponse)
def grant_credits(
    company_id: str,
    body: GrantCreditsRequest,
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> GrantCreditsResponse:
    balance = ledger.grant_credits(identity, company_id, body.amount)
    return GrantCreditsResponse(company_id=company_id, introduction_credits=balance)
