"""
Introduction request API routes.

Provides endpoints for:
- Creating an introduction request (HR partner, spends one credit)
- Accepting / declining a request (target professional)
- Withdrawing a request (creating company)
- Listing sent and received requests, reading one request, statistics

SECURITY:
- All endpoints require a verified Clerk session token
- Permissions are enforced inside IntroductionRequestLedger
- Company and professional ownership come from the token, never the body

Status codes:
- 201 created, 200 transition applied
- 401 permission missing for the caller's effective role
- 402 subscription inactive (upgrade required)
- 404 request, company, professional or job role not found
- 409 insufficient credits, invalid transition, duplicate request
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from nexus.api.dependencies.services import get_ledger
from nexus.constants.permissions import (
    PERSONALIZED_MESSAGE_MAX_LENGTH,
    PERSONALIZED_MESSAGE_MIN_LENGTH,
    RESPONSE_MESSAGE_MAX_LENGTH,
)
from nexus.models.introduction_request import IntroductionRequest, IntroductionStatus
from nexus.platform.identity_context import Identity, get_identity
from nexus.services.introduction_ledger import IntroductionRequestLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/introductions", tags=["introductions"])


# --- Request/Response Models ---


class CreateIntroductionRequest(BaseModel):
    """Request to introduce the caller's company to a professional."""
    professional_id: str = Field(..., description="Target professional ID")
    job_role_id: str = Field(..., description="Active job role owned by the caller's company")
    personalized_message: str = Field(
        ...,
        min_length=PERSONALIZED_MESSAGE_MIN_LENGTH,
        max_length=PERSONALIZED_MESSAGE_MAX_LENGTH,
        description="Message to the professional",
    )


class RespondToIntroductionRequest(BaseModel):
    """Optional message sent with an accept or decline."""
    response_message: Optional[str] = Field(
        None,
        max_length=RESPONSE_MESSAGE_MAX_LENGTH,
    )


class IntroductionResponse(BaseModel):
    id: str
    company_id: str
    professional_id: str
    job_role_id: str
    sent_by_user_id: str
    status: IntroductionStatus
    personalized_message: str
    professional_response: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    decided_at: Optional[datetime] = None


class IntroductionListResponse(BaseModel):
    introductions: List[IntroductionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class IntroductionStatsResponse(BaseModel):
    total_sent: int
    pending: int
    accepted: int
    declined: int
    expired: int
    withdrawn: int
    acceptance_rate: float
    average_response_hours: float
    this_month: int
    last_month: int
    trend: str


# --- Helper Functions ---


def _to_response(request: IntroductionRequest) -> IntroductionResponse:
    return IntroductionResponse(
        id=request.id,
        company_id=request.company_id,
        professional_id=request.professional_id,
        job_role_id=request.job_role_id,
        sent_by_user_id=request.sent_by_user_id,
        status=IntroductionStatus(request.status),
        personalized_message=request.personalized_message,
        professional_response=request.professional_response,
        created_at=request.created_at,
        expires_at=request.expires_at,
        decided_at=request.decided_at,
    )


def _to_list_response(items, total: int, page: int, limit: int) -> IntroductionListResponse:
    return IntroductionListResponse(
        introductions=[_to_response(r) for r in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


# --- Endpoints ---


@router.post(
    "",
    response_model=IntroductionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_introduction(
    body: CreateIntroductionRequest,
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionResponse:
    request = ledger.create(
        identity,
        professional_id=body.professional_id,
        job_role_id=body.job_role_id,
        personalized_message=body.personalized_message,
    )
    return _to_response(request)


@router.get("/sent", response_model=IntroductionListResponse)
def list_sent_introductions(
    status_filter: Optional[IntroductionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionListResponse:
    items, total = ledger.list_sent(identity, status_filter, page=page, limit=limit)
    return _to_list_response(items, total, page, limit)


@router.get("/received", response_model=IntroductionListResponse)
def list_received_introductions(
    status_filter: Optional[IntroductionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionListResponse:
    items, total = ledger.list_received(identity, status_filter, page=page, limit=limit)
    return _to_list_response(items, total, page, limit)


@router.get("/stats", response_model=IntroductionStatsResponse)
def get_introduction_stats(
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionStatsResponse:
    stats = ledger.stats(identity)
    return IntroductionStatsResponse(**asdict(stats))


@router.get("/{request_id}", response_model=IntroductionResponse)
def get_introduction(
    request_id: str,
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionResponse:
    return _to_response(ledger.get_visible(identity, request_id))


@router.post("/{request_id}/accept", response_model=IntroductionResponse)
def accept_introduction(
    request_id: str,
    body: Optional[RespondToIntroductionRequest] = None,
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionResponse:
    message = body.response_message if body else None
    return _to_response(ledger.accept(identity, request_id, message))


@router.post("/{request_id}/decline", response_model=IntroductionResponse)
def decline_introduction(
    request_id: str,
    body: Optional[RespondToIntroductionRequest] = None,
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionResponse:
    message = body.response_message if body else None
    return _to_response(ledger.decline(identity, request_id, message))


@router.post("/{request_id}/withdraw", response_model=IntroductionResponse)
def withdraw_introduction(
    request_id: str,
    identity: Identity = Depends(get_identity),
    ledger: IntroductionRequestLedger = Depends(get_ledger),
) -> IntroductionResponse:
    return _to_response(ledger.withdraw(identity, request_id))
