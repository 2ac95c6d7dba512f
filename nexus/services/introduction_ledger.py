"""
Introduction request ledger.

Owns the introduction request state machine and the credit accounting that
goes with it:

    (none)  --create-->   PENDING    debit 1 credit
    PENDING --accept-->   ACCEPTED   credit stays spent
    PENDING --decline-->  DECLINED   credit released
    PENDING --withdraw--> WITHDRAWN  credit released
    PENDING --expire-->   EXPIRED    credit released

Terminal states reject every event with InvalidTransitionError.

Every state change and its credit movement happen in one transaction, each
expressed as a conditional UPDATE. For any company,
credits + count(PENDING) only changes through grant_credits.

A user transition that finds a PENDING request already past its deadline
expires it first (releasing the credit) and then rejects the event, so the
outcome matches what the expiry sweeper would have produced.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nexus.constants.permissions import INTRODUCTION_EXPIRY_DAYS, Permission, Role
from nexus.models.base import utcnow
from nexus.models.introduction_request import IntroductionRequest, IntroductionStatus
from nexus.platform.errors import (
    DuplicateIntroductionError,
    InsufficientCreditsError,
    InvalidTransitionError,
    NotFoundError,
    ProfessionalUnavailableError,
)
from nexus.platform.identity_context import Identity
from nexus.platform.rbac import require_access
from nexus.repositories.introduction_repository import IntroductionRepository
from nexus.services.entitlements import EntitlementResolver
from nexus.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class IntroductionStats:
    """Per-company introduction statistics."""
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


class IntroductionRequestLedger:
    """
    State machine and credit ledger for introduction requests.

    One instance per unit of work; it shares the caller's session.
    """

    def __init__(
        self,
        db_session: Session,
        resolver: Optional[EntitlementResolver] = None,
        clock: Callable[[], datetime] = utcnow,
        notifications: Optional[NotificationService] = None,
    ):
        self.db = db_session
        self.repo = IntroductionRepository(db_session)
        self.clock = clock
        self.resolver = resolver or EntitlementResolver(clock=clock)
        self.notifications = notifications or NotificationService(db_session)

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        identity: Identity,
        professional_id: str,
        job_role_id: str,
        personalized_message: str,
    ) -> IntroductionRequest:
        """
        Create a PENDING request and reserve one credit for it.

        The entitlement check is a fast pre-check. The conditional debit is
        what admits or rejects the request, so concurrent creates against
        the same company can never spend the same credit twice.

        Raises:
            AuthorizationError: caller cannot send introduction requests
            NotFoundError: company, professional or job role missing
            EntitlementDeniedError: subscription inactive
            InsufficientCreditsError: no credit available
            ProfessionalUnavailableError: professional closed to this company
            DuplicateIntroductionError: a live PENDING request already exists
        """
        require_access(identity, Permission.SEND_INTRODUCTION_REQUESTS)

        company_id = identity.company_id
        company = self.repo.find_company(company_id) if company_id else None
        if company is None:
            raise NotFoundError("Company", company_id)

        self.resolver.require_introduction_credit(self.resolver.resolve(company))

        professional = self.repo.get_professional(professional_id)
        if professional is None:
            raise NotFoundError("Professional", professional_id)
        if not professional.open_to_opportunities:
            raise ProfessionalUnavailableError("not_open_to_opportunities")
        # The caller's own profile is always hidden from the caller's company
        own_company_id = company_id if professional.user_id == identity.user_id else None
        if company_id in professional.blocked_company_ids(own_company_id):
            logger.info(
                "Introduction blocked by professional privacy setting",
                extra={
                    "company_id": company_id,
                    "professional_id": professional_id,
                    "own_profile": own_company_id is not None,
                },
            )
            raise ProfessionalUnavailableError("hidden_from_company")

        job_role = self.repo.get_job_role(job_role_id)
        if job_role is None or job_role.company_id != company_id or not job_role.is_active:
            raise NotFoundError("Job role", job_role_id)

        now = self.clock()
        existing = self.repo.find_pending_duplicate(job_role_id, professional_id, now)
        if existing is not None:
            raise DuplicateIntroductionError(existing.id)

        professional_user_id = professional.user_id
        job_title = job_role.title

        record = IntroductionRequest(
            company_id=company_id,
            professional_id=professional_id,
            job_role_id=job_role_id,
            sent_by_user_id=identity.user_id,
            status=IntroductionStatus.PENDING.value,
            personalized_message=personalized_message,
            created_at=now,
            expires_at=now + timedelta(days=INTRODUCTION_EXPIRY_DAYS),
        )

        try:
            if not self.repo.update_company_credits(company_id, -1):
                self.repo.rollback()
                logger.info(
                    "Introduction rejected: credit debit lost",
                    extra={"company_id": company_id, "user_id": identity.user_id},
                )
                raise InsufficientCreditsError(company_id)
            self.repo.create_introduction_request(record)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            logger.exception(
                "Failed to create introduction request",
                extra={"company_id": company_id, "professional_id": professional_id},
            )
            raise

        logger.info(
            "Introduction request created",
            extra={
                "request_id": record.id,
                "company_id": company_id,
                "professional_id": professional_id,
                "job_role_id": job_role_id,
                "sent_by_user_id": identity.user_id,
            },
        )
        self.notifications.introduction_requested(record, professional_user_id, job_title)
        return record

    # =========================================================================
    # Transitions
    # =========================================================================

    def accept(
        self,
        identity: Identity,
        request_id: str,
        response_message: Optional[str] = None,
    ) -> IntroductionRequest:
        """Target professional accepts. The reserved credit stays spent."""
        require_access(identity, Permission.ACCEPT_INTRODUCTIONS)
        request = self._get_for_target_professional(identity, request_id)
        updated = self._user_transition(
            request, "accept", IntroductionStatus.ACCEPTED, response_message
        )
        self.notifications.introduction_accepted(updated)
        return updated

    def decline(
        self,
        identity: Identity,
        request_id: str,
        response_message: Optional[str] = None,
    ) -> IntroductionRequest:
        """Target professional declines. The reserved credit is released."""
        require_access(identity, Permission.ACCEPT_INTRODUCTIONS)
        request = self._get_for_target_professional(identity, request_id)
        updated = self._user_transition(
            request, "decline", IntroductionStatus.DECLINED, response_message
        )
        self.notifications.introduction_declined(updated)
        return updated

    def withdraw(self, identity: Identity, request_id: str) -> IntroductionRequest:
        """The creating company withdraws. The reserved credit is released."""
        require_access(identity, Permission.SEND_INTRODUCTION_REQUESTS)
        request = self._get_for_owning_company(identity, request_id)
        return self._user_transition(request, "withdraw", IntroductionStatus.WITHDRAWN)

    def expire(self, request: IntroductionRequest, now: Optional[datetime] = None) -> bool:
        """
        Expire a PENDING request past its deadline and release its credit.

        Used by the expiry sweeper. A request that is no longer PENDING, or
        not yet due, is skipped rather than treated as an error.

        Returns:
            True if this call expired the request
        """
        now = now or self.clock()
        if not request.is_pending or not request.is_past_deadline(now):
            return False
        return self._apply_transition(
            request.id, request.company_id, IntroductionStatus.EXPIRED, now
        )

    def _user_transition(
        self,
        request: IntroductionRequest,
        event: str,
        to_status: IntroductionStatus,
        response_message: Optional[str] = None,
    ) -> IntroductionRequest:
        request_id = request.id
        company_id = request.company_id

        if not request.is_pending:
            self._reject(request_id, request.status, event)

        now = self.clock()
        if request.is_past_deadline(now):
            self._apply_transition(request_id, company_id, IntroductionStatus.EXPIRED, now)
            self._reject(request_id, self.repo.get_request(request_id).status, event)

        if not self._apply_transition(request_id, company_id, to_status, now, response_message):
            self._reject(request_id, self.repo.get_request(request_id).status, event)

        return self.repo.get_request(request_id)

    def _apply_transition(
        self,
        request_id: str,
        company_id: str,
        to_status: IntroductionStatus,
        now: datetime,
        response_message: Optional[str] = None,
    ) -> bool:
        """
        Move PENDING -> to_status and release the credit if the state requires it.

        Returns:
            False if the request had already left PENDING
        """
        try:
            changed = self.repo.update_request_state(
                request_id,
                IntroductionStatus.PENDING,
                to_status,
                decided_at=now,
                professional_response=response_message,
            )
            if not changed:
                self.repo.rollback()
                return False

            if to_status.releases_credit:
                if not self.repo.update_company_credits(company_id, 1):
                    self.repo.rollback()
                    raise NotFoundError("Company", company_id)

            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            logger.exception(
                "Failed to apply introduction transition",
                extra={"request_id": request_id, "to_status": to_status.value},
            )
            raise

        logger.info(
            "Introduction request transitioned",
            extra={
                "request_id": request_id,
                "company_id": company_id,
                "to_status": to_status.value,
                "credit_released": to_status.releases_credit,
            },
        )
        return True

    def _reject(self, request_id: str, current_status: str, event: str) -> None:
        logger.info(
            "Introduction transition rejected",
            extra={"request_id": request_id, "current_status": current_status, "event": event},
        )
        raise InvalidTransitionError(request_id, current_status, event)

    # =========================================================================
    # Ownership lookups
    # =========================================================================

    def _get_request(self, request_id: str) -> IntroductionRequest:
        request = self.repo.get_request(request_id)
        if request is None:
            raise NotFoundError("Introduction request", request_id)
        return request

    def _get_for_target_professional(self, identity: Identity, request_id: str) -> IntroductionRequest:
        request = self._get_request(request_id)
        professional = self.repo.get_professional_by_user_id(identity.user_id)
        if professional is None or professional.id != request.professional_id:
            raise NotFoundError("Introduction request", request_id)
        return request

    def _get_for_owning_company(self, identity: Identity, request_id: str) -> IntroductionRequest:
        request = self._get_request(request_id)
        if identity.company_id is None or identity.company_id != request.company_id:
            raise NotFoundError("Introduction request", request_id)
        return request

    # =========================================================================
    # Credit grants
    # =========================================================================

    def grant_credits(self, identity: Identity, company_id: str, amount: int) -> int:
        """
        Add credits to a company's balance.

        This is the only operation that changes credits + pending for a company.

        Returns:
            The new balance
        """
        require_access(identity, Permission.MANAGE_SUBSCRIPTIONS)
        if amount <= 0:
            raise ValueError("amount must be positive")
        if self.repo.find_company(company_id) is None:
            raise NotFoundError("Company", company_id)

        try:
            self.repo.update_company_credits(company_id, amount)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        balance = self.repo.get_company_credits(company_id)
        logger.info(
            "Introduction credits granted",
            extra={
                "company_id": company_id,
                "amount": amount,
                "balance": balance,
                "granted_by": identity.user_id,
            },
        )
        return balance

    # =========================================================================
    # Read side
    # =========================================================================

    def get_visible(self, identity: Identity, request_id: str) -> IntroductionRequest:
        """A request visible to its company, its target professional, or an admin."""
        request = self._get_request(request_id)
        if identity.role is Role.ADMIN:
            return request
        if identity.company_id is not None and identity.company_id == request.company_id:
            return request
        professional = self.repo.get_professional_by_user_id(identity.user_id)
        if professional is not None and professional.id == request.professional_id:
            return request
        raise NotFoundError("Introduction request", request_id)

    def list_sent(
        self,
        identity: Identity,
        status: Optional[IntroductionStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[IntroductionRequest], int]:
        require_access(identity, Permission.SEND_INTRODUCTION_REQUESTS)
        if identity.company_id is None:
            raise NotFoundError("Company")
        return self.repo.list_for_company(
            identity.company_id, status, offset=(page - 1) * limit, limit=limit
        )

    def list_received(
        self,
        identity: Identity,
        status: Optional[IntroductionStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[IntroductionRequest], int]:
        require_access(identity, Permission.VIEW_INTRODUCTION_REQUESTS)
        professional = self.repo.get_professional_by_user_id(identity.user_id)
        if professional is None:
            raise NotFoundError("Professional")
        return self.repo.list_for_professional(
            professional.id, status, offset=(page - 1) * limit, limit=limit
        )

    def stats(self, identity: Identity) -> IntroductionStats:
        """Counts per state, acceptance rate, response time and month-on-month trend."""
        require_access(identity, Permission.VIEW_COMPANY_ANALYTICS)
        company_id = identity.company_id
        if company_id is None:
            raise NotFoundError("Company")

        counts = self.repo.count_by_status(company_id)
        accepted = counts[IntroductionStatus.ACCEPTED]
        declined = counts[IntroductionStatus.DECLINED]
        responded = accepted + declined
        acceptance_rate = round(accepted / responded * 100, 1) if responded else 0.0

        decided = self.repo.list_decided(company_id)
        if decided:
            total_seconds = sum(
                (r.decided_at - r.created_at).total_seconds() for r in decided
            )
            average_response_hours = round(total_seconds / len(decided) / 3600, 1)
        else:
            average_response_hours = 0.0

        now = self.clock()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        start_of_last_month = (start_of_month - timedelta(days=1)).replace(day=1)
        this_month = self.repo.count_created_between(company_id, start_of_month)
        last_month = self.repo.count_created_between(company_id, start_of_last_month, start_of_month)

        if this_month > last_month:
            trend = "up"
        elif this_month < last_month:
            trend = "down"
        else:
            trend = "stable"

        return IntroductionStats(
            total_sent=sum(counts.values()),
            pending=counts[IntroductionStatus.PENDING],
            accepted=accepted,
            declined=declined,
            expired=counts[IntroductionStatus.EXPIRED],
            withdrawn=counts[IntroductionStatus.WITHDRAWN],
            acceptance_rate=acceptance_rate,
            average_response_hours=average_response_hours,
            this_month=this_month,
            last_month=last_month,
            trend=trend,
        )
