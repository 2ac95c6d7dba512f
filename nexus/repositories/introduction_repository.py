"""
Introduction repository for data access operations.

Encapsulates all database operations for companies' credit balances and
introduction requests.

Mutations of shared state are single conditional UPDATE statements:
- update_company_credits: "add delta where balance + delta >= 0"
  (optionally also "where balance == expected prior balance")
- update_request_state: "set status = to where status = from"

Each returns True only if exactly one row matched. Callers never read a
value, decide, and write it back. Repository methods flush but never
commit; the ledger owns the transaction boundary.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from nexus.models.company import Company
from nexus.models.introduction_request import IntroductionRequest, IntroductionStatus
from nexus.models.job_role import JobRole
from nexus.models.professional import Professional

logger = logging.getLogger(__name__)


class IntroductionRepository:
    """Repository for introduction requests and the credit balances they reserve."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    # =========================================================================
    # Companies and credits
    # =========================================================================

    def find_company(self, company_id: str) -> Optional[Company]:
        return self.db.query(Company).filter(Company.id == company_id).first()

    def get_company_credits(self, company_id: str) -> Optional[int]:
        """Read the balance straight from the database, bypassing the identity map."""
        return (
            self.db.query(Company.introduction_credits)
            .filter(Company.id == company_id)
            .scalar()
        )

    def update_company_credits(
        self,
        company_id: str,
        delta: int,
        expected_prior_balance: Optional[int] = None,
    ) -> bool:
        """
        Atomically add delta to a company's balance.

        The update only applies if the resulting balance stays non-negative
        and, when given, the current balance equals expected_prior_balance.

        Returns:
            True if the balance changed, False if the guard rejected it
        """
        conditions = [
            Company.id == company_id,
            Company.introduction_credits + delta >= 0,
        ]
        if expected_prior_balance is not None:
            conditions.append(Company.introduction_credits == expected_prior_balance)

        result = self.db.execute(
            update(Company)
            .where(*conditions)
            .values(introduction_credits=Company.introduction_credits + delta)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # =========================================================================
    # Introduction requests
    # =========================================================================

    def create_introduction_request(self, record: IntroductionRequest) -> IntroductionRequest:
        self.db.add(record)
        self.db.flush()
        return record

    def update_request_state(
        self,
        request_id: str,
        from_status: IntroductionStatus,
        to_status: IntroductionStatus,
        decided_at: datetime,
        professional_response: Optional[str] = None,
    ) -> bool:
        """
        Atomically move a request from one status to another.

        Returns:
            True if this call made the change, False if the request was not
            in from_status (another transition won)
        """
        values = {"status": to_status.value, "decided_at": decided_at}
        if professional_response is not None:
            values["professional_response"] = professional_response

        result = self.db.execute(
            update(IntroductionRequest)
            .where(
                IntroductionRequest.id == request_id,
                IntroductionRequest.status == from_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_request(self, request_id: str) -> Optional[IntroductionRequest]:
        return (
            self.db.query(IntroductionRequest)
            .filter(IntroductionRequest.id == request_id)
            .populate_existing()
            .first()
        )

    def list_pending_expired(
        self,
        before: datetime,
        limit: Optional[int] = None,
    ) -> List[IntroductionRequest]:
        """PENDING requests whose deadline is at or before the given time, oldest first."""
        query = (
            self.db.query(IntroductionRequest)
            .filter(
                IntroductionRequest.status == IntroductionStatus.PENDING.value,
                IntroductionRequest.expires_at <= before,
            )
            .order_by(IntroductionRequest.expires_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_pending_duplicate(
        self,
        job_role_id: str,
        professional_id: str,
        now: datetime,
    ) -> Optional[IntroductionRequest]:
        """A live PENDING request for the same job role and professional, if any."""
        return (
            self.db.query(IntroductionRequest)
            .filter(
                IntroductionRequest.job_role_id == job_role_id,
                IntroductionRequest.professional_id == professional_id,
                IntroductionRequest.status == IntroductionStatus.PENDING.value,
                IntroductionRequest.expires_at > now,
            )
            .first()
        )

    def list_for_company(
        self,
        company_id: str,
        status: Optional[IntroductionStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[IntroductionRequest], int]:
        query = self.db.query(IntroductionRequest).filter(
            IntroductionRequest.company_id == company_id
        )
        return self._paginate(query, status, offset, limit)

    def list_for_professional(
        self,
        professional_id: str,
        status: Optional[IntroductionStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[IntroductionRequest], int]:
        query = self.db.query(IntroductionRequest).filter(
            IntroductionRequest.professional_id == professional_id
        )
        return self._paginate(query, status, offset, limit)

    def _paginate(self, query, status, offset, limit):
        if status is not None:
            query = query.filter(IntroductionRequest.status == status.value)
        total = query.count()
        items = (
            query.order_by(IntroductionRequest.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def count_by_status(self, company_id: str) -> Dict[IntroductionStatus, int]:
        rows = (
            self.db.query(IntroductionRequest.status, func.count(IntroductionRequest.id))
            .filter(IntroductionRequest.company_id == company_id)
            .group_by(IntroductionRequest.status)
            .all()
        )
        counts = {status: 0 for status in IntroductionStatus}
        for status, count in rows:
            counts[IntroductionStatus(status)] = count
        return counts

    def count_created_between(
        self,
        company_id: str,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> int:
        query = self.db.query(func.count(IntroductionRequest.id)).filter(
            IntroductionRequest.company_id == company_id,
            IntroductionRequest.created_at >= start,
        )
        if end is not None:
            query = query.filter(IntroductionRequest.created_at < end)
        return query.scalar() or 0

    def list_decided(self, company_id: str) -> List[IntroductionRequest]:
        """ACCEPTED and DECLINED requests, used for response-time statistics."""
        return (
            self.db.query(IntroductionRequest)
            .filter(
                IntroductionRequest.company_id == company_id,
                IntroductionRequest.status.in_([
                    IntroductionStatus.ACCEPTED.value,
                    IntroductionStatus.DECLINED.value,
                ]),
                IntroductionRequest.decided_at.isnot(None),
            )
            .all()
        )

    # =========================================================================
    # Professionals and job roles
    # =========================================================================

    def get_professional(self, professional_id: str) -> Optional[Professional]:
        return self.db.query(Professional).filter(Professional.id == professional_id).first()

    def get_professional_by_user_id(self, user_id: str) -> Optional[Professional]:
        return self.db.query(Professional).filter(Professional.user_id == user_id).first()

    def get_job_role(self, job_role_id: str) -> Optional[JobRole]:
        return self.db.query(JobRole).filter(JobRole.id == job_role_id).first()

    # =========================================================================
    # Transaction control
    # =========================================================================

    def commit(self) -> None:
        """Commit the current transaction."""
        self.db.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.db.rollback()
