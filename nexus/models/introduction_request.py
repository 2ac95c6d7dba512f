"""
Introduction request model.

An HR partner's company spends one introduction credit to ask a
professional for contact about a job role. The request starts PENDING and
ends in exactly one terminal state. Rows are never deleted; terminal rows
are kept as history.

State changes are applied with a conditional UPDATE guarded on the current
status (see IntroductionRepository.update_request_state).
"""

import enum
from datetime import datetime

from sqlalchemy import Column, String, Text, ForeignKey, Index

from nexus.db_base import Base
from nexus.models.base import UTCDateTime, generate_uuid


class IntroductionStatus(str, enum.Enum):
    """Introduction request states. PENDING is the only non-terminal state."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"
    WITHDRAWN = "WITHDRAWN"

    @property
    def is_terminal(self) -> bool:
        return self is not IntroductionStatus.PENDING

    @property
    def releases_credit(self) -> bool:
        """Every terminal state except ACCEPTED returns the reserved credit."""
        return self in (
            IntroductionStatus.DECLINED,
            IntroductionStatus.EXPIRED,
            IntroductionStatus.WITHDRAWN,
        )


class IntroductionRequest(Base):
    """A single introduction request and its reserved credit."""

    __tablename__ = "introduction_requests"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )

    company_id = Column(
        String(36),
        ForeignKey("companies.id"),
        nullable=False,
        comment="Company that created the request and holds the credit reservation"
    )

    professional_id = Column(
        String(36),
        ForeignKey("professionals.id"),
        nullable=False,
        comment="Target professional"
    )

    job_role_id = Column(
        String(36),
        ForeignKey("job_roles.id"),
        nullable=False,
        comment="Job role the introduction is about"
    )

    sent_by_user_id = Column(
        String(255),
        nullable=False,
        comment="Clerk user ID of the HR partner who sent the request"
    )

    status = Column(
        String(20),
        nullable=False,
        default=IntroductionStatus.PENDING.value,
        comment="PENDING, ACCEPTED, DECLINED, EXPIRED, WITHDRAWN"
    )

    personalized_message = Column(
        Text,
        nullable=False,
        comment="Message from the HR partner to the professional"
    )

    professional_response = Column(
        Text,
        nullable=True,
        comment="Optional message from the professional on accept/decline"
    )

    created_at = Column(
        UTCDateTime,
        nullable=False,
        comment="Creation time"
    )

    expires_at = Column(
        UTCDateTime,
        nullable=False,
        comment="End of the validity window (created_at + 7 days)"
    )

    decided_at = Column(
        UTCDateTime,
        nullable=True,
        comment="When the request left PENDING"
    )

    __table_args__ = (
        Index("ix_intro_requests_company_status", "company_id", "status"),
        Index("ix_intro_requests_professional_status", "professional_id", "status"),
        Index("ix_intro_requests_status_expires", "status", "expires_at"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == IntroductionStatus.PENDING.value

    def is_past_deadline(self, now: datetime) -> bool:
        """True once the validity window has closed (deadline inclusive)."""
        return self.expires_at <= now

    def __repr__(self) -> str:
        return (
            f"<IntroductionRequest(id={self.id}, company_id={self.company_id}, "
            f"status={self.status})>"
        )
