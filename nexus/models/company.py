"""
Company model - an HR partner's organisation and its subscription state.

The introduction credit balance lives on this row. It is only ever changed
through a single conditional UPDATE issued by the introduction ledger, never
by loading the row, editing the attribute and flushing.
"""

from sqlalchemy import Column, String, Integer, CheckConstraint

from nexus.db_base import Base
from nexus.models.base import TimestampMixin, UTCDateTime, generate_uuid


class Company(Base, TimestampMixin):
    """A hiring company with a subscription tier and introduction credits."""

    __tablename__ = "companies"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Company display name"
    )

    subscription_tier = Column(
        String(32),
        nullable=False,
        default="TRIAL",
        comment="Subscription tier: TRIAL, BASIC, PROFESSIONAL, ENTERPRISE"
    )

    subscription_expires_at = Column(
        UTCDateTime,
        nullable=True,
        comment="Subscription expiry; NULL means the subscription never expires"
    )

    introduction_credits = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Available (unreserved) introduction credits"
    )

    __table_args__ = (
        CheckConstraint(
            "introduction_credits >= 0",
            name="ck_companies_introduction_credits_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Company(id={self.id}, tier={self.subscription_tier}, "
            f"credits={self.introduction_credits})>"
        )
