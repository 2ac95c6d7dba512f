"""
Professional model - the candidate side of an introduction.

Only the fields the introduction flow reads are modelled here: the Clerk
user that owns the profile, whether they are open to opportunities and the
companies they have hidden themselves from.
"""

from typing import Optional, Set

from sqlalchemy import Column, String, Boolean, JSON

from nexus.db_base import Base
from nexus.models.base import TimestampMixin, generate_uuid


class Professional(Base, TimestampMixin):
    """A professional profile that can receive introduction requests."""

    __tablename__ = "professionals"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )

    user_id = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="Clerk user ID (sub claim) of the profile owner"
    )

    display_name = Column(
        String(255),
        nullable=True,
        comment="Name shown to HR partners"
    )

    open_to_opportunities = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the professional accepts new introduction requests"
    )

    hidden_company_ids = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Company IDs this professional is hidden from"
    )

    def blocked_company_ids(self, own_company_id: Optional[str] = None) -> Set[str]:
        """
        Companies that can never see or introduce this profile.

        A profile owner who is also an HR partner is always blocked from
        their own company, whatever the stored list says.
        """
        blocked = set(self.hidden_company_ids or [])
        if own_company_id:
            blocked.add(own_company_id)
        return blocked

    def __repr__(self) -> str:
        return f"<Professional(id={self.id}, user_id={self.user_id})>"
