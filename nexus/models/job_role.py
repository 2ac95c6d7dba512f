"""Job role model - the opening an introduction request is made for."""

import enum

from sqlalchemy import Column, String, ForeignKey, Index

from nexus.db_base import Base
from nexus.models.base import TimestampMixin, generate_uuid


class JobRoleStatus(str, enum.Enum):
    """Lifecycle of a job role. Only ACTIVE roles accept new introductions."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CLOSED = "CLOSED"


class JobRole(Base, TimestampMixin):
    """An opening posted by a company."""

    __tablename__ = "job_roles"

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
        comment="Owning company"
    )

    title = Column(
        String(255),
        nullable=False,
        comment="Job title"
    )

    status = Column(
        String(20),
        nullable=False,
        default=JobRoleStatus.ACTIVE.value,
        comment="Job role status: DRAFT, ACTIVE, PAUSED, CLOSED"
    )

    __table_args__ = (
        Index("ix_job_roles_company_status", "company_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == JobRoleStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<JobRole(id={self.id}, company_id={self.company_id}, status={self.status})>"
