"""
Root test configuration and fixtures.

Provides:
- db_engine / db_session: in-memory SQLite with every table created
- clock: a mutable clock injected into services in place of utcnow
- make_company / make_professional / make_job_role: seed factories
- identity helpers for HR partner, professional, dual-role and admin callers
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")

from nexus.constants.permissions import Role
from nexus.db_base import Base
from nexus.models import Company, JobRole, JobRoleStatus, Professional
from nexus.platform.identity_context import DualRoleIdentity, SingleRoleIdentity
from nexus.services.introduction_ledger import IntroductionRequestLedger

VALID_MESSAGE = (
    "Hello! We think your background is a strong fit for our open role "
    "and would love to introduce you to the hiring team."
)


class MutableClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: tests that drive several threads against a shared database"
    )


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return MutableClock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger(db_session, clock):
    return IntroductionRequestLedger(db_session, clock=clock)


# =============================================================================
# Seed factories
# =============================================================================

@pytest.fixture
def make_company(db_session):
    def _make(
        credits: int = 5,
        tier: str = "BASIC",
        expires_at: Optional[datetime] = None,
        name: str = "Acme Recruiting",
    ) -> Company:
        company = Company(
            name=name,
            subscription_tier=tier,
            subscription_expires_at=expires_at,
            introduction_credits=credits,
        )
        db_session.add(company)
        db_session.commit()
        return company
    return _make


@pytest.fixture
def make_professional(db_session):
    counter = {"n": 0}

    def _make(
        user_id: Optional[str] = None,
        open_to_opportunities: bool = True,
        hidden_company_ids: Optional[list] = None,
    ) -> Professional:
        counter["n"] += 1
        professional = Professional(
            user_id=user_id or f"user_pro_{counter['n']}",
            display_name=f"Professional {counter['n']}",
            open_to_opportunities=open_to_opportunities,
            hidden_company_ids=hidden_company_ids or [],
        )
        db_session.add(professional)
        db_session.commit()
        return professional
    return _make


@pytest.fixture
def make_job_role(db_session):
    def _make(company: Company, status: str = JobRoleStatus.ACTIVE.value, title: str = "Staff Engineer") -> JobRole:
        job_role = JobRole(company_id=company.id, title=title, status=status)
        db_session.add(job_role)
        db_session.commit()
        return job_role
    return _make


# =============================================================================
# Identities
# =============================================================================

def hr_identity(company: Company, user_id: str = "user_hr_1") -> SingleRoleIdentity:
    return SingleRoleIdentity(user_id=user_id, role=Role.HR_PARTNER, company_id=company.id)


def professional_identity(professional: Professional) -> SingleRoleIdentity:
    return SingleRoleIdentity(user_id=professional.user_id, role=Role.PROFESSIONAL)


def dual_identity(
    company: Company,
    user_id: str = "user_dual_1",
    active_role: Role = Role.HR_PARTNER,
) -> DualRoleIdentity:
    return DualRoleIdentity(
        user_id=user_id,
        primary_role=Role.HR_PARTNER,
        active_role=active_role,
        company_id=company.id,
    )


def admin_identity(user_id: str = "user_admin_1") -> SingleRoleIdentity:
    return SingleRoleIdentity(user_id=user_id, role=Role.ADMIN)
