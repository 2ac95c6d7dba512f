"""
FastAPI dependencies wiring services to the request's database session.

get_clock is a seam for tests: override it to pin "now".
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from nexus.database.session import get_db_session
from nexus.models.base import utcnow
from nexus.services.entitlements import EntitlementResolver
from nexus.services.introduction_ledger import IntroductionRequestLedger


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_entitlement_resolver(
    clock: Callable[[], datetime] = Depends(get_clock),
) -> EntitlementResolver:
    return EntitlementResolver(clock=clock)


def get_ledger(
    db: Session = Depends(get_db_session),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> IntroductionRequestLedger:
    return IntroductionRequestLedger(db, resolver=resolver, clock=clock)
