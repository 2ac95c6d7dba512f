"""
Introduction Expiry Sweeper.

Moves PENDING introduction requests past their 7-day deadline to EXPIRED
and releases each request's reserved credit back to its company.

Safe to run concurrently with itself and with user actions: every expiry
is a status-guarded conditional update, so a request that has already left
PENDING is skipped. A missed or failed sweep is picked up on the next run.

Runs in-process from the API lifespan when EXPIRY_SWEEP_ENABLED is set,
or as a cron job:
    python -m nexus.jobs.expiry_sweeper

Configuration:
- EXPIRY_SWEEP_INTERVAL_SECONDS: Seconds between in-process sweeps (default: 300)
- EXPIRY_SWEEP_BATCH_SIZE: Max requests expired per sweep (default: 500)
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

from nexus.config.settings import get_settings
from nexus.models.base import utcnow
from nexus.repositories.introduction_repository import IntroductionRepository
from nexus.services.introduction_ledger import IntroductionRequestLedger

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """One sweep over PENDING requests whose deadline has passed."""

    def __init__(
        self,
        db_session: Session,
        clock: Callable[[], datetime] = utcnow,
        batch_size: Optional[int] = None,
    ):
        """
        Args:
            db_session: Database session, used for the whole sweep
            clock: Source of "now"
            batch_size: Max requests to expire per run (None for no limit)
        """
        self.db = db_session
        self.clock = clock
        self.batch_size = batch_size
        self.repo = IntroductionRepository(db_session)
        self.ledger = IntroductionRequestLedger(db_session, clock=clock)
        self.stats = {
            "scanned": 0,
            "expired": 0,
            "skipped": 0,
            "errors": 0,
        }

    def run(self) -> Dict:
        """
        Expire every due PENDING request.

        Returns:
            Stats dict with scanned, expired, skipped and errors counts
        """
        now = self.clock()
        due = self.repo.list_pending_expired(before=now, limit=self.batch_size)
        self.stats["scanned"] = len(due)

        for request in due:
            request_id = request.id
            try:
                if self.ledger.expire(request, now):
                    self.stats["expired"] += 1
                else:
                    self.stats["skipped"] += 1
            except Exception as e:
                self.stats["errors"] += 1
                self.db.rollback()
                logger.error(
                    "Failed to expire introduction request",
                    extra={"request_id": request_id, "error": f"{type(e).__name__}: {e}"},
                    exc_info=True,
                )

        logger.info(
            "Expiry sweep completed",
            extra={"swept_at": now.isoformat(), **self.stats},
        )
        return self.stats


def sweep_once(
    session_factory: sessionmaker,
    clock: Callable[[], datetime] = utcnow,
    batch_size: Optional[int] = None,
) -> Dict:
    """Run a single sweep in a fresh session."""
    session = session_factory()
    try:
        return ExpirySweeper(session, clock=clock, batch_size=batch_size).run()
    finally:
        session.close()


async def run_sweeper_loop(
    session_factory: sessionmaker,
    interval_seconds: float,
    stop_event: asyncio.Event,
    batch_size: Optional[int] = None,
    clock: Callable[[], datetime] = utcnow,
) -> None:
    """
    Sweep on a fixed interval until stop_event is set.

    Each sweep runs in a worker thread so the event loop keeps serving
    requests. A failing sweep is logged and retried on the next tick.
    """
    logger.info("Expiry sweeper started", extra={"interval_seconds": interval_seconds})
    while not stop_event.is_set():
        try:
            await asyncio.to_thread(sweep_once, session_factory, clock, batch_size)
        except Exception as e:
            logger.error(
                "Expiry sweep failed",
                extra={"error": f"{type(e).__name__}: {e}"},
                exc_info=True,
            )
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass
    logger.info("Expiry sweeper stopped")


def main():
    """Main entry point for a one-shot expiry sweep."""
    from nexus.database.session import get_session_factory

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info("Expiry Sweeper starting")

    try:
        stats = sweep_once(get_session_factory(), batch_size=settings.expiry_sweep_batch_size)
        logger.info("Expiry Sweeper stats", extra=stats)
    except Exception as e:
        logger.error("Expiry Sweeper failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)

    logger.info("Expiry Sweeper finished")


if __name__ == "__main__":
    main()
