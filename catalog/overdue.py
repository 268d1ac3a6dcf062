import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from catalog import models
from catalog.clock import Clock, utc_now
from catalog.exceptions import DatabaseError
from catalog.storage import SessionLocal, session_scope

logger = logging.getLogger(__name__)


def sweep_overdue(
    db: Session, now: Optional[datetime] = None, clock: Clock = utc_now
) -> int:
    """Mark active records whose due date is before ``now`` as overdue.

    Returns the number of records moved.  Only ``active`` records match, so a
    record closed by a concurrent return stays ``returned`` and a second sweep
    at the same instant moves nothing.  Book rows are not touched.
    """
    now = now or clock()
    try:
        updated = db.execute(
            update(models.BorrowRecord)
            .where(
                models.BorrowRecord.status == models.RecordStatus.ACTIVE.value,
                models.BorrowRecord.due_date < now,
            )
            .values(status=models.RecordStatus.OVERDUE.value)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Overdue sweep failed: {e}")
        raise DatabaseError("sweep", str(e))

    if updated:
        logger.info(f"Marked {updated} borrow record(s) overdue as of {now.isoformat()}")
    return updated


async def run_periodic_sweep(
    interval_seconds: float, session_factory=SessionLocal, clock: Clock = utc_now
):
    """Sweep once per interval until cancelled."""
    while True:
        try:
            await asyncio.to_thread(_sweep_in_new_session, session_factory, clock)
        except DatabaseError as e:
            logger.error(f"Scheduled overdue sweep skipped: {e}")
        await asyncio.sleep(interval_seconds)


def _sweep_in_new_session(session_factory, clock: Clock) -> int:
    with session_scope(session_factory) as db:
        return sweep_overdue(db, clock=clock)
