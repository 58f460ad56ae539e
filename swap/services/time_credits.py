"""
Time Credits

Minute-denominated ledger kept beside the token ledger. Accepting a request
books the session's minutes once: +minutes to the teacher (SESSION_TAUGHT)
and -minutes to the learner (SESSION_TAKEN). The unique (session, user)
constraint makes a second booking for the same session fail at the database.

The token ledger decides who may act; this one only records time traded.
"""
import logging
from typing import List, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swap.models.session import Session
from swap.models.time_credit import TimeCreditEntry, TimeCreditReason

logger = logging.getLogger(__name__)


async def record_session_minutes(db: AsyncSession, session: Session) -> List[TimeCreditEntry]:
    """Book a newly created session's minutes; runs inside the accept transaction"""
    entries = [
        TimeCreditEntry(
            user_id=session.teacher_id,
            session_id=session.id,
            delta_minutes=session.minutes,
            reason=TimeCreditReason.SESSION_TAUGHT.value,
        ),
        TimeCreditEntry(
            user_id=session.learner_id,
            session_id=session.id,
            delta_minutes=-session.minutes,
            reason=TimeCreditReason.SESSION_TAKEN.value,
        ),
    ]
    db.add_all(entries)
    await db.flush()
    logger.debug(f"Booked {session.minutes} minutes for session {session.id}")
    return entries


async def time_credit_snapshot(db: AsyncSession, email: str) -> Tuple[int, List[TimeCreditEntry]]:
    """
    Minute balance and entries, newest first.

    Unknown emails read as an empty ledger rather than an error.
    """
    from swap.services.user_service import find_user_by_email

    user = await find_user_by_email(db, email)
    if user is None:
        return 0, []

    result = await db.execute(
        select(TimeCreditEntry)
        .where(TimeCreditEntry.user_id == user.id)
        .order_by(TimeCreditEntry.created_at.desc(), TimeCreditEntry.id)
    )
    entries = list(result.scalars().all())
    return sum(e.delta_minutes for e in entries), entries
