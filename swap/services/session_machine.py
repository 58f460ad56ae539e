"""
Session State Machine

    scheduled --complete--> done

schedule() only sets start_at/end_at and may be repeated until completion.
Both are guarded on status = scheduled in the UPDATE itself, so at most one
caller ever flips a session to done and only that caller mints the teacher's
tokens. version is bumped on every write for clients that cache sessions.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Union
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from swap import config
from swap.database import utcnow
from swap.models.request import Request
from swap.models.session import Session, SessionStatus
from swap.services.errors import AlreadyCompleted, NotAuthorized, NotFound, ValidationError

logger = logging.getLogger(__name__)


def tokens_for_minutes(minutes: int) -> int:
    """
    Tokens earned for teaching a session of the given length.

    Floor division: partial hours never mint a fractional token, so a
    45-minute session earns 0 and a 90-minute session earns 1.
    """
    if minutes is None or minutes <= 0:
        return 0
    return minutes // config.MINUTES_PER_TOKEN


def parse_start_at(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 start time into aware UTC.

    Naive values are taken to be UTC; a trailing 'Z' is accepted.

    Raises:
        ValidationError: If the value is not a valid timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError("startAt must be an ISO-8601 timestamp.", details={"startAt": value})
    else:
        raise ValidationError("startAt must be an ISO-8601 timestamp.", details={"startAt": value})

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def new_session_from_request(request: Request) -> Session:
    """The recipient of a request is the teacher being asked to teach"""
    return Session(
        id=uuid.uuid4(),
        teacher_id=request.to_user_id,
        learner_id=request.from_user_id,
        course_code=request.course_code,
        minutes=request.minutes,
        status=SessionStatus.SCHEDULED.value,
        version=1,
    )


async def load_session(db: AsyncSession, session_id: uuid.UUID) -> Session:
    result = await db.execute(
        select(Session).where(Session.id == session_id).execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise NotFound("Session not found")
    return session


def ensure_party(session: Session, acting_user_id: uuid.UUID) -> None:
    if acting_user_id not in (session.teacher_id, session.learner_id):
        raise NotAuthorized("Not authorized for this session.")


def ensure_not_done(session: Session) -> None:
    if session.status == SessionStatus.DONE.value:
        raise AlreadyCompleted("Session already completed.")


async def schedule(db: AsyncSession, session: Session, start_at: datetime) -> Session:
    """Set (or overwrite) the session time; end_at = start_at + minutes"""
    end_at = start_at + timedelta(minutes=session.minutes)

    result = await db.execute(
        update(Session)
        .where(
            Session.id == session.id,
            Session.status == SessionStatus.SCHEDULED.value,
        )
        .values(start_at=start_at, end_at=end_at, version=Session.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyCompleted("Session already completed.")

    await db.refresh(session)
    return session


async def complete(db: AsyncSession, session: Session) -> Session:
    """
    Flip a scheduled session to done.

    Raises:
        AlreadyCompleted: If it is (or concurrently became) done
    """
    ensure_not_done(session)

    result = await db.execute(
        update(Session)
        .where(
            Session.id == session.id,
            Session.status == SessionStatus.SCHEDULED.value,
        )
        .values(status=SessionStatus.DONE.value, completed_at=utcnow(), version=Session.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(f"Lost race completing session {session.id}")
        raise AlreadyCompleted("Session already completed.")

    await db.refresh(session)
    return session
