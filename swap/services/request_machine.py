"""
Request State Machine

PENDING is the only non-terminal state. Every transition out of it is a
compare-and-swap on (status, version): the UPDATE only matches the row the
caller read, so of two concurrent writers exactly one sees a matched row and
the other gets AlreadyResolved.

    PENDING --accept-->  ACCEPTED
    PENDING --decline--> DECLINED
    PENDING --cancel-->  CANCELLED
    PENDING --expire-->  EXPIRED
"""
import logging
import uuid
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from swap import config
from swap.database import utcnow
from swap.models.request import Request, RequestStatus
from swap.services.errors import AlreadyResolved, NotAuthorized, NotFound, SelfRequest, ValidationError

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({
    RequestStatus.ACCEPTED,
    RequestStatus.DECLINED,
    RequestStatus.CANCELLED,
    RequestStatus.EXPIRED,
})

TRANSITIONS = {
    RequestStatus.PENDING: frozenset(TERMINAL_STATES),
    RequestStatus.ACCEPTED: frozenset(),
    RequestStatus.DECLINED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.EXPIRED: frozenset(),
}

# Refund applies to every way a request can end without a session
REFUNDING_STATES = frozenset({RequestStatus.DECLINED, RequestStatus.CANCELLED, RequestStatus.EXPIRED})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return RequestStatus(target) in TRANSITIONS[RequestStatus(current)]


def validate_new_request(
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    course_code: Optional[str],
    minutes: Optional[int],
) -> int:
    """
    Check creation preconditions that need no database access.

    Returns:
        The effective minutes (DEFAULT_REQUEST_MINUTES when None)

    Raises:
        SelfRequest: If sender and recipient are the same user
        ValidationError: If course_code is blank or minutes is not a positive
            multiple of SCHEDULING_GRANULARITY_MINUTES
    """
    if from_user_id == to_user_id:
        raise SelfRequest("Cannot send a request to yourself.")

    if course_code is None or not str(course_code).strip():
        raise ValidationError("A course code or skill is required.")

    if minutes is None:
        minutes = config.DEFAULT_REQUEST_MINUTES

    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
        raise ValidationError("Minutes must be a positive whole number.", details={"minutes": minutes})

    granularity = config.SCHEDULING_GRANULARITY_MINUTES
    if granularity > 0 and minutes % granularity != 0:
        raise ValidationError(
            f"Minutes must be a multiple of {granularity}.",
            details={"minutes": minutes, "granularity": granularity},
        )

    return minutes


async def load_request(db: AsyncSession, request_id: uuid.UUID) -> Request:
    result = await db.execute(
        select(Request).where(Request.id == request_id).execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound("Request not found")
    return request


def ensure_pending(request: Request) -> None:
    if request.status != RequestStatus.PENDING.value:
        raise AlreadyResolved(
            f"Request is already {request.status.lower()}.",
            details={"status": request.status},
        )


def ensure_recipient(request: Request, acting_user_id: uuid.UUID, action: str) -> None:
    if request.to_user_id != acting_user_id:
        raise NotAuthorized(f"Not authorized to {action} this request.")


def ensure_sender(request: Request, acting_user_id: uuid.UUID, action: str) -> None:
    if request.from_user_id != acting_user_id:
        raise NotAuthorized(f"Not authorized to {action} this request.")


async def transition(
    db: AsyncSession,
    request: Request,
    target: RequestStatus,
    session_id: Optional[uuid.UUID] = None,
) -> Request:
    """
    Move a PENDING request to target with a status/version guard.

    Raises:
        AlreadyResolved: If the row changed since it was read
    """
    target = RequestStatus(target)
    if not can_transition(RequestStatus(request.status), target):
        raise AlreadyResolved(
            f"Request is already {request.status.lower()}.",
            details={"status": request.status},
        )

    values = {
        "status": target.value,
        "version": Request.version + 1,
        "resolved_at": utcnow(),
    }
    if session_id is not None:
        values["session_id"] = session_id

    result = await db.execute(
        update(Request)
        .where(
            Request.id == request.id,
            Request.status == RequestStatus.PENDING.value,
            Request.version == request.version,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(f"Lost race resolving request {request.id} to {target.value}")
        raise AlreadyResolved("Request was already resolved.")

    await db.refresh(request)
    return request
