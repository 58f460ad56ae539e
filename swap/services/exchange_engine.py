"""
Exchange Engine

Transactional coordinator for the token economy. Each public operation runs
in exactly one database transaction that reads the affected rows, applies a
single guarded state transition and writes the matching ledger entries. Any
exception rolls the whole transaction back, so a state change is never
visible without its ledger movement or vice versa.

Public operations:
    send_request, accept_request, decline_request, cancel_request,
    schedule_session, complete_session
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swap import config
from swap.database import AsyncSessionLocal
from swap.models.request import Request, RequestStatus
from swap.models.session import Session, SessionStatus
from swap.models.token_ledger import TokenLedgerEntry, LedgerReason
from swap.services import request_machine, session_machine
from swap.services.errors import (
    DuplicateRequest,
    InsufficientBalance,
    InsufficientTokens,
    NotFound,
    SelfRequest,
)
from swap.services.ledger import Ledger, get_ledger
from swap.services.time_credits import record_session_minutes
from swap.services.user_service import normalize_email, require_user

logger = logging.getLogger(__name__)

IdLike = Union[uuid.UUID, str]


@dataclass
class Acceptance:
    """Result of accepting a request"""
    request: Request
    session: Session


def as_uuid(value: IdLike, kind: str) -> uuid.UUID:
    """Parse an id from the API; malformed ids cannot exist so they are NotFound"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(f"{kind} not found")


async def reserved_amount(db: AsyncSession, request: Request) -> int:
    """Tokens debited from the sender when the request was created"""
    result = await db.execute(
        select(func.coalesce(func.sum(TokenLedgerEntry.delta), 0)).where(
            TokenLedgerEntry.request_id == request.id,
            TokenLedgerEntry.user_id == request.from_user_id,
            TokenLedgerEntry.reason == LedgerReason.REQUEST_SENT.value,
        )
    )
    return -int(result.scalar_one())


async def refund_request(db: AsyncSession, ledger: Ledger, request: Request) -> int:
    """
    Return the sender's reserved tokens.

    Must run in the same transaction as the request's transition to a
    refunding state; the transition's guard is what makes it exactly-once.
    """
    amount = await reserved_amount(db, request)
    if amount > 0:
        await ledger.credit(
            db,
            request.from_user_id,
            amount,
            LedgerReason.REQUEST_REFUNDED,
            request_id=request.id,
        )
    return amount


class ExchangeEngine:
    """
    Coordinates Ledger, Request and Session state changes atomically.

    Identity is passed as email, matching the HTTP contract; callers that
    authenticate principals resolve them before calling in.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        ledger: Optional[Ledger] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.ledger = ledger or get_ledger()

    async def send_request(
        self,
        from_email: str,
        to_email: str,
        course_code: str,
        minutes: Optional[int] = None,
        note: Optional[str] = None,
    ) -> Request:
        """
        Create a PENDING request and debit the sender's request cost.

        Raises:
            SelfRequest, ValidationError: Bad input
            NotFound: Unknown sender or recipient
            DuplicateRequest: An active request to the same user exists
            InsufficientTokens: Sender balance below the request cost
        """
        if normalize_email(from_email) == normalize_email(to_email):
            raise SelfRequest("Cannot send a request to yourself.")

        async with self.session_factory() as db:
            async with db.begin():
                sender = await require_user(db, from_email)
                recipient = await require_user(db, to_email)
                minutes = request_machine.validate_new_request(
                    sender.id, recipient.id, course_code, minutes
                )

                # Balance is checked before the duplicate guard
                if await self.ledger.balance_of(db, sender.id) < config.REQUEST_TOKEN_COST:
                    raise self._insufficient_tokens(sender)

                await self._ensure_no_active_request(db, sender.id, recipient.id)

                request = Request(
                    id=uuid.uuid4(),
                    from_user_id=sender.id,
                    to_user_id=recipient.id,
                    course_code=course_code.strip(),
                    minutes=minutes,
                    note=note,
                    status=RequestStatus.PENDING.value,
                    version=1,
                )
                db.add(request)
                await db.flush()

                try:
                    await self.ledger.debit(
                        db,
                        sender.id,
                        config.REQUEST_TOKEN_COST,
                        LedgerReason.REQUEST_SENT,
                        request_id=request.id,
                    )
                except InsufficientBalance:
                    raise self._insufficient_tokens(sender)

                await db.refresh(request)

        logger.info(
            f"Request {request.id} sent {sender.email} -> {recipient.email} "
            f"({request.course_code}, {request.minutes}m)"
        )
        return request

    def _insufficient_tokens(self, sender) -> InsufficientTokens:
        logger.warning(f"{sender.email} has insufficient tokens to send a request")
        cost = config.REQUEST_TOKEN_COST
        return InsufficientTokens(
            f"You need at least {cost} token{'' if cost == 1 else 's'} to send a request.",
            details={"required": cost},
        )

    async def _ensure_no_active_request(
        self, db: AsyncSession, from_user_id: uuid.UUID, to_user_id: uuid.UUID
    ) -> None:
        result = await db.execute(
            select(Request.id)
            .outerjoin(Session, Session.id == Request.session_id)
            .where(
                Request.from_user_id == from_user_id,
                Request.to_user_id == to_user_id,
                (Request.status == RequestStatus.PENDING.value)
                | (
                    (Request.status == RequestStatus.ACCEPTED.value)
                    & (Session.status != SessionStatus.DONE.value)
                ),
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise DuplicateRequest("You already have an active booking request with this user.")

    async def accept_request(self, request_id: IdLike, acting_email: str) -> Acceptance:
        """
        Recipient accepts: request -> ACCEPTED and exactly one Session is created.

        No tokens move; the sender already paid on send. The session minutes
        are booked to both parties in the minute ledger.
        """
        request_id = as_uuid(request_id, "Request")

        async with self.session_factory() as db:
            async with db.begin():
                actor = await require_user(db, acting_email)
                request = await request_machine.load_request(db, request_id)
                request_machine.ensure_recipient(request, actor.id, "accept")
                request_machine.ensure_pending(request)

                session = session_machine.new_session_from_request(request)
                db.add(session)
                await db.flush()

                await request_machine.transition(
                    db, request, RequestStatus.ACCEPTED, session_id=session.id
                )
                await record_session_minutes(db, session)
                await db.refresh(session)

        logger.info(f"Request {request.id} accepted; session {session.id} created")
        return Acceptance(request=request, session=session)

    async def decline_request(self, request_id: IdLike, acting_email: str) -> Request:
        """Recipient declines: request -> DECLINED and the sender is refunded"""
        return await self._resolve_with_refund(
            request_id, acting_email, RequestStatus.DECLINED, "decline"
        )

    async def cancel_request(self, request_id: IdLike, acting_email: str) -> Request:
        """Sender withdraws: request -> CANCELLED and the sender is refunded"""
        return await self._resolve_with_refund(
            request_id, acting_email, RequestStatus.CANCELLED, "cancel"
        )

    async def _resolve_with_refund(
        self,
        request_id: IdLike,
        acting_email: str,
        target: RequestStatus,
        action: str,
    ) -> Request:
        request_id = as_uuid(request_id, "Request")

        async with self.session_factory() as db:
            async with db.begin():
                actor = await require_user(db, acting_email)
                request = await request_machine.load_request(db, request_id)
                if target == RequestStatus.CANCELLED:
                    request_machine.ensure_sender(request, actor.id, action)
                else:
                    request_machine.ensure_recipient(request, actor.id, action)
                request_machine.ensure_pending(request)

                await request_machine.transition(db, request, target)
                refunded = await refund_request(db, self.ledger, request)

        logger.info(f"Request {request.id} {target.value.lower()}; refunded {refunded} token(s)")
        return request

    async def schedule_session(
        self,
        session_id: IdLike,
        acting_email: str,
        start_at: Union[str, datetime],
    ) -> Session:
        """Either party sets or overwrites the start time of an undone session"""
        session_id = as_uuid(session_id, "Session")
        start = session_machine.parse_start_at(start_at)

        async with self.session_factory() as db:
            async with db.begin():
                actor = await require_user(db, acting_email)
                session = await session_machine.load_session(db, session_id)
                session_machine.ensure_party(session, actor.id)
                session_machine.ensure_not_done(session)
                await session_machine.schedule(db, session, start)

        logger.info(f"Session {session.id} scheduled for {start.isoformat()}")
        return session

    async def complete_session(self, session_id: IdLike, acting_email: str) -> Session:
        """
        Either party marks the session done; the teacher earns
        floor(minutes / MINUTES_PER_TOKEN) tokens exactly once.

        Raises:
            AlreadyCompleted: On any call after the first success
        """
        session_id = as_uuid(session_id, "Session")

        async with self.session_factory() as db:
            async with db.begin():
                actor = await require_user(db, acting_email)
                session = await session_machine.load_session(db, session_id)
                session_machine.ensure_party(session, actor.id)
                await session_machine.complete(db, session)

                earned = session_machine.tokens_for_minutes(session.minutes)
                if earned > 0:
                    await self.ledger.credit(
                        db,
                        session.teacher_id,
                        earned,
                        LedgerReason.SESSION_TAUGHT,
                        session_id=session.id,
                    )

        logger.info(f"Session {session.id} completed; teacher earned {earned} token(s)")
        return session


# Singleton instance
_engine_instance: Optional[ExchangeEngine] = None


def get_exchange_engine() -> ExchangeEngine:
    """Get singleton instance of ExchangeEngine"""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = ExchangeEngine()
    return _engine_instance
