"""
Token Ledger

Owns each user's token balance and the append-only history of balance
changes. The balance is cached on users.token_balance and is only ever
written by the conditional UPDATE statements below, in the same transaction
that inserts the matching ledger entry, so the cache always equals the sum
of the user's entries.

credit() and debit() never open or commit transactions themselves: callers
pass the AsyncSession of the state transition the movement belongs to.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swap.database import AsyncSessionLocal
from swap.models.user import User
from swap.models.token_ledger import TokenLedgerEntry, LedgerReason
from swap.services.errors import InsufficientBalance, NotFound, ValidationError

logger = logging.getLogger(__name__)


class Ledger:
    """Token balances and their entry history"""

    def _check_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError(f"Ledger amounts must be positive integers, got {amount!r}")

    async def balance_of(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        """Current cached balance; raises NotFound for an unknown user"""
        result = await db.execute(select(User.token_balance).where(User.id == user_id))
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFound("User not found")
        return balance

    async def entry_sum(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        """Authoritative balance recomputed from the entries"""
        result = await db.execute(
            select(func.coalesce(func.sum(TokenLedgerEntry.delta), 0)).where(
                TokenLedgerEntry.user_id == user_id
            )
        )
        return int(result.scalar_one())

    async def credit(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        amount: int,
        reason: LedgerReason,
        request_id: Optional[uuid.UUID] = None,
        session_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
    ) -> TokenLedgerEntry:
        """Add amount tokens to user_id"""
        self._check_amount(amount)

        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(token_balance=User.token_balance + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("User not found")

        return await self._append(db, user_id, amount, reason, request_id, session_id, note)

    async def debit(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        amount: int,
        reason: LedgerReason,
        request_id: Optional[uuid.UUID] = None,
        session_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
    ) -> TokenLedgerEntry:
        """
        Remove amount tokens from user_id.

        The balance check and the decrement are one conditional UPDATE, so two
        concurrent debits can never both pass a check against the same balance.

        Raises:
            InsufficientBalance: If the balance is below amount
        """
        self._check_amount(amount)

        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.token_balance >= amount)
            .values(token_balance=User.token_balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Distinguish a missing user from a short balance
            await self.balance_of(db, user_id)
            raise InsufficientBalance(
                "Insufficient token balance.",
                details={"required": amount},
            )

        return await self._append(db, user_id, -amount, reason, request_id, session_id, note)

    async def _append(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        delta: int,
        reason: LedgerReason,
        request_id: Optional[uuid.UUID],
        session_id: Optional[uuid.UUID],
        note: Optional[str],
    ) -> TokenLedgerEntry:
        entry = TokenLedgerEntry(
            user_id=user_id,
            delta=delta,
            reason=LedgerReason(reason).value,
            request_id=request_id,
            session_id=session_id,
            note=note,
        )
        db.add(entry)
        await db.flush()
        logger.debug(f"Ledger {entry.reason} {delta:+d} for user {user_id}")
        return entry

    async def entries_for(self, db: AsyncSession, user_id: uuid.UUID) -> List[TokenLedgerEntry]:
        """All entries for a user, newest first"""
        result = await db.execute(
            select(TokenLedgerEntry)
            .where(TokenLedgerEntry.user_id == user_id)
            .order_by(TokenLedgerEntry.created_at.desc(), TokenLedgerEntry.id)
        )
        return list(result.scalars().all())

    async def reconcile(
        self,
        session_factory: Optional[async_sessionmaker] = None,
    ) -> Dict[str, Any]:
        """
        Compare every cached balance with its entry sum.

        Read-only: drift is reported and logged, never repaired here.

        Returns:
            Dict with users_checked and a list of drifted users
        """
        factory = session_factory or AsyncSessionLocal
        async with factory() as db:
            sums = (
                select(
                    TokenLedgerEntry.user_id.label("user_id"),
                    func.sum(TokenLedgerEntry.delta).label("total"),
                )
                .group_by(TokenLedgerEntry.user_id)
                .subquery()
            )
            result = await db.execute(
                select(User.id, User.email, User.token_balance, func.coalesce(sums.c.total, 0))
                .outerjoin(sums, sums.c.user_id == User.id)
            )
            rows = result.all()

        drifted = [
            {"user_id": str(user_id), "email": email, "cached": cached, "entries": int(total)}
            for user_id, email, cached, total in rows
            if cached != int(total)
        ]
        for item in drifted:
            logger.error(
                f"Ledger drift for {item['email']}: cached={item['cached']} entries={item['entries']}"
            )

        return {"users_checked": len(rows), "drifted": drifted}


async def ledger_snapshot(db: AsyncSession, email: str) -> Tuple[int, List[TokenLedgerEntry]]:
    """
    Balance and entries for the ledger views.

    Unknown emails read as an empty ledger rather than an error.
    """
    from swap.services.user_service import find_user_by_email

    user = await find_user_by_email(db, email)
    if user is None:
        return 0, []
    ledger = get_ledger()
    return await ledger.balance_of(db, user.id), await ledger.entries_for(db, user.id)


async def admin_adjust(
    email: str,
    delta: int,
    note: Optional[str] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> Tuple[int, TokenLedgerEntry]:
    """
    Apply an ADMIN_ADJUST entry in its own transaction.

    Returns:
        Tuple of (new balance, entry)

    Raises:
        ValidationError: If delta is zero
        NotFound: Unknown email
        InsufficientBalance: A negative delta larger than the balance
    """
    from swap.services.user_service import require_user

    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("Adjustment delta must be a non-zero integer.", details={"delta": delta})

    ledger = get_ledger()
    factory = session_factory or AsyncSessionLocal
    async with factory() as db:
        async with db.begin():
            user = await require_user(db, email)
            if delta > 0:
                entry = await ledger.credit(db, user.id, delta, LedgerReason.ADMIN_ADJUST, note=note)
            else:
                entry = await ledger.debit(db, user.id, -delta, LedgerReason.ADMIN_ADJUST, note=note)
            balance = await ledger.balance_of(db, user.id)

    logger.info(f"Admin adjustment {delta:+d} for {user.email}; balance now {balance}")
    return balance, entry


# Singleton instance
_ledger_instance: Optional[Ledger] = None


def get_ledger() -> Ledger:
    """Get singleton instance of Ledger"""
    global _ledger_instance
    if _ledger_instance is None:
        _ledger_instance = Ledger()
    return _ledger_instance
