"""
Request Expiry Sweep

System-initiated PENDING -> EXPIRED transition for requests older than the
retention horizon (REQUEST_EXPIRY_HOURS). Each request is expired in its own
short transaction under the same guard as accept/decline, so a request that
is accepted while the sweep runs simply stays accepted.
"""
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from swap import config
from swap.database import AsyncSessionLocal, utcnow
from swap.models.request import Request, RequestStatus
from swap.services import request_machine
from swap.services.errors import AlreadyResolved
from swap.services.exchange_engine import refund_request
from swap.services.ledger import Ledger, get_ledger

logger = logging.getLogger(__name__)


def expiry_cutoff(now: Optional[datetime] = None, horizon_hours: Optional[int] = None) -> datetime:
    now = now or utcnow()
    hours = config.REQUEST_EXPIRY_HOURS if horizon_hours is None else horizon_hours
    return now - timedelta(hours=hours)


async def find_stale_requests(
    session_factory: async_sessionmaker,
    cutoff: datetime,
    limit: int = 500,
) -> List[uuid.UUID]:
    async with session_factory() as db:
        result = await db.execute(
            select(Request.id)
            .where(Request.status == RequestStatus.PENDING.value, Request.created_at < cutoff)
            .order_by(Request.created_at)
            .limit(limit)
        )
        return list(result.scalars().all())


async def expire_request(
    request_id: uuid.UUID,
    session_factory: Optional[async_sessionmaker] = None,
    ledger: Optional[Ledger] = None,
) -> bool:
    """
    Expire one request and refund its sender.

    Returns:
        True if this call expired it, False if it was already resolved
    """
    factory = session_factory or AsyncSessionLocal
    ledger = ledger or get_ledger()

    try:
        async with factory() as db:
            async with db.begin():
                request = await request_machine.load_request(db, request_id)
                request_machine.ensure_pending(request)
                await request_machine.transition(db, request, RequestStatus.EXPIRED)
                await refund_request(db, ledger, request)
    except AlreadyResolved:
        return False

    return True


async def expire_stale_requests(
    now: Optional[datetime] = None,
    session_factory: Optional[async_sessionmaker] = None,
    ledger: Optional[Ledger] = None,
    horizon_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Expire every PENDING request created before now - horizon.

    Returns:
        Summary dict with candidates, expired and duration_ms
    """
    start_time = time.time()
    factory = session_factory or AsyncSessionLocal
    cutoff = expiry_cutoff(now, horizon_hours)

    candidates = await find_stale_requests(factory, cutoff)
    expired = 0
    for request_id in candidates:
        if await expire_request(request_id, factory, ledger):
            expired += 1

    duration_ms = (time.time() - start_time) * 1000
    if candidates:
        logger.info(
            f"Expired {expired}/{len(candidates)} stale requests older than "
            f"{cutoff.isoformat()} in {duration_ms:.2f}ms"
        )

    return {
        "cutoff": cutoff.isoformat(),
        "candidates": len(candidates),
        "expired": expired,
        "duration_ms": duration_ms,
    }
