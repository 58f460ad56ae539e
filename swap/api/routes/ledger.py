"""
Ledger API Endpoints

GET  /ledger?email=  - {balance, entries}: minutes taught minus minutes taken
GET  /tokens?email=  - {tokens, entries}: token balance and token movements
POST /ledger/adjust  - Administrative token credit or debit (requires SWAP_API_TOKEN)
"""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swap.api.auth import require_admin_token, verify_token
from swap.api.schemas import (
    AdjustBody,
    AdjustResponse,
    LedgerEntryResponse,
    MinuteLedgerResponse,
    TimeCreditEntryResponse,
    TokensResponse,
)
from swap.database import get_db, get_session_factory
from swap.services.ledger import admin_adjust, ledger_snapshot
from swap.services.time_credits import time_credit_snapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ledger"], dependencies=[Depends(verify_token)])


@router.get("/ledger", response_model=MinuteLedgerResponse)
async def get_ledger_view(
    email: str = Query(..., description="User email"),
    db: AsyncSession = Depends(get_db),
):
    """Minute ledger booked when requests are accepted"""
    balance, entries = await time_credit_snapshot(db, email)
    return MinuteLedgerResponse(
        balance=balance,
        entries=[TimeCreditEntryResponse.model_validate(e) for e in entries],
    )


@router.get("/tokens", response_model=TokensResponse)
async def get_tokens_view(
    email: str = Query(..., description="User email"),
    db: AsyncSession = Depends(get_db),
):
    tokens, entries = await ledger_snapshot(db, email)
    return TokensResponse(
        tokens=tokens,
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
    )


@router.post("/ledger/adjust", response_model=AdjustResponse, dependencies=[Depends(require_admin_token)])
async def adjust_tokens(
    body: AdjustBody,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Credit (positive delta) or debit (negative delta) a user's tokens"""
    balance, entry = await admin_adjust(body.email, body.delta, body.note, session_factory)
    return AdjustResponse(balance=balance, entry=LedgerEntryResponse.model_validate(entry))
