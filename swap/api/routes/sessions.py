"""
Session API Endpoints

GET  /sessions                - Sessions where the user teaches or learns
POST /sessions/{id}/schedule  - Set or overwrite the start time
POST /sessions/{id}/done      - Complete; credits the teacher
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from swap.api.auth import resolve_actor, verify_token
from swap.api.schemas import ActBody, ScheduleBody, SessionResponse, session_payload
from swap.database import get_db
from swap.services.exchange_engine import ExchangeEngine, get_exchange_engine
from swap.services.queries import emails_by_id, sessions_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"], dependencies=[Depends(verify_token)])


@router.get("", response_model=List[SessionResponse])
async def list_sessions(
    email: str = Query(..., description="User whose sessions to list"),
    db: AsyncSession = Depends(get_db),
):
    sessions = await sessions_for(db, email)
    emails = await emails_by_id(
        db, [s.teacher_id for s in sessions] + [s.learner_id for s in sessions]
    )
    return [session_payload(s, emails) for s in sessions]


@router.post("/{session_id}/schedule", response_model=SessionResponse)
async def schedule_session(
    session_id: str,
    body: ScheduleBody,
    http_request: Request,
    engine: ExchangeEngine = Depends(get_exchange_engine),
    db: AsyncSession = Depends(get_db),
):
    """Either party may (re)schedule until the session is done"""
    actor = resolve_actor(http_request, body.acting_email)
    session = await engine.schedule_session(session_id, actor, body.start_at)
    return session_payload(session, await emails_by_id(db, [session.teacher_id, session.learner_id]))


@router.post("/{session_id}/done", response_model=SessionResponse)
async def complete_session(
    session_id: str,
    body: ActBody,
    http_request: Request,
    engine: ExchangeEngine = Depends(get_exchange_engine),
    db: AsyncSession = Depends(get_db),
):
    """
    Mark the session done and credit the teacher.

    A repeated call returns 409 ALREADY_COMPLETED and credits nothing.
    """
    actor = resolve_actor(http_request, body.acting_email)
    session = await engine.complete_session(session_id, actor)
    return session_payload(session, await emails_by_id(db, [session.teacher_id, session.learner_id]))
