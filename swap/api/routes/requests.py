"""
Request API Endpoints

POST /requests              - Send a request (debits the sender's request cost)
GET  /requests              - Inbox or sent listing for a user
POST /requests/{id}/accept  - Recipient accepts; creates the session
POST /requests/{id}/decline - Recipient declines; sender refunded
POST /requests/{id}/cancel  - Sender withdraws; sender refunded
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from swap.api.auth import resolve_actor, verify_token
from swap.api.schemas import (
    AcceptResponse,
    ActBody,
    CreateRequestBody,
    RequestResponse,
    request_payload,
    session_payload,
)
from swap.database import get_db
from swap.services.exchange_engine import ExchangeEngine, get_exchange_engine
from swap.services.queries import emails_by_id, inbox_for, sent_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["requests"], dependencies=[Depends(verify_token)])


async def participant_emails(db: AsyncSession, request) -> dict:
    return await emails_by_id(db, [request.from_user_id, request.to_user_id])


@router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def send_request(
    body: CreateRequestBody,
    http_request: Request,
    engine: ExchangeEngine = Depends(get_exchange_engine),
    db: AsyncSession = Depends(get_db),
):
    """
    Send a tutoring request.

    Raises:
        400: Self-request, bad minutes, or insufficient tokens
        404: Unknown sender or recipient
        409: An active request to this user already exists
    """
    sender = resolve_actor(http_request, body.from_email)
    request = await engine.send_request(
        sender, body.to_email, body.course_code, body.minutes, body.note
    )
    return request_payload(request, await participant_emails(db, request))


@router.get("", response_model=List[RequestResponse])
async def list_requests(
    email: str = Query(..., description="User whose requests to list"),
    box: str = Query("inbox", pattern="^(inbox|sent)$"),
    db: AsyncSession = Depends(get_db),
):
    """Inbox (addressed to the user) or sent requests, newest first"""
    requests = await (inbox_for(db, email) if box == "inbox" else sent_for(db, email))
    emails = await emails_by_id(
        db, [r.from_user_id for r in requests] + [r.to_user_id for r in requests]
    )
    return [request_payload(r, emails) for r in requests]


@router.post("/{request_id}/accept", response_model=AcceptResponse)
async def accept_request(
    request_id: str,
    body: ActBody,
    http_request: Request,
    engine: ExchangeEngine = Depends(get_exchange_engine),
    db: AsyncSession = Depends(get_db),
):
    actor = resolve_actor(http_request, body.acting_email)
    acceptance = await engine.accept_request(request_id, actor)
    emails = await participant_emails(db, acceptance.request)
    payload = request_payload(acceptance.request, emails)
    return AcceptResponse(**payload.model_dump(), session=session_payload(acceptance.session, emails))


@router.post("/{request_id}/decline", response_model=RequestResponse)
async def decline_request(
    request_id: str,
    body: ActBody,
    http_request: Request,
    engine: ExchangeEngine = Depends(get_exchange_engine),
    db: AsyncSession = Depends(get_db),
):
    actor = resolve_actor(http_request, body.acting_email)
    request = await engine.decline_request(request_id, actor)
    return request_payload(request, await participant_emails(db, request))


@router.post("/{request_id}/cancel", response_model=RequestResponse)
async def cancel_request(
    request_id: str,
    body: ActBody,
    http_request: Request,
    engine: ExchangeEngine = Depends(get_exchange_engine),
    db: AsyncSession = Depends(get_db),
):
    actor = resolve_actor(http_request, body.acting_email)
    request = await engine.cancel_request(request_id, actor)
    return request_payload(request, await participant_emails(db, request))
