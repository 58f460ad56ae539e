"""
Notification API Endpoints

GET /notifications?email=           - Badge counts for requests, sessions and chat
GET /notifications/reminders?email= - Session reminders due within the window
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from swap.api.auth import verify_token
from swap.api.schemas import NotificationCounts, ReminderResponse, session_payload
from swap.database import get_db, utcnow
from swap.services.notifications import aggregate_notifications, plan_session_reminders
from swap.services.queries import inbox_for, sessions_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[Depends(verify_token)])


@router.get("", response_model=NotificationCounts)
async def get_notification_counts(
    email: str = Query(..., description="User email"),
    db: AsyncSession = Depends(get_db),
):
    inbox = await inbox_for(db, email)
    sessions = [session_payload(s) for s in await sessions_for(db, email)]
    return NotificationCounts(**aggregate_notifications(inbox, sessions, utcnow()))


@router.get("/reminders", response_model=List[ReminderResponse])
async def get_session_reminders(
    email: str = Query(..., description="User email"),
    db: AsyncSession = Depends(get_db),
):
    sessions = [session_payload(s) for s in await sessions_for(db, email)]
    return [ReminderResponse.model_validate(r) for r in plan_session_reminders(sessions, utcnow())]
