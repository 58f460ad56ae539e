"""Read-side listings for the client views (no state changes)"""
from typing import List
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from swap.models.request import Request
from swap.models.session import Session, SessionStatus
from swap.models.user import User
from swap.services.user_service import find_user_by_email


def _hide_finished(stmt):
    # Requests whose linked session is done drop out of the inbox/sent views
    return stmt.outerjoin(Session, Session.id == Request.session_id).where(
        or_(Request.session_id.is_(None), Session.status != SessionStatus.DONE.value)
    )


async def inbox_for(db: AsyncSession, email: str) -> List[Request]:
    """Requests addressed to the user, newest first"""
    user = await find_user_by_email(db, email)
    if user is None:
        return []
    stmt = _hide_finished(select(Request).where(Request.to_user_id == user.id))
    result = await db.execute(stmt.order_by(Request.created_at.desc()))
    return list(result.scalars().all())


async def sent_for(db: AsyncSession, email: str) -> List[Request]:
    """Requests sent by the user, newest first"""
    user = await find_user_by_email(db, email)
    if user is None:
        return []
    stmt = _hide_finished(select(Request).where(Request.from_user_id == user.id))
    result = await db.execute(stmt.order_by(Request.created_at.desc()))
    return list(result.scalars().all())


async def sessions_for(db: AsyncSession, email: str) -> List[Session]:
    """Sessions where the user teaches or learns, newest first"""
    user = await find_user_by_email(db, email)
    if user is None:
        return []
    result = await db.execute(
        select(Session)
        .where(or_(Session.teacher_id == user.id, Session.learner_id == user.id))
        .order_by(Session.created_at.desc())
    )
    return list(result.scalars().all())


async def emails_by_id(db: AsyncSession, user_ids) -> dict:
    """Map user ids to emails for response payloads"""
    ids = {i for i in user_ids if i is not None}
    if not ids:
        return {}
    result = await db.execute(select(User.id, User.email).where(User.id.in_(ids)))
    return {user_id: email for user_id, email in result.all()}
