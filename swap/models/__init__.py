"""SQLAlchemy ORM Models for the Swap exchange schema"""
from swap.models.user import User
from swap.models.token_ledger import TokenLedgerEntry, LedgerReason
from swap.models.request import Request, RequestStatus
from swap.models.session import Session, SessionStatus
from swap.models.time_credit import TimeCreditEntry, TimeCreditReason
from swap.models.rating import Rating, RatingCategory

__all__ = [
    "User",
    "TokenLedgerEntry",
    "LedgerReason",
    "Request",
    "RequestStatus",
    "Session",
    "SessionStatus",
    "TimeCreditEntry",
    "TimeCreditReason",
    "Rating",
    "RatingCategory",
]
