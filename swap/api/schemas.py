"""
Pydantic request/response models

Payloads use camelCase on the wire to match the client; snake_case names are
accepted on input as well.
"""
import uuid
from datetime import datetime
from typing import Annotated, Dict, List, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from swap.database import as_utc

UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Request bodies


class UserUpsertBody(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    name: Optional[str] = Field(None, max_length=200)
    university: Optional[str] = Field(None, max_length=200)
    timezone: Optional[str] = Field(None, max_length=64)
    image: Optional[str] = Field(None, max_length=1000)


class CreateRequestBody(CamelModel):
    from_email: str = Field(..., min_length=3, max_length=320)
    to_email: str = Field(..., min_length=3, max_length=320)
    course_code: str = Field(..., min_length=1, max_length=100)
    minutes: Optional[int] = Field(None, description="Defaults to DEFAULT_REQUEST_MINUTES")
    note: Optional[str] = Field(None, max_length=2000)


class ActBody(CamelModel):
    acting_email: str = Field(..., min_length=3, max_length=320)


class ScheduleBody(ActBody):
    start_at: str = Field(..., description="ISO-8601 start time; naive values are UTC")


class AdjustBody(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    delta: int
    note: Optional[str] = Field(None, max_length=500)


# Responses


class UserResponse(CamelModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None
    university: Optional[str] = None
    timezone: Optional[str] = None
    image: Optional[str] = None
    token_balance: int
    created_at: UtcDatetime


class RequestResponse(CamelModel):
    id: uuid.UUID
    from_user_id: uuid.UUID
    to_user_id: uuid.UUID
    from_email: Optional[str] = None
    to_email: Optional[str] = None
    course_code: str
    minutes: int
    note: Optional[str] = None
    status: str
    version: int
    session_id: Optional[uuid.UUID] = None
    created_at: UtcDatetime
    resolved_at: Optional[UtcDatetime] = None


class SessionResponse(CamelModel):
    id: uuid.UUID
    teacher_id: uuid.UUID
    learner_id: uuid.UUID
    teacher_email: Optional[str] = None
    learner_email: Optional[str] = None
    course_code: str
    minutes: int
    status: str
    version: int
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime


class AcceptResponse(RequestResponse):
    """Accepted request with the session it created"""
    session: SessionResponse


class LedgerEntryResponse(CamelModel):
    id: uuid.UUID
    delta: int
    reason: str
    request_id: Optional[uuid.UUID] = None
    session_id: Optional[uuid.UUID] = None
    note: Optional[str] = None
    created_at: UtcDatetime


class TokensResponse(CamelModel):
    tokens: int
    entries: List[LedgerEntryResponse]


class AdjustResponse(CamelModel):
    balance: int
    entry: LedgerEntryResponse


class NotificationCounts(CamelModel):
    requests: int = Field(..., ge=0)
    sessions: int = Field(..., ge=0)
    chat: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


class ReminderResponse(CamelModel):
    session_id: Optional[str] = None
    course_code: str
    start_at: str
    fire_at: str
    message: str


class TimeCreditEntryResponse(CamelModel):
    id: uuid.UUID
    session_id: uuid.UUID
    delta_minutes: int
    reason: str
    created_at: UtcDatetime


class MinuteLedgerResponse(CamelModel):
    """Minutes taught minus minutes taken"""
    balance: int
    entries: List[TimeCreditEntryResponse]


class CreateRatingBody(CamelModel):
    session_id: str
    rater_email: str = Field(..., min_length=3, max_length=320)
    rated_email: Optional[str] = Field(None, max_length=320)
    rating: int
    review: Optional[str] = Field(None, max_length=2000)
    category: str = Field("course", pattern="^(skill|course)$")
    skill_or_course: Optional[str] = Field(None, max_length=100)


class UpdateRatingBody(CamelModel):
    rater_email: str = Field(..., min_length=3, max_length=320)
    rating: int
    review: Optional[str] = Field(None, max_length=2000)


class RatingResponse(CamelModel):
    id: uuid.UUID
    rater_id: uuid.UUID
    rated_id: uuid.UUID
    session_id: uuid.UUID
    rating: int
    review: Optional[str] = None
    category: str
    skill_or_course: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class RatingStatsResponse(CamelModel):
    average_rating: float
    total_ratings: int
    rating_distribution: Dict[str, int]


class TopRatedResponse(CamelModel):
    user_id: str
    email: str
    name: Optional[str] = None
    average_rating: float
    total_ratings: int


class CanRateResponse(CamelModel):
    can_rate: bool


def request_payload(request, emails: Optional[dict] = None) -> RequestResponse:
    emails = emails or {}
    payload = RequestResponse.model_validate(request)
    payload.from_email = emails.get(request.from_user_id)
    payload.to_email = emails.get(request.to_user_id)
    return payload


def session_payload(session, emails: Optional[dict] = None) -> SessionResponse:
    emails = emails or {}
    payload = SessionResponse.model_validate(session)
    payload.teacher_email = emails.get(session.teacher_id)
    payload.learner_email = emails.get(session.learner_id)
    return payload
