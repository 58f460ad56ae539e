"""TimeCreditEntry model - Minutes taught and taken, written when a request is accepted"""
import enum
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Index, Uuid

from swap.database import Base, utcnow


class TimeCreditReason(str, enum.Enum):
    SESSION_TAUGHT = "SESSION_TAUGHT"
    SESSION_TAKEN = "SESSION_TAKEN"


class TimeCreditEntry(Base):
    """Signed minutes for one party of one session; the teacher gains what the learner spends"""

    __tablename__ = "time_credits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="RESTRICT"), nullable=False)
    delta_minutes = Column(Integer, nullable=False)
    reason = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("delta_minutes <> 0", name="ck_time_credits_delta_nonzero"),
        CheckConstraint("reason IN ('SESSION_TAUGHT', 'SESSION_TAKEN')", name="ck_time_credits_reason"),
        UniqueConstraint("session_id", "user_id", name="uq_time_credits_session_user"),
        Index("idx_time_credits_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<TimeCreditEntry(user={self.user_id}, minutes={self.delta_minutes:+d}, reason={self.reason})>"
