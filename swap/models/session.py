"""Session model - Confirmed teaching engagement created from an accepted request"""
import enum
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, CheckConstraint, Index, Uuid

from swap.database import Base, utcnow


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    DONE = "done"


class Session(Base):
    """Tutoring session between a teacher and a learner"""

    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    learner_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    course_code = Column(String(100), nullable=False)
    minutes = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value)
    version = Column(Integer, nullable=False, default=1)
    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Indexes for performance
    __table_args__ = (
        CheckConstraint("minutes > 0", name="ck_sessions_minutes_positive"),
        CheckConstraint("status IN ('scheduled', 'done')", name="ck_sessions_status"),
        Index("idx_sessions_teacher", "teacher_id"),
        Index("idx_sessions_learner", "learner_id"),
        Index("idx_sessions_start", "start_at"),
    )

    def __repr__(self):
        return f"<Session(id={self.id}, course={self.course_code}, status={self.status})>"
