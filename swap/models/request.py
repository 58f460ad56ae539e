"""Request model - Tutoring proposal from one user to another"""
import enum
import uuid
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, CheckConstraint, Index, Uuid

from swap.database import Base, utcnow


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Request(Base):
    """Session request; version is bumped on every status transition"""

    __tablename__ = "requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    from_user_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    to_user_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    course_code = Column(String(100), nullable=False)
    minutes = Column(Integer, nullable=False, default=60)
    note = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=RequestStatus.PENDING.value)
    version = Column(Integer, nullable=False, default=1)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="SET NULL"), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name="ck_requests_not_self"),
        CheckConstraint("minutes > 0", name="ck_requests_minutes_positive"),
        CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'DECLINED', 'CANCELLED', 'EXPIRED')",
            name="ck_requests_status",
        ),
        Index("idx_requests_to_status", "to_user_id", "status"),
        Index("idx_requests_from_status", "from_user_id", "status"),
        Index("idx_requests_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<Request(id={self.id}, course={self.course_code}, status={self.status})>"
