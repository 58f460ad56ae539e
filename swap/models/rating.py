"""Rating model - Learner's 1-5 rating of the teacher of a completed session"""
import enum
import uuid
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Index, Uuid

from swap.database import Base, utcnow


class RatingCategory(str, enum.Enum):
    SKILL = "skill"
    COURSE = "course"


class Rating(Base):
    """One rating per (session, rater)"""

    __tablename__ = "ratings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    rater_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    rated_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="RESTRICT"), nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    category = Column(String(10), nullable=False, default=RatingCategory.COURSE.value)
    skill_or_course = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_ratings_range"),
        CheckConstraint("rater_id <> rated_id", name="ck_ratings_not_self"),
        CheckConstraint("category IN ('skill', 'course')", name="ck_ratings_category"),
        UniqueConstraint("session_id", "rater_id", name="uq_ratings_session_rater"),
        Index("idx_ratings_rated_category", "rated_id", "category"),
    )

    def __repr__(self):
        return f"<Rating(rated={self.rated_id}, rating={self.rating}, session={self.session_id})>"
