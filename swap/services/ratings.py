"""
Rating Service

Learners rate the teacher of a completed session from 1 to 5 with an
optional review. One rating per (session, rater); the rater may later edit
or delete it. Stats are computed over a user's received ratings.

Public operations:
    create_rating, update_rating, delete_rating, ratings_for, rating_stats,
    can_rate, top_rated
"""
import logging
import math
import uuid
from typing import Any, Dict, List, Optional, Union
from sqlalchemy import select, func, true
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swap.database import AsyncSessionLocal
from swap.models.rating import Rating, RatingCategory
from swap.models.session import Session, SessionStatus
from swap.models.user import User
from swap.services import session_machine
from swap.services.errors import AlreadyRated, NotAuthorized, NotFound, ValidationError
from swap.services.exchange_engine import as_uuid
from swap.services.user_service import find_user_by_email, normalize_email, require_user

logger = logging.getLogger(__name__)

IdLike = Union[uuid.UUID, str]

# Users need this many ratings to appear in the top-rated list
TOP_RATED_MIN_COUNT = 3


def round_half_up(value: float, digits: int = 1) -> float:
    """Round to one decimal the way the client displays averages (4.25 -> 4.3)"""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def validate_score(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5.", details={"rating": rating})
    return rating


def validate_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    try:
        return RatingCategory(category).value
    except ValueError:
        raise ValidationError("Category must be 'skill' or 'course'.", details={"category": category})


def empty_stats() -> Dict[str, Any]:
    return {
        "averageRating": 0,
        "totalRatings": 0,
        "ratingDistribution": {str(score): 0 for score in range(1, 6)},
    }


class RatingService:
    """Session ratings and per-user rating statistics"""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or AsyncSessionLocal

    async def create_rating(
        self,
        session_id: IdLike,
        rater_email: str,
        rating: int,
        review: Optional[str] = None,
        category: str = RatingCategory.COURSE.value,
        rated_email: Optional[str] = None,
        skill_or_course: Optional[str] = None,
    ) -> Rating:
        """
        Rate the teacher of a completed session.

        Raises:
            NotFound: Unknown session or rater
            ValidationError: Session not done, bad score or category, or
                rated_email is not the session's teacher
            NotAuthorized: Rater is not the session's learner
            AlreadyRated: Rater already rated this session
        """
        session_id = as_uuid(session_id, "Session")
        score = validate_score(rating)
        category = validate_category(category)

        try:
            async with self.session_factory() as db:
                async with db.begin():
                    rater = await require_user(db, rater_email)
                    session = await session_machine.load_session(db, session_id)

                    if session.status != SessionStatus.DONE.value:
                        raise ValidationError("Ratings can only be created for completed sessions.")
                    if session.learner_id != rater.id:
                        raise NotAuthorized("Only learners can rate their teachers after session completion.")
                    if rated_email is not None:
                        rated = await require_user(db, rated_email)
                        if rated.id == rater.id:
                            raise ValidationError("Users cannot rate themselves.")
                        if rated.id != session.teacher_id:
                            raise ValidationError("Can only rate the teacher from this session.")

                    await self._ensure_not_rated(db, session.id, rater.id)

                    entry = Rating(
                        id=uuid.uuid4(),
                        rater_id=rater.id,
                        rated_id=session.teacher_id,
                        session_id=session.id,
                        rating=score,
                        review=review,
                        category=category,
                        skill_or_course=(skill_or_course or session.course_code).strip(),
                    )
                    db.add(entry)
                    await db.flush()
                    await db.refresh(entry)
        except IntegrityError:
            # Concurrent duplicate lost on the unique (session, rater) constraint
            raise AlreadyRated("You have already rated this user for this session.")

        logger.info(f"Session {session_id} rated {score} by {rater.email}")
        return entry

    async def _ensure_not_rated(self, db: AsyncSession, session_id: uuid.UUID, rater_id: uuid.UUID) -> None:
        result = await db.execute(
            select(Rating.id).where(Rating.session_id == session_id, Rating.rater_id == rater_id)
        )
        if result.scalar_one_or_none() is not None:
            raise AlreadyRated("You have already rated this user for this session.")

    async def _load_own_rating(self, db: AsyncSession, rating_id: IdLike, rater_email: str, action: str) -> Rating:
        rating_id = as_uuid(rating_id, "Rating")
        rater = await require_user(db, rater_email)
        result = await db.execute(select(Rating).where(Rating.id == rating_id))
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFound("Rating not found")
        if entry.rater_id != rater.id:
            raise NotAuthorized(f"You can only {action} your own ratings.")
        return entry

    async def update_rating(
        self,
        rating_id: IdLike,
        rater_email: str,
        rating: int,
        review: Optional[str] = None,
    ) -> Rating:
        score = validate_score(rating)
        async with self.session_factory() as db:
            async with db.begin():
                entry = await self._load_own_rating(db, rating_id, rater_email, "update")
                entry.rating = score
                entry.review = review
                await db.flush()
                await db.refresh(entry)
        return entry

    async def delete_rating(self, rating_id: IdLike, rater_email: str) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                entry = await self._load_own_rating(db, rating_id, rater_email, "delete")
                await db.delete(entry)
        logger.info(f"Rating {entry.id} deleted by {normalize_email(rater_email)}")

    async def ratings_for(self, email: str, category: Optional[str] = None) -> List[Rating]:
        """Ratings the user received, newest first; [] for unknown emails"""
        category = validate_category(category)
        async with self.session_factory() as db:
            user = await find_user_by_email(db, email)
            if user is None:
                return []
            stmt = select(Rating).where(Rating.rated_id == user.id)
            if category:
                stmt = stmt.where(Rating.category == category)
            result = await db.execute(stmt.order_by(Rating.created_at.desc()))
            return list(result.scalars().all())

    async def rating_stats(self, email: str, category: Optional[str] = None) -> Dict[str, Any]:
        """
        Average (one decimal), count and 1-5 distribution of received ratings.

        Returns:
            Dict with averageRating, totalRatings, ratingDistribution
        """
        ratings = await self.ratings_for(email, category)
        if not ratings:
            return empty_stats()

        stats = empty_stats()
        for entry in ratings:
            stats["ratingDistribution"][str(entry.rating)] += 1
        stats["totalRatings"] = len(ratings)
        stats["averageRating"] = round_half_up(sum(r.rating for r in ratings) / len(ratings))
        return stats

    async def can_rate(self, session_id: IdLike, email: str) -> bool:
        """True if the user is the learner of a done session they have not rated yet"""
        try:
            session_id = as_uuid(session_id, "Session")
        except NotFound:
            return False

        async with self.session_factory() as db:
            user = await find_user_by_email(db, email)
            session = await db.get(Session, session_id)
            if user is None or session is None:
                return False
            if session.status != SessionStatus.DONE.value or session.learner_id != user.id:
                return False
            result = await db.execute(
                select(Rating.id).where(Rating.session_id == session.id, Rating.rater_id == user.id)
            )
            return result.scalar_one_or_none() is None

    async def top_rated(self, category: Optional[str] = None, limit: int = 10) -> List[Dict[str, Any]]:
        """Users with at least TOP_RATED_MIN_COUNT ratings, best average first"""
        category = validate_category(category)
        average = func.avg(Rating.rating)
        count = func.count(Rating.id)

        stmt = (
            select(User.id, User.email, User.name, average.label("average"), count.label("total"))
            .select_from(Rating)
            .join(User, User.id == Rating.rated_id)
            .where(Rating.category == category if category else true())
            .group_by(User.id, User.email, User.name)
            .having(count >= TOP_RATED_MIN_COUNT)
            .order_by(average.desc(), User.email)
            .limit(limit)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            rows = result.all()

        return [
            {
                "userId": str(user_id),
                "email": email,
                "name": name,
                "averageRating": round_half_up(float(avg)),
                "totalRatings": total,
            }
            for user_id, email, name, avg, total in rows
        ]


# Singleton instance
_rating_service_instance: Optional[RatingService] = None


def get_rating_service() -> RatingService:
    """Get singleton instance of RatingService"""
    global _rating_service_instance
    if _rating_service_instance is None:
        _rating_service_instance = RatingService()
    return _rating_service_instance
