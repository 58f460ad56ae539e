"""
Rating API Endpoints

POST   /ratings                          - Learner rates the teacher of a done session
PUT    /ratings/{id}                     - Rater edits their rating
DELETE /ratings/{id}?raterEmail=         - Rater removes their rating
GET    /ratings?email=&category=         - Ratings a user received, newest first
GET    /ratings/stats?email=&category=   - Average, count and 1-5 distribution
GET    /ratings/top-rated                - Best-rated users (minimum 3 ratings)
GET    /ratings/sessions/{id}/can-rate   - Whether the user may rate that session
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status

from swap.api.auth import resolve_actor, verify_token
from swap.api.schemas import (
    CanRateResponse,
    CreateRatingBody,
    RatingResponse,
    RatingStatsResponse,
    TopRatedResponse,
    UpdateRatingBody,
)
from swap.services.ratings import RatingService, get_rating_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ratings", tags=["ratings"], dependencies=[Depends(verify_token)])

CATEGORY_PATTERN = "^(skill|course)$"


@router.post("", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def create_rating(
    body: CreateRatingBody,
    http_request: Request,
    ratings: RatingService = Depends(get_rating_service),
):
    """
    Rate a completed session.

    Raises:
        400: Session not done or score outside 1-5
        403: Rater is not the session's learner
        409: Session already rated by this rater
    """
    rater = resolve_actor(http_request, body.rater_email)
    rating = await ratings.create_rating(
        body.session_id,
        rater,
        body.rating,
        review=body.review,
        category=body.category,
        rated_email=body.rated_email,
        skill_or_course=body.skill_or_course,
    )
    return RatingResponse.model_validate(rating)


@router.get("/stats", response_model=RatingStatsResponse)
async def get_rating_stats(
    email: str = Query(..., description="User whose received ratings to summarize"),
    category: Optional[str] = Query(None, pattern=CATEGORY_PATTERN),
    ratings: RatingService = Depends(get_rating_service),
):
    return RatingStatsResponse.model_validate(await ratings.rating_stats(email, category))


@router.get("/top-rated", response_model=List[TopRatedResponse])
async def get_top_rated(
    category: Optional[str] = Query(None, pattern=CATEGORY_PATTERN),
    limit: int = Query(10, ge=1, le=100),
    ratings: RatingService = Depends(get_rating_service),
):
    return [TopRatedResponse.model_validate(u) for u in await ratings.top_rated(category, limit)]


@router.get("/sessions/{session_id}/can-rate", response_model=CanRateResponse)
async def can_rate_session(
    session_id: str,
    email: str = Query(..., description="Prospective rater"),
    ratings: RatingService = Depends(get_rating_service),
):
    return CanRateResponse(can_rate=await ratings.can_rate(session_id, email))


@router.get("", response_model=List[RatingResponse])
async def list_ratings(
    email: str = Query(..., description="User whose received ratings to list"),
    category: Optional[str] = Query(None, pattern=CATEGORY_PATTERN),
    ratings: RatingService = Depends(get_rating_service),
):
    return [RatingResponse.model_validate(r) for r in await ratings.ratings_for(email, category)]


@router.put("/{rating_id}", response_model=RatingResponse)
async def update_rating(
    rating_id: str,
    body: UpdateRatingBody,
    http_request: Request,
    ratings: RatingService = Depends(get_rating_service),
):
    rater = resolve_actor(http_request, body.rater_email)
    rating = await ratings.update_rating(rating_id, rater, body.rating, body.review)
    return RatingResponse.model_validate(rating)


@router.delete("/{rating_id}")
async def delete_rating(
    rating_id: str,
    http_request: Request,
    rater_email: str = Query(..., alias="raterEmail"),
    ratings: RatingService = Depends(get_rating_service),
):
    rater = resolve_actor(http_request, rater_email)
    await ratings.delete_rating(rating_id, rater)
    return {"message": "Rating deleted successfully"}
