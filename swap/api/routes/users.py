"""
User API Endpoints

POST /users         - Upsert a user by email (first call grants initial tokens)
GET  /users/{email} - Profile with current token balance
"""
import logging
from fastapi import APIRouter, Depends, Path

from swap.api.auth import verify_token
from swap.api.schemas import UserResponse, UserUpsertBody
from swap.services.user_service import UserService, get_user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(verify_token)])


@router.post("", response_model=UserResponse)
async def upsert_user(body: UserUpsertBody, users: UserService = Depends(get_user_service)):
    """Create the user on first sign-in, otherwise update the supplied profile fields"""
    user = await users.upsert(
        body.email,
        name=body.name,
        university=body.university,
        timezone=body.timezone,
        image=body.image,
    )
    return UserResponse.model_validate(user)


@router.get("/{email}", response_model=UserResponse)
async def get_user(
    email: str = Path(..., description="User email (case-insensitive)"),
    users: UserService = Depends(get_user_service),
):
    user = await users.get(email)
    return UserResponse.model_validate(user)
