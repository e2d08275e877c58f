"""
Authentication API endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from family_taxi.core.database import get_db
from family_taxi.core.security import create_access_token
from family_taxi.models.user import User, UserRole
from family_taxi.services.accounts import create_account, authenticate
from family_taxi.api.v1.deps import get_current_user
from family_taxi.api.v1.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, UserResponse, MessageResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """Self-registration. Always creates a passenger account and logs it in."""

    user = await create_account(
        db,
        username=data.username,
        password=data.password,
        role=UserRole.PASSENGER,
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        profile_picture=data.profile_picture
    )
    return TokenResponse(
        access_token=create_access_token(user.id),
        user=UserResponse.model_validate(user)
    )

@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange username and password for a bearer token."""

    user = await authenticate(db, credentials.username, credentials.password)
    logger.info(f"User logged in: {user.id}")

    return TokenResponse(
        access_token=create_access_token(user.id),
        user=UserResponse.model_validate(user)
    )

@router.post("/logout", response_model=MessageResponse)
async def logout(user: User = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy."""
    logger.info(f"User logged out: {user.id}")
    return {"message": "Logged out"}

@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user
