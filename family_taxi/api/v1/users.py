"""
User management API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from family_taxi.core.database import get_db
from family_taxi.core.exceptions import FamilyTaxiError, NotFoundError
from family_taxi.models.user import User
from family_taxi.repositories.users import UserRepository
from family_taxi.api.v1.deps import get_current_user
from family_taxi.api.v1.schemas import UserResponse, LocationUpdate

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get user by ID."""

    user = await UserRepository(db).get(user_id)
    if not user:
        raise NotFoundError("User not found")

    return user

@router.post("/user/location", response_model=UserResponse)
async def update_location(
    location: LocationUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Record the caller's current coordinates."""

    try:
        user = await UserRepository(db).update_location(
            current_user.id,
            location.latitude,
            location.longitude
        )
        if not user:
            raise NotFoundError("User not found")

        await db.commit()
        logger.debug(f"Location updated: user {user.id}")

        return user

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error updating location: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating location"
        )
