"""
Saved location API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from family_taxi.core.database import get_db
from family_taxi.models.user import User
from family_taxi.repositories.locations import LocationRepository
from family_taxi.api.v1.deps import get_current_user
from family_taxi.api.v1.schemas import LocationCreate, LocationResponse, LocationSearch

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("", response_model=List[LocationResponse])
async def list_locations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's saved places."""
    return await LocationRepository(db).list_for_user(current_user.id)

@router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def create_location(
    data: LocationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        location = await LocationRepository(db).create(
            user_id=current_user.id,
            name=data.name,
            address=data.address,
            latitude=data.latitude,
            longitude=data.longitude,
            is_favorite=data.is_favorite
        )
        await db.commit()

        logger.info(f"Location created: {location.id} for user {current_user.id}")

        return location

    except Exception as e:
        logger.error(f"Error creating location: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating location"
        )

@router.post("/search", response_model=List[LocationResponse])
async def search_locations(
    search: LocationSearch,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Search the caller's saved places by name or address."""
    return await LocationRepository(db).search(current_user.id, search.query)
