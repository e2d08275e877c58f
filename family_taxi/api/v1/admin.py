"""
Admin console API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from family_taxi.core.database import get_db
from family_taxi.core.exceptions import FamilyTaxiError, NotFoundError, PreconditionFailedError
from family_taxi.models.trip import utcnow
from family_taxi.models.user import User, UserRole
from family_taxi.repositories.trips import TripRepository
from family_taxi.repositories.users import UserRepository
from family_taxi.services.accounts import create_account
from family_taxi.api.v1.deps import require_admin
from family_taxi.api.v1.schemas import AdminUserCreate, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List users with optional role filtering."""
    return await UserRepository(db).list_all(role)

@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create an account of any role."""

    return await create_account(
        db,
        username=data.username,
        password=data.password,
        role=data.role,
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        profile_picture=data.profile_picture
    )

@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a non-admin account.

    The user's unfinished passenger trips are cancelled and any trip they
    are driving goes back to the pending pool so another driver can take it.
    """

    if user_id == admin.id:
        raise PreconditionFailedError("Cannot delete your own account")

    users = UserRepository(db)
    user = await users.get(user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.role == UserRole.ADMIN:
        raise PreconditionFailedError("Cannot delete admin accounts")

    try:
        trips = TripRepository(db)
        cancelled = await trips.cancel_active_for_passenger(user_id, utcnow())
        released = 0
        if user.role == UserRole.DRIVER:
            released = await trips.release_active_for_driver(user_id)

        await users.delete(user_id)
        await db.commit()

        logger.info(
            f"User deleted: {user_id} by admin {admin.id} "
            f"({cancelled} trips cancelled, {released} trips released)"
        )

        return Response(status_code=status.HTTP_204_NO_CONTENT)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error deleting user: {e}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error deleting user"
        )
