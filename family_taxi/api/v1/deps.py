"""
Request dependencies: the authenticated principal and per-request services.
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from family_taxi.core.database import get_db
from family_taxi.core.exceptions import NotAuthenticatedError, NotAuthorizedError
from family_taxi.core.security import decode_access_token
from family_taxi.models.user import User, UserRole
from family_taxi.repositories.users import UserRepository
from family_taxi.services.trip_lifecycle import TripLifecycle

bearer_scheme = HTTPBearer(auto_error=False)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the bearer token to a freshly loaded user."""
    if credentials is None:
        raise NotAuthenticatedError("Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    user = await UserRepository(db).get(user_id)
    if not user:
        raise NotAuthenticatedError("Account no longer exists")
    return user

def require_role(role: UserRole, message: str):
    """Build a dependency that admits only users with ``role``."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise NotAuthorizedError(message)
        return user

    return dependency

require_passenger = require_role(UserRole.PASSENGER, "Not a passenger")
require_driver = require_role(UserRole.DRIVER, "Not a driver")
require_admin = require_role(UserRole.ADMIN, "Not an admin")

def get_lifecycle(db: AsyncSession = Depends(get_db)) -> TripLifecycle:
    return TripLifecycle(db)
