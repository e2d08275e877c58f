"""
Account creation and login shared by self-registration, the admin console and startup.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from family_taxi.core.config import settings
from family_taxi.core.exceptions import ConflictError, NotAuthenticatedError
from family_taxi.core.security import hash_password, verify_password
from family_taxi.models.user import User, UserRole
from family_taxi.repositories.users import UserRepository

logger = logging.getLogger(__name__)

async def create_account(
    db: AsyncSession,
    username: str,
    password: str,
    role: UserRole,
    full_name: str,
    email: str,
    phone: str,
    profile_picture: Optional[str] = None
) -> User:
    users = UserRepository(db)
    if await users.get_by_username(username):
        raise ConflictError("Username already exists")

    try:
        user = await users.create(
            username=username,
            password_hash=hash_password(password),
            role=role,
            full_name=full_name,
            email=email,
            phone=phone,
            profile_picture=profile_picture
        )
        await db.commit()
    except IntegrityError:
        # A concurrent registration took the name after our lookup
        await db.rollback()
        logger.warning(f"Username taken during registration: {username}")
        raise ConflictError("Username already exists")

    logger.info(f"User created: {user.id} ({user.role.value})")
    return user

async def authenticate(db: AsyncSession, username: str, password: str) -> User:
    user = await UserRepository(db).get_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        raise NotAuthenticatedError("Invalid username or password")
    return user

async def ensure_default_admin(db: AsyncSession) -> Optional[User]:
    """Create the configured admin account if it does not exist yet."""
    if await UserRepository(db).get_by_username(settings.DEFAULT_ADMIN_USERNAME):
        return None

    logger.info("Creating default admin account...")
    return await create_account(
        db,
        username=settings.DEFAULT_ADMIN_USERNAME,
        password=settings.DEFAULT_ADMIN_PASSWORD,
        role=UserRole.ADMIN,
        full_name="System Administrator",
        email=settings.DEFAULT_ADMIN_EMAIL,
        phone="0000000000"
    )
