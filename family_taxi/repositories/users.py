"""
User persistence.
"""

from typing import List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from family_taxi.models.user import User, UserRole
from family_taxi.models.location import Location

class UserRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> Optional[User]:
        query = (
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def list_all(self, role: Optional[UserRole] = None) -> List[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        result = await self.db.execute(query.order_by(User.id))
        return list(result.scalars().all())

    async def create(
        self,
        username: str,
        password_hash: str,
        role: UserRole,
        full_name: str,
        email: str,
        phone: str,
        profile_picture: Optional[str] = None
    ) -> User:
        user = User(
            username=username,
            password_hash=password_hash,
            role=role,
            full_name=full_name,
            email=email,
            phone=phone,
            profile_picture=profile_picture,
            rating=5.0,
            trip_count=0,
            is_online=False
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update_location(self, user_id: int, latitude: float, longitude: float) -> Optional[User]:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(current_latitude=latitude, current_longitude=longitude)
            .execution_options(synchronize_session=False)
        )
        return await self.get(user_id)

    async def set_online(self, user_id: int, is_online: bool) -> Optional[User]:
        await self.db.execute(
            update(User)
            .where(User.id == user_id, User.role == UserRole.DRIVER)
            .values(is_online=is_online)
            .execution_options(synchronize_session=False)
        )
        return await self.get(user_id)

    async def increment_trip_count(self, user_id: int) -> None:
        # Single statement so concurrent completions don't lose an increment
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(trip_count=User.trip_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def set_rating(self, user_id: int, rating: float) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(rating=rating)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, user_id: int) -> None:
        """Remove a user and the places they saved."""
        await self.db.execute(delete(Location).where(Location.user_id == user_id))
        await self.db.execute(delete(User).where(User.id == user_id))
