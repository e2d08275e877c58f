"""
Saved location persistence.
"""

from typing import List

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from family_taxi.models.location import Location

class LocationRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: int,
        name: str,
        address: str,
        latitude: float,
        longitude: float,
        is_favorite: bool = False
    ) -> Location:
        location = Location(
            user_id=user_id,
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
            is_favorite=is_favorite
        )
        self.db.add(location)
        await self.db.flush()
        await self.db.refresh(location)
        return location

    async def list_for_user(self, user_id: int) -> List[Location]:
        query = select(Location).where(Location.user_id == user_id).order_by(Location.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def search(self, user_id: int, text: str) -> List[Location]:
        """Case-insensitive substring match on name or address."""
        pattern = f"%{text}%"
        query = (
            select(Location)
            .where(
                Location.user_id == user_id,
                or_(Location.name.ilike(pattern), Location.address.ilike(pattern))
            )
            .order_by(Location.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
