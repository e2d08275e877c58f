"""
Trip persistence.

Every state change is a single UPDATE whose WHERE clause restates the
transition's precondition (prior status, owning party, unset rating, and for
accept, a driver with no other active trip). The
database applies it atomically, so when two callers race for the same trip
only one UPDATE matches a row; the other sees ``None`` back and reports a
failed precondition.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import exists, select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from family_taxi.models.trip import Trip, TripStatus, ACTIVE_DRIVER_STATUSES, TERMINAL_STATUSES

RECENT_TRIPS_LIMIT = 10

class TripRepository:
    """CRUD and guarded status transitions over the trips table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        passenger_id: int,
        pickup_address: str,
        pickup_latitude: float,
        pickup_longitude: float,
        destination_address: str,
        destination_latitude: float,
        destination_longitude: float,
        distance: float,
        base_fare: float,
        per_km_rate: float,
        total_fare: float
    ) -> Trip:
        trip = Trip(
            passenger_id=passenger_id,
            driver_id=None,
            status=TripStatus.REQUESTED,
            pickup_address=pickup_address,
            pickup_latitude=pickup_latitude,
            pickup_longitude=pickup_longitude,
            destination_address=destination_address,
            destination_latitude=destination_latitude,
            destination_longitude=destination_longitude,
            distance=distance,
            base_fare=base_fare,
            per_km_rate=per_km_rate,
            total_fare=total_fare
        )
        self.db.add(trip)
        await self.db.flush()
        await self.db.refresh(trip)
        return trip

    async def get(self, trip_id: int) -> Optional[Trip]:
        query = (
            select(Trip)
            .where(Trip.id == trip_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def recent_for_passenger(self, passenger_id: int, limit: int = RECENT_TRIPS_LIMIT) -> List[Trip]:
        query = (
            select(Trip)
            .where(Trip.passenger_id == passenger_id)
            .order_by(Trip.requested_at.desc(), Trip.id.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def pending(self) -> List[Trip]:
        """Requested trips with no driver, oldest first."""
        query = (
            select(Trip)
            .where(Trip.status == TripStatus.REQUESTED, Trip.driver_id.is_(None))
            .order_by(Trip.requested_at.asc(), Trip.id.asc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def active_for_driver(self, driver_id: int) -> Optional[Trip]:
        query = (
            select(Trip)
            .where(Trip.driver_id == driver_id, Trip.status.in_(ACTIVE_DRIVER_STATUSES))
            .order_by(Trip.requested_at.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def _guarded_update(self, trip_id: int, conditions: List[Any], **values) -> Optional[Trip]:
        """Apply ``values`` only if the trip still satisfies ``conditions``."""
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get(trip_id)

    async def reaffirm(self, trip_id: int, passenger_id: int) -> Optional[Trip]:
        return await self._guarded_update(
            trip_id,
            [Trip.status == TripStatus.REQUESTED, Trip.passenger_id == passenger_id],
            status=TripStatus.REQUESTED
        )

    async def accept(self, trip_id: int, driver_id: int, now: datetime) -> Optional[Trip]:
        # Aliased so the subquery is not correlated to the row being updated
        held = aliased(Trip)
        driver_busy = exists(
            select(held.id).where(held.driver_id == driver_id, held.status.in_(ACTIVE_DRIVER_STATUSES))
        )
        return await self._guarded_update(
            trip_id,
            [Trip.status == TripStatus.REQUESTED, Trip.driver_id.is_(None), ~driver_busy],
            status=TripStatus.ACCEPTED,
            driver_id=driver_id,
            accepted_at=now
        )

    async def start(self, trip_id: int, driver_id: int, now: datetime) -> Optional[Trip]:
        return await self._guarded_update(
            trip_id,
            [Trip.status == TripStatus.ACCEPTED, Trip.driver_id == driver_id],
            status=TripStatus.IN_PROGRESS,
            started_at=now
        )

    async def complete(self, trip_id: int, driver_id: int, now: datetime) -> Optional[Trip]:
        return await self._guarded_update(
            trip_id,
            [Trip.status == TripStatus.IN_PROGRESS, Trip.driver_id == driver_id],
            status=TripStatus.COMPLETED,
            completed_at=now
        )

    async def cancel(self, trip_id: int, passenger_id: int, now: datetime) -> Optional[Trip]:
        return await self._guarded_update(
            trip_id,
            [Trip.status.notin_(TERMINAL_STATUSES), Trip.passenger_id == passenger_id],
            status=TripStatus.CANCELLED,
            cancelled_at=now
        )

    async def rate_driver(self, trip_id: int, passenger_id: int, rating: float, review: str) -> Optional[Trip]:
        """Passenger's rating of the driver."""
        return await self._guarded_update(
            trip_id,
            [
                Trip.status == TripStatus.COMPLETED,
                Trip.passenger_id == passenger_id,
                Trip.driver_rating.is_(None),
            ],
            driver_rating=rating,
            driver_review=review
        )

    async def rate_passenger(self, trip_id: int, driver_id: int, rating: float, review: str) -> Optional[Trip]:
        """Driver's rating of the passenger."""
        return await self._guarded_update(
            trip_id,
            [
                Trip.status == TripStatus.COMPLETED,
                Trip.driver_id == driver_id,
                Trip.passenger_rating.is_(None),
            ],
            passenger_rating=rating,
            passenger_review=review
        )

    async def mean_driver_rating(self, driver_id: int) -> Optional[float]:
        query = select(func.avg(Trip.driver_rating)).where(
            Trip.driver_id == driver_id,
            Trip.status == TripStatus.COMPLETED,
            Trip.driver_rating.is_not(None)
        )
        result = await self.db.execute(query)
        mean = result.scalar_one_or_none()
        return float(mean) if mean is not None else None

    async def mean_passenger_rating(self, passenger_id: int) -> Optional[float]:
        query = select(func.avg(Trip.passenger_rating)).where(
            Trip.passenger_id == passenger_id,
            Trip.status == TripStatus.COMPLETED,
            Trip.passenger_rating.is_not(None)
        )
        result = await self.db.execute(query)
        mean = result.scalar_one_or_none()
        return float(mean) if mean is not None else None

    async def cancel_active_for_passenger(self, passenger_id: int, now: datetime) -> int:
        """Cancel every unfinished trip of a passenger. Returns the count."""
        stmt = (
            update(Trip)
            .where(Trip.passenger_id == passenger_id, Trip.status.notin_(TERMINAL_STATUSES))
            .values(status=TripStatus.CANCELLED, cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def release_active_for_driver(self, driver_id: int) -> int:
        """Return a driver's active trips to the pending pool. Returns the count."""
        stmt = (
            update(Trip)
            .where(Trip.driver_id == driver_id, Trip.status.in_(ACTIVE_DRIVER_STATUSES))
            .values(status=TripStatus.REQUESTED, driver_id=None, accepted_at=None, started_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount
