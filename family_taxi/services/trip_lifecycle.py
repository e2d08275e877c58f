"""
Trip lifecycle: guarded transitions and the driver request poll.

    requested --accept--> accepted --start--> in_progress --complete--> completed
        |                    |                    |
        +--------------------+--------cancel------+----> cancelled

Checks run in a fixed order: the trip must exist (NotFoundError), the caller
must be the party the transition belongs to (NotAuthorizedError), and the
trip must be in the right state (PreconditionFailedError). The state check is
repeated inside the UPDATE itself, so a caller that loses a race after the
first read still gets PreconditionFailedError rather than overwriting the
winner.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from family_taxi.core.config import settings
from family_taxi.core.exceptions import (
    NotAuthorizedError, NotFoundError, PreconditionFailedError, ValidationFailedError
)
from family_taxi.dispatch.geo import distance_km, estimate_minutes, fare
from family_taxi.dispatch.matching import TripMatch, find_nearest_trip
from family_taxi.models.trip import Trip, TripStatus, TERMINAL_STATUSES, utcnow
from family_taxi.models.user import User, UserRole
from family_taxi.repositories.trips import TripRepository
from family_taxi.repositories.users import UserRepository

logger = logging.getLogger(__name__)

# Accepted difference between a client-computed total fare and ours
FARE_TOLERANCE = 0.01

# Flat assumptions behind the driver's daily summary
HOURS_PER_TRIP = 0.5
AVERAGE_FARE = 13.0
DRIVER_SHARE = 0.8

@dataclass
class FareQuote:
    distance_km: float
    estimated_minutes: int
    base_fare: float
    per_km_rate: float
    total_fare: float

@dataclass
class Place:
    address: str
    latitude: float
    longitude: float

class TripLifecycle:
    """Lifecycle operations for one request's database session."""

    def __init__(self, db: AsyncSession, match_radius_km: Optional[float] = None):
        self.db = db
        self.trips = TripRepository(db)
        self.users = UserRepository(db)
        self.match_radius_km = match_radius_km or settings.MATCH_RADIUS_KM

    async def _load(self, trip_id: int) -> Trip:
        trip = await self.trips.get(trip_id)
        if not trip:
            raise NotFoundError("Trip not found")
        return trip

    def _reject(self, trip: Trip, message: str) -> PreconditionFailedError:
        logger.warning(f"Transition rejected on trip {trip.id} ({trip.status.value}): {message}")
        return PreconditionFailedError(message, {"trip_id": trip.id, "status": trip.status.value})

    # Pricing

    def quote(
        self,
        pickup: Place,
        destination: Place,
        distance: Optional[float] = None,
        base_fare: Optional[float] = None,
        per_km_rate: Optional[float] = None
    ) -> FareQuote:
        """Price a route. Missing distance is measured pickup to destination."""
        if distance is None:
            distance = distance_km(
                pickup.latitude, pickup.longitude,
                destination.latitude, destination.longitude
            )
        if base_fare is None:
            base_fare = settings.BASE_FARE
        if per_km_rate is None:
            per_km_rate = settings.PER_KM_RATE

        return FareQuote(
            distance_km=distance,
            estimated_minutes=estimate_minutes(distance, settings.AVERAGE_SPEED_KMH),
            base_fare=base_fare,
            per_km_rate=per_km_rate,
            total_fare=fare(distance, base_fare, per_km_rate)
        )

    # Passenger operations

    async def create_trip(
        self,
        passenger: User,
        pickup: Place,
        destination: Place,
        distance: Optional[float] = None,
        base_fare: Optional[float] = None,
        per_km_rate: Optional[float] = None,
        total_fare: Optional[float] = None
    ) -> Trip:
        quote = self.quote(pickup, destination, distance, base_fare, per_km_rate)

        if total_fare is not None and abs(total_fare - quote.total_fare) > FARE_TOLERANCE:
            raise ValidationFailedError(
                "total_fare does not match distance and rates",
                {"expected": round(quote.total_fare, 2), "received": total_fare}
            )

        trip = await self.trips.create(
            passenger_id=passenger.id,
            pickup_address=pickup.address,
            pickup_latitude=pickup.latitude,
            pickup_longitude=pickup.longitude,
            destination_address=destination.address,
            destination_latitude=destination.latitude,
            destination_longitude=destination.longitude,
            distance=quote.distance_km,
            base_fare=quote.base_fare,
            per_km_rate=quote.per_km_rate,
            total_fare=quote.total_fare
        )
        await self.db.commit()

        logger.info(f"Trip requested: {trip.id} by passenger {passenger.id} (fare {trip.total_fare:.2f})")
        return trip

    async def reaffirm(self, trip_id: int, passenger: User) -> Trip:
        trip = await self._load(trip_id)
        if trip.passenger_id != passenger.id:
            raise NotAuthorizedError("Not authorized to request this trip")
        if trip.status != TripStatus.REQUESTED:
            raise self._reject(trip, "Trip already requested")

        updated = await self.trips.reaffirm(trip_id, passenger.id)
        if not updated:
            raise self._reject(trip, "Trip already requested")
        await self.db.commit()
        return updated

    async def cancel(self, trip_id: int, passenger: User) -> Trip:
        trip = await self._load(trip_id)
        if trip.passenger_id != passenger.id:
            raise NotAuthorizedError("Not authorized to cancel this trip")
        if trip.status in TERMINAL_STATUSES:
            raise self._reject(trip, "Cannot cancel a completed or already cancelled trip")

        updated = await self.trips.cancel(trip_id, passenger.id, utcnow())
        if not updated:
            raise self._reject(trip, "Cannot cancel a completed or already cancelled trip")
        await self.db.commit()

        logger.info(f"Trip cancelled: {trip_id} by passenger {passenger.id}")
        return updated

    async def rate_driver(self, trip_id: int, passenger: User, rating: float, review: Optional[str] = None) -> Trip:
        trip = await self._load(trip_id)
        if trip.passenger_id != passenger.id:
            raise NotAuthorizedError("Not authorized to rate this trip")
        if trip.status != TripStatus.COMPLETED:
            raise self._reject(trip, "Can only rate completed trips")
        if trip.driver_rating is not None:
            raise self._reject(trip, "Trip already rated")

        updated = await self.trips.rate_driver(trip_id, passenger.id, rating, review or "")
        if not updated:
            raise self._reject(trip, "Trip already rated")

        if updated.driver_id is not None:
            await self._recompute_driver_rating(updated.driver_id)
        await self.db.commit()

        logger.info(f"Trip rated: {trip_id} driver rating {rating} by passenger {passenger.id}")
        return updated

    async def recent_trips(self, passenger: User) -> List[Trip]:
        return await self.trips.recent_for_passenger(passenger.id)

    # Driver operations

    async def active_trip(self, driver: User) -> Optional[Trip]:
        return await self.trips.active_for_driver(driver.id)

    async def poll_requests(self, driver: User) -> Optional[TripMatch]:
        """Offer the nearest pending trip to an idle online driver, if any."""
        if not driver.is_online or not driver.has_location:
            return None
        if await self.trips.active_for_driver(driver.id):
            return None

        pending = await self.trips.pending()
        match = find_nearest_trip(
            driver.current_latitude,
            driver.current_longitude,
            pending,
            max_radius_km=self.match_radius_km
        )
        if match:
            logger.debug(
                f"Offering trip {match.trip.id} to driver {driver.id} "
                f"({match.pickup_distance_km:.2f} km away)"
            )
        return match

    async def accept(self, trip_id: int, driver: User) -> Trip:
        trip = await self._load(trip_id)
        if trip.status != TripStatus.REQUESTED:
            raise self._reject(trip, "Trip is not available for acceptance")
        if await self.trips.active_for_driver(driver.id):
            raise self._reject(trip, "Driver already has an active trip")

        updated = await self.trips.accept(trip_id, driver.id, utcnow())
        if not updated:
            # Lost a race after the reads above: the trip was claimed or the driver took another
            if await self.trips.active_for_driver(driver.id):
                raise self._reject(trip, "Driver already has an active trip")
            raise self._reject(trip, "Trip is not available for acceptance")
        await self.db.commit()

        logger.info(f"Trip accepted: {trip_id} by driver {driver.id}")
        return updated

    async def decline(self, trip_id: int, driver: User) -> Dict[str, bool]:
        trip = await self._load(trip_id)
        if trip.status != TripStatus.REQUESTED:
            raise self._reject(trip, "Trip is not available for declining")

        logger.info(f"Trip declined: {trip_id} by driver {driver.id}")
        return {"success": True}

    async def arrive(self, trip_id: int, driver: User) -> Trip:
        trip = await self._load(trip_id)
        if trip.driver_id != driver.id:
            raise NotAuthorizedError("Not authorized for this trip")
        if trip.status != TripStatus.ACCEPTED:
            raise self._reject(trip, "Driver not en route to pickup")

        logger.info(f"Driver {driver.id} arrived at pickup for trip {trip_id}")
        return trip

    async def start(self, trip_id: int, driver: User) -> Trip:
        trip = await self._load(trip_id)
        if trip.driver_id != driver.id:
            raise NotAuthorizedError("Not authorized for this trip")
        if trip.status != TripStatus.ACCEPTED:
            raise self._reject(trip, "Trip not in accepted state")

        updated = await self.trips.start(trip_id, driver.id, utcnow())
        if not updated:
            raise self._reject(trip, "Trip not in accepted state")
        await self.db.commit()

        logger.info(f"Trip started: {trip_id} by driver {driver.id}")
        return updated

    async def complete(self, trip_id: int, driver: User) -> Trip:
        trip = await self._load(trip_id)
        if trip.driver_id != driver.id:
            raise NotAuthorizedError("Not authorized for this trip")
        if trip.status != TripStatus.IN_PROGRESS:
            raise self._reject(trip, "Trip not in progress")

        updated = await self.trips.complete(trip_id, driver.id, utcnow())
        if not updated:
            raise self._reject(trip, "Trip not in progress")
        await self.users.increment_trip_count(driver.id)
        await self.db.commit()

        logger.info(f"Trip completed: {trip_id} by driver {driver.id}")
        return updated

    async def rate_passenger(self, trip_id: int, driver: User, rating: float, review: Optional[str] = None) -> Trip:
        trip = await self._load(trip_id)
        if trip.driver_id != driver.id:
            raise NotAuthorizedError("Not authorized to rate this trip")
        if trip.status != TripStatus.COMPLETED:
            raise self._reject(trip, "Can only rate completed trips")
        if trip.passenger_rating is not None:
            raise self._reject(trip, "Trip already rated")

        updated = await self.trips.rate_passenger(trip_id, driver.id, rating, review or "")
        if not updated:
            raise self._reject(trip, "Trip already rated")

        await self._recompute_passenger_rating(updated.passenger_id)
        await self.db.commit()

        logger.info(f"Trip rated: {trip_id} passenger rating {rating} by driver {driver.id}")
        return updated

    def driver_stats(self, driver: User) -> Dict[str, float]:
        trip_count = driver.trip_count or 0
        return {
            "trip_count": trip_count,
            "total_hours": trip_count * HOURS_PER_TRIP,
            "earnings": round(trip_count * AVERAGE_FARE * DRIVER_SHARE, 2),
        }

    # Shared

    async def get_trip(self, trip_id: int, user: User) -> Trip:
        """Load a trip the caller is allowed to see."""
        trip = await self._load(trip_id)

        if user.role == UserRole.PASSENGER and trip.passenger_id != user.id:
            raise NotAuthorizedError("Not authorized to view this trip")
        if user.role == UserRole.DRIVER and trip.driver_id is not None and trip.driver_id != user.id:
            raise NotAuthorizedError("Not authorized to view this trip")

        return trip

    async def _recompute_driver_rating(self, driver_id: int) -> None:
        mean = await self.trips.mean_driver_rating(driver_id)
        if mean is not None:
            await self.users.set_rating(driver_id, mean)

    async def _recompute_passenger_rating(self, passenger_id: int) -> None:
        mean = await self.trips.mean_passenger_rating(passenger_id)
        if mean is not None:
            await self.users.set_rating(passenger_id, mean)
