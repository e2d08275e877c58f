"""
Nearest-trip matching for polling drivers.

Each driver poll runs a full linear scan over the pending trips and offers
at most one of them: the one whose pickup is closest to the driver, as long
as it lies within the search radius. Nothing is reserved here; the same trip
can be offered to several drivers until one of them accepts it, and the
accept transition is what decides the winner.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from family_taxi.dispatch.geo import distance_km
from family_taxi.models.trip import Trip

DEFAULT_MAX_RADIUS_KM = 10.0

@dataclass
class TripMatch:
    """A pending trip offered to a driver."""
    trip: Trip
    pickup_distance_km: float

def find_nearest_trip(
    driver_latitude: Optional[float],
    driver_longitude: Optional[float],
    pending_trips: Iterable[Trip],
    max_radius_km: float = DEFAULT_MAX_RADIUS_KM
) -> Optional[TripMatch]:
    """
    Pick the pending trip with the closest pickup to the driver.

    ``pending_trips`` must be ordered oldest first; on equal distance the
    earlier trip wins because only a strictly smaller distance replaces the
    current best. Returns None when the driver has no coordinates, there are
    no trips, or the nearest pickup is farther than ``max_radius_km``.
    """
    if driver_latitude is None or driver_longitude is None:
        return None

    best: Optional[Trip] = None
    best_distance = math.inf

    for trip in pending_trips:
        distance = distance_km(
            driver_latitude, driver_longitude,
            trip.pickup_latitude, trip.pickup_longitude
        )
        if distance < best_distance:
            best = trip
            best_distance = distance

    if best is None or best_distance > max_radius_km:
        return None

    return TripMatch(trip=best, pickup_distance_km=best_distance)
