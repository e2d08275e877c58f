"""
Distance, duration and fare helpers.

Inputs are not range-checked; callers pass sane coordinates.
"""

import math

EARTH_RADIUS_KM = 6371.0

DEFAULT_AVERAGE_SPEED_KMH = 30.0
DEFAULT_BASE_FARE = 5.0
DEFAULT_PER_KM_RATE = 1.5

def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points using the Haversine formula."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c

def estimate_minutes(distance: float, avg_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH) -> int:
    """Estimate trip duration in whole minutes, rounded up."""
    return math.ceil(distance * 60 / avg_speed_kmh)

def fare(
    distance: float,
    base_fare: float = DEFAULT_BASE_FARE,
    per_km_rate: float = DEFAULT_PER_KM_RATE
) -> float:
    return base_fare + per_km_rate * distance
