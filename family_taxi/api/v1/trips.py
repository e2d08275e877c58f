"""
Passenger trip API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
import logging

from family_taxi.core.exceptions import FamilyTaxiError
from family_taxi.models.user import User
from family_taxi.services.trip_lifecycle import TripLifecycle, Place
from family_taxi.api.v1.deps import get_current_user, get_lifecycle, require_passenger
from family_taxi.api.v1.schemas import (
    FareEstimateRequest, FareEstimateResponse, TripCreate, TripResponse, TripRating
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/estimate", response_model=FareEstimateResponse)
async def estimate_fare(
    request: FareEstimateRequest,
    current_user: User = Depends(get_current_user),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Quote distance, duration and fare for a route."""

    quote = lifecycle.quote(
        Place("", request.pickup_latitude, request.pickup_longitude),
        Place("", request.destination_latitude, request.destination_longitude),
        distance=request.distance
    )
    return FareEstimateResponse(
        distance_km=quote.distance_km,
        estimated_minutes=quote.estimated_minutes,
        base_fare=quote.base_fare,
        per_km_rate=quote.per_km_rate,
        total_fare=quote.total_fare
    )

@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_request: TripCreate,
    passenger: User = Depends(require_passenger),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Request a new trip."""

    try:
        return await lifecycle.create_trip(
            passenger,
            pickup=Place(
                trip_request.pickup_address,
                trip_request.pickup_latitude,
                trip_request.pickup_longitude
            ),
            destination=Place(
                trip_request.destination_address,
                trip_request.destination_latitude,
                trip_request.destination_longitude
            ),
            distance=trip_request.distance,
            base_fare=trip_request.base_fare,
            per_km_rate=trip_request.per_km_rate,
            total_fare=trip_request.total_fare
        )

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error creating trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating trip"
        )

@router.get("/recent", response_model=List[TripResponse])
async def get_recent_trips(
    passenger: User = Depends(require_passenger),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """The passenger's most recent trips, newest first."""
    return await lifecycle.recent_trips(passenger)

@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Get trip details; passengers see their own trips only."""
    return await lifecycle.get_trip(trip_id, current_user)

@router.post("/{trip_id}/request", response_model=TripResponse)
async def request_trip(
    trip_id: int,
    passenger: User = Depends(require_passenger),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Re-affirm a pending request. Safe to repeat."""

    try:
        return await lifecycle.reaffirm(trip_id, passenger)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error requesting trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error requesting trip"
        )

@router.post("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: int,
    passenger: User = Depends(require_passenger),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Cancel a trip that has not finished."""

    try:
        return await lifecycle.cancel(trip_id, passenger)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error cancelling trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error cancelling trip"
        )

@router.post("/{trip_id}/rate", response_model=TripResponse)
async def rate_trip(
    trip_id: int,
    rating: TripRating,
    passenger: User = Depends(require_passenger),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Rate the driver of a completed trip. Allowed once."""

    try:
        return await lifecycle.rate_driver(trip_id, passenger, rating.rating, rating.review)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error rating trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error rating trip"
        )
