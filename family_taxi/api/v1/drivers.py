"""
Driver API endpoints: availability, request polling and trip transitions.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional
import logging

from family_taxi.core.config import settings
from family_taxi.core.exceptions import FamilyTaxiError, NotFoundError
from family_taxi.dispatch.geo import estimate_minutes
from family_taxi.models.user import User
from family_taxi.services.trip_lifecycle import TripLifecycle
from family_taxi.api.v1.deps import get_lifecycle, require_driver
from family_taxi.api.v1.schemas import (
    UserResponse, DriverStatusUpdate, DriverStatsResponse,
    TripResponse, TripOfferResponse, TripRating, DeclineResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/status", response_model=UserResponse)
async def update_driver_status(
    update: DriverStatusUpdate,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Go online or offline."""

    try:
        updated = await lifecycle.users.set_online(driver.id, update.is_online)
        if not updated:
            raise NotFoundError("Driver not found")
        await lifecycle.db.commit()

        logger.info(f"Driver availability updated: {driver.id} -> {update.is_online}")

        return updated

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error updating driver status: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating status"
        )

@router.get("/stats/today", response_model=DriverStatsResponse)
async def get_driver_stats(
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    return lifecycle.driver_stats(driver)

@router.get("/trips/active", response_model=Optional[TripResponse])
async def get_active_trip(
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """The driver's accepted or in-progress trip, or null."""
    return await lifecycle.active_trip(driver)

@router.get("/trips/requests", response_model=Optional[TripOfferResponse])
async def get_trip_request(
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """
    Poll for the nearest pending trip.

    Returns null while the driver is offline, busy with a trip, has not
    reported a location, or nothing is pending within the search radius.
    """

    match = await lifecycle.poll_requests(driver)
    if not match:
        return None

    offer = TripResponse.model_validate(match.trip).model_dump()
    offer["pickup_distance_km"] = match.pickup_distance_km
    offer["estimated_pickup_minutes"] = estimate_minutes(
        match.pickup_distance_km, settings.AVERAGE_SPEED_KMH
    )
    return TripOfferResponse(**offer)

@router.get("/trips/{trip_id}", response_model=TripResponse)
async def get_driver_trip(
    trip_id: int,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Get a trip that is unassigned or assigned to this driver."""
    return await lifecycle.get_trip(trip_id, driver)

@router.post("/trips/{trip_id}/accept", response_model=TripResponse)
async def accept_trip(
    trip_id: int,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Claim a pending trip. The first driver to accept wins."""

    try:
        return await lifecycle.accept(trip_id, driver)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error accepting trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error accepting trip"
        )

@router.post("/trips/{trip_id}/decline", response_model=DeclineResponse)
async def decline_trip(
    trip_id: int,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Acknowledge a declined offer. Nothing is stored."""
    return await lifecycle.decline(trip_id, driver)

@router.post("/trips/{trip_id}/arrived", response_model=TripResponse)
async def driver_arrived(
    trip_id: int,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Acknowledge arrival at the pickup. Nothing is stored."""
    return await lifecycle.arrive(trip_id, driver)

@router.post("/trips/{trip_id}/start", response_model=TripResponse)
async def start_trip(
    trip_id: int,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    try:
        return await lifecycle.start(trip_id, driver)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error starting trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error starting trip"
        )

@router.post("/trips/{trip_id}/complete", response_model=TripResponse)
async def complete_trip(
    trip_id: int,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Finish a trip in progress and count it toward the driver's total."""

    try:
        return await lifecycle.complete(trip_id, driver)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error completing trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error completing trip"
        )

@router.post("/trips/{trip_id}/rate", response_model=TripResponse)
async def rate_passenger(
    trip_id: int,
    rating: TripRating,
    driver: User = Depends(require_driver),
    lifecycle: TripLifecycle = Depends(get_lifecycle)
):
    """Rate the passenger of a completed trip. Allowed once."""

    try:
        return await lifecycle.rate_passenger(trip_id, driver, rating.rating, rating.review)

    except FamilyTaxiError:
        raise
    except Exception as e:
        logger.error(f"Error rating trip: {e}")
        await lifecycle.db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error rating trip"
        )
