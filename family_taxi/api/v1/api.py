"""
Main API router for v1 endpoints.
"""

from fastapi import APIRouter

from family_taxi.api.v1 import auth, users, locations, trips, drivers, admin
from family_taxi.api.v1.schemas import ErrorResponse

# Error bodies produced by the handlers in core.exceptions
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation or precondition failure"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    403: {"model": ErrorResponse, "description": "Wrong role or not a party to the trip"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
}

api_router = APIRouter(responses=ERROR_RESPONSES)

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, tags=["users"])
api_router.include_router(locations.router, prefix="/locations", tags=["locations"])
api_router.include_router(trips.router, prefix="/trips", tags=["trips"])
api_router.include_router(drivers.router, prefix="/driver", tags=["driver"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
