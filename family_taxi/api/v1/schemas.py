"""
Pydantic schemas for API request/response models.
"""

from pydantic import BaseModel, Field, StrictBool
from typing import Optional, Dict, Any
from datetime import datetime

from family_taxi.core.config import settings
from family_taxi.models.trip import TripStatus
from family_taxi.models.user import UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# User schemas
class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, description="Login name")
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH, max_length=72)
    full_name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=6)
    profile_picture: Optional[str] = None

class AdminUserCreate(RegisterRequest):
    role: UserRole = Field(..., description="Role of the new account")

class LoginRequest(BaseModel):
    username: str
    password: str

class UserResponse(BaseModel):
    id: int
    username: str
    role: UserRole
    full_name: str
    email: str
    phone: str
    profile_picture: Optional[str]
    rating: Optional[float]
    trip_count: Optional[int]
    current_latitude: Optional[float]
    current_longitude: Optional[float]
    is_online: Optional[bool]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class LocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

class DriverStatusUpdate(BaseModel):
    is_online: StrictBool = Field(..., description="Whether the driver takes requests")

class DriverStatsResponse(BaseModel):
    trip_count: int
    total_hours: float
    earnings: float

# Saved location schemas
class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_favorite: bool = False

class LocationSearch(BaseModel):
    query: str = Field(..., min_length=1, description="Text matched against name and address")

class LocationResponse(BaseModel):
    id: int
    user_id: int
    name: str
    address: str
    latitude: float
    longitude: float
    is_favorite: Optional[bool]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

# Trip schemas
class FareEstimateRequest(BaseModel):
    pickup_latitude: float = Field(..., ge=-90, le=90, description="Pickup latitude")
    pickup_longitude: float = Field(..., ge=-180, le=180, description="Pickup longitude")
    destination_latitude: float = Field(..., ge=-90, le=90, description="Destination latitude")
    destination_longitude: float = Field(..., ge=-180, le=180, description="Destination longitude")
    distance: Optional[float] = Field(None, ge=0, description="Route distance in km, measured if omitted")

class FareEstimateResponse(BaseModel):
    distance_km: float
    estimated_minutes: int
    base_fare: float
    per_km_rate: float
    total_fare: float

class TripCreate(BaseModel):
    pickup_address: str = Field(..., min_length=1, description="Pickup address")
    pickup_latitude: float = Field(..., ge=-90, le=90, description="Pickup latitude")
    pickup_longitude: float = Field(..., ge=-180, le=180, description="Pickup longitude")
    destination_address: str = Field(..., min_length=1, description="Destination address")
    destination_latitude: float = Field(..., ge=-90, le=90, description="Destination latitude")
    destination_longitude: float = Field(..., ge=-180, le=180, description="Destination longitude")
    distance: Optional[float] = Field(None, ge=0, description="Route distance in km")
    base_fare: Optional[float] = Field(None, ge=0)
    per_km_rate: Optional[float] = Field(None, ge=0)
    total_fare: Optional[float] = Field(None, ge=0, description="Checked against the computed fare")

class TripResponse(BaseModel):
    id: int
    passenger_id: int
    driver_id: Optional[int]
    status: TripStatus
    pickup_address: str
    pickup_latitude: float
    pickup_longitude: float
    destination_address: str
    destination_latitude: float
    destination_longitude: float
    distance: float
    base_fare: float
    per_km_rate: float
    total_fare: float
    requested_at: datetime
    accepted_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    passenger_rating: Optional[float]
    driver_rating: Optional[float]
    passenger_review: Optional[str]
    driver_review: Optional[str]

    class Config:
        from_attributes = True

class TripOfferResponse(TripResponse):
    """A pending trip offered to a polling driver."""
    pickup_distance_km: float
    estimated_pickup_minutes: int

class TripRating(BaseModel):
    rating: float = Field(..., ge=1, le=5, description="Stars from 1 to 5")
    review: Optional[str] = Field(None, max_length=1000)

class DeclineResponse(BaseModel):
    success: bool

# Error schemas
class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None

class MessageResponse(BaseModel):
    message: str
