"""
Trip model for ride requests and their lifecycle.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, Text
from sqlalchemy.sql import func
import enum
from family_taxi.core.database import Base

class TripStatus(str, enum.Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Statuses in which a driver is bound to the trip
ACTIVE_DRIVER_STATUSES = (TripStatus.ACCEPTED, TripStatus.IN_PROGRESS)
TERMINAL_STATUSES = (TripStatus.COMPLETED, TripStatus.CANCELLED)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Trip(Base):
    """One passenger-requested ride."""

    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)

    # Parties. Plain ids so trip history outlives deleted accounts
    passenger_id = Column(Integer, nullable=False, index=True)
    driver_id = Column(Integer, nullable=True, index=True)

    status = Column(Enum(TripStatus), nullable=False, default=TripStatus.REQUESTED, index=True)

    # Location data
    pickup_address = Column(String, nullable=False)
    pickup_latitude = Column(Float, nullable=False)
    pickup_longitude = Column(Float, nullable=False)

    destination_address = Column(String, nullable=False)
    destination_latitude = Column(Float, nullable=False)
    destination_longitude = Column(Float, nullable=False)

    # Pricing, fixed at creation
    distance = Column(Float, nullable=False)  # km
    base_fare = Column(Float, nullable=False)
    per_km_rate = Column(Float, nullable=False)
    total_fare = Column(Float, nullable=False)

    # Timestamps
    requested_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Ratings: passenger_rating is given by the driver, driver_rating by the passenger
    passenger_rating = Column(Float, nullable=True)
    driver_rating = Column(Float, nullable=True)
    passenger_review = Column(Text, nullable=True)
    driver_review = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Trip(id={self.id}, status={self.status}, passenger_id={self.passenger_id})>"
