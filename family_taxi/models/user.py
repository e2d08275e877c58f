"""
User model for passengers, drivers and admins.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum
from sqlalchemy.sql import func
import enum
from family_taxi.core.database import Base

class UserRole(str, enum.Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"
    ADMIN = "admin"

class User(Base):
    """User model for every role. Role is fixed at creation."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.PASSENGER)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    profile_picture = Column(String, nullable=True)

    # Mean of ratings received on completed trips
    rating = Column(Float, default=5.0)
    trip_count = Column(Integer, default=0)

    # Location data
    current_latitude = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)

    # Driver-specific fields
    is_online = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def has_location(self) -> bool:
        return self.current_latitude is not None and self.current_longitude is not None

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"
