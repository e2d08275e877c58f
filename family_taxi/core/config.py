"""
Configuration settings for the Family Taxi application.
"""

from pydantic_settings import BaseSettings
from pydantic import validator, Field
import secrets
import logging

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    """Application settings read from the environment and .env."""

    # Environment
    ENVIRONMENT: str = Field(default="development", description="Application environment")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Family Taxi"

    # Database Settings
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./family_taxi.db",
        description="Database connection URL"
    )
    DATABASE_ECHO: bool = Field(default=False, description="Log SQL statements")

    # Matching Settings
    MATCH_RADIUS_KM: float = Field(default=10.0, gt=0.0, le=100.0)
    AVERAGE_SPEED_KMH: float = Field(default=30.0, gt=0.0)

    # Pricing Settings
    BASE_FARE: float = Field(default=5.0, ge=0.0)
    PER_KM_RATE: float = Field(default=1.5, ge=0.0)

    # Security Settings - Generate secure defaults
    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7, ge=5)

    # Password Security
    MIN_PASSWORD_LENGTH: int = 6

    # Default admin account created at startup
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = Field(default="admin123", description="Change in production")
    DEFAULT_ADMIN_EMAIL: str = "admin@familytaxi.com"

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_FILE: str = ""

    # Security Headers
    CORS_ORIGINS: list = Field(default=["http://localhost:3000"], description="Allowed CORS origins")

    @validator('SECRET_KEY')
    def validate_secret_key(cls, v):
        if len(v) < 32:
            logger.warning("SECRET_KEY should be at least 32 characters long")
        if v == "family-taxi-secret-key":
            raise ValueError("SECRET_KEY must be changed from default value")
        return v

    @validator('DATABASE_URL')
    def validate_database_url(cls, v):
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite URL")
        return v

    @validator('ENVIRONMENT')
    def validate_environment(cls, v):
        allowed_envs = ['development', 'testing', 'staging', 'production']
        if v not in allowed_envs:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed_envs}")
        return v

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    class Config:
        env_file = ".env"
        case_sensitive = True
        validate_assignment = True
        extra = "ignore"

# Global settings instance with error handling
try:
    settings = Settings()
    if settings.is_production() and settings.DEBUG:
        logger.warning("DEBUG mode is enabled in production environment")
    if settings.is_production() and settings.DEFAULT_ADMIN_PASSWORD == "admin123":
        logger.warning("Default admin password is in use in production environment")
except Exception as e:
    logger.error(f"Failed to load settings: {e}")
    raise
