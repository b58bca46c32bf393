from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./podnbeyond.db",
        alias="DATABASE_URL"
    )

    # Security
    jwt_secret: str = Field(
        default="dev-jwt-secret-at-least-32-characters-long-for-development",
        alias="JWT_SECRET"
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        alias="ALLOWED_ORIGINS"
    )

    # ==============================================
    # Razorpay (payment gateway)
    # ==============================================
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: str = Field(default="", alias="RAZORPAY_WEBHOOK_SECRET")
    razorpay_base_url: str = Field(default="https://api.razorpay.com/v1", alias="RAZORPAY_BASE_URL")
    razorpay_timeout_seconds: int = Field(default=20, alias="RAZORPAY_TIMEOUT_SECONDS")
    currency: str = Field(default="INR", alias="CURRENCY")

    # Hour of day (UTC) the check-in date starts for refund policy purposes
    check_in_hour: int = Field(default=0, alias="CHECK_IN_HOUR")

    # ==============================================
    # Channel manager (OTA) settings
    # ==============================================
    beds24_api_url: str = Field(default="https://beds24.com/api/v2", alias="BEDS24_API_URL")
    beds24_api_key: str = Field(default="", alias="BEDS24_API_KEY")
    beds24_hotel_code: str = Field(default="", alias="BEDS24_HOTEL_CODE")
    channel_timeout_seconds: int = Field(default=20, alias="CHANNEL_TIMEOUT_SECONDS")

    # Periodic sync (runs inside FastAPI process)
    sync_enabled: bool = Field(default=False, alias="SYNC_ENABLED")
    sync_push_interval_minutes: int = Field(default=15, alias="SYNC_PUSH_INTERVAL_MINUTES")
    sync_pull_interval_minutes: int = Field(default=5, alias="SYNC_PULL_INTERVAL_MINUTES")
    sync_horizon_days: int = Field(default=90, alias="SYNC_HORIZON_DAYS")

    # Retry policy for failed provider calls
    sync_max_retries: int = Field(default=3, alias="SYNC_MAX_RETRIES")
    sync_backoff_base_seconds: float = Field(default=1.0, alias="SYNC_BACKOFF_BASE_SECONDS")
    sync_backoff_max_seconds: float = Field(default=30.0, alias="SYNC_BACKOFF_MAX_SECONDS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Rate limiting storage (memory:// or redis://...)
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    @field_validator('jwt_secret')
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """JWT secret must be long enough to be safe for HS256"""
        if not v:
            raise ValueError("JWT_SECRET is required and cannot be empty")
        if len(v) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return v

    @field_validator('check_in_hour')
    @classmethod
    def validate_check_in_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("CHECK_IN_HOUR must be between 0 and 23")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def has_razorpay_keys(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def has_beds24_config(self) -> bool:
        return bool(self.beds24_api_key and self.beds24_hotel_code)

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        seen = set()
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in seen:
                seen.add(origin)
                origins.append(origin)
        return origins or ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
