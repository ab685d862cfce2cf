from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "QuickCourt Booking API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str = "sqlite:///./quickcourt.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Booking dates and HH:MM slot times are wall-clock times in this zone
    FACILITY_TIMEZONE: str = "Asia/Kolkata"
    DEFAULT_CURRENCY: str = "INR"

    SLOT_GRANULARITY_MINUTES: int = 60
    MIN_BOOKING_HOURS: float = 0.5
    CANCELLATION_CUTOFF_HOURS: int = 2
    BOOKING_INSERT_RETRIES: int = 3

    # Sandbox gateway: proofs are HMAC-SHA256(secret, "order_id|payment_id")
    PAYMENT_SANDBOX_SECRET: str = "sandbox-secret"


settings = Settings()
