from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Clinic Scheduling Core"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./scheduling.db"

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Logfire (Observability)
    logfire_token: str = ""

    # Recommendations
    top_pick_count: int = 3
    scoring_service_url: str = ""
    scoring_service_timeout: float = 5.0
    regular_wait_minutes: int = 15
    regular_cancellation_risk: float = 0.1

    # Reservations
    bind_max_attempts: int = 5
    orphan_policy: Literal["cancel", "reject"] = "cancel"

    # Payments
    payment_timeout_seconds: float = 300.0
    payment_webhook_secret: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
