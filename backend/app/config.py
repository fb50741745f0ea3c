"""Configuration settings for the FreelanceHub backend."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings

from freelancehub.config import MarketplaceConfig


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access
    supabase_service_role_key: str | None = None  # Legacy name for the same key

    # "memory" keeps everything in-process (local dev, tests)
    storage_backend: Literal["supabase", "memory"] = "supabase"

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # App
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api"
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]
    # Peers allowed to set X-Forwarded-For for rate limit keys
    trusted_proxy_cidrs: list[str] = [
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "::1/128",
    ]

    # Marketplace policy
    min_job_budget: Decimal = Decimal("5")
    max_title_length: int = 200
    jobs_page_size: int = 10
    notification_list_limit: int = 50
    reject_other_applicants_on_select: bool = True
    enforce_milestone_total: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def marketplace_config(self) -> MarketplaceConfig:
        """Policy knobs handed to the core services."""
        return MarketplaceConfig(
            min_job_budget=self.min_job_budget,
            max_title_length=self.max_title_length,
            jobs_page_size=self.jobs_page_size,
            notification_list_limit=self.notification_list_limit,
            reject_other_applicants_on_select=self.reject_other_applicants_on_select,
            enforce_milestone_total=self.enforce_milestone_total,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
