"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./marketplace.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None
    retry_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.05, ge=0)


class SecuritySettings(BaseModel):
    secret_key: str = Field(default="change-me", min_length=8)
    algorithm: str = "HS256"


class PricingSettings(BaseModel):
    base_application_cost: int = Field(default=2, ge=1)
    urgency_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "low": 1.0,
            "medium": 1.2,
            "high": 1.5,
            "urgent": 2.0,
        }
    )
    job_type_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "electrical": 1.5,
            "plumbing": 1.5,
            "roofing": 1.3,
            "hvac": 1.3,
            "carpentry": 1.2,
            "painting": 1.0,
            "landscaping": 1.0,
            "cleaning": 0.8,
            "handyman": 1.0,
            "general": 1.0,
        }
    )


class CreditSettings(BaseModel):
    trial_credits: int = Field(default=10, ge=1)
    low_balance_threshold: int = Field(default=10, ge=0)
    critical_balance_threshold: int = Field(default=3, ge=0)


class ApplicationSettings(BaseModel):
    withdrawal_window_hours: int = Field(default=24, ge=0)


class TopupSettings(BaseModel):
    enabled: bool = True
    max_consecutive_failures: int = Field(default=3, ge=1)
    cooldown_minutes: int = Field(default=60, ge=0)
    min_trigger_balance: int = 0
    max_trigger_balance: int = 50
    min_topup_credits: int = 5
    max_topup_credits: int = 100


class PaymentSettings(BaseModel):
    gateway_url: str = "http://localhost:9000/payments"
    api_key: str = ""
    timeout_seconds: float = 10.0


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Tradie Marketplace Credits"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    pricing: PricingSettings = PricingSettings()
    credits: CreditSettings = CreditSettings()
    applications: ApplicationSettings = ApplicationSettings()
    topup: TopupSettings = TopupSettings()
    payments: PaymentSettings = PaymentSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def secret_key(self) -> str:
        return self.security.secret_key

    @property
    def algorithm(self) -> str:
        return self.security.algorithm

    @property
    def withdrawal_window_hours(self) -> int:
        return self.applications.withdrawal_window_hours


@lru_cache()
def get_settings() -> Settings:
    return Settings()
