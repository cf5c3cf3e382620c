"""
Configuration management for the Leave Lifecycle Engine
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Required settings
    DATABASE_URL: str = Field(..., description="PostgreSQL database URL")
    JWT_SECRET_KEY: str = Field(..., description="JWT secret key for token verification")

    # Optional settings with defaults
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # CORS settings
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    # Version (can be git SHA or semver)
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Escalation
    ESCALATION_ENABLED: bool = Field(default=True, description="Run escalation checks at all")
    ESCALATION_THRESHOLD_DAYS: int = Field(
        default=3,
        description="Days an approval level may stay active before it is escalated",
    )
    ESCALATION_MAX_LEVELS: int = Field(
        default=3,
        description="Maximum number of escalations for one approval ordinal",
    )
    ESCALATION_INTERVAL_HOURS: int = Field(default=6, description="Interval between scheduled escalation runs")
    ENABLE_ESCALATION_SCHEDULER: bool = Field(
        default=False,
        description="Start the escalation scheduler on application startup",
    )

    # Balance ledger
    CARRY_FORWARD_ENABLED: bool = Field(default=True, description="Allow year-end carry forward")
    MAX_CARRY_FORWARD_DAYS: int = Field(default=10, description="Cap on days carried into next year")
    CARRY_FORWARD_EXPIRY_MONTHS: int = Field(
        default=3,
        description="Months into the new year after which carried-forward days lapse",
    )
    PRO_RATE_ENABLED: bool = Field(default=True, description="Pro-rate entitlement for mid-year joiners")

    TRANSACTION_MAX_RETRIES: int = Field(
        default=3,
        description="Attempts for a unit of work that lost an optimistic concurrency race",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @field_validator("ESCALATION_THRESHOLD_DAYS", "ESCALATION_INTERVAL_HOURS", "TRANSACTION_MAX_RETRIES")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("MAX_CARRY_FORWARD_DAYS", "CARRY_FORWARD_EXPIRY_MONTHS", "ESCALATION_MAX_LEVELS")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            # JWT_SECRET_KEY must be at least 32 characters in production
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )

            # ALLOWED_ORIGINS must not be wildcard in production
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def escalation_interval_ms(self) -> int:
        return self.ESCALATION_INTERVAL_HOURS * 60 * 60 * 1000


# Create settings instance
settings = Settings()

# Validate production settings if in prod
if settings.APP_ENV == "prod":
    settings.validate_production()
