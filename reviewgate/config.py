"""
ReviewGate configuration management.

Loads configuration from environment variables or .env file.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReviewGateConfig(BaseSettings):
    """
    ReviewGate configuration settings.

    Can be loaded from:
    1. Environment variables (REVIEWGATE_SUPABASE_URL, REVIEWGATE_SUPABASE_KEY, etc.)
    2. .env file in project root
    3. Direct instantiation with kwargs

    All durations of the acceptance workflow are expressed in abstract
    time units; ``time_unit`` says how many seconds one unit lasts.

    Example:
        ```python
        # From environment
        config = ReviewGateConfig()

        # Direct instantiation
        config = ReviewGateConfig(
            supabase_url="https://xxx.supabase.co",
            supabase_key="your-key",
            time_unit=1.0,
        )
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="REVIEWGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase connection
    supabase_url: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)",
    )

    supabase_key: str = Field(
        ...,
        description="Supabase service role key",
    )

    db_schema: str = Field(
        default="public",
        description="PostgreSQL schema where review tables live",
    )

    # Links
    app_url: Optional[str] = Field(
        default=None,
        description="Public base URL of the web app, prefixed to generated links",
    )

    # Workflow timing (in time units)
    time_unit: float = Field(
        default=1.0,
        gt=0,
        description="Length of one time unit in seconds",
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per persistence step before giving up",
    )

    acceptance_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Deadline for one full acceptance run",
    )

    guard_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Fail-open deadline for reviewer access lookups",
    )

    settle_delay: float = Field(
        default=0.5,
        ge=0,
        description="Pause after acceptance before signalling completion",
    )

    navigation_delay: float = Field(
        default=1.5,
        ge=0,
        description="Pause between completion and navigation to the project",
    )

    continuation_delay: float = Field(
        default=0.1,
        ge=0,
        description="Pause before resuming a stored post-auth redirect",
    )

    # Feature flags
    enable_audit_log: bool = Field(
        default=True,
        description="Record acceptance events in review_audit_log",
    )

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Ensure Supabase URL is valid."""
        if not v.startswith("https://"):
            raise ValueError("supabase_url must start with https://")
        return v.rstrip("/")

    @field_validator("supabase_key")
    @classmethod
    def validate_supabase_key(cls, v: str) -> str:
        """Ensure Supabase key is not empty."""
        if not v or len(v) < 10:
            raise ValueError("supabase_key appears invalid (too short)")
        return v

    @field_validator("app_url")
    @classmethod
    def strip_app_url(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    def seconds(self, units: float) -> float:
        """Convert a duration in time units to seconds."""
        return units * self.time_unit


def load_config(**kwargs) -> ReviewGateConfig:
    """
    Load ReviewGate configuration.

    Priority order:
    1. Keyword arguments
    2. Environment variables (REVIEWGATE_*)
    3. .env file

    Args:
        **kwargs: Override configuration values

    Returns:
        ReviewGateConfig instance

    Raises:
        ValidationError: If required fields are missing or invalid
    """
    return ReviewGateConfig(**kwargs)
