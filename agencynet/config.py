"""
Agency network configuration management.

Loads configuration from environment variables or .env file.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgencyNetworkConfig(BaseSettings):
    """
    Agency network configuration settings.

    Can be loaded from:
    1. Environment variables (AGENCYNET_SUPABASE_URL, AGENCYNET_SUPABASE_KEY, etc.)
    2. .env file in project root
    3. Direct instantiation with kwargs

    Example:
        ```python
        # From environment
        config = AgencyNetworkConfig()

        # Direct instantiation
        config = AgencyNetworkConfig(
            supabase_url="https://xxx.supabase.co",
            supabase_key="your-key"
        )
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENCYNET_",
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

    supabase_anon_key: Optional[str] = Field(
        default=None,
        description="Supabase anon key (for the public verification endpoint)",
    )

    db_schema: str = Field(
        default="public",
        description="PostgreSQL schema where the network tables live",
    )

    # Lifecycle rules
    invitation_ttl_days: int = Field(
        default=7,
        ge=1,
        le=30,
        description="Days until an agent invitation expires",
    )

    license_validity_months: int = Field(
        default=11,
        ge=1,
        description="Calendar months after which an agency license needs renewal",
    )

    token_bytes: int = Field(
        default=32,
        ge=16,
        description="Entropy in bytes of invitation tokens",
    )

    app_base_url: str = Field(
        default="http://localhost:5173",
        description="Public app URL used to build invitation links",
    )

    # Feature flags
    auto_migrate: bool = Field(
        default=False,
        description="Automatically run migrations on client initialization",
    )

    enable_notifications: bool = Field(
        default=True,
        description="Write notification rows on state transitions",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level used by configure_logging()",
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

    @field_validator("app_base_url")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_config(**kwargs) -> AgencyNetworkConfig:
    """
    Load agency network configuration.

    Priority order:
    1. Keyword arguments
    2. Environment variables (AGENCYNET_*)
    3. .env file

    Args:
        **kwargs: Override configuration values

    Returns:
        AgencyNetworkConfig instance

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid
    """
    return AgencyNetworkConfig(**kwargs)
