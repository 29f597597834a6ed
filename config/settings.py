"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Import tunables are prefixed with IMPORT_ in the environment.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from decimal import Decimal
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # UPLOAD LIMITS
    # ===================
    import_max_file_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        le=100 * 1024 * 1024,
        description="Maximum accepted spreadsheet size in bytes"
    )
    import_max_rows: int = Field(
        default=5000,
        ge=1,
        le=50000,
        description="Maximum data rows per batch"
    )

    # ===================
    # CLASSIFICATION
    # ===================
    import_similarity_threshold: int = Field(
        default=70,
        ge=1,
        le=100,
        description="Minimum similarity score (0-100) to surface a suggestion"
    )
    import_min_quantity: Decimal = Field(
        default=Decimal("0.0001"),
        gt=0,
        description="Smallest quantity accepted for a row"
    )
    import_allowed_units: list[str] = Field(
        default=["MILLAR", "UNIDAD", "CIENTO", "DOCENA", "KILOGRAMO", "HORA"],
        description="Accepted unit labels (empty list accepts any unit)"
    )
    import_resolver_max_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Worker threads used to resolve distinct codes"
    )

    # ===================
    # SESSIONS & EXECUTION
    # ===================
    import_preview_sample_size: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Rows per bucket included in preview samples"
    )
    import_session_ttl_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Minutes an import session stays available"
    )
    import_duplicate_policy: str = Field(
        default="SUM",
        pattern="^(SUM|LAST_WINS|REJECT)$",
        description="How repeated (warehouse, product) rows are committed"
    )
    import_write_chunk_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Rows per movement insert"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def allowed_units(self) -> set[str]:
        """Upper-cased unit labels for membership checks."""
        return {unit.strip().upper() for unit in self.import_allowed_units}


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
