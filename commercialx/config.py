"""Application configuration with environment variable validation."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from commercialx.services.fuzzy_match import (
    EquipmentTolerances,
    FuzzyMatchConfig,
    StringMatching,
    VehicleTolerances,
)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_key: str = Field(default="", validation_alias="SUPABASE_KEY")

    # Upstream data providers
    nhtsa_base_url: str = Field(
        default="https://vpic.nhtsa.dot.gov/api",
        validation_alias="NHTSA_BASE_URL",
    )
    epa_base_url: str = Field(
        default="https://www.fueleconomy.gov/ws/rest",
        validation_alias="EPA_BASE_URL",
    )
    upstream_timeout_seconds: float = Field(
        default=10.0, validation_alias="UPSTREAM_TIMEOUT_SECONDS"
    )

    # Enrichment cache
    enrichment_cache_ttl: int = Field(
        default=3600, validation_alias="ENRICHMENT_CACHE_TTL"
    )
    enrichment_cache_size: int = Field(
        default=512, validation_alias="ENRICHMENT_CACHE_SIZE"
    )

    # Listing orchestration
    listing_step_timeout_seconds: float = Field(
        default=30.0, validation_alias="LISTING_STEP_TIMEOUT_SECONDS"
    )

    # Fuzzy matching tolerances
    wheelbase_tolerance_in: float = Field(
        default=1.0, validation_alias="WHEELBASE_TOLERANCE_IN"
    )
    gvwr_tolerance_lbs: float = Field(
        default=100.0, validation_alias="GVWR_TOLERANCE_LBS"
    )
    vehicle_weight_tolerance_pct: float = Field(
        default=0.05, validation_alias="VEHICLE_WEIGHT_TOLERANCE_PCT"
    )
    vehicle_dimension_tolerance_in: float = Field(
        default=2.0, validation_alias="VEHICLE_DIMENSION_TOLERANCE_IN"
    )
    equipment_dimension_tolerance_in: float = Field(
        default=6.0, validation_alias="EQUIPMENT_DIMENSION_TOLERANCE_IN"
    )
    equipment_weight_tolerance_lbs: float = Field(
        default=100.0, validation_alias="EQUIPMENT_WEIGHT_TOLERANCE_LBS"
    )
    string_similarity_threshold: float = Field(
        default=0.85, validation_alias="STRING_SIMILARITY_THRESHOLD"
    )

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS
    allowed_origins: list[str] = Field(
        default=["*"],
        validation_alias="ALLOWED_ORIGINS",
    )

    @property
    def cors_origins(self) -> list[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or return list."""
        if isinstance(self.allowed_origins, str):
            return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return self.allowed_origins

    def fuzzy_match_config(self) -> FuzzyMatchConfig:
        """Build the immutable tolerance table from the loaded settings."""
        return FuzzyMatchConfig(
            vehicle=VehicleTolerances(
                wheelbase_tolerance_inches=self.wheelbase_tolerance_in,
                gvwr_tolerance_lbs=self.gvwr_tolerance_lbs,
                weight_tolerance_percentage=self.vehicle_weight_tolerance_pct,
                dimension_tolerance_inches=self.vehicle_dimension_tolerance_in,
            ),
            equipment=EquipmentTolerances(
                length_tolerance_inches=self.equipment_dimension_tolerance_in,
                width_tolerance_inches=self.equipment_dimension_tolerance_in,
                height_tolerance_inches=self.equipment_dimension_tolerance_in,
                weight_tolerance_lbs=self.equipment_weight_tolerance_lbs,
            ),
            strings=StringMatching(
                similarity_threshold=self.string_similarity_threshold,
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def validate_settings() -> None:
    """Validate that all required settings are present."""
    settings = get_settings()
    errors = []

    if not settings.supabase_url:
        errors.append("SUPABASE_URL is required")
    if not settings.supabase_key:
        errors.append("SUPABASE_KEY is required")
    if not 0.0 < settings.string_similarity_threshold <= 1.0:
        errors.append("STRING_SIMILARITY_THRESHOLD must be in (0, 1]")
    if settings.upstream_timeout_seconds <= 0:
        errors.append("UPSTREAM_TIMEOUT_SECONDS must be positive")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")
