"""Application configuration."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Importer settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Place Importer"
    version: str = "0.1.0"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Fetch Settings
    FETCH_TIMEOUT: float = Field(default=20.0, gt=0)
    FETCH_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    SCRIPT_RENDERED_MIN_LENGTH: int = 200  # Shorter bodies with <script are rejected

    # Geocoding Settings
    GEOCODING_TIMEOUT: int = 10
    GEOCODING_RATE_LIMIT: float = Field(default=0.0, ge=0)  # Min delay per backend call
    NOMINATIM_USER_AGENT: str = "place-importer"
    NOMINATIM_DOMAIN: str = "nominatim.openstreetmap.org"
    GEOCODING_DEFAULT_COUNTRY: str = "United States"
    GEOCODING_COUNTRY_CODES: list[str] = ["us"]

    # Throttle handling (seconds)
    GEOCODING_THROTTLE_PAUSE: float = 1.0
    GEOCODING_BACKOFF_STEP: float = 0.5
    GEOCODING_BACKOFF_CAP: float = 2.0
    GEOCODING_VARIANT_DELAY: float = 0.15
    GEOCODING_INTER_ITEM_DELAY: float = 0.5

    # Redis Settings (optional geocode cache)
    REDIS_URL: str | None = None
    GEOCODING_CACHE_TTL: int = Field(default=2592000, ge=0)  # 30 days

    # LLM Settings
    LLM_PROVIDER: str = "openai"
    LLM_MODEL_NAME: str = "google/gemini-2.0-flash-001"
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int | None = None
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_EXTRACTION_ENABLED: bool = True
    LLM_EXTRACTION_MAX_CHARS: int = 12000

    # API Keys
    OPENROUTER_API_KEY: str | None = None

    # Named-entity extraction
    NER_ENABLED: bool = True
    NER_MODEL: str = "en_core_web_sm"
    NER_WINDOW_LINES: int = Field(default=5, ge=1)

    # Place sources
    TEMPLATES_DIR: Path = Path(__file__).resolve().parent.parent / "places" / "templates"
    PLACE_GENERATION_MAX_COUNT: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def validate_backoff(self) -> "Settings":
        """Keep the backoff cap at or above a single step."""
        if self.GEOCODING_BACKOFF_CAP < self.GEOCODING_BACKOFF_STEP:
            self.GEOCODING_BACKOFF_CAP = self.GEOCODING_BACKOFF_STEP
        return self


# Create settings instance
settings = Settings()
