from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "Riftboard"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/riftboard"

    # Realtime relay that fans "match changed" events out to viewers.
    # Empty string disables delivery (events are only logged).
    notify_url: str = ""
    notify_timeout: float = 5.0


settings = Settings()


# =============================================================================
# BOARD LIMITS
# =============================================================================

# Per-side score bounds, inclusive
MIN_SCORE = 0
MAX_SCORE = 9

# Maximum number of cards a single peek may reveal
MAX_PEEK = 10
