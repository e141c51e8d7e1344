"""
Application settings for the Gripp Hours Service.

All values are read from environment variables (or a local .env file).
The Gripp endpoint and API key must be supplied through the environment.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration.

    Queue and cache timings are expressed the same way the upstream rate
    limits are documented: milliseconds for the request queue, seconds for
    the cache TTL.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    APP_NAME: str = "gripp-hours-service"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Store
    DATABASE_URL: str = "sqlite:///./gripp_hours.db"

    # Upstream Gripp API
    GRIPP_API_URL: str = "http://localhost:3002/public/api3.php"
    GRIPP_API_KEY: str = ""
    GRIPP_TIMEOUT: float = 60.0
    GRIPP_PAGE_SIZE: int = 250

    # Request queue
    QUEUE_MIN_INTERVAL_MS: int = 500
    QUEUE_MAX_CONCURRENT: int = 2
    QUEUE_MAX_RETRY_ATTEMPTS: int = 5
    QUEUE_RETRY_DELAY_MS: int = 2000
    QUEUE_RATE_LIMIT_BASE_DELAY_MS: int = 3000
    QUEUE_RATE_LIMIT_JITTER_MS: int = 1000

    # Cache
    CACHE_TTL_SECONDS: int = 30 * 60
    CACHE_MAX_SIZE: int = 1000

    # Absence type that Gripp uses for public holidays
    HOLIDAY_ABSENCE_TYPE: str = "Feestdag"

    # Base URL the client-side stats client talks to
    STATS_API_URL: str = "http://localhost:8000/api/v1"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
