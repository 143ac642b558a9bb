from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "LinkTrack"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database
    database_url: str = "sqlite:///./linktrack.db"
    sqlite_busy_timeout: int = 30  # Seconds a writer waits for the lock

    # Short codes
    base_url: str = "http://127.0.0.1:8000"
    short_code_length: int = 6
    max_retries: int = 5

    # Short code generation strategy
    short_code_strategy: str = "random"  # Options: "random", "base62"
    short_code_salt: int = 1256  # Salt for Base62 strategy

    # Cache settings
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 3600  # Link snapshots (1 hour)
    analytics_cache_ttl: int = 1800  # Analytics reports (30 minutes)

    # Enrichment queue settings
    queue_backend: str = "memory"  # Options: "redis_streams", "memory"
    queue_name: str = "redirect_hits"
    queue_consumer_group: str = "enrichment_workers"
    queue_batch_size: int = 50
    queue_poll_interval: float = 0.5  # Seconds to sleep when the queue is empty
    run_embedded_worker: bool = True  # Run the enrichment worker inside the API process
    memory_queue_max_length: int = 10000  # Per-queue cap for the in-memory backend
    dispatch_max_pending: int = 1000  # Hits waiting on a broker publish before new ones are dropped

    # Geo lookup settings
    geo_backend: str = "ipapi"  # Options: "ipapi", "null"
    geo_api_url: str = "https://ipapi.co"
    geo_timeout: float = 5.0

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"  # e.g. "redis://localhost:6379/1"
    rate_limit_create: str = "20/hour"  # Per owner
    rate_limit_api: str = "1000/15 minutes"  # Per client IP

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
