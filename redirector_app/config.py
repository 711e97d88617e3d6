from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


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
    debug: bool = False
    log_level: str = "INFO"

    # Application
    app_name: str = "Redirector"
    app_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 6000

    # Database
    database_url: str = "sqlite:///./redirector.db"

    # Authentication
    # Empty secret means a temporary one is generated at startup (tokens die with the process)
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 3600

    # Initial user bootstrap (generated and logged when empty)
    initial_username: Optional[str] = None
    initial_password: Optional[str] = None

    # Slugs under this prefix belong to the management API
    reserved_slug_prefix: str = "api"

    # Use X-Forwarded-For for client IPs (only behind a trusted proxy)
    trust_forwarded_for: bool = False

    # Queue settings (hit tracking)
    queue_backend: str = "redis_streams"  # Options: "redis_streams", "memory"
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "redirect_hits"
    queue_consumer_group: str = "hit_workers"
    queue_batch_size: int = 100  # Number of messages to process at once
    queue_worker_interval: int = 1  # Worker poll interval in seconds
    queue_claim_idle_ms: int = 60000  # Unacknowledged hits of other workers are taken over after this

    # Run the hit worker inside the web process
    hit_worker_embedded: bool = True

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
