"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_path: str = "./data/accounts.db"
    # Seconds a connection waits for another writer to release the lock
    database_busy_timeout: float = 30.0
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Service-to-service authentication
    # Empty token means every guarded request is rejected
    internal_service_token: str = ""
    service_token_header: str = "X-Service-Token"

    # Bcrypt work factor (higher = more secure but slower)
    # For tests, use 4 for faster execution while maintaining functionality
    bcrypt_work_factor: int = 12

    # Verification codes
    verification_code_ttl_minutes: int = 3

    # Reset tokens
    password_reset_ttl_minutes: int = 30
    email_reset_ttl_minutes: int = 30

    # Student code allocation
    pillar_max_attempts: int = 100

    # Outbound notifications (BFF broadcast endpoint)
    # Empty base URL means notifications are only logged
    notifier_base_url: str = ""
    notifier_endpoint: str = "/internal/notifications/broadcast"
    notifier_timeout_seconds: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )


settings = Settings()
