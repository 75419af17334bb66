"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://dairycart:dairycart_dev_password@db:5432/dairycart"

    # Transactions
    transaction_timeout_seconds: float = 30.0
    sku_collision_retries: int = 1

    # Webhooks
    webhook_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
