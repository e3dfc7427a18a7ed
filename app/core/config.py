## app/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the application
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", case_sensitive=False
    )

    environment: str = "development"
    allowed_cors_urls: str = "*"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "signatures"

    # Full SQLAlchemy URL, wins over the POSTGRES_* parts when set
    database_url: Optional[str] = None

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None

    secret_key: Optional[str] = None
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    refresh_token_expire_days: int = 7

    # Signature provider integration
    provider_base_url: str = "https://sandbox.clicksign.com"
    provider_api_key: Optional[str] = None
    provider_timeout_ms: int = 30000
    provider_webhook_secret: Optional[str] = None

    @property
    def async_db_url(self) -> str:
        """
        Async database URL
        """
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def redis_url(self) -> str:
        """
        Redis connection URL
        """
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        return f"redis://{self.redis_host}:{self.redis_port}"

    @property
    def celery_broker(self) -> str:
        """
        Celery broker URL
        """
        return f"{self.redis_url}/1"

    @property
    def celery_backend(self) -> str:
        """
        Celery backend URL
        """
        return f"{self.redis_url}/2"

    @property
    def provider_timeout(self) -> float:
        """
        Per-request deadline for provider calls, in seconds
        """
        return self.provider_timeout_ms / 1000


settings = Settings()
