"""Configuration management for the Voting API service."""
import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables, .env and secrets."""

    # Service configuration
    SERVICE_NAME: str = "meme-voting-api"
    API_VERSION: str = "v1"
    DEBUG: bool = False

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Secrets (HASH_SALT missing blocks all voting)
    ADMIN_SECRET: Optional[str] = None
    HASH_SALT: Optional[str] = None

    # Storage backend: "postgres" or "memory"
    STORE_BACKEND: str = "postgres"

    # PostgreSQL configuration
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "meme_war"
    POSTGRES_USER: str = "meme_war"
    POSTGRES_PASSWORD: str = "meme_war"

    # Redis configuration (voter fast-path cache)
    REDIS_ENABLED: bool = True
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # Rate limiting
    RATE_LIMIT: str = "600/minute"

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Connection pools
    POSTGRES_POOL_MIN_SIZE: int = 10
    POSTGRES_POOL_MAX_SIZE: int = 20

    # Competition
    DEFAULT_DURATION_MINUTES: float = 60
    RESET_BATCH_SIZE: int = Field(400, gt=0)
    LEADERBOARD_SIZE: int = Field(10, gt=0)
    REPO_SUFFIX: str = "-meme-war"

    class Config:
        env_file = ".env"
        case_sensitive = True
        secrets_dir = os.getenv("SECRETS_DIR") or None

    @property
    def postgres_dsn(self) -> str:
        """Generate PostgreSQL connection string."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        """Generate Redis connection URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
