"""Configuration management for the repo checker worker."""

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuration class for the repo checker."""

    # GitHub
    GITHUB_API_URL = os.getenv('GITHUB_API_URL', 'https://api.github.com')
    GITHUB_TOKEN = os.getenv('GITHUB_TOKEN') or None
    GITHUB_TIMEOUT = float(os.getenv('GITHUB_TIMEOUT', '10'))

    # PostgreSQL Configuration
    POSTGRES_HOST = os.getenv('POSTGRES_HOST', 'localhost')
    POSTGRES_PORT = int(os.getenv('POSTGRES_PORT', '5432'))
    POSTGRES_DB = os.getenv('POSTGRES_DB', 'meme_war')
    POSTGRES_USER = os.getenv('POSTGRES_USER', 'meme_war')
    POSTGRES_PASSWORD = os.getenv('POSTGRES_PASSWORD', 'meme_war')
    POSTGRES_MIN_POOL_SIZE = int(os.getenv('POSTGRES_MIN_POOL_SIZE', '1'))
    POSTGRES_MAX_POOL_SIZE = int(os.getenv('POSTGRES_MAX_POOL_SIZE', '4'))

    # Prometheus Metrics
    METRICS_PORT = int(os.getenv('METRICS_PORT', '8002'))

    # Polling
    CHECK_INTERVAL_SECONDS = float(os.getenv('CHECK_INTERVAL_SECONDS', '120'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def get_postgres_dsn(cls):
        """Get PostgreSQL connection DSN."""
        return (
            f"postgresql://{cls.POSTGRES_USER}:{cls.POSTGRES_PASSWORD}"
            f"@{cls.POSTGRES_HOST}:{cls.POSTGRES_PORT}/{cls.POSTGRES_DB}"
        )
