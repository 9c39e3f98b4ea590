from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    APP_ENV: str = "dev"

    # Database
    DATABASE_URL: str = "sqlite:///./catalog.db"

    # Redis cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL: int = 300
    CACHE_PRODUCT_DATA: bool = True
    PRODUCT_CACHE_TTL: int = 300

    # Exchange rate provider
    EXCHANGE_RATE_API_ENDPOINT: str = "https://open.er-api.com/v6/latest"
    EXCHANGE_DATA_CACHE_TTL: int = 86400
    EXCHANGE_RATE_TIMEOUT: float = 5.0

    # Asset storage
    STORAGE_DIR: str = "storage"

    # Audit log (1=CRITICAL, 2=WARNING, 3=NOTICE, 4=INFO)
    DATABASE_LOGGING: bool = True
    LOG_LEVEL: int = 4

    LIMIT_CONTENT_PER_PAGE: int = 10

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    return Settings()
