from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Celery worker configuration."""

    redis_url: str = "redis://redis:6379/0"
    timezone: str = "UTC"
    database_url: str = "postgresql+psycopg2://medrec:medrec@db:5432/medrec"
    upload_root: Path = Path("uploads")
    orphan_grace_seconds: int = 60 * 60
    orphan_sweep_interval_seconds: int = 60 * 60 * 24

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
