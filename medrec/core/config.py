from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "Patient Records API"
    database_url: str = (
        "postgresql+psycopg2://medrec:medrec@db:5432/medrec"  # pragma: allowlist secret
    )
    database_pool_size: int = 10
    database_max_overflow: int = 10
    create_tables_on_startup: bool = True
    upload_root: Path = Path("uploads")
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    api_port: int = 3001
    app_port: int = 3000
    log_level: str = "INFO"
    profile_timeout_seconds: float | None = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()
