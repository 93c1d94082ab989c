from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_prefix: str = "/api"

    # Database
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "blood_bank"

    # Security
    secret_key: str = "changeme"  # override in .env
    access_token_expire_minutes: int = 60 * 12

    # HTTP
    cors_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
