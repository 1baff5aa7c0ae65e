"""
Application settings.

Values come from the environment (or a local .env file). The settings object
is built once and handed to the pieces that need it: the database client,
the token service and the asset store.
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore",
    )

    # App
    app_name: str = "Video Sharing Backend"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api/v1"
    port: int = 8000
    cors_origins: List[str] = ["*"]
    rate_limit_enabled: bool = True
    upload_rate_limit: str = "20 per 20 minutes"

    # MongoDB
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "video_sharing"

    # Tokens
    access_token_secret: str = "change-me-access"
    access_token_expire_minutes: int = 60 * 24
    refresh_token_secret: str = "change-me-refresh"
    refresh_token_expire_days: int = 10
    jwt_algorithm: str = "HS256"
    cookie_secure: bool = True

    # Cloudinary
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "video-sharing"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
