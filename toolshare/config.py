"""
Application settings, read from the environment and an optional ``.env`` file.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from functools import lru_cache
import os

DEV_JWT_SECRET = "your-secret-key-change-in-production"

# Sync URL prefixes rewritten to their async driver
ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Tool Rental Marketplace API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/toolshare"
    database_pool_size: int = 10
    database_max_overflow: int = 20

    jwt_secret_key: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    bcrypt_rounds: int = 12

    # Local object store
    upload_dir: str = "./uploads"
    media_base_url: str = "http://localhost:8000/media/"
    max_image_size: int = 5 * 1024 * 1024
    allowed_image_types: List[str] = ["image/jpeg", "image/png", "image/webp"]
    max_images_per_listing: int = 10

    message_max_length: int = 1000
    message_fetch_limit: int = 100
    message_since_skew_seconds: int = 1

    review_comment_max_length: int = 250

    search_result_limit: int = 100

    api_prefix: str = ""
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("database_url", mode="before")
    @classmethod
    def use_async_driver(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        for prefix, async_prefix in ASYNC_DRIVERS.items():
            if v.startswith(prefix):
                return async_prefix + v[len(prefix):]
        return v

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def check_secret_strength(cls, v):
        """Anything other than the development placeholder must be 32+ characters."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if v != DEV_JWT_SECRET and len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("environment")
    @classmethod
    def check_environment(cls, v):
        allowed = ("development", "testing", "staging", "production")
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {', '.join(allowed)}")
        return v

    @field_validator("upload_dir", mode="before")
    @classmethod
    def ensure_upload_dir(cls, v):
        if v:
            os.makedirs(v, exist_ok=True)
        return v

    @field_validator("media_base_url")
    @classmethod
    def ensure_trailing_slash(cls, v):
        # Object keys are appended directly
        return v if v.endswith("/") else v + "/"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, built once."""
    return Settings()


settings = get_settings()
