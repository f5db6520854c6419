"""
Configuration and settings for the places API.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Bearer tokens
    jwt_key: str = Field(..., min_length=1)
    jwt_algorithm: str = Field(default="HS256")
    token_ttl_seconds: int = Field(default=3600)
    password_hash_rounds: int = Field(default=12)

    # Geocoding (Geocodio)
    geocode_api_key: Optional[str] = Field(default=None)
    geocode_base_url: str = Field(default="https://api.geocod.io/v1.7")
    geocode_timeout_seconds: float = Field(default=10.0)
    # Used when no API key is configured.
    fallback_lat: float = Field(default=40.7484474)
    fallback_lng: float = Field(default=-73.9871516)

    # Uploaded images
    upload_dir: str = Field(default=".")
    upload_prefix: str = Field(default="uploads/images")
    max_upload_bytes: int = Field(default=500000)

    # S3-compatible storage (Tencent COS)
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
