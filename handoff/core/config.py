from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global Handoff settings.
    Values are read from the environment and from the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project
    project_name: str = "Handoff API"
    api_v1_str: str = "/api/v1"
    debug: bool = False

    # Security / JWT
    secret_key: str = "changeme"
    access_token_expire_minutes: int = 60
    refresh_token_expire_minutes: int = 10080
    algorithm: str = "HS256"

    # Database
    database_url: str = "sqlite:///./handoff.db"

    # Object storage (S3 / MinIO)
    s3_endpoint_url: Optional[str] = None
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_bucket_files: str = "project-files"

    # Local storage
    handoff_storage: str = "_storage"

    # Signed download links for project files
    signed_url_ttl_seconds: int = 60

    # Portal tokens (None = tokens never expire)
    portal_token_ttl_days: Optional[int] = None

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Public URLs (portal links, signed storage links)
    public_base_url: str = "http://localhost:8000"
    public_app_url: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def resolved_public_app_url(self) -> str:
        """Base URL used when building portal links handed to clients."""
        base = (self.public_app_url or "").strip()
        if base:
            return base.rstrip("/")
        return (self.public_base_url or "").rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return the cached global settings instance."""
    return Settings()


settings = get_settings()
