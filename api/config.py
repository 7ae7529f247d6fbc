"""
API configuration settings.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Digital Library API"
    api_version: str = "1.0.0"
    api_description: str = "REST API for the digital library: books, events, users and the library assistant"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False
    environment: str = "production"

    # Security Settings
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60

    # Rate Limiting
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests: int = 100
    auth_rate_limit_max_requests: int = 5
    rate_limit_sweep_interval_seconds: int = 60

    # Upload limits (bytes)
    max_book_upload_bytes: int = 50 * 1024 * 1024
    max_image_upload_bytes: int = 5 * 1024 * 1024
    max_default_upload_bytes: int = 10 * 1024 * 1024

    # CORS Settings
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    cors_allow_headers: List[str] = ["Content-Type", "Authorization", "X-Requested-With"]

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def expose_error_details(self) -> bool:
        """Whether unhandled error details may be returned to clients."""
        return self.debug or self.environment == "development"


# Global config instance
config = APIConfig()
