"""
Configuration settings for the product catalog API.

Loads environment variables from .env file and provides typed configuration.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    # API Configuration
    API_PREFIX: str = "/api"
    CORS_ORIGINS: List[str] = Field(default=["*"], description="Allowed CORS origins")
    ENVIRONMENT: str = Field(
        default="development", description="'production' disables the OpenAPI docs"
    )
    PORT: int = 8000

    # Database Configuration
    DATABASE_URL: Optional[str] = Field(default=None, description="MongoDB connection URL")
    DATABASE_NAME: Optional[str] = Field(default=None, description="MongoDB database name")

    # Cache Configuration
    CACHE_TTL_SECONDS: int = Field(
        default=300, description="TTL for cached collection and detail reads"
    )
    CACHE_MAX_SIZE: int = Field(default=1000, description="Maximum cached responses")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")


# Global settings instance
settings = Settings()
