"""
Configuration management.
Simple .env based config for VPS deployment.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    
    # Database
    database_path: str = "./data/carriers.db"
    
    # Shipway carrier API
    shipway_api_url: str = "https://app.shipway.com/api/getcarrier"
    shipway_timeout: float = 30.0  # seconds
    
    # Sync behaviour
    sync_concurrency_limit: Optional[int] = None  # None = all stores at once
    skip_empty_upstream: bool = False  # keep the store's list when upstream returns nothing
    
    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
