"""
API configuration settings.
"""

from typing import List, Set

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "SEO Crawl Automation API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # API Key Settings
    api_keys: str = ""  # Comma-separated list of valid API keys; empty disables the check

    # CORS Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore"
    }

    def get_api_keys(self) -> Set[str]:
        return {key.strip() for key in self.api_keys.split(",") if key.strip()}


# Global config instance
config = APIConfig()
