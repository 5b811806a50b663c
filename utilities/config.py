"""
Configuration management using environment variables.
Handles storage, catalog search and shelf settings with validation and defaults.
"""

from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path


class AppConfig(BaseSettings):
    """
    Configuration class for the reading shelf services.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017/?replicaSet=rs0", env="MONGODB_URL")
    mongodb_database: str = Field(default="reading_shelf", env="MONGODB_DATABASE")
    transaction_retry_attempts: int = Field(default=2, env="TRANSACTION_RETRY_ATTEMPTS")

    # Book search (Naver open API)
    naver_base_url: str = Field(default="https://openapi.naver.com", env="NAVER_BASE_URL")
    naver_client_id: str = Field(default="", env="NAVER_CLIENT_ID")
    naver_client_secret: str = Field(default="", env="NAVER_CLIENT_SECRET")
    search_request_timeout: float = Field(default=5.0, env="SEARCH_REQUEST_TIMEOUT")
    search_sort: str = Field(default="sim", env="SEARCH_SORT")

    # OAuth2 userinfo lookups
    oauth_request_timeout: float = Field(default=5.0, env="OAUTH_REQUEST_TIMEOUT")

    # Shelf rules
    max_tags_per_entry: int = Field(default=5, env="MAX_TAGS_PER_ENTRY")
    default_page_size: int = Field(default=10, env="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, env="MAX_PAGE_SIZE")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Development/Testing
    debug: bool = Field(default=False, env="DEBUG")
    test_mode: bool = Field(default=False, env="TEST_MODE")

    @validator('transaction_retry_attempts')
    def validate_retry_attempts(cls, v):
        """Ensure retry attempts is reasonable."""
        if v < 0 or v > 10:
            raise ValueError('transaction_retry_attempts must be between 0 and 10')
        return v

    @validator('search_request_timeout', 'oauth_request_timeout')
    def validate_timeout(cls, v):
        """Ensure timeouts are conservative."""
        if v <= 0 or v > 60:
            raise ValueError('request timeouts must be between 0 and 60 seconds')
        return v

    @validator('max_tags_per_entry')
    def validate_max_tags(cls, v):
        if v < 1:
            raise ValueError('max_tags_per_entry must be at least 1')
        return v

    @validator('max_page_size')
    def validate_max_page_size(cls, v):
        if v < 1 or v > 1000:
            raise ValueError('max_page_size must be between 1 and 1000')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_user_agent(self) -> str:
        """Get user agent string for outbound requests."""
        return "ReadingShelf-Backend/1.0"

    def get_search_headers(self) -> dict:
        """Get headers for the Naver book search API."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "application/json",
            "X-Naver-Client-Id": self.naver_client_id,
            "X-Naver-Client-Secret": self.naver_client_secret,
        }


# Global configuration instance
config = AppConfig()
