"""Configuration management for the edge proxy."""

from typing import Annotated, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_name: str = Field(default="edge-proxy", description="Service name")
    service_host: str = Field(default="0.0.0.0", description="Host to bind")
    service_port: int = Field(default=8787, description="Port to bind")
    environment: str = Field(default="development", description="Environment")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=True, description="Render logs as JSON")

    # Search API
    google_api_key: Optional[str] = Field(default=None, description="Custom Search API key")
    search_engine_id: str = Field(default="400138774a1b94845", description="Search engine id (cx)")
    search_api_url: str = Field(
        default="https://www.googleapis.com/customsearch/v1",
        description="Custom Search JSON API endpoint",
    )
    result_limit: int = Field(default=5, description="Max records per search leg")
    always_combined: bool = Field(
        default=False, description="Ignore searchType and always run web + image"
    )

    # Upstream fetches
    upstream_timeout_seconds: float = Field(default=5.0, description="Per-call upstream timeout")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/117.0.0.0 Safari/537.36"
        ),
        description="Browser identity sent upstream",
    )
    blocked_redirect_patterns: Annotated[List[str], NoDecode] = Field(
        default=["google.com/sorry/index"],
        description="Redirect targets treated as CAPTCHA interstitials",
    )
    sanitize_url_patterns: Annotated[List[str], NoDecode] = Field(
        default=["google.com/search"],
        description="Target URLs whose markup is stripped of active content",
    )
    sanitizer_backend: str = Field(default="regex", description="regex or html_parser")

    # Cache Configuration
    cache_backend: str = Field(default="redis", description="redis or memory")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    cache_ttl_seconds: int = Field(default=86400, description="Cache TTL in seconds")
    cache_fail_open: bool = Field(
        default=False, description="Treat cache read errors as misses"
    )

    @field_validator("blocked_redirect_patterns", "sanitize_url_patterns", mode="before")
    @classmethod
    def parse_patterns(cls, v):
        """Parse comma-separated pattern lists."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("sanitizer_backend")
    @classmethod
    def check_sanitizer_backend(cls, v: str) -> str:
        """Only the two known backends are accepted."""
        v = v.lower()
        if v not in ("regex", "html_parser"):
            raise ValueError("sanitizer_backend must be 'regex' or 'html_parser'")
        return v

    @field_validator("cache_backend")
    @classmethod
    def check_cache_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("redis", "memory"):
            raise ValueError("cache_backend must be 'redis' or 'memory'")
        return v

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


# Global settings instance
settings = Settings()
