from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Proxy settings loaded from environment variables.

    Everything is read once at process start; there is no hot reload.
    """

    # Debug mode - includes exception types in 500 responses
    debug: bool = False

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Completion / moderation API
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo-0125"
    openai_temperature: float = 0.8
    openai_max_tokens: int = 180

    # Shared secret expected in the x-app-secret header
    app_shared_secret: str = ""

    # Fixed-window rate limiting, per client IP
    rate_limit_requests_per_window: int = 60
    rate_limit_window_seconds: int = 60
    rate_limit_max_entries: int = 10000  # LRU bound on the bucket table
    rate_limit_sweep_seconds: int = 300

    # Block when the moderation verdict is missing or malformed
    moderation_fail_closed: bool = False

    # HTTP client timeouts and pool
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Value sent as Access-Control-Allow-Origin on every response
    allow_origin: str = "*"

    @field_validator(
        "rate_limit_requests_per_window",
        "rate_limit_window_seconds",
        "rate_limit_max_entries",
        "rate_limit_sweep_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("openai_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("openai_temperature must be between 0 and 2")
        return v

    @field_validator("openai_max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if v < 1:
            raise ValueError("openai_max_tokens must be at least 1")
        return v

    @field_validator(
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
