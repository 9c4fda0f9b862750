import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_list(raw: Any) -> list[str]:
    """Parse a list setting from JSON or a comma/whitespace separated string."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    # Prefer JSON, but tolerate plain comma separated values (the format
    # most deployments use for GEMINI_API_KEYS).
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    parts = [p.strip().strip("'\"") for p in re.split(r"[,\s]+", raw)]
    # Deduplicate while preserving order.
    seen: set[str] = set()
    result: list[str] = []
    for part in parts:
        if not part or part in seen:
            continue
        seen.add(part)
        result.append(part)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - exposes exception messages in 500 responses
    debug: bool = False

    # Database (student and material store)
    database_url: str = "sqlite+aiosqlite:///./studytutor.db"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_recycle: int = 300

    # Token verification (tokens are issued elsewhere)
    jwt_secret: str = "secret"
    jwt_algorithm: str = "HS256"

    # Gemini provider settings
    gemini_api_keys: Annotated[list[str], NoDecode] = []
    gemini_api_key: str = ""  # Single-key form, merged into the pool
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_primary_model: str = "gemini-1.5-flash"
    gemini_fallback_models: Annotated[list[str], NoDecode] = [
        "gemini-pro",
        "gemini-pro-latest",
    ]
    gemini_timeout: float = 60.0
    max_output_tokens: int = 2048

    # Use the canned mock provider instead of Gemini (local dev, load tests)
    mock_provider: bool = Field(default=False, validation_alias="TUTOR_MOCK_PROVIDER")

    # YouTube search settings
    youtube_api_key: str = ""
    youtube_api_url: str = "https://www.googleapis.com/youtube/v3/search"

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Admission control
    rate_limit_user_requests: int = 10  # per user per window
    rate_limit_key_requests: int = 50  # per provider key per window
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_entries: int = 10000

    # Quota (HTTP 429) retry policy for generation calls
    quota_retry_attempts: int = 2
    quota_retry_delay: float = 2.0

    # Cache settings
    cache_default_ttl: int = 3600  # 1 hour
    cache_content_ttl: int = 86400  # 24 hours for generated study content
    cache_chat_ttl: int = 3600  # 1 hour for free-form chat replies

    # Conversation history
    history_max_messages: int = 20
    history_context_messages: int = 5

    # Redis settings (optional, shared cache and session store)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("gemini_api_keys", "gemini_fallback_models", "cors_origins", mode="before")
    @classmethod
    def decode_list(cls, v: Any) -> list[str]:
        return _parse_list(v)

    @field_validator(
        "rate_limit_user_requests",
        "rate_limit_key_requests",
        "history_max_messages",
        "history_context_messages",
        "max_output_tokens",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate limits are positive."""
        if v < 1:
            raise ValueError("Limit values must be at least 1")
        return v

    @field_validator("rate_limit_window_seconds", "gemini_timeout")
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Interval values must be positive")
        return v

    @field_validator("quota_retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("quota_retry_attempts cannot be negative")
        return v

    @property
    def provider_api_keys(self) -> list[str]:
        """All configured Gemini keys, pool order first, single key appended."""
        keys = list(self.gemini_api_keys)
        single = self.gemini_api_key.strip()
        if single and single not in keys:
            keys.append(single)
        return keys

    @property
    def model_chain(self) -> list[str]:
        """Primary model followed by the fallbacks, without duplicates."""
        chain = [self.gemini_primary_model]
        for name in self.gemini_fallback_models:
            if name not in chain:
                chain.append(name)
        return chain

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


# Global settings instance
settings = Settings()
