from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    project_name: str = "Widget Chat API"
    api_v1_prefix: str = "/api/v1"

    # Debug flag and root log level (DEBUG, INFO, WARNING, ERROR)
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = "INFO"

    # MOCK_AI=true: chat turns stream a canned reply instead of calling a provider.
    # Persistence still runs with placeholder usage numbers.
    mock_ai: bool = False

    # Provider API keys (optional; a tenant whose model needs a missing key gets a 502)
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    gemini_api_key: str | None = None

    # Model assigned to new tenants when the plan has no default
    default_ai_model: str = "openai/gpt-5-nano"

    # Generation parameters, applied uniformly to every tenant
    chat_temperature: float = 0.7
    chat_max_output_tokens: int = 1024
    # Sliding window of prior turns forwarded to the provider
    chat_history_window: int = 20

    # Per-visitor rate limit (process-local)
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 20

    # Cache-Control max-age for GET /config
    config_cache_seconds: int = 300

    # ADMIN_API_KEY: shared secret for the operator endpoints (/tenants).
    #   When unset, operator endpoints answer 503.
    admin_api_key: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid"
    )


settings = Settings()
