"""
Application Settings.

Centralized configuration using Pydantic Settings with environment variable loading.
Every external credential is optional: a service started without keys runs
trend acquisition on the mock dataset and publishes through the simulated
publisher, while generation and rendering fail at call time with a
ConfigurationError recorded on the run.

Production Mode:
    When app_env="production", additional validations apply:
    - api_key_enabled must be True
    - debug must be False
    - cors_allowed_origins cannot be ["*"]
    - cron_secret must be set
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Structured generation (candidate themes, production prompts)
    # -------------------------------------------------------------------------
    generation_provider: Literal["anthropic", "gemini"] = Field(
        default="anthropic",
        description="Which model family answers structured generation requests",
    )
    anthropic_api_key: SecretStr | None = Field(
        default=None, description="Anthropic API key for Claude"
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for structured generation",
    )
    generation_max_tokens: int = Field(
        default=2048,
        description="Upper bound on tokens per structured generation call",
    )
    generation_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sampling temperature; kept low so JSON output stays stable",
    )

    # -------------------------------------------------------------------------
    # Google GenAI (Gemini text, Veo video)
    # -------------------------------------------------------------------------
    gemini_api_key: SecretStr | None = Field(
        default=None, description="Google GenAI API key (Gemini and Veo)"
    )
    gemini_text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Gemini model used when generation_provider='gemini'",
    )
    veo_model: str = Field(
        default="veo-3.1-fast-generate-preview",
        description="Veo model used for rendering",
    )

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------
    render_aspect_ratio: Literal["9:16", "16:9"] = Field(
        default="9:16", description="Aspect ratio requested from the renderer"
    )
    render_resolution: Literal["720p", "1080p"] = Field(
        default="720p", description="Resolution requested from the renderer"
    )
    render_poll_interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Fixed delay between render status polls",
    )
    render_max_poll_attempts: int = Field(
        default=40,
        ge=1,
        description="Polls before a pending render is declared timed out",
    )

    # -------------------------------------------------------------------------
    # YouTube (trend source and publisher)
    # -------------------------------------------------------------------------
    youtube_api_key: SecretStr | None = Field(
        default=None,
        description="YouTube Data API key for trend search. Unset means mock trends.",
    )
    youtube_client_id: str | None = Field(
        default=None, description="OAuth client id used to refresh channel tokens"
    )
    youtube_client_secret: SecretStr | None = Field(
        default=None, description="OAuth client secret used to refresh channel tokens"
    )
    publish_mode: Literal["simulated", "youtube"] = Field(
        default="simulated",
        description="'youtube' uploads for real; 'simulated' fabricates a receipt",
    )
    youtube_category_id: str = Field(
        default="22", description="YouTube category for uploads (22 = People & Blogs)"
    )
    trend_max_results: int = Field(
        default=8, ge=1, le=50, description="Search results fetched per trend query"
    )
    default_region_code: str = Field(
        default="TW", description="Region used when a channel sets none"
    )

    # -------------------------------------------------------------------------
    # Supabase (channel records)
    # -------------------------------------------------------------------------
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_key: SecretStr | None = Field(
        default=None, description="Supabase anon or service key"
    )
    channels_table: str = Field(
        default="channels", description="Table holding per-channel records"
    )

    # -------------------------------------------------------------------------
    # Weighting
    # -------------------------------------------------------------------------
    weight_virality: float = Field(default=1.0, ge=0.0)
    weight_feasibility: float = Field(default=1.0, ge=0.0)
    weight_trend_alignment: float = Field(default=1.0, ge=0.0)

    # -------------------------------------------------------------------------
    # Auto-pilot
    # -------------------------------------------------------------------------
    autopilot_enabled: bool = Field(
        default=False, description="Start the in-process time trigger with the API"
    )
    autopilot_interval_seconds: int = Field(
        default=60, ge=1, description="How often channel records are scanned"
    )
    autopilot_cooldown_minutes: int = Field(
        default=50,
        ge=0,
        description="Minimum minutes between two automatic runs of one channel",
    )
    autopilot_timezone: str = Field(
        default="Asia/Taipei",
        description="Timezone used when a channel's window names none",
    )
    cron_secret: SecretStr | None = Field(
        default=None,
        description="Bearer token required by /cron/tick in production",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    api_host: str = Field(default="0.0.0.0", description="Bind address for the API server")
    api_port: int = Field(default=8000, description="Port for the API server")

    # -------------------------------------------------------------------------
    # Security Settings
    # -------------------------------------------------------------------------
    api_key: SecretStr | None = Field(
        default=None,
        description="API key for authentication. If set, all requests require X-API-Key header.",
    )
    api_key_enabled: bool = Field(
        default=False,
        description="Enable API key authentication. Set True for production.",
    )

    # -------------------------------------------------------------------------
    # CORS Settings
    # -------------------------------------------------------------------------
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins. Use ['*'] for development only.",
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow credentials in CORS requests",
    )

    # -------------------------------------------------------------------------
    # Timeouts
    # -------------------------------------------------------------------------
    pipeline_timeout_seconds: int = Field(
        default=300,
        description="Timeout for one full pipeline run in seconds (default 5 minutes)",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate that production settings are secure."""
        if self.app_env == "production":
            errors = []

            if not self.api_key_enabled:
                errors.append("api_key_enabled must be True in production")

            if self.api_key_enabled and not self.api_key:
                errors.append("api_key must be set when api_key_enabled is True")

            if self.debug:
                errors.append("debug must be False in production")

            if "*" in self.cors_allowed_origins:
                errors.append("cors_allowed_origins cannot contain '*' in production")

            if not self.cron_secret:
                errors.append("cron_secret must be set in production")

            if errors:
                raise ValueError(
                    f"Production configuration errors: {'; '.join(errors)}"
                )

        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings if needed.
    """
    return Settings()


# Convenience export for direct import
settings = get_settings()
