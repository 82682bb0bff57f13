"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PERSONA_TEXT = (
    "You are Joseph Malchar, a seasoned expert in the steel industry. Your primary "
    "function is to provide accurate, concise, and helpful technical information "
    "related to steel grades, specifications, calculations, and industry standards. "
    "Respond in a knowledgeable, professional, and approachable manner. Do not provide "
    "information outside of your expertise in the steel industry unless absolutely "
    "necessary for context. Keep responses focused and relevant to steel-related queries."
)


class ManagedPersona(BaseModel):
    """Persona lives on the remote assistant; nothing is injected."""

    mode: Literal["managed-persona"] = "managed-persona"


class InjectedSystemMessage(BaseModel):
    """Persona instruction sent with every run."""

    mode: Literal["injected-system-message"] = "injected-system-message"
    text: str = Field(default=DEFAULT_PERSONA_TEXT, min_length=1)


PersonaMode = Annotated[
    ManagedPersona | InjectedSystemMessage,
    Field(discriminator="mode"),
]


class AssistantSettings(BaseSettings):
    """Remote assistant service configuration."""

    model_config = SettingsConfigDict(env_prefix="ASSISTANT_", env_nested_delimiter="__")

    api_key: SecretStr | None = None
    base_url: str | None = None
    assistant_id: str = ""
    model: str | None = None  # Overrides the assistant's model per run
    persona: PersonaMode = Field(default_factory=ManagedPersona)
    session_id_pattern: str = r"^thread_[A-Za-z0-9]+$"
    poll_interval_seconds: float = Field(default=1.0, ge=0.0)
    max_poll_attempts: int = Field(default=120, ge=1)
    poll_timeout_seconds: float = Field(default=180.0, gt=0.0)
    recent_messages_limit: int = Field(default=10, ge=1, le=100)
    empty_reply_text: str = ""
    timeout: float = Field(default=60.0, ge=1.0)
    max_retries: int = Field(default=0, ge=0)  # Transport retries inside the SDK


class SessionSettings(BaseSettings):
    """Session client behaviour and session-id storage."""

    model_config = SettingsConfigDict(env_prefix="SESSION_")

    store: Literal["memory", "file", "redis"] = "file"
    storage_key: str = "chatThreadId"
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".persona_chat")
    redis_ttl_seconds: int | None = Field(default=86400 * 30, ge=1)
    resume_on_empty_transcript: bool = False
    cancel_remote_on_stop: bool = True


class AuthSettings(BaseSettings):
    """Cookie authentication gate configuration."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    enabled: bool = True
    cookie_name: str = "isAuthenticated"
    login_path: str = "/login"
    home_path: str = "/chat"
    public_paths: list[str] = Field(default=["/login", "/health", "/metrics"])

    @field_validator("public_paths", mode="before")
    @classmethod
    def parse_public_paths(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


class AvatarSettings(BaseSettings):
    """Streaming avatar token proxy configuration."""

    model_config = SettingsConfigDict(env_prefix="HEYGEN_")

    api_key: SecretStr | None = None
    base_url: str = "https://api.heygen.com"
    timeout: float = Field(default=10.0, ge=0.1)


class RedisSettings(BaseSettings):
    """Redis configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    db: int = Field(default=0, ge=0)
    ssl: bool = False
    max_connections: int = Field(default=10, ge=1)

    @property
    def url(self) -> str:
        """Build Redis URL."""
        auth = ""
        if self.password:
            auth = f":{self.password.get_secret_value()}@"
        protocol = "rediss" if self.ssl else "redis"
        return f"{protocol}://{auth}{self.host}:{self.port}/{self.db}"


class TelemetrySettings(BaseSettings):
    """OpenTelemetry configuration."""

    model_config = SettingsConfigDict(env_prefix="OTEL_")

    enabled: bool = False
    service_name: str = "persona-chat"
    exporter_otlp_endpoint: str = "http://localhost:4317"
    exporter_otlp_insecure: bool = True
    log_level: str = "INFO"


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = Field(default=["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",")]
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = "development"

    # Sub-settings
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    avatar: AvatarSettings = Field(default_factory=AvatarSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    api: APISettings = Field(default_factory=APISettings)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
