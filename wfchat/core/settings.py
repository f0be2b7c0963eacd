from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal, Optional

# Common Config for all settings classes to pick up .env
settings_config = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore"
)

class ProviderSettings(BaseSettings):
    """Connection details of one chat model provider, read from `<PREFIX>_*` variables."""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    default_model: str

class GroqSettings(ProviderSettings):
    base_url: Optional[str] = "https://api.groq.com/openai/v1"
    default_model: str = "llama-3.3-70b-versatile"

    model_config = SettingsConfigDict(**settings_config, env_prefix="GROQ_")

class GeminiSettings(ProviderSettings):
    default_model: str = "gemini-1.5-flash"

    model_config = SettingsConfigDict(**settings_config, env_prefix="GEMINI_")

class SelfHostedSettings(ProviderSettings):
    # OpenAI-compatible servers usually accept any key
    api_key: Optional[str] = "none"
    base_url: Optional[str] = "http://localhost:8001/v1"
    default_model: str = "qwen2.5:0.5b"

    model_config = SettingsConfigDict(**settings_config, env_prefix="SELF_HOSTED_")

class LLMSettings(BaseSettings):
    primary_provider: str = "gemini"
    fallback_provider: str = "groq"
    production_provider: str = "self_hosted"

    # Per use case; None means the provider's default model
    understanding_model: Optional[str] = None
    probing_model: Optional[str] = None
    temperature: float = 0.0

    model_config = SettingsConfigDict(**settings_config, env_prefix="LLM_")

class DialogueSettings(BaseSettings):
    max_probing_attempts: int = Field(3, ge=1, alias="MAX_PROBING_ATTEMPTS")
    session_timeout_seconds: float = Field(30 * 60, gt=0, alias="SESSION_TIMEOUT_SECONDS")
    sweep_interval_seconds: float = Field(5 * 60, gt=0, alias="SESSION_SWEEP_INTERVAL_SECONDS")
    classifier_timeout_seconds: float = Field(5.0, gt=0, alias="CLASSIFIER_TIMEOUT_SECONDS")
    llm_classifier_enabled: bool = Field(True, alias="LLM_CLASSIFIER_ENABLED")
    audit_backend: Literal["log", "sql"] = Field("log", alias="AUDIT_BACKEND")

    model_config = settings_config

class DatabaseSettings(BaseSettings):
    # Any async SQLAlchemy URL, e.g. postgresql+asyncpg://... or sqlite+aiosqlite:///audit.db
    url: Optional[str] = Field(None, alias="DATABASE_URL")

    model_config = settings_config

class AppSettings(BaseSettings):
    env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Using default_factory with BaseSettings classes will trigger their own env loading
    groq: GroqSettings = Field(default_factory=GroqSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    self_hosted: SelfHostedSettings = Field(default_factory=SelfHostedSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    dialogue: DialogueSettings = Field(default_factory=DialogueSettings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)

    model_config = settings_config

settings = AppSettings()
