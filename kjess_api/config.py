from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    app_name: str = Field("KJESS Designs API", alias="APP_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    database_url: str = Field("sqlite:///./kjess.db", alias="DATABASE_URL")
    cors_origins: List[str] | str = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    # Generative backend
    llm_provider: str = Field("openai", alias="LLM_PROVIDER")
    openai_api_key: str = Field("", alias="OPENAI_API_KEY")
    openai_chat_model: str = Field("gpt-4o-mini", alias="OPENAI_CHAT_MODEL")
    openai_base_url: Optional[str] = Field(None, alias="OPENAI_BASE_URL")
    groq_api_key: str = Field("", alias="GROQ_API_KEY")
    groq_model: str = Field("llama-3.3-70b-versatile", alias="GROQ_MODEL")
    llm_timeout_seconds: float = Field(20.0, alias="LLM_TIMEOUT_SECONDS")
    chat_history_window: int = Field(6, alias="CHAT_HISTORY_WINDOW")

    assistant_name: str = Field("Jasper", alias="ASSISTANT_NAME")
    company_name: str = Field("KJESS Designs", alias="COMPANY_NAME")
    whatsapp_number: str = Field("250784024818", alias="WHATSAPP_NUMBER")

    # Object storage
    supabase_url: str = Field("", alias="SUPABASE_URL")
    supabase_key: str = Field("", alias="SUPABASE_ANON_KEY")
    storage_bucket: str = Field("gallery-images", alias="STORAGE_BUCKET")
    storage_timeout_seconds: float = Field(30.0, alias="STORAGE_TIMEOUT_SECONDS")
    upload_dir: str = Field("uploads", alias="UPLOAD_DIR")
    upload_url_prefix: str = Field("/uploads", alias="UPLOAD_URL_PREFIX")
    upload_max_attempts: int = Field(3, alias="UPLOAD_MAX_ATTEMPTS")
    upload_backoff_seconds: float = Field(1.0, alias="UPLOAD_BACKOFF_SECONDS")
    max_upload_bytes: int = Field(10 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Admin auth
    admin_password: str = Field("", alias="ADMIN_PASSWORD")
    jwt_secret_key: str = Field("dev-secret-key-change-me", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    admin_token_ttl_minutes: int = Field(12 * 60, alias="ADMIN_TOKEN_TTL_MINUTES")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, v: List[str] | str | None) -> List[str]:
        if v is None:
            return []
        if isinstance(v, list):
            return v
        # Accept comma-separated env strings
        return [p.strip() for p in str(v).split(",") if p.strip()]

    @field_validator("upload_url_prefix")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        base = (v or "/uploads").strip()
        if not base.startswith("/"):
            base = f"/{base}"
        return base.rstrip("/") or "/uploads"

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)
