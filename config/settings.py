"""Application settings."""

import os
from typing import List, Optional
from pydantic import BaseModel, Field


DEFAULT_MODELS = {
    "groq": "llama-3.3-70b-versatile",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
}

DEFAULT_BASE_URLS = {
    "groq": "https://api.groq.com/openai/v1",
}


def _split_keys(*values: Optional[str]) -> List[str]:
    """Merge comma-separated key lists, keeping order and dropping blanks/duplicates."""
    keys: List[str] = []
    for value in values:
        if not value:
            continue
        for key in value.split(","):
            key = key.strip()
            if key and key not in keys:
                keys.append(key)
    return keys


class Settings(BaseModel):
    """Application configuration settings."""

    # LLM provider settings
    llm_provider: str = "groq"  # "groq", "openai" or "anthropic"
    llm_model: Optional[str] = None
    llm_base_url: Optional[str] = None
    llm_api_keys: List[str] = Field(default_factory=list)  # Ordered, tried first to last
    llm_timeout_seconds: float = 30.0
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1024

    # Agent loop
    max_agent_iterations: int = 5
    max_history_turns: int = 24

    # Storage
    storage_backend: str = "sqlite"  # "sqlite" or "supabase"
    db_path: str = "data/bytestore.db"
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_jwt_secret: Optional[str] = None
    catalog_timeout_seconds: float = 10.0

    # Rate limiting: 20 requests / 10 minutes / user
    rate_limit_window_seconds: int = 600
    rate_limit_max_count: int = 20

    # Logging
    background_logging: bool = True
    log_level: str = "INFO"

    # HTTP
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    def __init__(self, **data):
        # Auto-load unset values from environment
        env = os.environ

        data.setdefault("llm_provider", env.get("LLM_PROVIDER", "groq").lower())
        provider = data["llm_provider"]

        if data.get("llm_model") is None:
            data["llm_model"] = env.get("LLM_MODEL") or DEFAULT_MODELS.get(provider)

        if data.get("llm_base_url") is None:
            data["llm_base_url"] = env.get("LLM_BASE_URL") or DEFAULT_BASE_URLS.get(provider)

        if not data.get("llm_api_keys"):
            prefix = provider.upper()
            data["llm_api_keys"] = _split_keys(
                env.get(f"{prefix}_API_KEYS"),
                env.get(f"{prefix}_API_KEY"),
            )

        env_fields = {
            "storage_backend": "STORAGE_BACKEND",
            "db_path": "DB_PATH",
            "supabase_url": "SUPABASE_URL",
            "supabase_service_role_key": "SUPABASE_SERVICE_ROLE_KEY",
            "supabase_anon_key": "SUPABASE_ANON_KEY",
            "supabase_jwt_secret": "SUPABASE_JWT_SECRET",
            "log_level": "LOG_LEVEL",
        }
        for field_name, env_name in env_fields.items():
            if data.get(field_name) is None and env.get(env_name):
                data[field_name] = env[env_name]

        if "cors_origins" not in data and env.get("CORS_ORIGINS"):
            data["cors_origins"] = _split_keys(env["CORS_ORIGINS"])

        super().__init__(**data)

    def uses_supabase(self) -> bool:
        """Whether rate limits, catalog and logs live in Supabase."""
        return self.storage_backend == "supabase"
