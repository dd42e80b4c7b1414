"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...``
  2. A ``.env`` file in the working directory (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; defaults are
used when neither source sets a value.  Tunables that are not secrets or
deployment paths (chunk sizes, retrieval thresholds, sweep schedule) live
in ``config/config.yaml`` instead; see :mod:`src.config.loader`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """eventkb application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / Embedding Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_chat_model: str = "gpt-4o"
    openai_embedding_model: str = "text-embedding-3-small"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    # "openai", "anthropic", or "" to pick the first provider with a key.
    llm_provider: str = ""
    # Raw image bytes are base64-encoded before embedding; the encoded
    # string is cut to this many characters to stay inside the model input.
    binary_embedding_max_chars: int = 8000

    # === Stores ===
    chromadb_persist_dir: str = "./data/chromadb"
    event_db_path: str = "data/events.db"
    storage_root: str = "data/storage"

    # === Auth ===
    # Empty secret = development mode: the X-Caller-Id header is trusted.
    auth_secret: str = ""
    auth_token_ttl_hours: int = 168

    # === Wall-clock budgets (seconds) ===
    ingestion_timeout_seconds: float = 540.0
    request_timeout_seconds: float = 60.0
    teardown_timeout_seconds: float = 300.0

    # === Scheduled sweep ===
    sweep_enabled: bool = True

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = ""  # comma-separated; empty = allow all

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers

    def get_cors_origins(self) -> list[str] | None:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or None
