import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "openai/gpt-3.5-turbo"
# Per client IP across every route.
DEFAULT_RATE_LIMIT = "100 per 15 minutes"


def _split_origins(raw):
    return tuple(o.strip() for o in (raw or "").split(",") if o.strip())


@dataclass(frozen=True)
class Settings:
    """Everything the app reads from the environment, gathered in one place."""

    database_url: str = "sqlite:///mindmate.db"
    openrouter_api_key: Optional[str] = None
    openrouter_model: str = DEFAULT_MODEL
    openrouter_api_url: str = DEFAULT_API_URL
    public_app_url: str = ""
    frontend_origins: Tuple[str, ...] = field(default_factory=tuple)
    environment: str = "development"
    port: int = 5000
    db_connect_timeout: float = 5.0
    db_idle_timeout: float = 45.0
    ai_timeout: float = 30.0
    log_level: str = "INFO"
    debug: bool = False
    rate_limit: str = DEFAULT_RATE_LIMIT
    max_content_length: int = 10 * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls, env_file=None) -> "Settings":
        # Load .env locally; in a deployment the variables are injected directly.
        load_dotenv(env_file)
        return cls(
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            openrouter_model=os.getenv("OPENROUTER_MODEL", DEFAULT_MODEL),
            openrouter_api_url=os.getenv("OPENROUTER_API_URL", DEFAULT_API_URL),
            public_app_url=os.getenv("PUBLIC_APP_URL", ""),
            frontend_origins=_split_origins(os.getenv("FRONTEND_ORIGINS")),
            environment=os.getenv("APP_ENV", "development").strip().lower(),
            port=int(os.getenv("PORT", "5000")),
            db_connect_timeout=float(os.getenv("DB_CONNECT_TIMEOUT", "5")),
            db_idle_timeout=float(os.getenv("DB_IDLE_TIMEOUT", "45")),
            ai_timeout=float(os.getenv("AI_TIMEOUT", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            debug=os.getenv("APP_DEBUG", "").strip().lower() in ("1", "true", "yes"),
            rate_limit=os.getenv("RATE_LIMIT", DEFAULT_RATE_LIMIT).strip(),
        )
