import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(key: str, default: str) -> bool:
    """Read a boolean flag from the environment."""
    return os.getenv(key, default).lower() in ("true", "1", "yes")


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/strepsil.db")
    ENCRYPTION_KEY: str = os.getenv("ENCRYPTION_KEY", "strepsil-default-key-change-me!!")

    # Server settings
    DEFAULT_PORT: int = int(os.getenv("PORT", "3001"))
    DEFAULT_HOST: str = os.getenv("HOST", "127.0.0.1")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Dev mode - error responses include the exception message
    LOCALHOST_MODE: bool = _env_bool("LOCALHOST_MODE", "false")

    APP_NAME: str = os.getenv("APP_NAME", "Strepsil")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")

    # Pagination and analytics limits
    DEFAULT_PAGE_LIMIT: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "50"))
    MAX_PAGE_LIMIT: int = int(os.getenv("MAX_PAGE_LIMIT", "1000"))
    ANALYTICS_MAX_RECORDS: int = int(os.getenv("ANALYTICS_MAX_RECORDS", "10000"))

    # Upper bound on a single provider call (seconds)
    PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "120"))

    # Provider base URLs
    PROVIDER_URLS = {
        "OpenAI": "https://api.openai.com",
        "Anthropic": "https://api.anthropic.com",
        "OpenRouter": "https://openrouter.ai/api",
        "Perplexity": "https://api.perplexity.ai",
    }


settings = Settings()
