"""
Application configuration.

Settings are read from environment variables. A `.env` file in the project
root is loaded first if present, so local development does not need exported
variables.

Environment configuration:
- KB_API_URL: Knowledge-base HTTP base URL (default: http://127.0.0.1:47335)
- KB_NAME: Knowledge base to query (default: web3_kb)
- KB_TIMEOUT_SECONDS: Knowledge-base request timeout (default: 10.0)
- PRICE_API_URL: Price service base URL (default: http://localhost:3001)
- PRICE_TIMEOUT_SECONDS: Price service request timeout (default: 10.0)
- AGENT_DEFAULT_MAX_RESULTS: Default knowledge-base result cap (default: 5)
- LOG_LEVEL / LOG_JSON: Logging level and renderer
"""
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from crypto_auditor.core.logging import get_logger

logger = get_logger(__name__)

# Load environment variables from .env file in project root
env_path = Path(__file__).parent.parent.parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)
    logger.info("env_loaded", env_path=str(env_path))


class Settings(BaseModel):
    """Runtime settings for outbound providers and agent defaults."""

    kb_api_url: str = "http://127.0.0.1:47335"
    kb_name: str = "web3_kb"
    kb_timeout_seconds: float = Field(10.0, gt=0)
    price_api_url: str = "http://localhost:3001"
    price_timeout_seconds: float = Field(10.0, gt=0)
    default_max_results: int = Field(5, ge=1)
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            kb_api_url=os.getenv("KB_API_URL", "http://127.0.0.1:47335"),
            kb_name=os.getenv("KB_NAME", "web3_kb"),
            kb_timeout_seconds=float(os.getenv("KB_TIMEOUT_SECONDS", "10.0") or "10.0"),
            price_api_url=os.getenv("PRICE_API_URL", "http://localhost:3001"),
            price_timeout_seconds=float(os.getenv("PRICE_TIMEOUT_SECONDS", "10.0") or "10.0"),
            default_max_results=int(os.getenv("AGENT_DEFAULT_MAX_RESULTS", "5") or "5"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=os.getenv("LOG_JSON", "true").lower() == "true",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings, read once from the environment."""
    return Settings.from_env()
