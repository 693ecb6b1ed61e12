import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Values people leave in .env templates instead of a real token
PLACEHOLDER_TOKENS = {"your_bot_token_here", "ضع توكين البوت هنا", "your_groq_key_here"}


def _secret(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    if not value or value in PLACEHOLDER_TOKENS:
        return None
    return value


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and never mutated."""

    groq_api_key: Optional[str] = None
    bot_token: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000
    groq_model: str = "llama-3.1-8b-instant"
    groq_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @property
    def ai_enabled(self) -> bool:
        return self.groq_api_key is not None

    @property
    def bot_enabled(self) -> bool:
        return self.bot_token is not None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            groq_api_key=_secret("GROQ_API_KEY"),
            bot_token=_secret("BOT_TOKEN"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            groq_model=os.getenv("GROQ_MODEL", "llama-3.1-8b-instant"),
            groq_timeout_seconds=float(os.getenv("GROQ_TIMEOUT_SECONDS", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
