from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Values are read when the
    instance is created so tests can adjust the environment and call
    ``get_settings.cache_clear()``.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.port: int = int(os.getenv("PORT", "3000"))

        key = (os.getenv("GOOGLE_API_KEY") or "").strip()
        self.google_api_key: Optional[str] = key or None

        default_model = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.chat_model: str = os.getenv("CHAT_MODEL", default_model)
        self.vision_model: str = os.getenv("VISION_MODEL", default_model)
        self.flashcard_model: str = os.getenv("FLASHCARD_MODEL", default_model)
        self.title_model: str = os.getenv("TITLE_MODEL", default_model)
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.7"))

        self.history_window: int = int(os.getenv("HISTORY_WINDOW", "15"))
        self.flashcard_count: int = int(os.getenv("FLASHCARD_COUNT", "5"))
        self.request_timeout: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "300"))
        self.max_body_bytes: int = int(float(os.getenv("MAX_BODY_MB", "50")) * 1024 * 1024)

    def require_api_key(self) -> str:
        if not self.google_api_key:
            raise RuntimeError(
                "GOOGLE_API_KEY not set. Please configure it in environment or .env"
            )
        return self.google_api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
