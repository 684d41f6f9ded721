#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings

from .constants import (
    DATABASE_PATH,
    GENERATION_TIMEOUT_SECONDS,
    GENERATION_MAX_TOKENS,
    STORE_RETRY_MAX_ATTEMPTS,
    STORE_RETRY_DELAYS,
    STALE_AFTER_MINUTES,
    POLL_INTERVAL_SECONDS,
    API_RATE_LIMIT,
)


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== API Keys ==========
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # ========== Generation ==========
    generation_timeout_seconds: float = GENERATION_TIMEOUT_SECONDS
    max_output_tokens: int = GENERATION_MAX_TOKENS
    stream_generation: bool = True  # Stream-and-accumulate keeps long calls alive

    # ========== Store ==========
    database_path: Path = BASE_DIR / DATABASE_PATH
    store_retry_max_attempts: int = STORE_RETRY_MAX_ATTEMPTS
    store_retry_delays: List[float] = list(STORE_RETRY_DELAYS)
    store_retry_jitter: bool = True
    seed_on_startup: bool = True

    # ========== Polling ==========
    stale_after_minutes: int = STALE_AFTER_MINUTES
    poll_interval_seconds: float = POLL_INTERVAL_SECONDS

    # ========== Server ==========
    rate_limit: str = API_RATE_LIMIT
    api_base_url: str = "http://localhost:8000"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env that aren't defined in model

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(exist_ok=True, parents=True)

    def get_api_key(self, provider: str) -> Optional[str]:
        """Get API key for a provider name ("openai" | "anthropic"), None if unset"""
        if provider == "openai":
            return self.openai_api_key or None
        elif provider == "anthropic":
            return self.anthropic_api_key or None
        else:
            raise ValueError(f"Unsupported provider: {provider}")


# Global settings instance
settings = Settings()
