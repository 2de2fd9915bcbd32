"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass

from listening_producer.constants import (
    CONTENT_MODEL,
    EDGE_TTS_CONCURRENCY,
    GEMINI_API_URL,
    GEMINI_TTS_MODEL,
    HTTP_TIMEOUT_SECONDS,
    OPENAI_API_URL,
    OUTPUT_DIR,
)


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass
class Settings:
    gemini_api_key: str | None = None
    gemini_tts_model: str = GEMINI_TTS_MODEL
    gemini_api_url: str = GEMINI_API_URL
    openai_api_key: str | None = None
    openai_api_url: str = OPENAI_API_URL
    content_model: str = CONTENT_MODEL
    api_url: str | None = None              # remote store; local output dir when unset
    output_dir: str = OUTPUT_DIR
    edge_concurrency: int = EDGE_TTS_CONCURRENCY
    timeout: int = HTTP_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_tts_model=os.getenv("GEMINI_TTS_MODEL", GEMINI_TTS_MODEL),
            gemini_api_url=os.getenv("GEMINI_API_URL", GEMINI_API_URL),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_api_url=os.getenv("OPENAI_API_URL", OPENAI_API_URL),
            content_model=os.getenv("CONTENT_MODEL", CONTENT_MODEL),
            api_url=os.getenv("LISTENING_API_URL") or None,
            output_dir=os.getenv("LISTENING_OUTPUT_DIR", OUTPUT_DIR),
            edge_concurrency=_int_env("EDGE_TTS_CONCURRENCY", EDGE_TTS_CONCURRENCY),
            timeout=_int_env("HTTP_TIMEOUT_SECONDS", HTTP_TIMEOUT_SECONDS),
        )
