from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class LLMConfig:
    """Settings for the cart advisor call. Disabled or keyless means no call is made."""

    api_key: str = os.getenv("GROQ_API_KEY", "")
    model: str = os.getenv("SMARTCART_ADVISOR_MODEL", "llama-3.3-70b-versatile")
    timeout: float = float(os.getenv("SMARTCART_ADVISOR_TIMEOUT", "10.0"))
    max_tokens: int = 1024
    # One attempt per call: a timeout must not be multiplied by SDK retries
    max_retries: int = 0
    temperature: float = 0.3
    enabled: bool = _env_flag("SMARTCART_ADVISOR_ENABLED", True)


DEFAULT_LLM_CONFIG = LLMConfig()
