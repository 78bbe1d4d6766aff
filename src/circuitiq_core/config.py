"""
Runtime settings for the CircuitIQ core.

Settings are read from environment variables (optionally seeded from a
``.env`` file) once per process and exposed through ``get_settings()``.
Provider credentials keep their conventional names (``OPENAI_API_KEY``,
``ANTHROPIC_API_KEY``, ...) and are resolved by the provider registry;
everything else lives under the ``CIRCUITIQ_`` prefix.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer in {name}: {raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number in {name}: {raw!r}, using {default}")
        return default


@dataclass
class LLMSettings:
    """Inference gateway configuration"""

    provider: str = "openai"
    request_timeout: float = 45.0
    max_tokens: int = 1000
    vision_max_tokens: int = 500
    extraction_max_tokens: int = 2000


@dataclass
class Settings:
    """Process-wide configuration"""

    llm: LLMSettings = field(default_factory=LLMSettings)
    billing_timezone: str = "UTC"
    default_plan: str = "FREE"
    usage_backend: str = "memory"
    account_service_url: Optional[str] = None
    session_ttl_seconds: int = 7 * 24 * 3600

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment"""
        llm = LLMSettings(
            provider=os.getenv("CIRCUITIQ_LLM_PROVIDER", "openai").lower(),
            request_timeout=_env_float("CIRCUITIQ_LLM_TIMEOUT", 45.0),
            max_tokens=_env_int("CIRCUITIQ_LLM_MAX_TOKENS", 1000),
            vision_max_tokens=_env_int("CIRCUITIQ_LLM_VISION_MAX_TOKENS", 500),
            extraction_max_tokens=_env_int("CIRCUITIQ_LLM_EXTRACTION_MAX_TOKENS", 2000),
        )
        return cls(
            llm=llm,
            billing_timezone=os.getenv("CIRCUITIQ_BILLING_TIMEZONE", "UTC"),
            default_plan=os.getenv("CIRCUITIQ_DEFAULT_PLAN", "FREE").upper(),
            usage_backend=os.getenv("CIRCUITIQ_USAGE_BACKEND", "memory").lower(),
            account_service_url=os.getenv("CIRCUITIQ_ACCOUNT_SERVICE_URL") or None,
            session_ttl_seconds=_env_int("CIRCUITIQ_SESSION_TTL_SECONDS", 7 * 24 * 3600),
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading ``.env`` on first use"""
    global _settings
    if _settings is None:
        load_dotenv()
        _settings = Settings.from_env()
        logger.info(
            f"Settings loaded: provider={_settings.llm.provider}, "
            f"timeout={_settings.llm.request_timeout}s, "
            f"billing_timezone={_settings.billing_timezone}, "
            f"usage_backend={_settings.usage_backend}"
        )
    return _settings


def reset_settings():
    """Reset the global settings (mainly for testing)"""
    global _settings
    _settings = None
