import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Mapping, Optional

import dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Provider name -> environment variables holding its API key, first match wins
API_KEY_ENV_VARS: Dict[str, tuple] = {
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "stability": ("STABILITY_API_KEY",),
    "runway": ("RUNWAY_API_KEY",),
    "elevenlabs": ("ELEVENLABS_API_KEY",),
}

DEFAULT_USD_TO_KRW = 1500
DEFAULT_API_MARGIN = 1.2


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration.

    Attributes:
        usd_to_krw: Exchange rate used for ``total_cost_krw``.
        api_margin: Margin multiplier. Loaded but not applied to any cost.
        api_keys: Provider name -> API key (None when unset).
    """
    usd_to_krw: int = DEFAULT_USD_TO_KRW
    api_margin: float = DEFAULT_API_MARGIN
    api_keys: Mapping[str, Optional[str]] = field(default_factory=dict)

    def api_key(self, provider: str) -> Optional[str]:
        return self.api_keys.get(provider)


def _read_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None, *, load_dotenv: bool = True) -> Settings:
    """
    Build a Settings object from the environment.

    Args:
        env: Mapping to read from. Defaults to ``os.environ``.
        load_dotenv: Load a ``.env`` file into the process environment first.

    Returns:
        Settings: The loaded configuration.

    Raises:
        ConfigurationError: If a numeric variable cannot be parsed.
    """
    if load_dotenv:
        dotenv.load_dotenv()
    if env is None:
        env = os.environ

    api_keys = {}
    for provider, names in API_KEY_ENV_VARS.items():
        api_keys[provider] = next((env[name] for name in names if env.get(name)), None)

    settings = Settings(
        usd_to_krw=_read_number(env, "USD_TO_KRW", DEFAULT_USD_TO_KRW, int),
        api_margin=_read_number(env, "API_MARGIN", DEFAULT_API_MARGIN, float),
        api_keys=api_keys,
    )
    logger.debug("usd_to_krw=%s api_margin=%s", settings.usd_to_krw, settings.api_margin)
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings loaded once for the lifetime of the process."""
    return load_settings()


def check_api_keys(settings: Settings) -> Dict[str, Dict[str, object]]:
    """
    Advisory startup check of the configured API keys.

    Missing keys are logged as warnings; nothing is raised.

    Returns:
        Dict[str, Dict]: ``{provider: {"provider": name, "key_configured": bool}}``
    """
    results = {}
    for provider in API_KEY_ENV_VARS:
        configured = bool(settings.api_key(provider))
        results[provider] = {"provider": provider, "key_configured": configured}
        if configured:
            logger.debug("%s API key: configured", provider)
        else:
            logger.warning(
                "%s API key not configured (set %s)",
                provider, " or ".join(API_KEY_ENV_VARS[provider]),
            )
    return results
