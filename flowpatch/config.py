# flowpatch/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from flowpatch.errors import ConfigError

DEFAULT_BASE_URL = "http://localhost:5678"


@dataclass
class Settings:
    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 30.0
    max_attempts: int = 3
    base_delay: float = 0.1
    catalog_paths: List[str] = field(default_factory=list)


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a {cast.__name__}, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables (N8N_* for the store,
    FLOWPATCH_* for retry/catalog tuning).
    """
    env = os.environ if env is None else env

    max_attempts = _number(env, "FLOWPATCH_MAX_ATTEMPTS", 3, int)
    if max_attempts < 1:
        raise ConfigError(f"FLOWPATCH_MAX_ATTEMPTS must be >= 1, got {max_attempts}")
    base_delay = _number(env, "FLOWPATCH_BASE_DELAY", 0.1, float)
    if base_delay < 0:
        raise ConfigError(f"FLOWPATCH_BASE_DELAY must be >= 0, got {base_delay}")

    catalog = env.get("FLOWPATCH_CATALOG") or ""
    return Settings(
        base_url=(env.get("N8N_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        api_key=env.get("N8N_API_KEY") or None,
        username=env.get("N8N_USERNAME") or None,
        password=env.get("N8N_PASSWORD") or None,
        timeout=_number(env, "FLOWPATCH_TIMEOUT", 30.0, float),
        max_attempts=max_attempts,
        base_delay=base_delay,
        catalog_paths=[p for p in catalog.split(os.pathsep) if p.strip()],
    )
