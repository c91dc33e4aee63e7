"""
Process-wide configuration for the roster API.

Settings are an immutable value built once at startup (optionally from a
.env file) and passed explicitly to the cache, fetcher and RosterAPI.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .logger import get_module_logger

logger = get_module_logger("config")

# US armory prefixes. The EU armory works by swapping "us" for "eu".
DEFAULT_CHAR_PAGE_URL = "http://us.battle.net/wow/en/character/"
DEFAULT_GUILD_PAGE_URL = "http://us.battle.net/wow/en/guild/"

# Five hours. Going much lower risks being throttled by the armory.
DEFAULT_CACHE_TIME = 18000.0

# Upstream occasionally answers with an empty body instead of an error
DEFAULT_RETRIES = 5
DEFAULT_RETRY_BACKOFF = 0.5

CACHE_DISABLED = -1.0


class FetchPolicy(BaseModel):
    """How long cached pages stay fresh and how empty responses are retried."""
    model_config = ConfigDict(frozen=True)

    max_age: float = DEFAULT_CACHE_TIME     # seconds; negative disables caching
    max_retries: int = Field(default=DEFAULT_RETRIES, ge=0)
    retry_backoff: float = Field(default=DEFAULT_RETRY_BACKOFF, ge=0)
    # Existence of an entry counts as fresh (immutable resources such as gems)
    treat_existing_as_fresh: bool = False

    @property
    def caching_disabled(self) -> bool:
        return self.max_age < 0

    def for_immutable(self) -> "FetchPolicy":
        """Copy of this policy where any cached entry is considered fresh."""
        return self.model_copy(update={"treat_existing_as_fresh": True})


class Settings(BaseModel):
    """Base URLs, cache location and fetch policy."""
    model_config = ConfigDict(frozen=True)

    char_page_url: str = DEFAULT_CHAR_PAGE_URL
    guild_page_url: str = DEFAULT_GUILD_PAGE_URL
    cache_dir: Path = Field(default_factory=lambda: Path.cwd() / "cache")
    policy: FetchPolicy = Field(default_factory=FetchPolicy)
    request_timeout: float = 20.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    A .env file is loaded first (without overriding variables already set).
    Recognised variables:
        ROSTER_API_CHAR_PAGE_URL, ROSTER_API_GUILD_PAGE_URL,
        ROSTER_API_CACHE_DIR, ROSTER_API_CACHE_TIME (seconds, -1 disables),
        ROSTER_API_RETRIES, ROSTER_API_RETRY_BACKOFF, ROSTER_API_TIMEOUT
    """
    load_dotenv(env_file)

    policy = FetchPolicy(
        max_age=_env_float("ROSTER_API_CACHE_TIME", DEFAULT_CACHE_TIME),
        max_retries=int(_env_float("ROSTER_API_RETRIES", DEFAULT_RETRIES)),
        retry_backoff=_env_float("ROSTER_API_RETRY_BACKOFF", DEFAULT_RETRY_BACKOFF),
    )
    if policy.caching_disabled:
        logger.warning("Caching disabled; every request goes to the armory")

    cache_dir = os.getenv("ROSTER_API_CACHE_DIR")
    return Settings(
        char_page_url=os.getenv("ROSTER_API_CHAR_PAGE_URL", DEFAULT_CHAR_PAGE_URL),
        guild_page_url=os.getenv("ROSTER_API_GUILD_PAGE_URL", DEFAULT_GUILD_PAGE_URL),
        cache_dir=Path(cache_dir) if cache_dir else Path.cwd() / "cache",
        policy=policy,
        request_timeout=_env_float("ROSTER_API_TIMEOUT", 20.0),
    )
