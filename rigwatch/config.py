"""
rigwatch.config — YAML + Environment Configuration Loader
==========================================================

**Why this file exists:**
Every job (polling, mod refresh, Discord mirroring, the API) receives one
:class:`RigwatchConfig` explicitly instead of reaching for environment
variables on its own.  Non-secret tuning lives in ``config.yaml``; secrets
(webhook URL, API keys) come from the environment / ``.env``.

Usage::

    from dotenv import load_dotenv
    from rigwatch.config import load_config

    load_dotenv()
    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.interesting_mod_ids)   # frozenset({1861561, ...})
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from rigwatch.constants import (
    DEFAULT_API_PORT,
    DEFAULT_EXCLUDED_MOD_IDS,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_INTERESTING_MOD_IDS,
    DEFAULT_LOBBY_WINDOW_SECONDS,
    DEFAULT_MATCHMAKING_TICKET,
    DEFAULT_STALE_AFTER_SECONDS,
    DEFAULT_WEBHOOK_AVATAR,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RigwatchConfig:
    """Immutable configuration assembled from ``config.yaml`` and the env."""

    # Lobby selection
    interesting_mod_ids: frozenset[int]
    excluded_mod_ids: frozenset[int]
    lobby_window_seconds: int = DEFAULT_LOBBY_WINDOW_SECONDS
    stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS

    # Discord
    webhook_avatar_url: str = DEFAULT_WEBHOOK_AVATAR
    max_rate_limit_retries: int | None = None  # None → retry until the API lets us through

    # Remote APIs
    matchmaking_ticket: str = DEFAULT_MATCHMAKING_TICKET
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    # Dashboard
    api_port: int = DEFAULT_API_PORT

    # Secrets (environment)
    webhook_url: str = ""
    steam_web_key: str = ""
    modio_key: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _mod_ids(raw: Iterable | None, default: frozenset[int]) -> frozenset[int]:
    if raw is None:
        return default
    return frozenset(int(mod_id) for mod_id in raw)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(
    path: str | Path = "config.yaml",
    env: Mapping[str, str] | None = None,
) -> RigwatchConfig:
    """Read *path* and the environment and return a :class:`RigwatchConfig`.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
    env:
        Mapping to read secrets from.  Defaults to :data:`os.environ`.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If ``lobby_filter`` is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    if env is None:
        env = os.environ

    lobby_filter: dict = raw["lobby_filter"] or {}
    discord_cfg: dict = raw.get("discord") or {}
    retries = discord_cfg.get("max_rate_limit_retries")

    return RigwatchConfig(
        interesting_mod_ids=_mod_ids(
            lobby_filter.get("interesting_mod_ids"), DEFAULT_INTERESTING_MOD_IDS
        ),
        excluded_mod_ids=_mod_ids(
            lobby_filter.get("excluded_mod_ids"), DEFAULT_EXCLUDED_MOD_IDS
        ),
        lobby_window_seconds=int(
            lobby_filter.get("window_seconds", DEFAULT_LOBBY_WINDOW_SECONDS)
        ),
        stale_after_seconds=int(
            discord_cfg.get("stale_after_seconds", DEFAULT_STALE_AFTER_SECONDS)
        ),
        webhook_avatar_url=discord_cfg.get("avatar_url", DEFAULT_WEBHOOK_AVATAR),
        max_rate_limit_retries=int(retries) if retries is not None else None,
        matchmaking_ticket=str(
            raw.get("matchmaking_ticket", DEFAULT_MATCHMAKING_TICKET)
        ),
        http_timeout=float(raw.get("http_timeout", DEFAULT_HTTP_TIMEOUT)),
        api_port=int(raw.get("api_port", DEFAULT_API_PORT)),
        webhook_url=env.get("DISCORD_WEBHOOK", "").strip(),
        steam_web_key=env.get("STEAM_WEB_KEY", "").strip(),
        modio_key=env.get("MODIO_KEY", "").strip(),
    )
