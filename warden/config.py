"""
warden.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for **infrastructure-only** settings (Discord
identity, staff role, effect timeouts).  Per-guild review settings such as
the accepted role or the welcome channel live in the ``guild_configs``
table and are read through :mod:`warden.services.guild_config_service`.

Usage::

    from warden.config import load_config

    cfg = load_config()               # reads ./config.yaml by default
    print(cfg.community_name)         # "Example Community"
    print(cfg.effect_timeout_seconds) # 30.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_EFFECT_TIMEOUT_SECONDS = 30.0
DEFAULT_CLAIM_TTL_MINUTES = 120
DEFAULT_HISTORY_LIMIT = 4


@dataclass(frozen=True, slots=True)
class WardenConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Discord
    bot_prefix: str
    guild_id: int  # Primary guild snowflake

    # Staff / review
    staff_role_id: int  # Discord role allowed to review applications

    # Pipeline tuning
    effect_timeout_seconds: float = DEFAULT_EFFECT_TIMEOUT_SECONDS
    claim_ttl_minutes: int | None = DEFAULT_CLAIM_TTL_MINUTES
    history_limit: int = DEFAULT_HISTORY_LIMIT


def load_config(path: str | Path = "config.yaml") -> WardenConfig:
    """Read *path* and return a :class:`WardenConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    ttl = raw.get("claim_ttl_minutes", DEFAULT_CLAIM_TTL_MINUTES)

    return WardenConfig(
        community_name=raw["community_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]),
        staff_role_id=int(raw["staff_role_id"]),
        effect_timeout_seconds=float(
            raw.get("effect_timeout_seconds", DEFAULT_EFFECT_TIMEOUT_SECONDS)
        ),
        claim_ttl_minutes=int(ttl) if ttl else None,
        history_limit=int(raw.get("history_limit", DEFAULT_HISTORY_LIMIT)),
    )
