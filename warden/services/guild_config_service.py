"""
warden.services.guild_config_service — Per-Guild Review Settings
=================================================================

Accepted role, welcome channel and template, review channel, and the
reapply cooldown.  A guild with no row gets defaults (nothing configured,
24 h cooldown).
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from warden.database.models import GuildConfig

logger = logging.getLogger(__name__)

DEFAULT_REAPPLY_COOLDOWN_HOURS = 24

ALLOWED_CONFIG_FIELDS: set[str] = {
    "review_channel_id",
    "accepted_role_id",
    "general_channel_id",
    "welcome_template",
    "reapply_cooldown_hours",
}


def get_guild_config(engine, guild_id: int) -> GuildConfig:
    """Return the stored config for *guild_id*, or an unsaved default."""
    with Session(engine, expire_on_commit=False) as session:
        cfg = session.get(GuildConfig, guild_id)
        if cfg is None:
            return GuildConfig(
                guild_id=guild_id,
                reapply_cooldown_hours=DEFAULT_REAPPLY_COOLDOWN_HOURS,
            )
        session.expunge(cfg)
        return cfg


def upsert_guild_config(engine, guild_id: int, **fields) -> GuildConfig:
    """Create or update the config row for *guild_id*.

    Raises
    ------
    ValueError
        If *fields* contains a name outside :data:`ALLOWED_CONFIG_FIELDS`.
    """
    unknown = set(fields) - ALLOWED_CONFIG_FIELDS
    if unknown:
        raise ValueError(f"Unknown guild config fields: {', '.join(sorted(unknown))}")

    with Session(engine, expire_on_commit=False) as session:
        cfg = session.get(GuildConfig, guild_id)
        if cfg is None:
            cfg = GuildConfig(
                guild_id=guild_id,
                reapply_cooldown_hours=DEFAULT_REAPPLY_COOLDOWN_HOURS,
            )
            session.add(cfg)
        for name, value in fields.items():
            setattr(cfg, name, value)
        session.commit()
        session.refresh(cfg)
        session.expunge(cfg)

    logger.info("Guild %s config updated: %s", guild_id, sorted(fields))
    return cfg
