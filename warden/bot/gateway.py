"""
warden.bot.gateway — discord.py Implementation of the Review Gateway
=====================================================================

Adapts a running :class:`discord.Client` to the
:class:`warden.services.review_service.ReviewGateway` protocol.

Role grants are pre-checked (Manage Roles permission, role hierarchy)
before calling Discord so the common misconfigurations come back as a
classified :class:`RoleGrantResult` instead of an opaque 403.
"""

from __future__ import annotations

import logging

import discord

from warden.constants import (
    DISCORD_MISSING_PERMISSIONS,
    ROLE_ERROR,
    ROLE_HIERARCHY,
    ROLE_MEMBER_MISSING,
    ROLE_MISSING,
    ROLE_MISSING_PERMISSIONS,
)
from warden.database.engine import run_db
from warden.services.application_service import load_application
from warden.services.audit_service import recent_actions
from warden.services.card_service import get_card_location
from warden.services.claim_service import get_claim
from warden.services.embeds import build_review_card_embed
from warden.services.modmail_service import close_open_tickets
from warden.services.review_service import RoleGrantResult

logger = logging.getLogger(__name__)


def classify_http_error(exc: discord.HTTPException) -> str:
    """Map a Discord API error to a role failure code."""
    if isinstance(exc, discord.Forbidden) and exc.code == DISCORD_MISSING_PERMISSIONS:
        return ROLE_MISSING_PERMISSIONS
    if isinstance(exc, discord.Forbidden):
        return ROLE_HIERARCHY
    if isinstance(exc, discord.NotFound):
        return ROLE_MEMBER_MISSING
    return ROLE_ERROR


class DiscordGateway:
    """Discord side of the review pipeline.

    Parameters
    ----------
    client:
        The connected bot.
    engine:
        SQLAlchemy engine, used for ticket bookkeeping and card rendering.
    history_limit:
        Number of recent actions shown on a review card.
    claim_ttl_minutes:
        Claim expiry applied when rendering the card.
    """

    def __init__(
        self,
        client: discord.Client,
        engine,
        *,
        history_limit: int = 4,
        claim_ttl_minutes: int | None = None,
    ) -> None:
        self.client = client
        self.engine = engine
        self.history_limit = history_limit
        self.claim_ttl_minutes = claim_ttl_minutes

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    async def _guild(self, guild_id: int) -> discord.Guild | None:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            try:
                guild = await self.client.fetch_guild(guild_id)
            except discord.HTTPException as exc:
                logger.warning("Guild %s unavailable: %s", guild_id, exc)
                return None
        return guild

    async def fetch_member(self, guild_id: int, user_id: int) -> discord.Member | None:
        guild = await self._guild(guild_id)
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            logger.debug("User %s is not in guild %s", user_id, guild_id)
            return None

    # -------------------------------------------------------------------
    # Role grant
    # -------------------------------------------------------------------
    async def grant_role(
        self, guild_id: int, user_id: int, role_id: int, reason_tag: str, actor_id: int
    ) -> RoleGrantResult:
        guild = await self._guild(guild_id)
        if guild is None:
            return RoleGrantResult("add", False, "guild unavailable", ROLE_ERROR)

        role = guild.get_role(role_id)
        if role is None:
            return RoleGrantResult("add", False, f"role {role_id} not found", ROLE_MISSING)

        member = await self.fetch_member(guild_id, user_id)
        if member is None:
            return RoleGrantResult("add", False, "member not in guild", ROLE_MEMBER_MISSING)

        if any(r.id == role_id for r in member.roles):
            return RoleGrantResult("skip", True)

        me = guild.me
        if me is not None:
            if not me.guild_permissions.manage_roles:
                return RoleGrantResult(
                    "add", False, "bot lacks Manage Roles", ROLE_MISSING_PERMISSIONS
                )
            if role >= me.top_role:
                return RoleGrantResult(
                    "add", False, f"role {role.name} is above the bot's top role", ROLE_HIERARCHY
                )

        try:
            await member.add_roles(role, reason=f"{reason_tag} by {actor_id}")
        except discord.HTTPException as exc:
            code = classify_http_error(exc)
            logger.warning(
                "Granting role %s to %s failed (%s): %s", role_id, user_id, code, exc
            )
            return RoleGrantResult("add", False, str(exc), code)

        logger.info("Granted role %s to %s in guild %s", role_id, user_id, guild_id)
        return RoleGrantResult("add", True)

    # -------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------
    async def send_direct_message(self, user_id: int, content: str) -> bool:
        try:
            user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
            await user.send(content)
        except discord.Forbidden:
            logger.debug("Could not DM user %s: DMs closed", user_id)
            return False
        except discord.NotFound:
            logger.debug("Could not DM user %s: unknown user", user_id)
            return False
        return True

    async def post_welcome(self, guild_id: int, channel_id: int, content: str) -> None:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        await channel.send(
            content, allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False)
        )

    # -------------------------------------------------------------------
    # Tickets, cards, removal
    # -------------------------------------------------------------------
    async def close_ticket(self, guild_id: int, user_id: int, code: str, context: str) -> bool:
        closed = await run_db(
            close_open_tickets,
            self.engine,
            guild_id,
            user_id,
            reason=f"Application {code} {context}",
        )
        for ticket in closed:
            if ticket.thread_id is None:
                continue
            thread = self.client.get_channel(ticket.thread_id)
            if isinstance(thread, discord.Thread):
                try:
                    await thread.edit(archived=True, locked=True)
                except discord.HTTPException as exc:
                    logger.warning("Archiving modmail thread %s failed: %s", ticket.thread_id, exc)
        return bool(closed)

    async def refresh_card(self, application_id: str) -> None:
        location = await run_db(get_card_location, self.engine, application_id)
        if location is None:
            logger.debug("No review card for app %s", application_id)
            return
        app = await run_db(load_application, self.engine, application_id)
        if app is None:
            return
        claim = await run_db(
            get_claim, self.engine, application_id, ttl_minutes=self.claim_ttl_minutes
        )
        history = await run_db(recent_actions, self.engine, application_id, self.history_limit)

        channel_id, message_id = location
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        message = channel.get_partial_message(message_id)
        await message.edit(embed=build_review_card_embed(app, claim, history))

    async def remove_member(self, guild_id: int, user_id: int, reason: str) -> None:
        guild = await self._guild(guild_id)
        if guild is None:
            raise RuntimeError(f"guild {guild_id} unavailable")
        await guild.kick(discord.Object(id=user_id), reason=reason)
        logger.info("Removed user %s from guild %s", user_id, guild_id)
