"""
warden.bot.cogs.review — Staff Review Slash Commands
=====================================================

- /claim, /unclaim — advisory "I'm on it" markers
- /accept, /reject, /kick — decisions, routed through
  :func:`warden.services.review_service.run_decision`
- /history — recent review actions for an application
- /review-config — per-guild role and channel settings

Every command identifies the application by exactly one of ``code``,
``user`` or ``user_id``.  All commands require the configured staff role;
replies are ephemeral.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands
from sqlalchemy.exc import SQLAlchemyError

from warden.database.engine import run_db
from warden.engine.decisions import Approve, Decision, Kick, Reject
from warden.services.audit_service import recent_actions
from warden.services.claim_service import ClaimKind, claim, unclaim
from warden.services.guild_config_service import get_guild_config, upsert_guild_config
from warden.services.lookup_service import LookupResult, resolve_application
from warden.services.review_service import run_decision

if TYPE_CHECKING:
    from warden.bot.core import WardenBot

logger = logging.getLogger(__name__)

_TARGET_DESCRIBE = {
    "code": "Six-character application code",
    "user": "The applicant",
    "user_id": "Applicant's user id (if they left the server)",
}


def is_staff():
    """Decorator that checks if the user has the configured staff role."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: WardenBot = interaction.client  # type: ignore[assignment]
        if not interaction.user or not hasattr(interaction.user, "roles"):
            return False
        staff_role_id = bot.cfg.staff_role_id
        return any(role.id == staff_role_id for role in interaction.user.roles)
    return app_commands.check(predicate)


class Review(commands.Cog, name="Review"):
    """Application review commands."""

    def __init__(self, bot: WardenBot) -> None:
        self.bot = bot

    async def _resolve(
        self,
        interaction: discord.Interaction,
        code: str | None,
        user: discord.User | None,
        user_id: str | None,
    ) -> LookupResult:
        return await run_db(
            resolve_application,
            self.bot.engine,
            interaction.guild_id or 0,
            code=code,
            user_id=user.id if user else None,
            raw_id=user_id,
        )

    async def _decide(
        self,
        interaction: discord.Interaction,
        decision: Decision,
        code: str | None,
        user: discord.User | None,
        user_id: str | None,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)

        lookup = await self._resolve(interaction, code, user, user_id)
        if not lookup.found:
            await interaction.followup.send(lookup.message, ephemeral=True)
            return

        app = lookup.application
        guild_config = await run_db(get_guild_config, self.bot.engine, app.guild_id)
        try:
            report = await run_decision(
                self.bot.engine,
                self.bot.gateway,
                app,
                decision,
                interaction.user.id,
                guild_config=guild_config,
                community_name=self.bot.cfg.community_name,
                effect_timeout=self.bot.cfg.effect_timeout_seconds,
                claim_ttl_minutes=self.bot.cfg.claim_ttl_minutes,
            )
        except SQLAlchemyError:
            logger.exception("Decision on app %s failed", app.id)
            await interaction.followup.send(
                "Decision failed: the database is unavailable. Nothing was changed.",
                ephemeral=True,
            )
            return

        await interaction.followup.send(report.render(), ephemeral=True)

    async def _refresh_card(self, app_id: str) -> None:
        """Best-effort card refresh after a claim change; never raises."""
        try:
            await asyncio.wait_for(
                self.bot.gateway.refresh_card(app_id),
                timeout=self.bot.cfg.effect_timeout_seconds,
            )
        except Exception:
            logger.warning("Refreshing review card for %s failed", app_id, exc_info=True)

    # -------------------------------------------------------------------
    # /accept
    # -------------------------------------------------------------------
    @app_commands.command(name="accept", description="Approve a submitted application.")
    @app_commands.describe(note="Optional note included in the applicant's DM", **_TARGET_DESCRIBE)
    @is_staff()
    async def accept(
        self,
        interaction: discord.Interaction,
        code: str | None = None,
        user: discord.User | None = None,
        user_id: str | None = None,
        note: str | None = None,
    ) -> None:
        await self._decide(interaction, Approve(note or None), code, user, user_id)

    # -------------------------------------------------------------------
    # /reject
    # -------------------------------------------------------------------
    @app_commands.command(name="reject", description="Reject a submitted application.")
    @app_commands.describe(
        reason="Shown to the applicant",
        permanent="Block this user from ever applying again",
        **_TARGET_DESCRIBE,
    )
    @is_staff()
    async def reject(
        self,
        interaction: discord.Interaction,
        reason: str,
        code: str | None = None,
        user: discord.User | None = None,
        user_id: str | None = None,
        permanent: bool = False,
    ) -> None:
        try:
            decision = Reject(reason, permanent=permanent)
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        await self._decide(interaction, decision, code, user, user_id)

    # -------------------------------------------------------------------
    # /kick
    # -------------------------------------------------------------------
    @app_commands.command(name="kick", description="Reject an applicant and remove them from the server.")
    @app_commands.describe(reason="Recorded in the audit log", **_TARGET_DESCRIBE)
    @is_staff()
    async def kick(
        self,
        interaction: discord.Interaction,
        reason: str,
        code: str | None = None,
        user: discord.User | None = None,
        user_id: str | None = None,
    ) -> None:
        try:
            decision = Kick(reason)
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        await self._decide(interaction, decision, code, user, user_id)

    # -------------------------------------------------------------------
    # /claim, /unclaim
    # -------------------------------------------------------------------
    @app_commands.command(name="claim", description="Mark an application as yours to review.")
    @app_commands.describe(**_TARGET_DESCRIBE)
    @is_staff()
    async def claim_cmd(
        self,
        interaction: discord.Interaction,
        code: str | None = None,
        user: discord.User | None = None,
        user_id: str | None = None,
    ) -> None:
        lookup = await self._resolve(interaction, code, user, user_id)
        if not lookup.found:
            await interaction.response.send_message(lookup.message, ephemeral=True)
            return

        app = lookup.application
        result = await run_db(
            claim,
            self.bot.engine,
            app.id,
            interaction.user.id,
            ttl_minutes=self.bot.cfg.claim_ttl_minutes,
        )
        match result.kind:
            case ClaimKind.CLAIMED:
                text = f"You claimed application {app.short_code}."
            case ClaimKind.ALREADY_CLAIMED:
                text = f"Application {app.short_code} is already claimed by <@{result.holder_id}>."
            case ClaimKind.TERMINAL:
                text = f"Application {app.short_code} is already {result.status}."
            case _:
                text = "Application not found."
        await interaction.response.send_message(text, ephemeral=True)
        if result.kind is ClaimKind.CLAIMED:
            await self._refresh_card(app.id)

    @app_commands.command(name="unclaim", description="Release your claim on an application.")
    @app_commands.describe(**_TARGET_DESCRIBE)
    @is_staff()
    async def unclaim_cmd(
        self,
        interaction: discord.Interaction,
        code: str | None = None,
        user: discord.User | None = None,
        user_id: str | None = None,
    ) -> None:
        lookup = await self._resolve(interaction, code, user, user_id)
        if not lookup.found:
            await interaction.response.send_message(lookup.message, ephemeral=True)
            return

        app = lookup.application
        result = await run_db(unclaim, self.bot.engine, app.id, interaction.user.id)
        match result.kind:
            case ClaimKind.UNCLAIMED:
                text = f"Released application {app.short_code}."
            case ClaimKind.NOT_OWNER:
                text = f"Application {app.short_code} is claimed by <@{result.holder_id}>, not you."
            case _:
                text = f"Application {app.short_code} is not claimed."
        await interaction.response.send_message(text, ephemeral=True)
        if result.kind is ClaimKind.UNCLAIMED:
            await self._refresh_card(app.id)

    # -------------------------------------------------------------------
    # /history
    # -------------------------------------------------------------------
    @app_commands.command(name="history", description="Show recent review activity for an application.")
    @app_commands.describe(**_TARGET_DESCRIBE)
    @is_staff()
    async def history(
        self,
        interaction: discord.Interaction,
        code: str | None = None,
        user: discord.User | None = None,
        user_id: str | None = None,
    ) -> None:
        lookup = await self._resolve(interaction, code, user, user_id)
        app = lookup.application
        if app is None:
            await interaction.response.send_message(lookup.message, ephemeral=True)
            return

        actions = await run_db(
            recent_actions, self.bot.engine, app.id, self.bot.cfg.history_limit
        )
        if not actions:
            text = f"No activity recorded for {app.short_code}."
        else:
            lines = [f"**{app.short_code}** ({app.status})"]
            for a in actions:
                line = f"`{a.action}` by <@{a.actor_id}> <t:{int(a.created_at.timestamp())}:R>"
                if a.reason:
                    line += f": {a.reason}"
                lines.append(line)
            text = "\n".join(lines)
        await interaction.response.send_message(text, ephemeral=True)

    # -------------------------------------------------------------------
    # /review-config
    # -------------------------------------------------------------------
    @app_commands.command(name="review-config", description="Configure review roles and channels.")
    @app_commands.describe(
        accepted_role="Role granted on approval",
        welcome_channel="Channel for welcome posts",
        review_channel="Channel for review cards",
        welcome_template="Tokens: {applicant.mention} {applicant.tag} {applicant.display} {guild.name}",
        reapply_cooldown_hours="Hours a rejected user waits before reapplying",
    )
    @is_staff()
    async def review_config(
        self,
        interaction: discord.Interaction,
        accepted_role: discord.Role | None = None,
        welcome_channel: discord.TextChannel | None = None,
        review_channel: discord.TextChannel | None = None,
        welcome_template: str | None = None,
        reapply_cooldown_hours: int | None = None,
    ) -> None:
        fields = {}
        if accepted_role is not None:
            fields["accepted_role_id"] = accepted_role.id
        if welcome_channel is not None:
            fields["general_channel_id"] = welcome_channel.id
        if review_channel is not None:
            fields["review_channel_id"] = review_channel.id
        if welcome_template is not None:
            fields["welcome_template"] = welcome_template
        if reapply_cooldown_hours is not None:
            if reapply_cooldown_hours < 0:
                await interaction.response.send_message(
                    "Cooldown hours cannot be negative.", ephemeral=True
                )
                return
            fields["reapply_cooldown_hours"] = reapply_cooldown_hours
        if not fields:
            await interaction.response.send_message("Nothing to change.", ephemeral=True)
            return

        await run_db(upsert_guild_config, self.bot.engine, interaction.guild_id or 0, **fields)
        await interaction.response.send_message(
            "Updated: " + ", ".join(sorted(fields)), ephemeral=True
        )

    # -------------------------------------------------------------------
    # Error handler for missing staff role
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "You need the staff role to use this command.",
                ephemeral=True,
            )
        else:
            raise error


async def setup(bot: WardenBot) -> None:
    await bot.add_cog(Review(bot))
