"""
warden.bot.cogs.applications — Applicant Commands
==================================================

- /apply  — open (and submit) an application, post its review card
- /ticket — open a modmail thread with staff about an application

The onboarding questionnaire itself is handled elsewhere; /apply submits
immediately so staff can review.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from warden.database.engine import run_db
from warden.services.application_service import (
    StartKind,
    find_latest_by_user_id,
    load_application,
    start_application,
    submit_application,
)
from warden.services.card_service import save_card_location
from warden.services.embeds import build_review_card_embed
from warden.services.guild_config_service import get_guild_config
from warden.services.modmail_service import find_open_tickets, open_ticket

if TYPE_CHECKING:
    from warden.bot.core import WardenBot

logger = logging.getLogger(__name__)


class Applications(commands.Cog, name="Applications"):
    """Commands used by applicants."""

    def __init__(self, bot: WardenBot) -> None:
        self.bot = bot

    @app_commands.command(name="apply", description="Apply to join the community.")
    @app_commands.guild_only()
    async def apply(self, interaction: discord.Interaction) -> None:
        guild_id = interaction.guild_id or 0
        user_id = interaction.user.id
        guild_config = await run_db(get_guild_config, self.bot.engine, guild_id)

        result = await run_db(
            start_application,
            self.bot.engine,
            guild_id,
            user_id,
            cooldown_hours=guild_config.reapply_cooldown_hours or 0,
        )
        match result.kind:
            case StartKind.BLOCKED:
                await interaction.response.send_message(
                    "You are not able to apply to this server.", ephemeral=True
                )
                return
            case StartKind.COOLDOWN:
                await interaction.response.send_message(
                    f"You can apply again <t:{int(result.retry_at.timestamp())}:R>.",
                    ephemeral=True,
                )
                return
            case StartKind.EXISTS if result.application is None or result.application.status != "pending":
                await interaction.response.send_message(
                    "Your application is already under review.", ephemeral=True
                )
                return

        app = result.application
        await run_db(submit_application, self.bot.engine, app.id)
        await interaction.response.send_message(
            f"Thanks! Your application **{app.short_code}** has been submitted.",
            ephemeral=True,
        )

        if guild_config.review_channel_id:
            await self._post_card(app.id, guild_config.review_channel_id)

    async def _post_card(self, app_id: str, channel_id: int) -> None:
        app = await run_db(load_application, self.bot.engine, app_id)
        channel = self.bot.get_channel(channel_id)
        if app is None or channel is None:
            logger.warning("Cannot post review card for %s in channel %s", app_id, channel_id)
            return
        try:
            message = await channel.send(embed=build_review_card_embed(app))
        except discord.HTTPException as exc:
            logger.warning("Posting review card for %s failed: %s", app_id, exc)
            return
        await run_db(save_card_location, self.bot.engine, app.id, channel.id, message.id)

    @app_commands.command(name="ticket", description="Open a private thread with staff.")
    @app_commands.guild_only()
    async def ticket(self, interaction: discord.Interaction) -> None:
        guild_id = interaction.guild_id or 0
        user_id = interaction.user.id
        if await run_db(find_open_tickets, self.bot.engine, guild_id, user_id):
            await interaction.response.send_message(
                "You already have an open ticket.", ephemeral=True
            )
            return

        guild_config = await run_db(get_guild_config, self.bot.engine, guild_id)
        channel = self.bot.get_channel(guild_config.review_channel_id or 0)
        if not isinstance(channel, discord.TextChannel):
            await interaction.response.send_message(
                "Tickets are not set up on this server.", ephemeral=True
            )
            return

        latest = await run_db(find_latest_by_user_id, self.bot.engine, guild_id, user_id)
        code = latest.short_code if latest else None
        app_id = latest.id if latest else None
        thread = await channel.create_thread(
            name=f"modmail-{interaction.user.name}"[:100],
            type=discord.ChannelType.private_thread,
        )
        await thread.add_user(interaction.user)
        await run_db(
            open_ticket,
            self.bot.engine,
            guild_id,
            user_id,
            thread_id=thread.id,
            app_code=code,
            app_id=app_id,
        )
        await interaction.response.send_message(
            f"Ticket opened: {thread.mention}", ephemeral=True
        )


async def setup(bot: WardenBot) -> None:
    await bot.add_cog(Applications(bot))
