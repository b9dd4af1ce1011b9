"""
warden.services.embeds — Discord embed builders for review cards
=================================================================

All embed construction lives here so the review service and cogs only
need to supply data.
"""

from __future__ import annotations

import discord

from warden.database.models import Application, ApplicationStatus
from warden.services.audit_service import ActionSnapshot
from warden.services.claim_service import ClaimInfo

STATUS_COLORS: dict[str, discord.Color] = {
    ApplicationStatus.PENDING.value: discord.Color.light_grey(),
    ApplicationStatus.SUBMITTED.value: discord.Color.blurple(),
    ApplicationStatus.APPROVED.value: discord.Color.green(),
    ApplicationStatus.REJECTED.value: discord.Color.red(),
    ApplicationStatus.KICKED.value: discord.Color.dark_red(),
}


def build_review_card_embed(
    app: Application,
    claim: ClaimInfo | None = None,
    history: list[ActionSnapshot] | None = None,
) -> discord.Embed:
    """Staff-facing card: status, claim holder, last few actions."""
    embed = discord.Embed(
        title=f"Application {app.short_code}",
        description=f"Applicant: <@{app.user_id}>",
        color=STATUS_COLORS.get(app.status, discord.Color.default()),
    )
    embed.add_field(name="Status", value=app.status.capitalize(), inline=True)
    if app.resolver_id:
        embed.add_field(name="Decided by", value=f"<@{app.resolver_id}>", inline=True)
    if app.resolution_reason:
        embed.add_field(name="Reason", value=app.resolution_reason[:1024], inline=False)
    if claim is not None:
        embed.add_field(name="Claimed by", value=f"<@{claim.reviewer_id}>", inline=True)
    if history:
        lines = [
            f"`{a.action}` by <@{a.actor_id}>"
            + (f" ({a.created_at:%Y-%m-%d %H:%M})" if a.created_at else "")
            for a in history
        ]
        embed.add_field(name="Recent activity", value="\n".join(lines)[:1024], inline=False)
    embed.set_footer(text=f"id {app.id}")
    return embed
