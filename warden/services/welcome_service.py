"""
warden.services.welcome_service — Welcome Message Rendering
============================================================

Guild admins write welcome templates with a handful of tokens::

    {applicant.mention}   <@123…>
    {applicant.tag}       name#0 / name
    {applicant.display}   server display name
    {guild.name}          the guild's name

Unknown tokens are left as written so a typo shows up in the post
instead of raising.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from warden.constants import DEFAULT_WELCOME_TEMPLATE

_TOKEN = re.compile(r"\{([a-z]+\.[a-z]+)\}")


@dataclass(frozen=True, slots=True)
class WelcomeContext:
    user_id: int
    tag: str
    display_name: str
    guild_name: str


def render_welcome(template: str | None, ctx: WelcomeContext) -> str:
    """Substitute tokens in *template* (or the default template)."""
    values = {
        "applicant.mention": f"<@{ctx.user_id}>",
        "applicant.tag": ctx.tag,
        "applicant.display": ctx.display_name,
        "guild.name": ctx.guild_name,
    }
    text = template if template and template.strip() else DEFAULT_WELCOME_TEMPLATE
    return _TOKEN.sub(lambda m: values.get(m.group(1), m.group(0)), text)
