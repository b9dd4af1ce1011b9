"""
warden.constants — Shared Constants & Message Templates
========================================================

Single source of truth for user-facing wording.  Import from here instead
of duplicating strings in cogs and services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Discord API error codes
# ---------------------------------------------------------------------------
DISCORD_MISSING_PERMISSIONS = 50013
DISCORD_UNKNOWN_MEMBER = 10007
DISCORD_UNKNOWN_ROLE = 10011
DISCORD_CANNOT_DM = 50007


# ---------------------------------------------------------------------------
# Role grant failure codes
# ---------------------------------------------------------------------------
ROLE_MISSING_PERMISSIONS = "missing_permissions"
ROLE_HIERARCHY = "hierarchy"
ROLE_MEMBER_MISSING = "member_missing"
ROLE_MISSING = "role_missing"
ROLE_ERROR = "error"

ROLE_FAILURE_HINTS: dict[str, str] = {
    ROLE_MISSING_PERMISSIONS: "the bot lacks Manage Roles",
    ROLE_HIERARCHY: "the role sits above the bot's highest role",
    ROLE_MEMBER_MISSING: "the applicant is no longer in the server",
    ROLE_MISSING: "the configured role no longer exists",
    ROLE_ERROR: "an unexpected error occurred",
}


# ---------------------------------------------------------------------------
# Decision summaries (first line of every reply)
# ---------------------------------------------------------------------------
APPLIED_LINES: dict[str, str] = {
    "approved": "Application approved.",
    "rejected": "Application rejected.",
    "kicked": "Applicant kicked.",
}

ALREADY_LINES: dict[str, str] = {
    "approved": "Already approved.",
    "rejected": "Already rejected.",
    "kicked": "Already kicked.",
}

TERMINAL_LINE = "Already resolved ({status})."
NOT_SUBMITTED_LINE = "Application not submitted yet."
NOT_FOUND_LINE = "Application not found."
CLAIMED_BY_OTHER = "This application is claimed by <@{holder}>. Ask them to finish or unclaim it."

# Longest reject or kick reason accepted from a moderator.
MAX_REASON_LENGTH = 500


# ---------------------------------------------------------------------------
# Applicant direct messages
# ---------------------------------------------------------------------------
APPROVE_DM = "Hi, welcome to {community}! Your application has been approved."
APPROVE_DM_NOTE = "**Note from reviewer:** {reason}"
APPROVE_DM_FOOTER = "Enjoy your stay!"

REJECT_DM = (
    "Hello, thanks for applying to {community}. The moderation team was not "
    "able to approve this application. You can submit a new one anytime!\n"
    "Reason: {reason}."
)
PERM_REJECT_DM = (
    "You've been permanently rejected from **{community}** and cannot apply "
    "again. Thanks for stopping by."
)
KICK_DM = (
    "Hi, your application with {community} was reviewed and you were removed "
    "from the server. If you believe this was a mistake, you may re-apply in "
    "the future."
)


# ---------------------------------------------------------------------------
# Welcome post
# ---------------------------------------------------------------------------
DEFAULT_WELCOME_TEMPLATE = "Welcome {applicant.mention} to {guild.name}! \U0001f44b"
