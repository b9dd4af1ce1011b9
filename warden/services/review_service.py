"""
warden.services.review_service — Decision Pipeline & Effect Orchestration
==========================================================================

Everything a staff decision triggers, in order::

    claim guard → decide (one transaction) → clear claim → effects → summary

The decision transaction is authoritative.  Once it commits, every
follow-up is a best-effort *effect* run by
:func:`warden.engine.effects.run_effects`: failures become warnings and
audit rows, never exceptions, and never undo the decision.

Discord access goes through a :class:`ReviewGateway`, implemented on
discord.py by :class:`warden.bot.gateway.DiscordGateway` and by mocks in
tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError

from warden.config import DEFAULT_EFFECT_TIMEOUT_SECONDS
from warden.constants import (
    ALREADY_LINES,
    APPLIED_LINES,
    APPROVE_DM,
    APPROVE_DM_FOOTER,
    APPROVE_DM_NOTE,
    KICK_DM,
    NOT_FOUND_LINE,
    NOT_SUBMITTED_LINE,
    PERM_REJECT_DM,
    REJECT_DM,
    ROLE_ERROR,
    ROLE_FAILURE_HINTS,
    TERMINAL_LINE,
)
from warden.database.engine import run_db
from warden.database.models import Application, GuildConfig, ReviewActionKind
from warden.engine.decisions import (
    Approve,
    Decision,
    DecisionOutcome,
    Kick,
    OutcomeKind,
    Reject,
    decision_name,
)
from warden.engine.effects import Effect, EffectOutcome, run_effects
from warden.services.audit_service import record_action
from warden.services.claim_service import claim_guard, clear_claim, get_claim
from warden.services.decision_service import decide, record_blocked_attempt
from warden.services.welcome_service import WelcomeContext, render_welcome

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Gateway interface
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RoleGrantResult:
    """What happened when granting the accepted role.

    ``action`` is ``"add"`` when the role was (or should have been) added
    and ``"skip"`` when the member already had it.  ``code`` classifies a
    failure (see :data:`warden.constants.ROLE_FAILURE_HINTS`).
    """

    action: str
    success: bool
    error: str | None = None
    code: str | None = None


class ReviewGateway(Protocol):
    async def fetch_member(self, guild_id: int, user_id: int) -> Any | None: ...

    async def grant_role(
        self, guild_id: int, user_id: int, role_id: int, reason_tag: str, actor_id: int
    ) -> RoleGrantResult: ...

    async def send_direct_message(self, user_id: int, content: str) -> bool: ...

    async def close_ticket(self, guild_id: int, user_id: int, code: str, context: str) -> bool: ...

    async def refresh_card(self, application_id: str) -> None: ...

    async def post_welcome(self, guild_id: int, channel_id: int, content: str) -> None: ...

    async def remove_member(self, guild_id: int, user_id: int, reason: str) -> None: ...


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------
@dataclass
class DecisionReport:
    """Caller-visible result of :func:`run_decision`.

    ``headline`` is always the authoritative outcome; warnings from effects
    follow it in :meth:`render`.
    """

    headline: str
    outcome: DecisionOutcome | None = None
    effects: list[EffectOutcome] = field(default_factory=list)

    @property
    def refused(self) -> bool:
        """True when the claim guard stopped the decision before it ran."""
        return self.outcome is None

    @property
    def warnings(self) -> list[str]:
        return [e.warning for e in self.effects if e.warning]

    def render(self) -> str:
        return "\n".join([self.headline, *self.warnings])


def headline_for(outcome: DecisionOutcome) -> str:
    status = outcome.status.value if outcome.status else None
    match outcome.kind:
        case OutcomeKind.APPLIED:
            return APPLIED_LINES[status]
        case OutcomeKind.ALREADY:
            return ALREADY_LINES[status]
        case OutcomeKind.TERMINAL:
            return TERMINAL_LINE.format(status=status)
        case OutcomeKind.INVALID if status is None:
            return NOT_FOUND_LINE
        case OutcomeKind.INVALID:
            return NOT_SUBMITTED_LINE
    raise TypeError(f"Unknown outcome: {outcome!r}")


# ---------------------------------------------------------------------------
# DM wording
# ---------------------------------------------------------------------------
def decision_dm(decision: Decision, community: str) -> str:
    match decision:
        case Approve(reason=reason):
            parts = [APPROVE_DM.format(community=community)]
            if reason:
                parts.append(APPROVE_DM_NOTE.format(reason=reason))
            parts.append(APPROVE_DM_FOOTER)
            return "\n\n".join(parts)
        case Reject(permanent=True):
            return PERM_REJECT_DM.format(community=community)
        case Reject(reason=reason):
            return REJECT_DM.format(community=community, reason=reason.rstrip("."))
        case Kick():
            return KICK_DM.format(community=community)
    raise TypeError(f"Unknown decision: {decision!r}")


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------
class _EffectPlan:
    """Builds the ordered effect list for one applied decision.

    Effects share state through the instance (the fetched member, whether
    the role grant succeeded).
    """

    def __init__(
        self,
        engine,
        gateway: ReviewGateway,
        app: Application,
        decision: Decision,
        actor_id: int,
        guild_config: GuildConfig,
        community_name: str,
    ) -> None:
        self.engine = engine
        self.gateway = gateway
        self.app = app
        self.decision = decision
        self.actor_id = actor_id
        self.cfg = guild_config
        self.community = community_name
        self.member: Any | None = None
        self.role_granted = False

    async def _audit(self, action: ReviewActionKind, *, reason=None, meta=None) -> None:
        await run_db(
            record_action,
            self.engine,
            app_id=self.app.id,
            actor_id=self.actor_id,
            action=action,
            reason=reason,
            meta=meta,
        )

    # -- individual effects ------------------------------------------------
    async def fetch_member(self) -> EffectOutcome | None:
        self.member = await self.gateway.fetch_member(self.app.guild_id, self.app.user_id)
        if self.member is None:
            return EffectOutcome.skipped("member", detail="member not in guild")
        return None

    async def grant_role(self) -> EffectOutcome | None:
        role_id = self.cfg.accepted_role_id
        if not role_id:
            return EffectOutcome.skipped("role_grant", detail="no accepted role configured")

        result = await self.gateway.grant_role(
            self.app.guild_id,
            self.app.user_id,
            role_id,
            f"Application {self.app.short_code} approved",
            self.actor_id,
        )
        meta = {"role_id": role_id, "action": result.action}
        if result.success:
            self.role_granted = True
            await self._audit(ReviewActionKind.ROLE_GRANT, meta=meta)
            return None

        code = result.code or ROLE_ERROR
        await self._audit(
            ReviewActionKind.ROLE_GRANT_BLOCKED,
            reason=result.error,
            meta={**meta, "code": code},
        )
        return EffectOutcome.failed(
            "role_grant",
            detail=f"{code}: {result.error}",
            warning=f"Role not granted: {ROLE_FAILURE_HINTS.get(code, result.error or code)}.",
        )

    async def close_ticket(self) -> EffectOutcome | None:
        context = decision_name(self.decision)
        closed = await self.gateway.close_ticket(
            self.app.guild_id, self.app.user_id, self.app.short_code, context
        )
        if not closed:
            return EffectOutcome.skipped("modmail_close", detail="no open ticket")
        await self._audit(ReviewActionKind.MODMAIL_CLOSE, meta={"context": context})
        return None

    async def refresh_card(self) -> None:
        await self.gateway.refresh_card(self.app.id)

    async def send_dm(self) -> EffectOutcome | None:
        content = decision_dm(self.decision, self.community)
        if await self.gateway.send_direct_message(self.app.user_id, content):
            return None
        await self._audit(
            ReviewActionKind.DM_FAILED, meta={"decision": decision_name(self.decision)}
        )
        return EffectOutcome.failed(
            "dm",
            detail="direct message not delivered",
            warning="Could not DM the applicant (DMs closed or user unreachable).",
        )

    async def post_welcome(self) -> EffectOutcome | None:
        channel_id = self.cfg.general_channel_id
        if not channel_id:
            suppressed = "no_channel"
            note = "Welcome not posted: no welcome channel configured."
        elif self.cfg.accepted_role_id and not self.role_granted:
            suppressed = "role_not_granted"
            note = "Welcome not posted because the role was not granted."
        else:
            suppressed = None

        if suppressed:
            await self._audit(ReviewActionKind.WELCOME_SUPPRESSED, meta={"reason": suppressed})
            return EffectOutcome.skipped("welcome", detail=suppressed, warning=note)

        content = render_welcome(self.cfg.welcome_template, self._welcome_context())
        try:
            await self.gateway.post_welcome(self.app.guild_id, channel_id, content)
        except Exception as exc:
            logger.warning("Welcome post for app %s failed: %s", self.app.id, exc)
            await self._audit(
                ReviewActionKind.WELCOME_FAILED,
                reason=str(exc),
                meta={"channel_id": channel_id},
            )
            return EffectOutcome.failed(
                "welcome", detail=str(exc), warning=f"Welcome post failed: {exc}."
            )
        await self._audit(ReviewActionKind.WELCOME_POSTED, meta={"channel_id": channel_id})
        return None

    async def remove_member(self) -> EffectOutcome | None:
        reason = f"Application {self.app.short_code} kicked"
        if self.decision.reason:
            reason = f"{reason}: {self.decision.reason}"
        try:
            await self.gateway.remove_member(self.app.guild_id, self.app.user_id, reason)
        except Exception as exc:
            logger.warning("Removing user %s for app %s failed: %s", self.app.user_id, self.app.id, exc)
            await self._audit(ReviewActionKind.KICK_FAILED, reason=str(exc))
            return EffectOutcome.failed(
                "remove_member",
                detail=str(exc),
                warning="Could not remove the applicant from the server; status stays kicked.",
            )
        return None

    def _welcome_context(self) -> WelcomeContext:
        member = self.member
        guild = getattr(member, "guild", None)
        return WelcomeContext(
            user_id=self.app.user_id,
            tag=str(getattr(member, "name", None) or self.app.user_id),
            display_name=str(getattr(member, "display_name", None) or self.app.user_id),
            guild_name=str(getattr(guild, "name", None) or self.community),
        )

    # -- plans -------------------------------------------------------------
    def steps(self) -> list[tuple[str, Effect]]:
        match self.decision:
            case Approve():
                return [
                    ("member", self.fetch_member),
                    ("role_grant", self.grant_role),
                    ("modmail_close", self.close_ticket),
                    ("card_refresh", self.refresh_card),
                    ("dm", self.send_dm),
                    ("welcome", self.post_welcome),
                ]
            case Reject():
                return [
                    ("dm", self.send_dm),
                    ("modmail_close", self.close_ticket),
                    ("card_refresh", self.refresh_card),
                ]
            case Kick():
                return [
                    ("dm", self.send_dm),
                    ("remove_member", self.remove_member),
                    ("modmail_close", self.close_ticket),
                    ("card_refresh", self.refresh_card),
                ]
        raise TypeError(f"Unknown decision: {self.decision!r}")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
async def run_decision(
    engine,
    gateway: ReviewGateway,
    app: Application,
    decision: Decision,
    actor_id: int,
    *,
    guild_config: GuildConfig,
    community_name: str,
    effect_timeout: float = DEFAULT_EFFECT_TIMEOUT_SECONDS,
    claim_ttl_minutes: int | None = None,
) -> DecisionReport:
    """Decide *app* and run the follow-up effects.

    Persistence errors from the decision transaction propagate; nothing
    raised after the commit does.
    """
    claim = await run_db(get_claim, engine, app.id, ttl_minutes=claim_ttl_minutes)
    refusal = claim_guard(claim, actor_id)
    if refusal:
        logger.info("Decision on app %s by %s refused: claimed by %s", app.id, actor_id, claim.reviewer_id)
        return DecisionReport(refusal)

    outcome = await run_db(decide, engine, app.id, decision, actor_id)
    if not outcome.applied:
        if outcome.status is not None:
            await run_db(record_blocked_attempt, engine, app.id, decision, actor_id, outcome)
        return DecisionReport(headline_for(outcome), outcome)

    try:
        await run_db(clear_claim, engine, app.id)
    except SQLAlchemyError:
        logger.exception("Could not clear claim on app %s after decision", app.id)

    plan = _EffectPlan(engine, gateway, app, decision, actor_id, guild_config, community_name)
    effects = await run_effects(
        plan.steps(),
        timeout=effect_timeout,
        context={"app": app.id, "guild": app.guild_id},
    )
    report = DecisionReport(headline_for(outcome), outcome, effects)

    try:
        await run_db(
            record_action,
            engine,
            app_id=app.id,
            actor_id=actor_id,
            action=ReviewActionKind.EFFECTS_SUMMARY,
            meta={
                "effects": {e.name: str(e.status) for e in effects},
                "warnings": report.warnings,
            },
        )
    except SQLAlchemyError:
        logger.exception("Could not record effects summary for app %s", app.id)

    return report
