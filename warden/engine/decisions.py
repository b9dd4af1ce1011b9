"""
warden.engine.decisions — Decision Variants & Outcome Rules
============================================================

Pure rules for the review state machine.  No database access here; the
transaction itself lives in :mod:`warden.services.decision_service`.

A decision is one of three closed variants::

    Approve(reason=None)
    Reject(reason, permanent=False)
    Kick(reason)

Only ``submitted`` applications can be decided.  Re-submitting the decision
that already won is ``already``; any other decision against a terminal row
is ``terminal``; a missing or still-``pending`` row is ``invalid``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from warden.constants import MAX_REASON_LENGTH
from warden.database.models import TERMINAL_STATUSES, ApplicationStatus, ReviewActionKind

__all__ = [
    "Approve",
    "Reject",
    "Kick",
    "Decision",
    "OutcomeKind",
    "DecisionOutcome",
    "classify_existing",
    "target_status",
    "action_kind",
    "decision_name",
]


# ---------------------------------------------------------------------------
# Decision variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Approve:
    reason: str | None = None


def _required_reason(reason: str | None) -> str:
    """Strip *reason*; raise ValueError when blank or longer than the limit."""
    if not reason or not reason.strip():
        raise ValueError("Reason is required.")
    reason = reason.strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValueError(
            f"Reason too long (max {MAX_REASON_LENGTH} characters, you provided {len(reason)})."
        )
    return reason


@dataclass(frozen=True, slots=True)
class Reject:
    """Rejection; *reason* is mandatory and shown to the applicant."""

    reason: str
    permanent: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "reason", _required_reason(self.reason))


@dataclass(frozen=True, slots=True)
class Kick:
    """Rejection plus removal from the server; *reason* is mandatory."""

    reason: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "reason", _required_reason(self.reason))


Decision = Approve | Reject | Kick


def target_status(decision: Decision) -> ApplicationStatus:
    """Terminal status a successful *decision* writes."""
    match decision:
        case Approve():
            return ApplicationStatus.APPROVED
        case Reject():
            return ApplicationStatus.REJECTED
        case Kick():
            return ApplicationStatus.KICKED
    raise TypeError(f"Unknown decision: {decision!r}")


def action_kind(decision: Decision) -> ReviewActionKind:
    """Audit action recorded by the decision transaction."""
    match decision:
        case Approve():
            return ReviewActionKind.APPROVE
        case Reject(permanent=True):
            return ReviewActionKind.PERM_REJECT
        case Reject():
            return ReviewActionKind.REJECT
        case Kick():
            return ReviewActionKind.KICK
    raise TypeError(f"Unknown decision: {decision!r}")


def decision_name(decision: Decision) -> str:
    """Short verb for logs and audit metadata (``approve``/``reject``/``kick``)."""
    match decision:
        case Approve():
            return "approve"
        case Reject():
            return "reject"
        case Kick():
            return "kick"
    raise TypeError(f"Unknown decision: {decision!r}")


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------
class OutcomeKind(enum.StrEnum):
    APPLIED = "applied"
    ALREADY = "already"
    TERMINAL = "terminal"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class DecisionOutcome:
    """Result of one decision transaction.

    ``status`` is the status observed (or written, for ``applied``);
    ``None`` only when the application does not exist.
    """

    kind: OutcomeKind
    status: ApplicationStatus | None = None
    action_id: int | None = None

    @property
    def applied(self) -> bool:
        return self.kind is OutcomeKind.APPLIED


def classify_existing(decision: Decision, status: str | None) -> DecisionOutcome:
    """Classify a decision that did not update the row.

    *status* is the live status re-read inside the same transaction.
    """
    if status is None:
        return DecisionOutcome(OutcomeKind.INVALID, None)

    current = ApplicationStatus(status)
    if current in TERMINAL_STATUSES:
        if current is target_status(decision):
            return DecisionOutcome(OutcomeKind.ALREADY, current)
        return DecisionOutcome(OutcomeKind.TERMINAL, current)
    return DecisionOutcome(OutcomeKind.INVALID, current)
