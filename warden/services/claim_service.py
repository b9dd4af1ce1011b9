"""
warden.services.claim_service — Advisory Review Claims
=======================================================

A claim tells other moderators "I'm working on this one".  Claims live in
``review_claims`` (one row per application, keyed by ``app_id``) so they
survive restarts and are shared by every bot process.

Claims are **advisory**: the decision transaction never looks at them.
Losing a claim (expiry, unclaim, crash) can therefore never corrupt an
application; the conditional UPDATE in
:mod:`warden.services.decision_service` remains the only gate.

Concurrent claims race on the primary key.  The insert runs inside a
SAVEPOINT and an :class:`~sqlalchemy.exc.IntegrityError` is reported as
``already_claimed`` with the winner's id.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warden.constants import CLAIMED_BY_OTHER
from warden.database.models import (
    Application,
    ApplicationStatus,
    ReviewActionKind,
    ReviewClaim,
)
from warden.services.application_service import as_utc
from warden.services.audit_service import add_action

logger = logging.getLogger(__name__)


class ClaimKind(enum.StrEnum):
    CLAIMED = "claimed"
    ALREADY_CLAIMED = "already_claimed"
    NOT_FOUND = "not_found"
    TERMINAL = "terminal"
    UNCLAIMED = "unclaimed"
    NOT_CLAIMED = "not_claimed"
    NOT_OWNER = "not_owner"


@dataclass(frozen=True, slots=True)
class ClaimInfo:
    app_id: str
    reviewer_id: int
    claimed_at: datetime


@dataclass(frozen=True, slots=True)
class ClaimResult:
    kind: ClaimKind
    claim: ClaimInfo | None = None
    status: str | None = None

    @property
    def holder_id(self) -> int | None:
        return self.claim.reviewer_id if self.claim else None


def _info(row: ReviewClaim) -> ClaimInfo:
    return ClaimInfo(row.app_id, row.reviewer_id, as_utc(row.claimed_at))


def _is_expired(row: ReviewClaim, ttl_minutes: int | None, now: datetime) -> bool:
    if not ttl_minutes:
        return False
    return as_utc(row.claimed_at) + timedelta(minutes=ttl_minutes) <= now


def _expire(session: Session, row: ReviewClaim, ttl_minutes: int) -> None:
    """Delete an expired claim and record it."""
    add_action(
        session,
        app_id=row.app_id,
        actor_id=row.reviewer_id,
        action=ReviewActionKind.CLAIM_EXPIRED,
        meta={
            "claimed_at": as_utc(row.claimed_at).isoformat(),
            "ttl_minutes": ttl_minutes,
        },
    )
    session.delete(row)
    session.flush()
    logger.info(
        "Claim on app %s by %s expired after %d min",
        row.app_id, row.reviewer_id, ttl_minutes,
    )


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------
def claim_guard(claim: ClaimInfo | None, actor_id: int) -> str | None:
    """Return a refusal message if someone other than *actor_id* holds *claim*."""
    if claim is None or claim.reviewer_id == actor_id:
        return None
    return CLAIMED_BY_OTHER.format(holder=claim.reviewer_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_claim(
    engine,
    app_id: str,
    *,
    ttl_minutes: int | None = None,
    now: datetime | None = None,
) -> ClaimInfo | None:
    """Current claim on *app_id*, or ``None``.

    A claim older than *ttl_minutes* is removed (with a ``claim_expired``
    audit row) and reported as absent.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        row = session.get(ReviewClaim, app_id)
        if row is None:
            return None
        if _is_expired(row, ttl_minutes, now):
            _expire(session, row, ttl_minutes)
            session.commit()
            return None
        return _info(row)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def claim(
    engine,
    app_id: str,
    actor_id: int,
    *,
    ttl_minutes: int | None = None,
    now: datetime | None = None,
) -> ClaimResult:
    """Claim *app_id* for *actor_id*.

    Re-claiming by the current holder is a no-op reported as ``claimed``.
    Terminal applications cannot be claimed.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        app = session.get(Application, app_id)
        if app is None:
            return ClaimResult(ClaimKind.NOT_FOUND)
        if ApplicationStatus(app.status).is_terminal:
            return ClaimResult(ClaimKind.TERMINAL, status=app.status)

        existing = session.get(ReviewClaim, app_id)
        if existing is not None and _is_expired(existing, ttl_minutes, now):
            _expire(session, existing, ttl_minutes)
            existing = None
        if existing is not None:
            kind = (
                ClaimKind.CLAIMED
                if existing.reviewer_id == actor_id
                else ClaimKind.ALREADY_CLAIMED
            )
            info = _info(existing)
            session.commit()
            return ClaimResult(kind, info, app.status)

        row = ReviewClaim(app_id=app_id, reviewer_id=actor_id, claimed_at=now)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(row)
                session.flush()
        except IntegrityError:
            # Another reviewer inserted first; the savepoint is already undone.
            winner = session.get(ReviewClaim, app_id, populate_existing=True)
            info = _info(winner) if winner is not None else None
            status = app.status
            session.commit()
            return ClaimResult(ClaimKind.ALREADY_CLAIMED, info, status)

        add_action(
            session,
            app_id=app_id,
            actor_id=actor_id,
            action=ReviewActionKind.CLAIM,
            meta={"code": app.short_code},
        )
        info = _info(row)
        status = app.status
        session.commit()

    logger.info("App %s claimed by %s", app_id, actor_id)
    return ClaimResult(ClaimKind.CLAIMED, info, status)


def unclaim(engine, app_id: str, actor_id: int) -> ClaimResult:
    """Release *actor_id*'s claim on *app_id*."""
    with Session(engine) as session:
        row = session.get(ReviewClaim, app_id)
        if row is None:
            return ClaimResult(ClaimKind.NOT_CLAIMED)
        if row.reviewer_id != actor_id:
            return ClaimResult(ClaimKind.NOT_OWNER, _info(row))

        info = _info(row)
        session.delete(row)
        add_action(
            session,
            app_id=app_id,
            actor_id=actor_id,
            action=ReviewActionKind.UNCLAIM,
        )
        session.commit()

    logger.info("App %s unclaimed by %s", app_id, actor_id)
    return ClaimResult(ClaimKind.UNCLAIMED, info)


def clear_claim(engine, app_id: str) -> bool:
    """Remove any claim on *app_id*.  Returns ``True`` if one existed."""
    with Session(engine) as session:
        result = session.execute(
            delete(ReviewClaim)
            .where(ReviewClaim.app_id == app_id)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        return result.rowcount > 0
