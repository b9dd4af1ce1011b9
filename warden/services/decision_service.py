"""
warden.services.decision_service — Atomic Decision Transaction
===============================================================

The single place where an application leaves ``submitted``.

One transaction does all of it:

1. ``UPDATE applications SET status=…, resolver_id=…, … WHERE id = :id AND
   status = 'submitted'``, the compare-and-set.  Concurrent deciders
   serialize on the row lock; whoever commits first wins and every later
   UPDATE matches zero rows.
2. The primary audit row (``approve`` / ``reject`` / ``perm_reject`` /
   ``kick``) is inserted before commit, so a decision and its audit row
   exist together or not at all.
3. When nothing was updated, the live status is re-read and classified by
   :func:`warden.engine.decisions.classify_existing`.

Database errors propagate; the session context rolls everything back.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from warden.database.models import Application, ApplicationStatus, ReviewActionKind
from warden.engine.decisions import (
    Decision,
    DecisionOutcome,
    OutcomeKind,
    Reject,
    action_kind,
    classify_existing,
    decision_name,
    target_status,
)
from warden.services.audit_service import add_action, record_action

logger = logging.getLogger(__name__)


def decide(
    engine,
    app_id: str,
    decision: Decision,
    actor_id: int,
    *,
    now: datetime | None = None,
) -> DecisionOutcome:
    """Apply *decision* to *app_id* on behalf of *actor_id*.

    Returns
    -------
    DecisionOutcome
        ``applied`` with the new status and the audit row id, or
        ``already`` / ``terminal`` / ``invalid`` with the observed status.
    """
    now = now or datetime.now(UTC)
    target = target_status(decision)
    values = {
        "status": target.value,
        "resolver_id": actor_id,
        "resolution_reason": decision.reason,
        "resolved_at": now,
        "updated_at": now,
    }
    if isinstance(decision, Reject) and decision.permanent:
        values["permanently_rejected"] = True

    with Session(engine) as session:
        result = session.execute(
            update(Application)
            .where(
                Application.id == app_id,
                Application.status == ApplicationStatus.SUBMITTED.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            current = session.scalar(
                select(Application.status).where(Application.id == app_id)
            )
            outcome = classify_existing(decision, current)
            logger.info(
                "Decision %s on app %s by %s not applied: %s (%s)",
                decision_name(decision), app_id, actor_id, outcome.kind, current,
            )
            return outcome

        row = add_action(
            session,
            app_id=app_id,
            actor_id=actor_id,
            action=action_kind(decision),
            reason=decision.reason,
            meta={"decision": decision_name(decision)},
        )
        action_id = row.id
        session.commit()

    logger.info(
        "App %s → %s by %s (action %s)", app_id, target.value, actor_id, action_id
    )
    return DecisionOutcome(OutcomeKind.APPLIED, target, action_id)


def record_blocked_attempt(
    engine,
    app_id: str,
    decision: Decision,
    actor_id: int,
    outcome: DecisionOutcome,
) -> int:
    """Audit a decision that lost to an earlier one.  Never re-runs effects."""
    return record_action(
        engine,
        app_id=app_id,
        actor_id=actor_id,
        action=ReviewActionKind.DECISION_BLOCKED,
        reason=decision.reason,
        meta={
            "attempted": str(action_kind(decision)),
            "outcome": str(outcome.kind),
            "observed_status": str(outcome.status) if outcome.status else None,
        },
    )
