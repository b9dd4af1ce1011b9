"""
warden.services.audit_service — Review Action Audit Trail
==========================================================

Append-only history of everything done to an application.  Rows are never
updated or deleted; the canonical history of an application is its rows in
``created_at`` order.

Two ways to write:

* :func:`add_action`: inside a caller's session, so the row commits or
  rolls back with the caller's transaction (decision, claim).
* :func:`record_action`: its own short transaction, for effect-scoped rows
  written after a decision has already committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from warden.config import DEFAULT_HISTORY_LIMIT
from warden.database.engine import get_session
from warden.database.models import ReviewAction

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActionSnapshot:
    """Detached, read-only view of a review_actions row."""

    id: int
    app_id: str
    actor_id: int
    action: str
    reason: str | None
    meta: dict | None
    created_at: datetime


def _snapshot(row: ReviewAction) -> ActionSnapshot:
    return ActionSnapshot(
        id=row.id,
        app_id=row.app_id,
        actor_id=row.actor_id,
        action=row.action,
        reason=row.reason,
        meta=row.meta,
        created_at=row.created_at,
    )


def add_action(
    session: Session,
    *,
    app_id: str,
    actor_id: int,
    action: str,
    reason: str | None = None,
    meta: dict | None = None,
) -> ReviewAction:
    """Insert a review_actions row within the current transaction."""
    row = ReviewAction(
        app_id=app_id,
        actor_id=actor_id,
        action=str(action),
        reason=reason,
        meta=meta,
    )
    session.add(row)
    session.flush()
    return row


def record_action(
    engine,
    *,
    app_id: str,
    actor_id: int,
    action: str,
    reason: str | None = None,
    meta: dict | None = None,
) -> int:
    """Append one row in its own transaction and return its id."""
    with get_session(engine) as session:
        row = add_action(
            session,
            app_id=app_id,
            actor_id=actor_id,
            action=action,
            reason=reason,
            meta=meta,
        )
        action_id = row.id
    logger.debug("Audit %s on app %s by %s", action, app_id, actor_id)
    return action_id


def recent_actions(
    engine, app_id: str, limit: int = DEFAULT_HISTORY_LIMIT
) -> list[ActionSnapshot]:
    """Most recent actions for *app_id*, newest first.

    Served by ``ix_review_actions_app_time``.  Rows sharing a timestamp are
    ordered by insertion id so the order is stable.
    """
    with Session(engine) as session:
        rows = session.scalars(
            select(ReviewAction)
            .where(ReviewAction.app_id == app_id)
            .order_by(ReviewAction.created_at.desc(), ReviewAction.id.desc())
            .limit(limit)
        ).all()
        return [_snapshot(r) for r in rows]


def actions_for(engine, app_id: str, *, action: str | None = None) -> list[ActionSnapshot]:
    """Full history for *app_id* in insertion order, optionally one kind only."""
    with Session(engine) as session:
        stmt = select(ReviewAction).where(ReviewAction.app_id == app_id)
        if action is not None:
            stmt = stmt.where(ReviewAction.action == str(action))
        rows = session.scalars(stmt.order_by(ReviewAction.id)).all()
        return [_snapshot(r) for r in rows]
