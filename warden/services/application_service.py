"""
warden.services.application_service — Application Store
========================================================

Persistent record of admission attempts.  This module creates and reads
applications and moves them from ``pending`` to ``submitted``; terminal
transitions belong exclusively to
:mod:`warden.services.decision_service`.

Reapplication always creates a **new** row.  A terminal row is never
reopened, so "terminal is terminal" holds for every id ever issued.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warden.database.models import OPEN_STATUSES, Application, ApplicationStatus
from warden.engine.shortcode import new_application_id, normalize_code, short_code

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_application(engine, app_id: str) -> Application | None:
    """Fetch one application by id, detached from its session."""
    with Session(engine, expire_on_commit=False) as session:
        app = session.get(Application, app_id)
        if app is not None:
            session.expunge(app)
        return app


def find_by_short_code(engine, guild_id: int, code: str) -> Application | None:
    """Resolve a staff short code within *guild_id*.

    Codes are six hex characters, so collisions are possible across a
    guild's history; an open application wins over resolved ones, then the
    most recent.
    """
    normalized = normalize_code(code)
    with Session(engine, expire_on_commit=False) as session:
        rows = session.scalars(
            select(Application)
            .where(Application.guild_id == guild_id, Application.short_code == normalized)
            .order_by(Application.created_at.desc())
        ).all()
        if not rows:
            return None
        open_rows = [r for r in rows if r.status in OPEN_STATUSES]
        app = open_rows[0] if open_rows else rows[0]
        session.expunge(app)
        return app


def find_pending_by_user_id(engine, guild_id: int, user_id: int) -> Application | None:
    """The user's application awaiting a decision (``submitted``), if any."""
    with Session(engine, expire_on_commit=False) as session:
        app = session.scalar(
            select(Application)
            .where(
                Application.guild_id == guild_id,
                Application.user_id == user_id,
                Application.status == ApplicationStatus.SUBMITTED.value,
            )
            .order_by(Application.created_at.desc())
            .limit(1)
        )
        if app is not None:
            session.expunge(app)
        return app


def find_latest_by_user_id(engine, guild_id: int, user_id: int) -> Application | None:
    """The user's most recent application in any status."""
    with Session(engine, expire_on_commit=False) as session:
        app = session.scalar(
            select(Application)
            .where(Application.guild_id == guild_id, Application.user_id == user_id)
            .order_by(Application.created_at.desc(), Application.id.desc())
            .limit(1)
        )
        if app is not None:
            session.expunge(app)
        return app


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
class StartKind(enum.StrEnum):
    CREATED = "created"
    EXISTS = "exists"
    COOLDOWN = "cooldown"
    BLOCKED = "blocked"


@dataclass(frozen=True, slots=True)
class StartResult:
    kind: StartKind
    application: Application | None = None
    retry_at: datetime | None = None


def start_application(
    engine,
    guild_id: int,
    user_id: int,
    *,
    cooldown_hours: int = 0,
    now: datetime | None = None,
) -> StartResult:
    """Open a new ``pending`` application for *user_id*.

    Returns the existing open application instead of creating a second one,
    refuses permanently rejected users, and enforces the reapply cooldown
    counted from the latest rejection.
    """
    now = now or datetime.now(UTC)
    with Session(engine, expire_on_commit=False) as session:
        history = session.scalars(
            select(Application)
            .where(Application.guild_id == guild_id, Application.user_id == user_id)
            .order_by(Application.created_at.desc())
        ).all()

        for app in history:
            if app.status in OPEN_STATUSES:
                session.expunge(app)
                return StartResult(StartKind.EXISTS, app)

        if any(app.permanently_rejected for app in history):
            return StartResult(StartKind.BLOCKED)

        rejected = [
            as_utc(app.resolved_at)
            for app in history
            if app.status == ApplicationStatus.REJECTED.value and app.resolved_at
        ]
        if rejected and cooldown_hours > 0:
            retry_at = max(rejected) + timedelta(hours=cooldown_hours)
            if now < retry_at:
                return StartResult(StartKind.COOLDOWN, retry_at=retry_at)

        app_id = new_application_id()
        app = Application(
            id=app_id,
            short_code=short_code(app_id),
            guild_id=guild_id,
            user_id=user_id,
            status=ApplicationStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(app)
                session.flush()
        except IntegrityError:
            # A concurrent start won the open-application index.
            # The SAVEPOINT was rolled back; the outer txn is still alive.
            existing = session.scalar(
                select(Application).where(
                    Application.guild_id == guild_id,
                    Application.user_id == user_id,
                    Application.status.in_(OPEN_STATUSES),
                )
            )
            if existing is not None:
                session.expunge(existing)
            return StartResult(StartKind.EXISTS, existing)

        session.commit()
        session.expunge(app)
        logger.info(
            "Application %s (%s) started for user %s in guild %s",
            app.id, app.short_code, user_id, guild_id,
        )
        return StartResult(StartKind.CREATED, app)


def submit_application(engine, app_id: str, *, now: datetime | None = None) -> bool:
    """Move a ``pending`` application to ``submitted``.

    Returns ``False`` when the row is missing or not pending.
    """
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        result = session.execute(
            update(Application)
            .where(
                Application.id == app_id,
                Application.status == ApplicationStatus.PENDING.value,
            )
            .values(
                status=ApplicationStatus.SUBMITTED.value,
                submitted_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        session.commit()
        changed = result.rowcount == 1
    if changed:
        logger.info("Application %s submitted for review", app_id)
    return changed
