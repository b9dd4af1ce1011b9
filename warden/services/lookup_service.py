"""
warden.services.lookup_service — Resolve Staff Input to an Application
=======================================================================

Staff identify an application in one of three ways:

* ``code``    — the six-character short code shown on the review card
* ``user_id`` — a mentioned member
* ``raw_id``  — a pasted user id (for applicants who already left)

Exactly one must be given.  Malformed input is rejected before any query
is issued.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from warden.database.models import Application, ApplicationStatus
from warden.engine.shortcode import is_valid_code, is_valid_user_id, normalize_code
from warden.services.application_service import (
    find_by_short_code,
    find_latest_by_user_id,
    find_pending_by_user_id,
)


class LookupKind(enum.StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    NOT_ELIGIBLE = "not_eligible"
    INPUT_ERROR = "input_error"


@dataclass(frozen=True, slots=True)
class LookupResult:
    kind: LookupKind
    application: Application | None = None
    status: str | None = None
    message: str | None = None

    @property
    def found(self) -> bool:
        return self.kind is LookupKind.FOUND


def _input_error(message: str) -> LookupResult:
    return LookupResult(LookupKind.INPUT_ERROR, message=message)


def resolve_application(
    engine,
    guild_id: int,
    *,
    code: str | None = None,
    user_id: int | None = None,
    raw_id: str | None = None,
) -> LookupResult:
    """Find the ``submitted`` application staff are pointing at."""
    given = [v for v in (code, user_id, raw_id) if v not in (None, "")]
    if len(given) != 1:
        return _input_error("Provide exactly one of: code, user, or user id.")

    if code:
        normalized = normalize_code(code)
        if not is_valid_code(normalized):
            return _input_error("Application codes are 6 hex characters (e.g. A1B2C3).")
        app = find_by_short_code(engine, guild_id, normalized)
        if app is None:
            return LookupResult(LookupKind.NOT_FOUND, message=f"No application with code {normalized}.")
        return _eligible(app)

    if raw_id is not None:
        if not is_valid_user_id(raw_id):
            return _input_error("User ids are 5-20 digits.")
        user_id = int(raw_id.strip())

    app = find_pending_by_user_id(engine, guild_id, user_id)
    if app is not None:
        return LookupResult(LookupKind.FOUND, app, app.status)

    latest = find_latest_by_user_id(engine, guild_id, user_id)
    if latest is None:
        return LookupResult(LookupKind.NOT_FOUND, message="No application found for that user.")
    return _eligible(latest)


def _eligible(app: Application) -> LookupResult:
    if app.status == ApplicationStatus.SUBMITTED.value:
        return LookupResult(LookupKind.FOUND, app, app.status)
    return LookupResult(
        LookupKind.NOT_ELIGIBLE,
        app,
        app.status,
        message=f"Application {app.short_code} is {app.status}.",
    )
