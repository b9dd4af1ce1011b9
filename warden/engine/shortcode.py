"""
warden.engine.shortcode — Application Short Codes & Identifier Checks
======================================================================

Staff refer to applications by a six-character hex code instead of the
opaque id.  The code is a pure function of the id so it can be recomputed
anywhere; it is also stored on the row for indexed lookups.
"""

from __future__ import annotations

import hashlib
import re
import uuid

SHORT_CODE_LENGTH = 6

_NON_HEX = re.compile(r"[^0-9A-F]")
_USER_ID = re.compile(r"^[0-9]{5,20}$")


def new_application_id() -> str:
    """Return a fresh opaque application id."""
    return uuid.uuid4().hex


def short_code(app_id: str) -> str:
    """Derive the stable staff-facing code for *app_id* (e.g. ``"A1B2C3"``)."""
    digest = hashlib.sha1(app_id.encode("utf-8")).hexdigest()
    return digest[:SHORT_CODE_LENGTH].upper()


def normalize_code(raw: str | None) -> str:
    """Uppercase *raw* and strip everything that isn't a hex digit.

    ``"#a1-b2c3"`` → ``"A1B2C3"``.  The result may be shorter than
    :data:`SHORT_CODE_LENGTH`; callers check :func:`is_valid_code`.
    """
    cleaned = _NON_HEX.sub("", str(raw or "").upper())
    return cleaned[:SHORT_CODE_LENGTH]


def is_valid_code(code: str) -> bool:
    return len(code) == SHORT_CODE_LENGTH and not _NON_HEX.search(code)


def is_valid_user_id(raw: str | None) -> bool:
    """Discord snowflakes are 17-20 digits; old accounts can be shorter."""
    return bool(raw) and bool(_USER_ID.match(raw.strip()))
