"""
Warden — Admission Review for Discord Communities
==================================================
Applicants answer onboarding questions, staff claim and decide their
applications, and every decision fans out into best-effort follow-ups
(role grant, DM, ticket closure, welcome post, card refresh) that can
never undo the decision itself.

Package layout::

    warden/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Discord error codes, user-facing messages
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (applications, claims, audit, …)
    ├── engine/
    │   ├── decisions.py   # Approve | Reject | Kick + outcome rules
    │   ├── effects.py     # Best-effort effect runner
    │   └── shortcode.py   # Short code derivation and validation
    ├── services/
    │   ├── application_service.py  # Application store
    │   ├── claim_service.py        # Persisted review claims
    │   ├── decision_service.py     # Atomic decision transaction
    │   ├── audit_service.py        # Append-only review actions
    │   ├── lookup_service.py       # Code / user / raw-id resolution
    │   ├── review_service.py       # Decision pipeline + effects
    │   ├── guild_config_service.py # Per-guild review settings
    │   ├── modmail_service.py      # Support tickets tied to applicants
    │   ├── card_service.py         # Review card location
    │   ├── welcome_service.py      # Welcome template rendering
    │   └── embeds.py               # Review card embed
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        ├── gateway.py     # Discord implementation of the review gateway
        └── cogs/
            ├── applications.py  # /apply, /ticket
            └── review.py        # /accept, /reject, /kick, /claim, /unclaim, /history, /review-config
"""

__version__ = "0.1.0"
