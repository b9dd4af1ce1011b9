"""
warden.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- applications     — One row per admission attempt (mutable status/resolution)
- review_claims    — Zero-or-one advisory claim per non-terminal application
- review_actions   — Append-only audit trail of review activity
- guild_configs    — Per-guild review settings
- modmail_tickets  — Support threads opened for applicants
- review_cards     — Where the staff-facing card for an application lives
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Warden ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ApplicationStatus(enum.StrEnum):
    """Lifecycle of a single admission attempt."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    KICKED = "kicked"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.KICKED,
})

OPEN_STATUSES: tuple[str, ...] = (
    ApplicationStatus.PENDING.value,
    ApplicationStatus.SUBMITTED.value,
)


class ReviewActionKind(enum.StrEnum):
    """Kinds of rows written to review_actions."""
    APPROVE = "approve"
    REJECT = "reject"
    PERM_REJECT = "perm_reject"
    KICK = "kick"
    CLAIM = "claim"
    UNCLAIM = "unclaim"
    CLAIM_EXPIRED = "claim_expired"
    DECISION_BLOCKED = "decision_blocked"
    ROLE_GRANT = "role_grant"
    ROLE_GRANT_BLOCKED = "role_grant_blocked"
    DM_FAILED = "dm_failed"
    MODMAIL_OPEN = "modmail_open"
    MODMAIL_CLOSE = "modmail_close"
    WELCOME_POSTED = "welcome_posted"
    WELCOME_SUPPRESSED = "welcome_suppressed"
    WELCOME_FAILED = "welcome_failed"
    KICK_FAILED = "kick_failed"
    EFFECTS_SUMMARY = "effects_summary"


class TicketStatus(enum.StrEnum):
    OPEN = "open"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# Applications — one row per admission attempt
# ---------------------------------------------------------------------------
class Application(Base):
    """A single admission attempt by a user in a guild.

    Only the decision transaction mutates ``status`` and the resolution
    fields.  Reapplying creates a fresh row; terminal rows are never reused.
    """
    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    short_code: Mapped[str] = mapped_column(String(6), nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.PENDING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    resolver_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    resolution_reason: Mapped[str | None] = mapped_column(Text, default=None)
    permanently_rejected: Mapped[bool] = mapped_column(Boolean, default=False)

    claim: Mapped[ReviewClaim | None] = relationship(
        back_populates="application", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_applications_guild_code", "guild_id", "short_code"),
        Index("ix_applications_guild_user", "guild_id", "user_id", "created_at"),
        # At most one open application per (guild, user)
        Index(
            "uq_applications_open_per_user",
            "guild_id",
            "user_id",
            unique=True,
            postgresql_where=status.in_(OPEN_STATUSES),
            sqlite_where=status.in_(OPEN_STATUSES),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Application id={self.id} code={self.short_code} "
            f"user={self.user_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# ReviewClaim — advisory "someone is working on this" marker
# ---------------------------------------------------------------------------
class ReviewClaim(Base):
    __tablename__ = "review_claims"

    app_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("applications.id", ondelete="CASCADE"), primary_key=True
    )
    reviewer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    application: Mapped[Application] = relationship(back_populates="claim")

    def __repr__(self) -> str:
        return f"<ReviewClaim app={self.app_id} reviewer={self.reviewer_id}>"


# ---------------------------------------------------------------------------
# ReviewAction — append-only audit trail
# ---------------------------------------------------------------------------
class ReviewAction(Base):
    __tablename__ = "review_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_id: Mapped[str] = mapped_column(String(32), nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_review_actions_app_time", "app_id", "created_at"),
        Index("ix_review_actions_actor_time", "actor_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ReviewAction id={self.id} app={self.app_id} action={self.action}>"


# ---------------------------------------------------------------------------
# GuildConfig — per-guild review settings
# ---------------------------------------------------------------------------
class GuildConfig(Base):
    __tablename__ = "guild_configs"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    review_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    accepted_role_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    general_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    welcome_template: Mapped[str | None] = mapped_column(Text, default=None)
    reapply_cooldown_hours: Mapped[int] = mapped_column(Integer, default=24)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GuildConfig guild={self.guild_id} role={self.accepted_role_id}>"


# ---------------------------------------------------------------------------
# ModmailTicket — support threads tied to an applicant
# ---------------------------------------------------------------------------
class ModmailTicket(Base):
    __tablename__ = "modmail_tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    app_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    thread_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TicketStatus.OPEN.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    close_reason: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (
        Index("ix_modmail_tickets_guild_user_status", "guild_id", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<ModmailTicket id={self.id} user={self.user_id} status={self.status}>"


# ---------------------------------------------------------------------------
# ReviewCard — location of the staff-facing review card
# ---------------------------------------------------------------------------
class ReviewCard(Base):
    __tablename__ = "review_cards"

    app_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("applications.id", ondelete="CASCADE"), primary_key=True
    )
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ReviewCard app={self.app_id} message={self.message_id}>"
