"""
warden.services.modmail_service — Applicant Support Tickets
============================================================

Modmail threads let an applicant talk to staff while their application is
under review.  A decision closes whatever is still open for that
applicant; archiving the Discord thread is the gateway's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from warden.database.models import ModmailTicket, ReviewActionKind, TicketStatus
from warden.services.audit_service import add_action

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClosedTicket:
    id: int
    thread_id: int | None


def open_ticket(
    engine,
    guild_id: int,
    user_id: int,
    *,
    thread_id: int | None = None,
    app_code: str | None = None,
    app_id: str | None = None,
) -> int:
    """Record a new open ticket and return its id.

    When the applicant has an application (*app_id*), a ``modmail_open``
    review action is written in the same transaction.
    """
    with Session(engine) as session:
        ticket = ModmailTicket(
            guild_id=guild_id,
            user_id=user_id,
            thread_id=thread_id,
            app_code=app_code,
            status=TicketStatus.OPEN.value,
        )
        session.add(ticket)
        session.flush()
        if app_id is not None:
            add_action(
                session,
                app_id=app_id,
                actor_id=user_id,
                action=ReviewActionKind.MODMAIL_OPEN,
                meta={"ticket_id": ticket.id, "thread_id": thread_id},
            )
        session.commit()
        ticket_id = ticket.id
    logger.info("Modmail ticket %s opened for user %s", ticket_id, user_id)
    return ticket_id


def find_open_tickets(engine, guild_id: int, user_id: int) -> list[ModmailTicket]:
    with Session(engine, expire_on_commit=False) as session:
        rows = session.scalars(
            select(ModmailTicket).where(
                ModmailTicket.guild_id == guild_id,
                ModmailTicket.user_id == user_id,
                ModmailTicket.status == TicketStatus.OPEN.value,
            )
        ).all()
        for row in rows:
            session.expunge(row)
        return list(rows)


def close_open_tickets(
    engine,
    guild_id: int,
    user_id: int,
    *,
    reason: str,
    now: datetime | None = None,
) -> list[ClosedTicket]:
    """Close every open ticket for *user_id* and return what was closed."""
    now = now or datetime.now(UTC)
    with Session(engine) as session:
        rows = session.scalars(
            select(ModmailTicket).where(
                ModmailTicket.guild_id == guild_id,
                ModmailTicket.user_id == user_id,
                ModmailTicket.status == TicketStatus.OPEN.value,
            )
        ).all()
        closed = []
        for row in rows:
            row.status = TicketStatus.CLOSED.value
            row.closed_at = now
            row.close_reason = reason
            closed.append(ClosedTicket(row.id, row.thread_id))
        session.commit()

    if closed:
        logger.info("Closed %d modmail ticket(s) for user %s", len(closed), user_id)
    else:
        logger.debug("No open modmail ticket for user %s", user_id)
    return closed
