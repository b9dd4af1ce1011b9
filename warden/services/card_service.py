"""
warden.services.card_service — Review Card Locations
=====================================================

Remembers which message in the review channel shows each application so
the card can be edited after a decision.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from warden.database.models import ReviewCard


def save_card_location(engine, app_id: str, channel_id: int, message_id: int) -> None:
    with Session(engine) as session:
        card = session.get(ReviewCard, app_id)
        if card is None:
            session.add(ReviewCard(app_id=app_id, channel_id=channel_id, message_id=message_id))
        else:
            card.channel_id = channel_id
            card.message_id = message_id
        session.commit()


def get_card_location(engine, app_id: str) -> tuple[int, int] | None:
    """``(channel_id, message_id)`` of the card, or ``None`` if never posted."""
    with Session(engine) as session:
        card = session.get(ReviewCard, app_id)
        if card is None:
            return None
        return card.channel_id, card.message_id
