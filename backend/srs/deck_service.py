"""Deck and flashcard persistence for a single owner."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import utcnow
from backend.errors import NotFoundError, ValidationError
from backend.models.deck import Deck
from backend.models.flashcard import Flashcard
from backend.srs.sm2 import ReviewState, initial_state

logger = logging.getLogger(__name__)


@dataclass
class DeckStats:
    deck_id: int
    name: str
    total: int
    due: int


def _required(value: str, what: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(f"{what} must not be empty")
    return value


async def create_deck(db: AsyncSession, user_id: str, name: str) -> Deck:
    deck = Deck(user_id=user_id, name=_required(name, "Deck name"))
    db.add(deck)
    await db.commit()
    await db.refresh(deck)
    logger.info("Created deck %d for user %s", deck.id, user_id)
    return deck


async def list_decks(db: AsyncSession, user_id: str) -> list[Deck]:
    stmt = select(Deck).where(Deck.user_id == user_id).order_by(Deck.created_at.asc(), Deck.id.asc())
    return list((await db.execute(stmt)).scalars().all())


async def get_deck(db: AsyncSession, user_id: str, deck_id: int) -> Deck:
    deck = await db.get(Deck, deck_id)
    if deck is None or deck.user_id != user_id:
        raise NotFoundError(f"Deck {deck_id} not found")
    return deck


async def delete_deck(db: AsyncSession, user_id: str, deck_id: int) -> None:
    """Delete a deck together with all of its cards."""
    deck = await get_deck(db, user_id, deck_id)
    await db.execute(delete(Flashcard).where(Flashcard.deck_id == deck_id))
    await db.delete(deck)
    await db.commit()
    logger.info("Deleted deck %d for user %s", deck_id, user_id)


async def create_card(
    db: AsyncSession,
    user_id: str,
    deck_id: int,
    front: str,
    back: str,
    now: datetime | None = None,
) -> Flashcard:
    """Add a card to one of the user's decks, due for review immediately."""
    front = _required(front, "Card front")
    back = _required(back, "Card back")
    await get_deck(db, user_id, deck_id)

    state = initial_state(now)
    card = Flashcard(
        user_id=user_id,
        deck_id=deck_id,
        front=front,
        back=back,
        easiness=state.easiness,
        interval=state.interval,
        repetitions=state.repetitions,
        next_review=state.next_review,
    )
    db.add(card)
    await db.commit()
    await db.refresh(card)
    return card


async def list_cards(db: AsyncSession, user_id: str, deck_id: int | None = None) -> list[Flashcard]:
    stmt = select(Flashcard).where(Flashcard.user_id == user_id)
    if deck_id is not None:
        stmt = stmt.where(Flashcard.deck_id == deck_id)
    stmt = stmt.order_by(Flashcard.id.asc())
    return list((await db.execute(stmt)).scalars().all())


async def get_card(db: AsyncSession, user_id: str, card_id: int) -> Flashcard:
    card = await db.get(Flashcard, card_id)
    if card is None or card.user_id != user_id:
        raise NotFoundError(f"Card {card_id} not found")
    return card


async def delete_card(db: AsyncSession, user_id: str, card_id: int) -> None:
    card = await get_card(db, user_id, card_id)
    await db.delete(card)
    await db.commit()


def review_state(card: Flashcard) -> ReviewState:
    return ReviewState(
        easiness=card.easiness,
        interval=card.interval,
        repetitions=card.repetitions,
        next_review=card.next_review,
    )


async def save_review(db: AsyncSession, card: Flashcard, state: ReviewState) -> Flashcard:
    """Persist a scheduler result onto its card."""
    card.easiness = state.easiness
    card.interval = state.interval
    card.repetitions = state.repetitions
    card.next_review = state.next_review
    await db.commit()
    return card


async def deck_stats(
    db: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> list[DeckStats]:
    """Return total and due card counts for each of the user's decks."""
    now = now or utcnow()
    due_count = func.coalesce(
        func.sum(case((Flashcard.next_review <= now, 1), else_=0)), 0
    )
    stmt = (
        select(Deck.id, Deck.name, func.count(Flashcard.id), due_count)
        .outerjoin(Flashcard, and_(Flashcard.deck_id == Deck.id, Flashcard.user_id == user_id))
        .where(Deck.user_id == user_id)
        .group_by(Deck.id, Deck.name, Deck.created_at)
        .order_by(Deck.created_at.asc(), Deck.id.asc())
    )
    rows = (await db.execute(stmt)).all()
    return [DeckStats(deck_id=r[0], name=r[1], total=r[2], due=int(r[3])) for r in rows]
