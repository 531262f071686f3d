"""API routes for flashcard statistics and dashboard data."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import DeckStatsResponse, UserStatsResponse
from backend.config import utcnow
from backend.database import get_session
from backend.models.flashcard import Flashcard
from backend.srs.deck_service import deck_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])

MATURE_REPETITIONS = 5


@router.get("/{user_id}", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: str,
    db: AsyncSession = Depends(get_session),
) -> UserStatsResponse:
    """Get overall flashcard statistics for a user."""
    now = utcnow()

    total_stmt = select(func.count(Flashcard.id)).where(Flashcard.user_id == user_id)
    total_cards = (await db.execute(total_stmt)).scalar() or 0

    due_stmt = select(func.count(Flashcard.id)).where(
        and_(Flashcard.user_id == user_id, Flashcard.next_review <= now)
    )
    cards_due = (await db.execute(due_stmt)).scalar() or 0

    mature_stmt = select(func.count(Flashcard.id)).where(
        and_(Flashcard.user_id == user_id, Flashcard.repetitions >= MATURE_REPETITIONS)
    )
    cards_mature = (await db.execute(mature_stmt)).scalar() or 0

    decks = await deck_stats(db, user_id, now=now)

    return UserStatsResponse(
        total_cards=total_cards,
        cards_due=cards_due,
        cards_mature=cards_mature,
        decks=[
            DeckStatsResponse(deck_id=d.deck_id, name=d.name, total=d.total, due=d.due)
            for d in decks
        ],
    )
