"""Study session orchestrator.

Walks a study queue, applies the SM-2 scheduler to each answer and
persists the new review state.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from backend.errors import NotFoundError
from backend.models.flashcard import Flashcard
from backend.srs.deck_service import list_cards, review_state, save_review
from backend.srs.queue import StudyQueue, build_study_queue
from backend.srs.sm2 import PASSING_QUALITY, ReviewState, schedule

logger = logging.getLogger(__name__)


@dataclass
class SessionStats:
    """Statistics for a study session."""

    cards_reviewed: int = 0
    passed: int = 0
    failed: int = 0


@dataclass
class StudySession:
    """Manages an active study session for a user."""

    user_id: str
    queue: StudyQueue
    stats: SessionStats = field(default_factory=SessionStats)
    _card_index: int = 0

    @property
    def remaining(self) -> int:
        """Return the number of cards left to study."""
        return max(0, self.queue.total - self._card_index)

    @property
    def is_complete(self) -> bool:
        return self._card_index >= self.queue.total

    @property
    def current_card(self) -> Flashcard | None:
        """Return the current card or None if the session is complete."""
        if self._card_index < self.queue.total:
            return self.queue.cards[self._card_index]
        return None

    async def submit_answer(
        self,
        db: AsyncSession,
        quality: int,
        now: datetime | None = None,
    ) -> tuple[Flashcard, ReviewState]:
        """Grade the current card and advance.

        Args:
            db: Database session.
            quality: Recall quality, already validated to be in [0, 5].
            now: Review time (defaults to now).

        Returns:
            Tuple of (card, new review state).

        Raises:
            IndexError: if the session is already complete.
            NotFoundError: if the current card was deleted meanwhile.
        """
        card = self.current_card
        if card is None:
            raise IndexError("Study session is complete")

        card = await db.get(Flashcard, card.id)
        if card is None:
            # Deleted since the session started
            self._card_index += 1
            raise NotFoundError("Card no longer exists")
        self.queue.cards[self._card_index] = card
        new_state = schedule(review_state(card), quality, now=now)
        await save_review(db, card, new_state)

        self.stats.cards_reviewed += 1
        if quality >= PASSING_QUALITY:
            self.stats.passed += 1
        else:
            self.stats.failed += 1

        logger.debug(
            "Card %d graded %d: next review in %d days (EF %.2f)",
            card.id,
            quality,
            new_state.interval,
            new_state.easiness,
        )
        self._card_index += 1
        return card, new_state


async def start_session(
    db: AsyncSession,
    user_id: str,
    deck_id: int | None = None,
    rng: random.Random | None = None,
) -> StudySession:
    """Start a new study session for a user.

    Args:
        db: Database session.
        user_id: The user starting the session.
        deck_id: Optional deck to restrict the session to.
        rng: Random source used to shuffle the queue.

    Returns:
        A StudySession ready for use.
    """
    cards = await list_cards(db, user_id)
    queue = build_study_queue(cards, deck_id=deck_id, rng=rng)
    session = StudySession(user_id=user_id, queue=queue)

    logger.info("Started study session for user %s: %d cards queued", user_id, queue.total)
    return session
