"""Study queue construction.

Picks the cards for a study session: everything due (optionally limited to
one deck) in random order, falling back to the whole deck as a cram session
when nothing is due.
"""

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from backend.config import utcnow
from backend.models.flashcard import Flashcard
from backend.srs.sm2 import is_due

logger = logging.getLogger(__name__)


@dataclass
class StudyQueue:
    """A prepared, ordered list of cards for one study session."""

    cards: list[Flashcard] = field(default_factory=list)
    cramming: bool = False  # True when nothing was due and all cards were queued

    @property
    def total(self) -> int:
        return len(self.cards)


def due_cards(
    cards: Sequence[Flashcard],
    now: datetime | None = None,
    deck_id: int | None = None,
) -> list[Flashcard]:
    """Return the cards whose next review is at or before ``now``."""
    now = now or utcnow()
    return [
        c
        for c in cards
        if is_due(c.next_review, now) and (deck_id is None or c.deck_id == deck_id)
    ]


def build_study_queue(
    cards: Sequence[Flashcard],
    deck_id: int | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> StudyQueue:
    """Build a shuffled study queue.

    Args:
        cards: All of the user's cards.
        deck_id: Restrict the session to one deck.
        now: Current time (defaults to utcnow).
        rng: Random source used for shuffling.

    Returns:
        A StudyQueue; empty only when there are no cards at all.
    """
    rng = rng or random.Random()
    selected = due_cards(cards, now=now, deck_id=deck_id)
    cramming = False

    if not selected:
        selected = [c for c in cards if deck_id is None or c.deck_id == deck_id]
        cramming = bool(selected)

    rng.shuffle(selected)
    logger.info(
        "Built study queue: %d cards%s",
        len(selected),
        " (cram, nothing due)" if cramming else "",
    )
    return StudyQueue(cards=selected, cramming=cramming)
