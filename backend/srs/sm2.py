"""SM-2 spaced repetition scheduler.

A classic SuperMemo-2 variant as used by the dashboard flashcards.

Key concepts:
- Easiness (EF): multiplier controlling how fast intervals grow. Floor of 1.3.
- Interval: whole days until the card is next due.
- Repetitions: consecutive successful recalls; reset on a failed recall.
- Quality: 0=total blackout ... 5=perfect recall. 3 and above is a pass.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from backend.config import utcnow

DEFAULT_EASINESS = 2.5
MIN_EASINESS = 1.3
PASSING_QUALITY = 3
MAX_QUALITY = 5

# Fixed intervals (days) for the first two successful recalls
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6


@dataclass(frozen=True)
class ReviewState:
    """The SM-2 review state of a single card."""

    easiness: float = DEFAULT_EASINESS
    interval: int = 0
    repetitions: int = 0
    next_review: datetime = field(default_factory=utcnow)


def initial_state(now: datetime | None = None) -> ReviewState:
    """Return the state of a freshly authored card, due immediately."""
    return ReviewState(next_review=now or utcnow())


def is_due(next_review: datetime, now: datetime | None = None) -> bool:
    return next_review <= (now or utcnow())


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def schedule(state: ReviewState, quality: int, now: datetime | None = None) -> ReviewState:
    """Apply one review answer and return the next review state.

    ``quality`` is expected in [0, 5]; it is not validated here. Callers must
    reject out-of-range values before scheduling.

    Args:
        state: The card's current review state.
        quality: Recall quality for this review (0-5).
        now: When the review happened (defaults to now).

    Returns:
        A new ReviewState; ``state`` is left untouched.
    """
    now = now or utcnow()

    if quality < PASSING_QUALITY:
        repetitions = 0
        interval = FIRST_INTERVAL
    else:
        if state.repetitions == 0:
            interval = FIRST_INTERVAL
        elif state.repetitions == 1:
            interval = SECOND_INTERVAL
        else:
            interval = _round_half_up(state.interval * state.easiness)
        repetitions = state.repetitions + 1

    miss = MAX_QUALITY - quality
    easiness = max(MIN_EASINESS, state.easiness + (0.1 - miss * (0.08 + miss * 0.02)))

    return ReviewState(
        easiness=easiness,
        interval=interval,
        repetitions=repetitions,
        next_review=now + timedelta(days=interval),
    )
