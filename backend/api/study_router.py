"""API routes for study sessions."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    SessionStatsResponse,
    StudyCardResponse,
    StudyStartResponse,
)
from backend.database import get_session
from backend.errors import NotFoundError
from backend.srs.session import StudySession, start_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/study", tags=["study"])

# In-memory session store, keyed by session id
_active_sessions: dict[str, StudySession] = {}


def _get_active(session_id: str) -> StudySession:
    study_session = _active_sessions.get(session_id)
    if not study_session:
        raise HTTPException(status_code=404, detail="Session not found")
    return study_session


@router.post("/start", response_model=StudyStartResponse)
async def study_start(
    user_id: str,
    deck_id: int | None = None,
    db: AsyncSession = Depends(get_session),
) -> StudyStartResponse:
    """Start a study session over due cards, or all cards if none are due."""
    study_session = await start_session(db, user_id, deck_id=deck_id)

    if study_session.queue.total == 0:
        raise HTTPException(status_code=404, detail="No cards available for study")

    session_id = str(uuid.uuid4())
    _active_sessions[session_id] = study_session

    return StudyStartResponse(
        session_id=session_id,
        total_cards=study_session.queue.total,
        cramming=study_session.queue.cramming,
    )


@router.get("/next/{session_id}", response_model=StudyCardResponse)
async def study_next(session_id: str) -> StudyCardResponse:
    """Get the card currently up for study."""
    study_session = _get_active(session_id)
    card = study_session.current_card
    if card is None:
        raise HTTPException(status_code=410, detail="Session is complete")

    return StudyCardResponse(
        card_id=card.id,
        deck_id=card.deck_id,
        front=card.front,
        back=card.back,
        repetitions=card.repetitions,
        remaining=study_session.remaining,
    )


@router.post("/answer/{session_id}", response_model=AnswerResponse)
async def study_answer(
    session_id: str,
    request: AnswerRequest,
    db: AsyncSession = Depends(get_session),
) -> AnswerResponse:
    """Grade the current card and schedule its next review."""
    study_session = _get_active(session_id)
    card = study_session.current_card
    if card is None:
        raise HTTPException(status_code=410, detail="Session is complete")

    if card.id != request.card_id:
        raise HTTPException(status_code=400, detail="Card ID mismatch")

    try:
        _, new_state = await study_session.submit_answer(db, request.quality)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return AnswerResponse(
        easiness=new_state.easiness,
        interval=new_state.interval,
        repetitions=new_state.repetitions,
        next_review=new_state.next_review,
        remaining=study_session.remaining,
        session_complete=study_session.is_complete,
    )


@router.get("/stats/{session_id}", response_model=SessionStatsResponse)
async def study_stats(session_id: str) -> SessionStatsResponse:
    s = _get_active(session_id).stats
    return SessionStatsResponse(cards_reviewed=s.cards_reviewed, passed=s.passed, failed=s.failed)


@router.post("/end/{session_id}")
async def study_end(session_id: str) -> dict:
    """End a session and clean up."""
    study_session = _active_sessions.pop(session_id, None)
    if not study_session:
        raise HTTPException(status_code=404, detail="Session not found")

    s = study_session.stats
    return {
        "status": "ended",
        "cards_reviewed": s.cards_reviewed,
        "passed": s.passed,
        "failed": s.failed,
    }
