"""API routes for flashcard decks and cards."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import CardCreate, CardResponse, DeckCreate, DeckResponse
from backend.database import get_session
from backend.errors import NotFoundError, ValidationError
from backend.srs import deck_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["decks"])


@router.get("/decks", response_model=list[DeckResponse])
async def decks_list(user_id: str, db: AsyncSession = Depends(get_session)) -> list[DeckResponse]:
    decks = await deck_service.list_decks(db, user_id)
    return [DeckResponse.model_validate(d) for d in decks]


@router.post("/decks", response_model=DeckResponse, status_code=201)
async def decks_create(
    user_id: str,
    request: DeckCreate,
    db: AsyncSession = Depends(get_session),
) -> DeckResponse:
    try:
        deck = await deck_service.create_deck(db, user_id, request.name)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return DeckResponse.model_validate(deck)


@router.delete("/decks/{deck_id}", status_code=204)
async def decks_delete(
    deck_id: int,
    user_id: str,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete a deck and every card in it."""
    try:
        await deck_service.delete_deck(db, user_id, deck_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@router.get("/cards", response_model=list[CardResponse])
async def cards_list(
    user_id: str,
    deck_id: int | None = None,
    db: AsyncSession = Depends(get_session),
) -> list[CardResponse]:
    cards = await deck_service.list_cards(db, user_id, deck_id=deck_id)
    return [CardResponse.model_validate(c) for c in cards]


@router.post("/cards", response_model=CardResponse, status_code=201)
async def cards_create(
    user_id: str,
    request: CardCreate,
    db: AsyncSession = Depends(get_session),
) -> CardResponse:
    try:
        card = await deck_service.create_card(
            db, user_id, request.deck_id, request.front, request.back
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return CardResponse.model_validate(card)


@router.delete("/cards/{card_id}", status_code=204)
async def cards_delete(
    card_id: int,
    user_id: str,
    db: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await deck_service.delete_card(db, user_id, card_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)
