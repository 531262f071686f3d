"""Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from backend.chat.client import ChatMode

# --- Decks & cards ---


class DeckCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class DeckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class CardCreate(BaseModel):
    deck_id: int
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)


class CardResponse(BaseModel):
    """A flashcard with its scheduling state."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    front: str
    back: str
    easiness: float
    interval: int
    repetitions: int
    next_review: datetime


# --- Study session ---


class StudyStartResponse(BaseModel):
    """Response when starting a new study session."""

    session_id: str
    total_cards: int
    cramming: bool


class StudyCardResponse(BaseModel):
    """The next card to study."""

    card_id: int
    deck_id: int
    front: str
    back: str
    repetitions: int
    remaining: int


class AnswerRequest(BaseModel):
    """Request to grade the current card."""

    card_id: int
    quality: int = Field(ge=0, le=5)  # 0=blackout, 5=perfect


class AnswerResponse(BaseModel):
    """Response after grading a card with the new scheduling info."""

    easiness: float
    interval: int
    repetitions: int
    next_review: datetime
    remaining: int
    session_complete: bool


class SessionStatsResponse(BaseModel):
    cards_reviewed: int
    passed: int
    failed: int


# --- Stats ---


class DeckStatsResponse(BaseModel):
    deck_id: int
    name: str
    total: int
    due: int


class UserStatsResponse(BaseModel):
    """Overall flashcard statistics for a user."""

    total_cards: int
    cards_due: int
    cards_mature: int  # repetitions >= 5
    decks: list[DeckStatsResponse]


# --- Chat ---


class ChatMessage(BaseModel):
    role: str = Field(pattern="^(user|assistant)$")
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    mode: ChatMode = ChatMode.ANSWER
