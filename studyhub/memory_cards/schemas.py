from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import Field, field_validator, model_validator

from studyhub.database import to_naive_utc
from studyhub.schemas import CamelModel

# Batch payloads may name the difficulty instead of giving the 1-5 level
DIFFICULTY_NAMES = {"easy": 1, "medium": 3, "hard": 5}

MAX_ALTERNATIVES = 4


# Deck Schemas
class DeckCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    course_id: Optional[str] = None
    interval_modifier: float = Field(1.0, gt=0, le=10)
    easy_bonus: float = Field(1.3, ge=1, le=5)


class DeckResponse(CamelModel):
    deck_id: str
    user_id: str
    course_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    interval_modifier: float
    easy_bonus: float
    total_reviews: int
    correct_reviews: int
    success_rate: float
    cards_count: int
    created_at: datetime
    updated_at: datetime


# Card Schemas
class CardCreate(CamelModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    section_id: Optional[str] = None
    chapter_id: Optional[str] = None
    difficulty_level: int = Field(3, ge=1, le=5)
    last_reviewed: Optional[datetime] = None
    next_review_due: Optional[datetime] = None
    repetition_count: int = Field(0, ge=0)
    correct_count: int = Field(0, ge=0)
    incorrect_count: int = Field(0, ge=0)

    @field_validator("last_reviewed", "next_review_due")
    @classmethod
    def naive_utc(cls, value):
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_counters(self):
        if self.correct_count + self.incorrect_count != self.repetition_count:
            raise ValueError("correctCount + incorrectCount must equal repetitionCount")
        if self.last_reviewed and self.next_review_due and self.next_review_due < self.last_reviewed:
            raise ValueError("nextReviewDue cannot be before lastReviewed")
        return self


class BatchCardItem(CamelModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    section_id: Optional[str] = None
    chapter_id: Optional[str] = None
    difficulty_level: Union[Literal["easy", "medium", "hard"], int] = 3

    @field_validator("difficulty_level", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        if isinstance(value, str) and value.strip().lower() in DIFFICULTY_NAMES:
            return DIFFICULTY_NAMES[value.strip().lower()]
        return value

    @field_validator("difficulty_level")
    @classmethod
    def check_range(cls, value):
        if not 1 <= value <= 5:
            raise ValueError("difficultyLevel must be between 1 and 5")
        return value


class BatchCardCreate(CamelModel):
    """Cards added together; section and chapter apply to items that omit them."""
    cards: List[BatchCardItem] = Field(min_length=1)
    section_id: Optional[str] = None
    chapter_id: Optional[str] = None


class CardUpdate(CamelModel):
    question: Optional[str] = Field(None, min_length=1)
    answer: Optional[str] = Field(None, min_length=1)
    difficulty_level: Optional[int] = Field(None, ge=1, le=5)


class CardResponse(CamelModel):
    card_id: str
    deck_id: str
    question: str
    answer: str
    section_id: Optional[str] = None
    chapter_id: Optional[str] = None
    difficulty_level: int
    ai_generated: bool = False
    last_reviewed: datetime
    next_review_due: Optional[datetime] = None
    ease_factor: float
    interval_days: float
    streak: int
    repetition_count: int
    correct_count: int
    incorrect_count: int
    created_at: datetime


class DeckDetail(DeckResponse):
    cards: List[CardResponse] = []


class BatchResult(CamelModel):
    deck_id: str
    cards_added: int
    cards: List[CardResponse]


# Study Schemas
class ReviewSubmit(CamelModel):
    """Submit a card review. 1=easy, 2=good, 3=hard, 4=again."""
    difficulty_rating: int = Field(ge=1, le=4)
    is_correct: bool


class ReviewResult(CamelModel):
    next_review: datetime
    card: CardResponse


class ReviewLogResponse(CamelModel):
    id: int
    card_id: str
    difficulty_rating: int
    is_correct: bool
    policy: str
    ease_factor: float
    interval_days: float
    streak: int
    reviewed_at: datetime
    next_review_due: datetime


class DueCard(CardResponse):
    deck_title: str
    course_id: Optional[str] = None


class DueCardsResponse(CamelModel):
    cards: List[DueCard]
    total_due: int


# AI Schemas
class AlternativesRequest(CamelModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    count: int = Field(3, ge=1)

    @field_validator("count")
    @classmethod
    def cap_count(cls, value: int) -> int:
        return min(value, MAX_ALTERNATIVES)


class CardAlternative(CamelModel):
    question: str
    answer: str


class AlternativesResponse(CamelModel):
    alternatives: List[CardAlternative]
    original_question: str
    original_answer: str


class GenerateRequest(CamelModel):
    course_id: str
    deck_title: Optional[str] = None
    deck_description: Optional[str] = None


class GenerateResponse(CamelModel):
    deck: DeckResponse
    cards_generated: int
    total_potential_cards: int


# Integrity Schemas
class IntegrityReport(CamelModel):
    status: Literal["healthy", "degraded"]
    total_decks: int
    total_cards: int
    corrupted_decks: List[str] = []
    problem_cards: List[str] = []
    inconsistent_stats: List[str] = []
    recommendations: List[str] = []


class RepairResult(CamelModel):
    repaired_decks: int
