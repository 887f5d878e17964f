import uuid

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Float, Boolean, CheckConstraint,
)
from sqlalchemy.orm import relationship

from studyhub.database import Base, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class MemoryDeck(Base):
    __tablename__ = "memory_decks"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Per-deck tuning passed to the review policy
    interval_modifier = Column(Float, default=1.0, nullable=False)
    easy_bonus = Column(Float, default=1.3, nullable=False)

    # Statistics, incremented by card-level review outcomes
    total_reviews = Column(Integer, default=0, nullable=False)
    correct_reviews = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    cards = relationship(
        "MemoryCard",
        back_populates="deck",
        cascade="all, delete-orphan",
        order_by="MemoryCard.created_at",
    )

    @property
    def deck_id(self) -> str:
        return self.id

    @property
    def cards_count(self) -> int:
        return len(self.cards)

    @property
    def success_rate(self) -> float:
        """Fraction of correct reviews; 0 for a deck never reviewed."""
        total = self.total_reviews or 0
        if total <= 0:
            return 0.0
        return (self.correct_reviews or 0) / total


class MemoryCard(Base):
    __tablename__ = "memory_cards"
    __table_args__ = (
        CheckConstraint("difficulty_level >= 1 AND difficulty_level <= 5", name="ck_card_difficulty"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    deck_id = Column(String(36), ForeignKey("memory_decks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)

    # Optional links to course content
    section_id = Column(String(255), nullable=True)
    chapter_id = Column(String(255), nullable=True)

    difficulty_level = Column(Integer, default=3, nullable=False)  # 1-5, 5 being the most difficult
    ai_generated = Column(Boolean, default=False, nullable=False)

    # Review scheduling
    last_reviewed = Column(DateTime, nullable=False, default=utcnow)
    next_review_due = Column(DateTime, nullable=True, index=True)  # NULL means due now
    ease_factor = Column(Float, default=2.5, nullable=False)
    interval_days = Column(Float, default=1.0, nullable=False)
    streak = Column(Integer, default=0, nullable=False)  # Consecutive successful reviews

    # Cumulative outcome counters
    repetition_count = Column(Integer, default=0, nullable=False)
    correct_count = Column(Integer, default=0, nullable=False)
    incorrect_count = Column(Integer, default=0, nullable=False)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    deck = relationship("MemoryDeck", back_populates="cards")
    review_logs = relationship("CardReviewLog", back_populates="card", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    @property
    def card_id(self) -> str:
        return self.id


class CardReviewLog(Base):
    """One row per recorded review outcome."""
    __tablename__ = "card_review_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(String(36), ForeignKey("memory_cards.id", ondelete="CASCADE"), nullable=False, index=True)
    deck_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)

    difficulty_rating = Column(Integer, nullable=False)  # 1=easy .. 4=again
    is_correct = Column(Boolean, nullable=False)
    policy = Column(String(32), nullable=False)

    ease_factor = Column(Float, nullable=False)
    interval_days = Column(Float, nullable=False)
    streak = Column(Integer, nullable=False)
    reviewed_at = Column(DateTime, nullable=False, default=utcnow)
    next_review_due = Column(DateTime, nullable=False)

    card = relationship("MemoryCard", back_populates="review_logs")
