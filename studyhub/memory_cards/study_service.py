import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import case
from sqlalchemy.orm import Session, selectinload

from studyhub.config import get_settings
from studyhub.database import utcnow
from studyhub.errors import bad_request, not_found
from studyhub.memory_cards.models import CardReviewLog, MemoryCard, MemoryDeck
from studyhub.memory_cards.scheduler import (
    DeckTuning, ReviewOutcome, ReviewPolicy, ReviewRating, ScheduleState, get_policy,
)
from studyhub.memory_cards.schemas import CardCreate

logger = logging.getLogger(__name__)

settings = get_settings()


class DeckSort:
    NEWEST = "newest"
    OLDEST = "oldest"
    NAME = "name"
    SUCCESS = "success"


class StudyService:
    """Deck queries, card creation and review recording."""

    @staticmethod
    def get_deck(deck_id: str, user_id: str, db: Session) -> MemoryDeck:
        deck = db.query(MemoryDeck).filter(
            MemoryDeck.id == deck_id,
            MemoryDeck.user_id == user_id,
        ).first()
        if not deck:
            raise not_found("Deck not found")
        return deck

    @staticmethod
    def get_card(deck: MemoryDeck, card_id: str, db: Session) -> MemoryCard:
        card = db.query(MemoryCard).filter(
            MemoryCard.id == card_id,
            MemoryCard.deck_id == deck.id,
        ).first()
        if not card:
            raise not_found("Card not found")
        return card

    @staticmethod
    def list_decks(
        user_id: str,
        db: Session,
        search: Optional[str] = None,
        sort: str = DeckSort.NEWEST,
        course_id: Optional[str] = None,
    ) -> List[MemoryDeck]:
        """
        The user's decks.

        ``search`` matches a case-insensitive substring of the title or
        description; ``sort`` is one of newest, oldest, name, success.
        """
        query = (
            db.query(MemoryDeck)
            .options(selectinload(MemoryDeck.cards))
            .filter(MemoryDeck.user_id == user_id)
        )
        if course_id:
            query = query.filter(MemoryDeck.course_id == course_id)
        if search:
            query = query.filter(
                MemoryDeck.title.icontains(search, autoescape=True)
                | MemoryDeck.description.icontains(search, autoescape=True)
            )

        if sort == DeckSort.OLDEST:
            order = [MemoryDeck.created_at.asc()]
        elif sort == DeckSort.NAME:
            order = [MemoryDeck.title.asc()]
        elif sort == DeckSort.SUCCESS:
            success = case(
                (MemoryDeck.total_reviews > 0, MemoryDeck.correct_reviews * 1.0 / MemoryDeck.total_reviews),
                else_=0.0,
            )
            order = [success.desc(), MemoryDeck.created_at.desc()]
        else:
            order = [MemoryDeck.created_at.desc()]

        return query.order_by(*order).all()

    @staticmethod
    def build_card(deck: MemoryDeck, data: CardCreate, now: Optional[datetime] = None) -> MemoryCard:
        """
        Make a card for the deck from creation input, filling scheduling defaults.

        Imported outcome counters are added to the deck's review totals.
        The card is added to the deck but not committed.
        """
        now = now or utcnow()
        last_reviewed = data.last_reviewed or now
        next_review_due = data.next_review_due or (
            max(now, last_reviewed) + timedelta(hours=settings.DEFAULT_REVIEW_DELAY_HOURS)
        )
        if next_review_due < last_reviewed:
            raise bad_request("nextReviewDue cannot be before lastReviewed")

        card = MemoryCard(
            user_id=deck.user_id,
            question=data.question,
            answer=data.answer,
            section_id=data.section_id,
            chapter_id=data.chapter_id,
            difficulty_level=data.difficulty_level,
            last_reviewed=last_reviewed,
            next_review_due=next_review_due,
            repetition_count=data.repetition_count,
            correct_count=data.correct_count,
            incorrect_count=data.incorrect_count,
        )
        deck.cards.append(card)
        deck.total_reviews = (deck.total_reviews or 0) + data.correct_count + data.incorrect_count
        deck.correct_reviews = (deck.correct_reviews or 0) + data.correct_count
        deck.updated_at = now
        return card

    @staticmethod
    def get_due_cards(
        user_id: str,
        db: Session,
        deck_id: Optional[str] = None,
        course_id: Optional[str] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Tuple[MemoryCard, MemoryDeck]], int]:
        """
        Cards due for review across the user's decks.

        A card is due when ``next_review_due`` is unset or not in the future.
        Never-scheduled cards come first, then the longest overdue.
        Returns (cards, total due before applying ``limit``).
        """
        now = now or utcnow()
        query = (
            db.query(MemoryCard, MemoryDeck)
            .join(MemoryDeck, MemoryCard.deck_id == MemoryDeck.id)
            .filter(
                MemoryDeck.user_id == user_id,
                MemoryCard.next_review_due.is_(None) | (MemoryCard.next_review_due <= now),
            )
        )
        if deck_id:
            query = query.filter(MemoryDeck.id == deck_id)
        if course_id:
            query = query.filter(MemoryDeck.course_id == course_id)

        total_due = query.count()
        query = query.order_by(
            MemoryCard.next_review_due.asc().nulls_first(),
            MemoryCard.created_at.asc(),
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all(), total_due

    @staticmethod
    def submit_review(
        deck: MemoryDeck,
        card: MemoryCard,
        difficulty_rating: int,
        is_correct: bool,
        db: Session,
        policy: Optional[ReviewPolicy] = None,
        now: Optional[datetime] = None,
    ) -> MemoryCard:
        """
        Record one review outcome.

        The card's schedule comes from the active review policy. The deck's
        counters are incremented in SQL, and a review log row is written in
        the same transaction.
        """
        policy = policy or get_policy(settings.REVIEW_POLICY)
        outcome = ReviewOutcome(
            rating=ReviewRating(difficulty_rating),
            is_correct=is_correct,
            reviewed_at=now or utcnow(),
        )
        tuning = DeckTuning(interval_modifier=deck.interval_modifier, easy_bonus=deck.easy_bonus)

        new_state = policy.compute_next_review(outcome, ScheduleState.from_card(card), tuning)
        new_state.apply_to(card)

        deck.total_reviews = MemoryDeck.total_reviews + 1
        deck.correct_reviews = MemoryDeck.correct_reviews + (1 if is_correct else 0)
        deck.updated_at = outcome.reviewed_at

        db.add(CardReviewLog(
            card_id=card.id,
            deck_id=deck.id,
            user_id=card.user_id,
            difficulty_rating=int(outcome.rating),
            is_correct=is_correct,
            policy=policy.name,
            ease_factor=new_state.ease_factor,
            interval_days=new_state.interval_days,
            streak=new_state.streak,
            reviewed_at=outcome.reviewed_at,
            next_review_due=new_state.next_review_due,
        ))
        db.commit()
        db.refresh(card)

        logger.info(
            f"Review recorded: card_id={card.id}, rating={outcome.rating.name}, "
            f"correct={is_correct}, policy={policy.name}, next_due={card.next_review_due}"
        )
        return card

    @staticmethod
    def get_history(card: MemoryCard, db: Session) -> List[CardReviewLog]:
        return (
            db.query(CardReviewLog)
            .filter(CardReviewLog.card_id == card.id)
            .order_by(CardReviewLog.reviewed_at.desc(), CardReviewLog.id.desc())
            .all()
        )
