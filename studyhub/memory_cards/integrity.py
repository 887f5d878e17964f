"""
Memory card data health checks and repair.

``check_integrity`` only reads. ``repair_integrity`` clamps values that break
the card and deck invariants back into range and reports how many decks it
touched.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from studyhub.config import get_settings
from studyhub.database import utcnow
from studyhub.memory_cards.models import MemoryCard, MemoryDeck
from studyhub.memory_cards.schemas import IntegrityReport

logger = logging.getLogger(__name__)

settings = get_settings()

# Deck totals may drift from the card counters (deleted cards keep their
# reviews in the deck totals); only larger gaps are reported.
STATS_TOLERANCE = 10


def _load_decks(db: Session, user_id: Optional[str]) -> List[MemoryDeck]:
    query = db.query(MemoryDeck).options(selectinload(MemoryDeck.cards))
    if user_id:
        query = query.filter(MemoryDeck.user_id == user_id)
    return query.order_by(MemoryDeck.created_at.asc()).all()


def deck_issues(deck: MemoryDeck) -> List[str]:
    issues = []
    if not deck.title or not deck.title.strip():
        issues.append("Empty title")
    if deck.total_reviews < 0:
        issues.append("Negative total reviews")
    if deck.correct_reviews < 0:
        issues.append("Negative correct reviews")
    if deck.correct_reviews > deck.total_reviews:
        issues.append("Correct reviews exceed total")
    return issues


def card_issues(card: MemoryCard) -> List[str]:
    issues = []
    if not card.question or not card.question.strip():
        issues.append("Empty question")
    if not card.answer or not card.answer.strip():
        issues.append("Empty answer")
    if not 1 <= card.difficulty_level <= 5:
        issues.append("Invalid difficulty level")
    if card.repetition_count < 0:
        issues.append("Negative repetition count")
    if card.correct_count < 0:
        issues.append("Negative correct count")
    if card.incorrect_count < 0:
        issues.append("Negative incorrect count")
    if card.correct_count + card.incorrect_count != card.repetition_count:
        issues.append("Outcome counts do not match repetition count")
    if card.next_review_due is None:
        issues.append("Missing next review due date")
    elif card.last_reviewed and card.next_review_due < card.last_reviewed:
        issues.append("Next review due before last review")
    return issues


def stats_issues(deck: MemoryDeck) -> List[str]:
    card_total = sum(c.correct_count + c.incorrect_count for c in deck.cards)
    card_correct = sum(c.correct_count for c in deck.cards)

    issues = []
    if abs(deck.total_reviews - card_total) > STATS_TOLERANCE:
        issues.append(f"Total reviews mismatch: deck={deck.total_reviews}, calculated={card_total}")
    if abs(deck.correct_reviews - card_correct) > STATS_TOLERANCE:
        issues.append(f"Correct reviews mismatch: deck={deck.correct_reviews}, calculated={card_correct}")
    return issues


def _recommendations(report: IntegrityReport) -> List[str]:
    recommendations = []
    if report.corrupted_decks:
        recommendations.append(
            f"Found {len(report.corrupted_decks)} corrupted decks - consider restoration or cleanup"
        )
    if report.problem_cards:
        recommendations.append(
            f"Found {len(report.problem_cards)} problematic cards - run a repair"
        )
    if report.inconsistent_stats:
        recommendations.append(
            f"Found {len(report.inconsistent_stats)} decks with statistical inconsistencies"
            " - recommend stats recalculation"
        )
    if report.total_decks > 0 and report.total_cards == 0:
        recommendations.append("Found decks with no cards - consider removing empty decks")
    if not (report.corrupted_decks or report.problem_cards or report.inconsistent_stats):
        recommendations.append("All memory card data appears to be in good condition")
    return recommendations


def check_integrity(db: Session, user_id: Optional[str] = None) -> IntegrityReport:
    report = IntegrityReport(status="healthy", total_decks=0, total_cards=0)

    for deck in _load_decks(db, user_id):
        report.total_decks += 1
        report.total_cards += len(deck.cards)

        issues = deck_issues(deck)
        if issues:
            report.corrupted_decks.append(f"{deck.id}: {', '.join(issues)}")

        for card in deck.cards:
            issues = card_issues(card)
            if issues:
                report.problem_cards.append(f"{card.id} in {deck.id}: {', '.join(issues)}")

        issues = stats_issues(deck)
        if issues:
            report.inconsistent_stats.append(f"{deck.id}: {', '.join(issues)}")

    if report.corrupted_decks or report.problem_cards or report.inconsistent_stats:
        report.status = "degraded"
    report.recommendations = _recommendations(report)
    return report


def _repair_card(card: MemoryCard, deck: MemoryDeck, now: datetime) -> bool:
    changed = False
    if not 1 <= card.difficulty_level <= 5:
        card.difficulty_level = 3
        changed = True

    for counter in ("repetition_count", "correct_count", "incorrect_count"):
        if getattr(card, counter) < 0:
            setattr(card, counter, 0)
            changed = True
    if card.correct_count + card.incorrect_count != card.repetition_count:
        card.repetition_count = card.correct_count + card.incorrect_count
        changed = True

    if card.last_reviewed is None:
        card.last_reviewed = deck.created_at or now
        changed = True
    if card.next_review_due is None or card.next_review_due < card.last_reviewed:
        card.next_review_due = max(now, card.last_reviewed) + timedelta(
            hours=settings.DEFAULT_REVIEW_DELAY_HOURS
        )
        changed = True
    return changed


def _repair_deck(deck: MemoryDeck, now: datetime) -> bool:
    changed = False
    if deck.total_reviews < 0:
        deck.total_reviews = 0
        changed = True
    if deck.correct_reviews < 0:
        deck.correct_reviews = 0
        changed = True
    if deck.correct_reviews > deck.total_reviews:
        deck.correct_reviews = deck.total_reviews
        changed = True

    for card in deck.cards:
        if _repair_card(card, deck, now):
            changed = True
    return changed


def repair_integrity(db: Session, user_id: Optional[str] = None) -> int:
    """Fix invariant violations in place; returns the number of decks repaired."""
    logger.info(f"Starting memory card data repair (user_id={user_id or 'all'})")
    now = utcnow()
    repaired = 0

    for deck in _load_decks(db, user_id):
        if _repair_deck(deck, now):
            deck.updated_at = now
            repaired += 1
            logger.info(f"Repaired deck: {deck.id}")

    db.commit()
    logger.info(f"Data repair completed. Repaired {repaired} decks.")
    return repaired
