import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from studyhub.auth.schemas import CurrentUser, Role
from studyhub.auth.utils import get_current_user, require_role
from studyhub.config import get_settings
from studyhub.courses.services import get_course_or_404, ensure_enrolled, completed_chapter_ids
from studyhub.database import get_db, utcnow
from studyhub.errors import forbidden, unprocessable
from studyhub.memory_cards.integrity import check_integrity, repair_integrity
from studyhub.memory_cards.models import MemoryDeck
from studyhub.memory_cards.schemas import (
    DeckCreate, DeckResponse, DeckDetail,
    CardCreate, BatchCardCreate, BatchResult, CardUpdate, CardResponse,
    ReviewSubmit, ReviewResult, ReviewLogResponse, DueCard, DueCardsResponse,
    AlternativesRequest, AlternativesResponse, GenerateRequest, GenerateResponse,
    IntegrityReport, RepairResult,
)
from studyhub.memory_cards.services import collect_course_cards, generate_alternatives
from studyhub.memory_cards.study_service import DeckSort, StudyService
from studyhub.schemas import Envelope, MessageResponse

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter(prefix="/memory-cards", tags=["Memory Cards"])


# ============== DECK ENDPOINTS ==============

@router.get("/decks", response_model=Envelope[List[DeckResponse]])
async def get_decks(
    search: Optional[str] = Query(None),
    sort: Literal["newest", "oldest", "name", "success"] = Query(DeckSort.NEWEST),
    course_id: Optional[str] = Query(None, alias="courseId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Get all decks for the current user."""
    decks = StudyService.list_decks(current_user.id, db, search=search, sort=sort, course_id=course_id)
    return {"message": "Decks retrieved successfully", "data": decks}


@router.post("/decks", response_model=Envelope[DeckResponse], status_code=status.HTTP_201_CREATED)
async def create_deck(
    deck: DeckCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Create a deck, optionally linked to a course the user is enrolled in."""
    if deck.course_id:
        course = get_course_or_404(db, deck.course_id)
        ensure_enrolled(db, current_user.id, course, "You must be enrolled in the course to create a deck for it")

    db_deck = MemoryDeck(
        user_id=current_user.id,
        course_id=deck.course_id,
        title=deck.title,
        description=deck.description or f"Memory cards for {deck.title}",
        interval_modifier=deck.interval_modifier,
        easy_bonus=deck.easy_bonus,
    )
    db.add(db_deck)
    db.commit()
    db.refresh(db_deck)
    logger.info(f"Deck created: deck_id={db_deck.id}, user_id={current_user.id}")
    return {"message": "Deck created successfully", "data": db_deck}


# ============== STUDY ENDPOINTS ==============

@router.get("/due-cards", response_model=Envelope[DueCardsResponse])
async def get_due_cards(
    deck_id: Optional[str] = Query(None, alias="deckId"),
    course_id: Optional[str] = Query(None, alias="courseId"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Cards due now across the user's decks, oldest due first."""
    if deck_id:
        StudyService.get_deck(deck_id, current_user.id, db)

    rows, total_due = StudyService.get_due_cards(
        current_user.id,
        db,
        deck_id=deck_id,
        course_id=course_id,
        limit=limit or settings.DUE_CARDS_DEFAULT_LIMIT,
    )
    cards = [
        DueCard(
            **CardResponse.model_validate(card).model_dump(),
            deck_title=deck.title,
            course_id=deck.course_id,
        )
        for card, deck in rows
    ]
    return {
        "message": "Due cards retrieved successfully",
        "data": DueCardsResponse(cards=cards, total_due=total_due),
    }


# ============== AI ENDPOINTS ==============

@router.post("/alternatives", response_model=Envelope[AlternativesResponse])
async def get_ai_alternatives(
    body: AlternativesRequest,
    current_user: CurrentUser = Depends(get_current_user),
):
    """Alternative phrasings for a question/answer pair."""
    alternatives = await generate_alternatives(body.question, body.answer, body.count)
    return {
        "message": "AI alternatives generated successfully",
        "data": {
            "alternatives": alternatives,
            "original_question": body.question,
            "original_answer": body.answer,
        },
    }


@router.post("/generate", response_model=Envelope[GenerateResponse], status_code=status.HTTP_201_CREATED)
async def generate_cards_from_course(
    body: GenerateRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Create a deck from the chapters of a course the user has completed."""
    course = get_course_or_404(db, body.course_id)
    ensure_enrolled(db, current_user.id, course, "You must be enrolled in the course to generate cards")

    candidates = await collect_course_cards(course, completed_chapter_ids(db, current_user.id, course.id))
    if not candidates:
        raise unprocessable("No cards could be generated from the completed chapters of this course")
    selected = candidates[:settings.MAX_GENERATED_CARDS]

    deck = MemoryDeck(
        user_id=current_user.id,
        course_id=course.id,
        title=body.deck_title or f"{course.title} Flashcards",
        description=body.deck_description or f"Auto-generated flashcards for {course.title}",
    )
    db.add(deck)

    now = utcnow()
    for item in selected:
        card = StudyService.build_card(
            deck,
            CardCreate(
                question=item["question"],
                answer=item["answer"],
                section_id=item["section_id"],
                chapter_id=item["chapter_id"],
            ),
            now=now,
        )
        card.ai_generated = item["ai_generated"]

    db.commit()
    db.refresh(deck)
    logger.info(
        f"Generated {len(selected)} cards (of {len(candidates)} candidates) "
        f"for course {course.id}, deck_id={deck.id}"
    )
    return {
        "message": "Cards generated successfully",
        "data": {
            "deck": deck,
            "cards_generated": len(selected),
            "total_potential_cards": len(candidates),
        },
    }


# ============== DATA INTEGRITY ENDPOINTS ==============

@router.get("/health", response_model=Envelope[IntegrityReport])
async def memory_cards_health(
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Health report for the caller's decks; admins may inspect another user."""
    if user_id and user_id != current_user.id and not current_user.is_admin:
        raise forbidden("Only admins can inspect other users' decks")

    report = check_integrity(db, user_id or current_user.id)
    return {"message": "Memory card health check completed", "data": report}


@router.post("/repair", response_model=Envelope[RepairResult])
async def memory_cards_repair(
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Repair invariant violations for one user, or for every deck."""
    repaired = repair_integrity(db, user_id)
    logger.info(f"Repair run by admin {current_user.id}: {repaired} decks repaired")
    return {"message": "Memory card data repair completed", "data": {"repaired_decks": repaired}}


# ============== SINGLE DECK ENDPOINTS ==============

@router.get("/decks/{deck_id}", response_model=Envelope[DeckDetail])
async def get_deck(
    deck_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Get a deck with its cards."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    return {"message": "Deck retrieved successfully", "data": deck}


@router.delete("/decks/{deck_id}", response_model=MessageResponse)
async def delete_deck(
    deck_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Delete a deck and all its cards."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    db.delete(deck)
    db.commit()
    logger.info(f"Deck deleted: deck_id={deck_id}, user_id={current_user.id}")
    return {"message": "Deck deleted successfully"}


# ============== CARD ENDPOINTS ==============

@router.post(
    "/decks/{deck_id}/cards",
    response_model=Envelope[CardResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_card(
    deck_id: str,
    card: CardCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Add one card. Scheduling fields default to due in 24 hours, no reviews."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    db_card = StudyService.build_card(deck, card)
    db.commit()
    db.refresh(db_card)
    logger.info(f"Card created: card_id={db_card.id}, deck_id={deck.id}")
    return {"message": "Card added successfully", "data": db_card}


@router.post(
    "/decks/{deck_id}/cards/batch",
    response_model=Envelope[BatchResult],
    status_code=status.HTTP_201_CREATED,
)
async def add_cards_batch(
    deck_id: str,
    batch: BatchCardCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Add several cards in one transaction; either all are stored or none."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)

    now = utcnow()
    db_cards = [
        StudyService.build_card(
            deck,
            CardCreate(
                question=item.question,
                answer=item.answer,
                section_id=item.section_id or batch.section_id,
                chapter_id=item.chapter_id or batch.chapter_id,
                difficulty_level=item.difficulty_level,
            ),
            now=now,
        )
        for item in batch.cards
    ]
    db.commit()
    for db_card in db_cards:
        db.refresh(db_card)

    logger.info(f"Batch added {len(db_cards)} cards to deck_id={deck.id}")
    return {
        "message": f"{len(db_cards)} cards added successfully",
        "data": {"deck_id": deck.id, "cards_added": len(db_cards), "cards": db_cards},
    }


@router.put("/decks/{deck_id}/cards/{card_id}", response_model=Envelope[CardResponse])
async def update_card(
    deck_id: str,
    card_id: str,
    card_update: CardUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Update a card's question, answer or difficulty."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    db_card = StudyService.get_card(deck, card_id, db)

    update_data = card_update.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(db_card, field, value)
    deck.updated_at = utcnow()

    db.commit()
    db.refresh(db_card)
    return {"message": "Card updated successfully", "data": db_card}


@router.delete("/decks/{deck_id}/cards/{card_id}", response_model=MessageResponse)
async def delete_card(
    deck_id: str,
    card_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Delete a single card."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    db_card = StudyService.get_card(deck, card_id, db)
    db.delete(db_card)
    deck.updated_at = utcnow()
    db.commit()
    return {"message": "Card deleted successfully"}


@router.post("/decks/{deck_id}/cards/{card_id}/review", response_model=Envelope[ReviewResult])
async def submit_review(
    deck_id: str,
    card_id: str,
    review: ReviewSubmit,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Record a review outcome and reschedule the card."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    db_card = StudyService.get_card(deck, card_id, db)

    db_card = StudyService.submit_review(deck, db_card, review.difficulty_rating, review.is_correct, db)
    return {
        "message": "Review submitted successfully",
        "data": {"next_review": db_card.next_review_due, "card": db_card},
    }


@router.get("/decks/{deck_id}/cards/{card_id}/history", response_model=Envelope[List[ReviewLogResponse]])
async def get_review_history(
    deck_id: str,
    card_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Review outcomes recorded for a card, newest first."""
    deck = StudyService.get_deck(deck_id, current_user.id, db)
    db_card = StudyService.get_card(deck, card_id, db)
    return {"message": "Review history retrieved successfully", "data": StudyService.get_history(db_card, db)}
