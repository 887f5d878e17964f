"""
Course rating statistics.

Stats are served from ``CourseRatingSummary`` which is kept in step with
review writes: ``apply_review`` adds (sign=+1) or removes (sign=-1) one
review's contribution as an in-database increment, so concurrent writers
never overwrite each other's totals. ``rebuild_rating_summary`` recomputes
a course's summary from scratch when the running totals are suspected to
have drifted.
"""
import logging
from collections import Counter
from typing import Dict, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from studyhub.database import utcnow
from studyhub.reviews.models import CATEGORIES, CourseRatingSummary, CourseReview
from studyhub.reviews.schemas import CategoryRatings, RatingStats

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def ensure_summary(db: Session, course_id: str) -> None:
    """Create the course's summary row unless another writer already has."""
    insert = _UPSERT_INSERTS[db.get_bind().dialect.name]
    db.execute(
        insert(CourseRatingSummary)
        .values(course_id=course_id)
        .on_conflict_do_nothing(index_elements=["course_id"])
    )


def review_deltas(review: CourseReview, sign: int) -> Dict[str, int]:
    """Per-column change that adding (+1) or removing (-1) a review makes."""
    deltas = {
        "total_reviews": sign,
        "rating_sum": sign * review.rating,
        f"stars_{review.rating}": sign,
    }
    for category in CATEGORIES:
        value = getattr(review, category)
        if value:
            deltas[f"{category}_sum"] = sign * value
            deltas[f"{category}_count"] = sign
    return deltas


def apply_deltas(db: Session, course_id: str, deltas: Dict[str, int]) -> None:
    values = {
        getattr(CourseRatingSummary, column): getattr(CourseRatingSummary, column) + delta
        for column, delta in deltas.items()
        if delta
    }
    if not values:
        return
    values[CourseRatingSummary.updated_at] = utcnow()

    ensure_summary(db, course_id)
    db.query(CourseRatingSummary).filter(
        CourseRatingSummary.course_id == course_id
    ).update(values, synchronize_session=False)


def apply_review(db: Session, review: CourseReview, sign: int) -> None:
    """Add or remove one review's contribution to the running totals."""
    apply_deltas(db, review.course_id, review_deltas(review, sign))


def replace_review(db: Session, before: Dict[str, int], review: CourseReview) -> None:
    """Swap a review's old contribution (``before``, taken with sign=-1) for its current one."""
    combined = Counter(before)
    combined.update(review_deltas(review, +1))
    apply_deltas(db, review.course_id, dict(combined))


def rebuild_rating_summary(db: Session, course_id: str) -> CourseRatingSummary:
    """Recompute the summary for a course from every stored review."""
    totals = Counter()
    for review in db.query(CourseReview).filter(CourseReview.course_id == course_id):
        totals.update(review_deltas(review, +1))

    values = {
        column: totals.get(column, 0)
        for column in CourseRatingSummary.__table__.columns.keys()
        if column not in ("course_id", "updated_at")
    }
    values["updated_at"] = utcnow()

    ensure_summary(db, course_id)
    db.query(CourseRatingSummary).filter(
        CourseRatingSummary.course_id == course_id
    ).update(values, synchronize_session=False)

    summary = db.get(CourseRatingSummary, course_id)
    db.refresh(summary)
    logger.info(f"Rebuilt rating summary for course {course_id}: {summary.total_reviews} reviews")
    return summary


def _average(total: int, count: int) -> float:
    return total / count if count > 0 else 0.0


def summary_to_stats(summary: Optional[CourseRatingSummary]) -> RatingStats:
    if summary is None or summary.total_reviews <= 0:
        return RatingStats()

    return RatingStats(
        average_rating=_average(summary.rating_sum, summary.total_reviews),
        total_reviews=summary.total_reviews,
        rating_distribution={
            str(star): getattr(summary, f"stars_{star}") for star in range(5, 0, -1)
        },
        category_ratings=CategoryRatings(**{
            category: _average(
                getattr(summary, f"{category}_sum"),
                getattr(summary, f"{category}_count"),
            )
            for category in CATEGORIES
        }),
    )


def get_rating_stats(db: Session, course_id: str) -> RatingStats:
    return summary_to_stats(db.get(CourseRatingSummary, course_id))
