import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studyhub.auth.schemas import CurrentUser
from studyhub.auth.utils import get_current_user
from studyhub.courses.services import get_course_or_404, ensure_enrolled, overall_progress
from studyhub.database import get_db, utcnow
from studyhub.errors import ErrorCode, bad_request, forbidden, not_found
from studyhub.reviews.models import CourseReview, ReviewHelpfulVote
from studyhub.reviews.schemas import (
    ReviewCreate, ReviewUpdate, HelpfulRequest, ReviewResponse, RatingStats,
)
from studyhub.reviews.services import apply_review, get_rating_stats, replace_review, review_deltas
from studyhub.schemas import Envelope, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Course Reviews"])


def _get_review_or_404(db: Session, review_id: str) -> CourseReview:
    review = db.get(CourseReview, review_id)
    if not review:
        raise not_found("Review not found")
    return review


def _has_reviewed(db: Session, user_id: str, course_id: str) -> bool:
    return db.query(CourseReview.id).filter(
        CourseReview.user_id == user_id,
        CourseReview.course_id == course_id,
    ).first() is not None


# ============== PUBLIC ENDPOINTS ==============

@router.get("/courses/{course_id}/reviews", response_model=Envelope[List[ReviewResponse]])
async def get_course_reviews(course_id: str, db: Session = Depends(get_db)):
    """Get all reviews for a course, newest first."""
    reviews = (
        db.query(CourseReview)
        .filter(CourseReview.course_id == course_id)
        .order_by(CourseReview.created_at.desc())
        .all()
    )
    return {"message": "Course reviews retrieved successfully", "data": reviews}


@router.get("/courses/{course_id}/rating-stats", response_model=Envelope[RatingStats])
async def get_course_rating_stats(course_id: str, db: Session = Depends(get_db)):
    """Average rating, 1-5 histogram and category averages for a course."""
    stats = get_rating_stats(db, course_id)
    message = (
        "Course rating statistics retrieved successfully"
        if stats.total_reviews
        else "No reviews found for this course"
    )
    return {"message": message, "data": stats}


# ============== AUTHENTICATED ENDPOINTS ==============

@router.post(
    "/courses/{course_id}/reviews",
    response_model=Envelope[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_course_review(
    course_id: str,
    review_data: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Create a review. One review per user per course, enrollment required."""
    course = get_course_or_404(db, course_id)
    ensure_enrolled(db, current_user.id, course, "You must be enrolled in the course to review it")

    if _has_reviewed(db, current_user.id, course_id):
        raise bad_request("You have already reviewed this course", ErrorCode.ALREADY_REVIEWED)
    if not 1 <= review_data.rating <= 5:
        raise bad_request("Invalid rating. Must be between 1 and 5")

    progress = overall_progress(db, current_user.id, course)
    review = CourseReview(
        user_id=current_user.id,
        course_id=course_id,
        user_name=review_data.user_name or current_user.name or "Anonymous",
        user_image=review_data.user_image,
        rating=review_data.rating,
        review_text=review_data.review_text,
        content_quality=review_data.content_quality,
        instructor_engagement=review_data.instructor_engagement,
        course_structure=review_data.course_structure,
        progress_percentage=progress,
        is_completed_review=progress >= 100,
        verified_purchase=True,
    )
    db.add(review)
    apply_review(db, review, +1)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # Lost a race against a concurrent review by the same user
        if _has_reviewed(db, current_user.id, course_id):
            raise bad_request("You have already reviewed this course", ErrorCode.ALREADY_REVIEWED)
        raise

    db.refresh(review)
    logger.info(f"Review created: review_id={review.id}, course_id={course_id}, rating={review.rating}")
    return {"message": "Review created successfully", "data": review}


@router.put("/reviews/{review_id}", response_model=Envelope[ReviewResponse])
async def update_course_review(
    review_id: str,
    review_update: ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Update a review. Only the author may do this."""
    review = _get_review_or_404(db, review_id)
    if review.user_id != current_user.id:
        raise forbidden("You can only update your own reviews", ErrorCode.NOT_OWNER)

    changes = review_update.model_dump(exclude_unset=True)
    if "rating" in changes and changes["rating"] is None:
        raise bad_request("Invalid rating. Must be between 1 and 5")

    before = review_deltas(review, -1)
    for field, value in changes.items():
        setattr(review, field, value)
    review.updated_at = utcnow()
    replace_review(db, before, review)

    db.commit()
    db.refresh(review)
    return {"message": "Review updated successfully", "data": review}


@router.delete("/reviews/{review_id}", response_model=MessageResponse)
async def delete_course_review(
    review_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Delete a review. Allowed for the author or an admin."""
    review = _get_review_or_404(db, review_id)
    if review.user_id != current_user.id and not current_user.is_admin:
        raise forbidden("You can only delete your own reviews", ErrorCode.NOT_OWNER)

    apply_review(db, review, -1)
    db.delete(review)
    db.commit()
    logger.info(f"Review deleted: review_id={review_id} by user {current_user.id}")
    return {"message": "Review deleted successfully"}


@router.post("/reviews/{review_id}/helpful", response_model=Envelope[ReviewResponse])
async def mark_review_helpful(
    review_id: str,
    body: HelpfulRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Toggle the current user's membership in the review's helpful set.

    Marking twice or unmarking an unmarked review changes nothing.
    """
    review = _get_review_or_404(db, review_id)
    if review.user_id == current_user.id:
        raise bad_request("You cannot mark your own review as helpful", ErrorCode.SELF_HELPFUL)

    vote = next((v for v in review.helpful_votes if v.user_id == current_user.id), None)

    if body.helpful:
        if vote is not None:
            return {"message": "Review already marked as helpful", "data": review}
        review.helpful_votes.append(ReviewHelpfulVote(user_id=current_user.id))
        message = "Review marked as helpful"
    else:
        if vote is None:
            return {"message": "Review was not previously marked as helpful", "data": review}
        review.helpful_votes.remove(vote)
        message = "Review unmarked as helpful"

    db.commit()
    db.refresh(review)
    return {"message": message, "data": review}
