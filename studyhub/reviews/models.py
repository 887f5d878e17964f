import uuid

from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from studyhub.database import Base, utcnow

CATEGORIES = ("content_quality", "instructor_engagement", "course_structure")


def _uuid() -> str:
    return str(uuid.uuid4())


class CourseReview(Base):
    __tablename__ = "course_reviews"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_review_user_course"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_name = Column(String(255), nullable=False)
    user_image = Column(String(1024), nullable=True)

    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=True)

    # Optional 1-5 category ratings
    content_quality = Column(Integer, nullable=True)
    instructor_engagement = Column(Integer, nullable=True)
    course_structure = Column(Integer, nullable=True)

    # Progress achieved when the review was written
    progress_percentage = Column(Float, default=0.0)
    is_completed_review = Column(Boolean, default=False)
    verified_purchase = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    helpful_votes = relationship(
        "ReviewHelpfulVote",
        back_populates="review",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def helpful_users(self) -> list:
        return [vote.user_id for vote in self.helpful_votes]

    @property
    def helpful_count(self) -> int:
        return len(self.helpful_votes)


class ReviewHelpfulVote(Base):
    __tablename__ = "review_helpful_votes"
    __table_args__ = (
        UniqueConstraint("review_id", "user_id", name="uq_helpful_review_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    review_id = Column(String(36), ForeignKey("course_reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    review = relationship("CourseReview", back_populates="helpful_votes")


class CourseRatingSummary(Base):
    """
    Running rating totals per course, maintained on every review write
    so stats reads never scan the reviews table.
    """
    __tablename__ = "course_rating_summaries"

    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    total_reviews = Column(Integer, default=0, nullable=False)
    rating_sum = Column(Integer, default=0, nullable=False)

    stars_1 = Column(Integer, default=0, nullable=False)
    stars_2 = Column(Integer, default=0, nullable=False)
    stars_3 = Column(Integer, default=0, nullable=False)
    stars_4 = Column(Integer, default=0, nullable=False)
    stars_5 = Column(Integer, default=0, nullable=False)

    content_quality_sum = Column(Integer, default=0, nullable=False)
    content_quality_count = Column(Integer, default=0, nullable=False)
    instructor_engagement_sum = Column(Integer, default=0, nullable=False)
    instructor_engagement_count = Column(Integer, default=0, nullable=False)
    course_structure_sum = Column(Integer, default=0, nullable=False)
    course_structure_count = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
