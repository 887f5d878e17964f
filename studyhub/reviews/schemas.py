from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from studyhub.schemas import CamelModel


class ReviewCreate(CamelModel):
    # Range is checked in the route, after the course and enrollment checks
    rating: int
    review_text: Optional[str] = None
    content_quality: Optional[int] = Field(None, ge=1, le=5)
    instructor_engagement: Optional[int] = Field(None, ge=1, le=5)
    course_structure: Optional[int] = Field(None, ge=1, le=5)
    user_name: Optional[str] = None
    user_image: Optional[str] = None


class ReviewUpdate(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    review_text: Optional[str] = None
    content_quality: Optional[int] = Field(None, ge=1, le=5)
    instructor_engagement: Optional[int] = Field(None, ge=1, le=5)
    course_structure: Optional[int] = Field(None, ge=1, le=5)


class HelpfulRequest(CamelModel):
    helpful: bool


class ReviewResponse(CamelModel):
    id: str
    user_id: str
    course_id: str
    user_name: str
    user_image: Optional[str] = None
    rating: int
    review_text: Optional[str] = None
    content_quality: Optional[int] = None
    instructor_engagement: Optional[int] = None
    course_structure: Optional[int] = None
    progress_percentage: float = 0.0
    is_completed_review: bool = False
    verified_purchase: bool = True
    helpful_count: int = 0
    helpful_users: List[str] = []
    created_at: datetime
    updated_at: datetime


class CategoryRatings(CamelModel):
    content_quality: float = 0.0
    instructor_engagement: float = 0.0
    course_structure: float = 0.0


class RatingStats(CamelModel):
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: Dict[str, int] = Field(
        default_factory=lambda: {str(star): 0 for star in range(5, 0, -1)}
    )
    category_ratings: CategoryRatings = Field(default_factory=CategoryRatings)
