from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field

from studyhub.schemas import CamelModel


class Chapter(CamelModel):
    chapter_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    type: str = "Text"  # "Text", "Quiz" or "Video"
    content: Optional[str] = None


class Section(CamelModel):
    section_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    chapters: List[Chapter] = []


class CourseCreate(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    sections: List[Section] = []


class CourseResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    teacher_id: str
    sections: List[Section] = []
    created_at: datetime


class EnrollmentResponse(CamelModel):
    user_id: str
    course_id: str
    enrolled_at: datetime


class CourseProgressResponse(CamelModel):
    course_id: str
    user_id: str
    completed_chapters: List[str] = []
    overall_progress: float = 0.0
