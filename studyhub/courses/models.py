import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from studyhub.database import Base, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(String(255), nullable=False, index=True)
    # [{"sectionId", "title", "chapters": [{"chapterId", "title", "type", "content"}]}]
    sections = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow)

    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")

    def chapter_ids(self) -> list:
        return [
            chapter.get("chapterId")
            for section in (self.sections or [])
            for chapter in (section.get("chapters") or [])
        ]


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime, default=utcnow)

    course = relationship("Course", back_populates="enrollments")


class ChapterProgress(Base):
    """One row per completed chapter."""
    __tablename__ = "chapter_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "chapter_id", name="uq_progress_user_chapter"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(255), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    section_id = Column(String(255), nullable=False)
    chapter_id = Column(String(255), nullable=False)
    completed_at = Column(DateTime, default=utcnow)
