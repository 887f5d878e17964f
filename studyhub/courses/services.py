from typing import List

from sqlalchemy.orm import Session

from studyhub.config import get_settings
from studyhub.courses.models import Course, Enrollment, ChapterProgress
from studyhub.errors import ErrorCode, forbidden, not_found

settings = get_settings()


def get_course_or_404(db: Session, course_id: str) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise not_found("Course not found")
    return course


def is_enrolled(db: Session, user_id: str, course_id: str) -> bool:
    return db.query(Enrollment.id).filter(
        Enrollment.user_id == user_id,
        Enrollment.course_id == course_id,
    ).first() is not None


def ensure_enrolled(db: Session, user_id: str, course: Course, message: str) -> None:
    """Raise 403 unless the user is enrolled (or the check is disabled)."""
    if settings.SKIP_ENROLLMENT_CHECK:
        return
    if not is_enrolled(db, user_id, course.id):
        raise forbidden(message, ErrorCode.NOT_ENROLLED)


def completed_chapter_ids(db: Session, user_id: str, course_id: str) -> List[str]:
    rows = db.query(ChapterProgress.chapter_id).filter(
        ChapterProgress.user_id == user_id,
        ChapterProgress.course_id == course_id,
    ).all()
    return [r[0] for r in rows]


def overall_progress(db: Session, user_id: str, course: Course) -> float:
    """Percentage of the course's chapters the user has completed."""
    all_chapters = set(course.chapter_ids())
    if not all_chapters:
        return 0.0
    done = all_chapters.intersection(completed_chapter_ids(db, user_id, course.id))
    return round(len(done) / len(all_chapters) * 100, 2)
