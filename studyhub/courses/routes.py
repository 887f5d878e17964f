import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from studyhub.auth.schemas import CurrentUser, Role
from studyhub.auth.utils import get_current_user, require_role
from studyhub.courses.models import Course, Enrollment, ChapterProgress
from studyhub.courses.schemas import (
    CourseCreate, CourseResponse, EnrollmentResponse, CourseProgressResponse,
)
from studyhub.courses.services import (
    get_course_or_404, ensure_enrolled, completed_chapter_ids, overall_progress,
)
from studyhub.database import get_db
from studyhub.errors import not_found
from studyhub.reviews.services import ensure_summary
from studyhub.schemas import Envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.post("", response_model=Envelope[CourseResponse], status_code=status.HTTP_201_CREATED)
async def create_course(
    course: CourseCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER, Role.ADMIN)),
):
    """Create a course with its sections and chapters."""
    db_course = Course(
        title=course.title,
        description=course.description,
        teacher_id=current_user.id,
        sections=[section.model_dump(by_alias=True) for section in course.sections],
    )
    db.add(db_course)
    db.flush()
    ensure_summary(db, db_course.id)
    db.commit()
    db.refresh(db_course)
    logger.info(f"Course created: course_id={db_course.id}, teacher_id={current_user.id}")
    return {"message": "Course created successfully", "data": db_course}


@router.get("/{course_id}", response_model=Envelope[CourseResponse])
async def get_course(course_id: str, db: Session = Depends(get_db)):
    course = get_course_or_404(db, course_id)
    return {"message": "Course retrieved successfully", "data": course}


@router.post("/{course_id}/enroll", response_model=Envelope[EnrollmentResponse])
async def enroll(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Enroll the current user. Enrolling twice returns the existing enrollment."""
    get_course_or_404(db, course_id)
    enrollment = db.query(Enrollment).filter(
        Enrollment.user_id == current_user.id,
        Enrollment.course_id == course_id,
    ).first()
    if enrollment is None:
        enrollment = Enrollment(user_id=current_user.id, course_id=course_id)
        db.add(enrollment)
        db.commit()
        db.refresh(enrollment)
        logger.info(f"User {current_user.id} enrolled in course {course_id}")
    return {"message": "Enrolled successfully", "data": enrollment}


@router.post(
    "/{course_id}/chapters/{chapter_id}/complete",
    response_model=Envelope[CourseProgressResponse],
)
async def complete_chapter(
    course_id: str,
    chapter_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Mark a chapter as completed for the current user."""
    course = get_course_or_404(db, course_id)
    ensure_enrolled(db, current_user.id, course, "User is not enrolled in this course")

    section_id = next(
        (
            section.get("sectionId")
            for section in (course.sections or [])
            for chapter in (section.get("chapters") or [])
            if chapter.get("chapterId") == chapter_id
        ),
        None,
    )
    if section_id is None:
        raise not_found("Chapter not found")

    if chapter_id not in completed_chapter_ids(db, current_user.id, course_id):
        db.add(ChapterProgress(
            user_id=current_user.id,
            course_id=course_id,
            section_id=section_id,
            chapter_id=chapter_id,
        ))
        db.commit()

    return {
        "message": "Chapter marked as completed",
        "data": _progress(db, current_user.id, course),
    }


@router.get("/{course_id}/progress", response_model=Envelope[CourseProgressResponse])
async def get_progress(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    course = get_course_or_404(db, course_id)
    return {
        "message": "Course progress retrieved successfully",
        "data": _progress(db, current_user.id, course),
    }


def _progress(db: Session, user_id: str, course: Course) -> CourseProgressResponse:
    return CourseProgressResponse(
        course_id=course.id,
        user_id=user_id,
        completed_chapters=completed_chapter_ids(db, user_id, course.id),
        overall_progress=overall_progress(db, user_id, course),
    )
