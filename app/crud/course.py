from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from typing import Dict, Iterable, Optional

from app.crud.base import CRUDBase
from app.models.course import Course
from app.models.course_module import CourseModule
from app.models.lesson import Lesson
from app.models.assignment import Assignment


class CRUDCourse(CRUDBase[Course, None, None]):
    """Read-only catalog queries. Authoring lives outside this service."""

    def get_with_structure(self, db: Session, id: int) -> Optional[Course]:
        return (
            db.query(Course)
            .options(
                selectinload(Course.modules).selectinload(CourseModule.lessons),
                selectinload(Course.assignments),
            )
            .filter(Course.id == id)
            .first()
        )

    def get_first_module_position(self, db: Session, course_id: int) -> Optional[int]:
        return (
            db.query(func.min(CourseModule.position))
            .filter(CourseModule.course_id == course_id)
            .scalar()
        )

    def count_items_by_course(self, db: Session, course_ids: Iterable[int]) -> Dict[int, int]:
        """Lessons plus assignments per course, two grouped queries for any number of courses."""
        course_ids = list(set(course_ids))
        totals = {course_id: 0 for course_id in course_ids}
        if not course_ids:
            return totals

        lesson_counts = (
            db.query(CourseModule.course_id, func.count(Lesson.id))
            .join(Lesson, Lesson.module_id == CourseModule.id)
            .filter(CourseModule.course_id.in_(course_ids))
            .group_by(CourseModule.course_id)
            .all()
        )
        assignment_counts = (
            db.query(Assignment.course_id, func.count(Assignment.id))
            .filter(Assignment.course_id.in_(course_ids))
            .group_by(Assignment.course_id)
            .all()
        )
        for course_id, count in lesson_counts + assignment_counts:
            totals[course_id] += count
        return totals


course = CRUDCourse(Course)
