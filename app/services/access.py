from decimal import Decimal
from typing import Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.constants import AccessDecisionEnum, ContentUnitTypeEnum
from app.crud.assignment import assignment as crud_assignment
from app.crud.course import course as crud_course
from app.crud.course_enrollment import course_enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.schemas.access import AccessDecision, ContentUnit, CourseAccessMap

logger = logging.getLogger(__name__)


def evaluate_access(
    enrollment,
    course_price,
    unit_type: ContentUnitTypeEnum,
    module_position: Optional[int] = None,
    first_module_position: Optional[int] = None,
) -> AccessDecisionEnum:
    """Decide whether a learner may see one content unit of a course.

    `enrollment` is the learner's enrollment row (anything exposing
    `is_premium`) or None. Completion state plays no part in the decision.
    For lessons, `module_position` is the lesson's module position and
    `first_module_position` the lowest module position in the course.
    """
    if enrollment is None:
        return AccessDecisionEnum.NOT_ENROLLED

    if Decimal(course_price or 0) <= 0 or enrollment.is_premium:
        return AccessDecisionEnum.ALLOWED

    if unit_type != ContentUnitTypeEnum.LESSON:
        return AccessDecisionEnum.LOCKED

    if module_position is not None and module_position == first_module_position:
        return AccessDecisionEnum.ALLOWED
    return AccessDecisionEnum.LOCKED


class AccessService:

    def _get_course_or_raise(self, db: Session, course_id: int):
        course = crud_course.get(db, id=course_id)
        if not course:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")
        return course

    def evaluate(self, db: Session, *, user_id: int, course_id: int, unit: ContentUnit) -> AccessDecision:
        course = self._get_course_or_raise(db, course_id)
        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)

        module_position = None
        first_module_position = None

        if unit.unit_type == ContentUnitTypeEnum.LESSON:
            lesson = crud_lesson.get(db, id=unit.unit_id) if unit.unit_id is not None else None
            if not lesson or lesson.module.course_id != course_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found in this course.")
            module_position = lesson.module.position
            first_module_position = crud_course.get_first_module_position(db, course_id=course_id)
        elif unit.unit_type == ContentUnitTypeEnum.ASSIGNMENT:
            assignment = crud_assignment.get(db, id=unit.unit_id) if unit.unit_id is not None else None
            if not assignment or assignment.course_id != course_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found in this course.")

        decision = evaluate_access(
            enrollment,
            course.price,
            unit.unit_type,
            module_position=module_position,
            first_module_position=first_module_position,
        )
        return AccessDecision(course_id=course_id, unit_type=unit.unit_type, unit_id=unit.unit_id, decision=decision)

    def require_access(self, db: Session, *, user_id: int, course_id: int, unit: ContentUnit) -> None:
        result = self.evaluate(db, user_id=user_id, course_id=course_id, unit=unit)
        if result.decision == AccessDecisionEnum.NOT_ENROLLED:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not enrolled in this course.")
        if result.decision == AccessDecisionEnum.LOCKED:
            logger.info(f"User {user_id} blocked from locked {unit.unit_type.value} {unit.unit_id} in course {course_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This content is locked. Upgrade to premium to unlock it."
            )

    def get_course_access_map(self, db: Session, *, user_id: int, course_id: int) -> CourseAccessMap:
        course = crud_course.get_with_structure(db, id=course_id)
        if not course:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")
        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)

        first_module_position = min((m.position for m in course.modules), default=None)
        lessons = {
            lesson.id: evaluate_access(
                enrollment,
                course.price,
                ContentUnitTypeEnum.LESSON,
                module_position=module.position,
                first_module_position=first_module_position,
            )
            for module in course.modules
            for lesson in module.lessons
        }
        assignments = {
            assignment.id: evaluate_access(enrollment, course.price, ContentUnitTypeEnum.ASSIGNMENT)
            for assignment in course.assignments
        }
        return CourseAccessMap(
            course_id=course_id,
            is_enrolled=enrollment is not None,
            is_premium=bool(enrollment and enrollment.is_premium),
            lessons=lessons,
            assignments=assignments,
        )


access_service = AccessService()
