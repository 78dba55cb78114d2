from datetime import date, datetime, time, timedelta, timezone
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional

from app.crud.base import CRUDBase, dialect_insert
from app.models.lesson_progress import LessonProgress
from app.models.lesson import Lesson
from app.models.course_module import CourseModule

class CRUDLessonProgress(CRUDBase[LessonProgress, None, None]):

    def get_by_user_and_lesson(self, db: Session, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id == lesson_id)
            .populate_existing()
            .first()
        )

    def mark_completed(self, db: Session, user_id: int, lesson_id: int, completed_at: datetime) -> bool:
        """Upsert the ledger row and flip it to completed.

        Returns True only for the call that actually performed the flip, so
        repeated or concurrent calls for the same pair report False.
        """
        stmt = dialect_insert(db, LessonProgress).values(
            user_id=user_id,
            lesson_id=lesson_id,
            is_completed=False,
        ).on_conflict_do_nothing(index_elements=["user_id", "lesson_id"])
        db.execute(stmt)

        result = db.execute(
            update(LessonProgress)
            .where(LessonProgress.user_id == user_id)
            .where(LessonProgress.lesson_id == lesson_id)
            .where(LessonProgress.is_completed.is_(False))
            .values(is_completed=True, completed_at=completed_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_completed_lesson_ids(self, db: Session, user_id: int, course_id: int) -> List[int]:
        rows = (
            db.query(LessonProgress.lesson_id)
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .join(CourseModule, CourseModule.id == Lesson.module_id)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.is_completed.is_(True))
            .filter(CourseModule.course_id == course_id)
            .all()
        )
        return [row[0] for row in rows]

    def count_completed_by_course(self, db: Session, user_id: int, course_ids: Iterable[int]) -> Dict[int, int]:
        course_ids = list(set(course_ids))
        if not course_ids:
            return {}
        rows = (
            db.query(CourseModule.course_id, func.count(LessonProgress.id))
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .join(CourseModule, CourseModule.id == Lesson.module_id)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.is_completed.is_(True))
            .filter(CourseModule.course_id.in_(course_ids))
            .group_by(CourseModule.course_id)
            .all()
        )
        return {course_id: count for course_id, count in rows}

    def get_completed_on(self, db: Session, user_id: int, day: date) -> List[LessonProgress]:
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.is_completed.is_(True))
            .filter(LessonProgress.completed_at >= start)
            .filter(LessonProgress.completed_at < start + timedelta(days=1))
            .order_by(LessonProgress.completed_at)
            .all()
        )

    def delete_for_course(self, db: Session, user_id: int, course_id: int) -> int:
        lesson_ids = (
            db.query(Lesson.id)
            .join(CourseModule, CourseModule.id == Lesson.module_id)
            .filter(CourseModule.course_id == course_id)
        )
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id.in_(lesson_ids.scalar_subquery()))
            .delete(synchronize_session=False)
        )


lesson_progress = CRUDLessonProgress(LessonProgress)
