from datetime import datetime, timezone
from sqlalchemy.orm import Session
from typing import Dict, Iterable, Optional

from app.crud.base import CRUDBase, dialect_insert
from app.models.course_progress import CourseProgressSnapshot
from app.schemas.course_progress import CourseProgressSnapshotCreate


class CRUDCourseProgress(CRUDBase[CourseProgressSnapshot, CourseProgressSnapshotCreate, None]):

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[CourseProgressSnapshot]:
        return (
            db.query(CourseProgressSnapshot)
            .filter(CourseProgressSnapshot.user_id == user_id)
            .filter(CourseProgressSnapshot.course_id == course_id)
            .first()
        )

    def get_by_user_and_courses(self, db: Session, user_id: int, course_ids: Iterable[int]) -> Dict[int, CourseProgressSnapshot]:
        course_ids = list(set(course_ids))
        if not course_ids:
            return {}
        rows = (
            db.query(CourseProgressSnapshot)
            .filter(CourseProgressSnapshot.user_id == user_id)
            .filter(CourseProgressSnapshot.course_id.in_(course_ids))
            .all()
        )
        return {row.course_id: row for row in rows}

    def upsert(self, db: Session, *, obj_in: CourseProgressSnapshotCreate) -> None:
        """Overwrite the snapshot; concurrent writers converge on the ledger's count."""
        values = obj_in.model_dump()
        values["updated_at"] = datetime.now(timezone.utc)
        stmt = dialect_insert(db, CourseProgressSnapshot).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "course_id"],
            set_={
                "percent": stmt.excluded.percent,
                "completed_count": stmt.excluded.completed_count,
                "total_count": stmt.excluded.total_count,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        db.execute(stmt)

    def delete_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> int:
        return (
            db.query(CourseProgressSnapshot)
            .filter(CourseProgressSnapshot.user_id == user_id)
            .filter(CourseProgressSnapshot.course_id == course_id)
            .delete(synchronize_session=False)
        )


course_progress = CRUDCourseProgress(CourseProgressSnapshot)
