from sqlalchemy.orm import Session, joinedload
from typing import Optional

from app.crud.base import CRUDBase
from app.models.lesson import Lesson


class CRUDLesson(CRUDBase[Lesson, None, None]):

    def get(self, db: Session, id: int) -> Optional[Lesson]:
        return (
            db.query(Lesson)
            .options(joinedload(Lesson.module))
            .filter(Lesson.id == id)
            .first()
        )


lesson = CRUDLesson(Lesson)
