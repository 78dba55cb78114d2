from datetime import date
from sqlalchemy import and_, case, update
from sqlalchemy.orm import Session
from typing import List, Optional

from app.crud.base import CRUDBase, dialect_insert
from app.models.study_stat import DailyStudyStat


class CRUDStudyStat(CRUDBase[DailyStudyStat, None, None]):

    def get_by_user_and_date(self, db: Session, user_id: int, study_date: date) -> Optional[DailyStudyStat]:
        return (
            db.query(DailyStudyStat)
            .filter(DailyStudyStat.user_id == user_id)
            .filter(DailyStudyStat.study_date == study_date)
            .populate_existing()
            .first()
        )

    def get_range(self, db: Session, user_id: int, start: date, end: date) -> List[DailyStudyStat]:
        return (
            db.query(DailyStudyStat)
            .filter(DailyStudyStat.user_id == user_id)
            .filter(DailyStudyStat.study_date >= start)
            .filter(DailyStudyStat.study_date <= end)
            .order_by(DailyStudyStat.study_date)
            .all()
        )

    def ensure_row(self, db: Session, user_id: int, study_date: date) -> None:
        stmt = dialect_insert(db, DailyStudyStat).values(
            user_id=user_id,
            study_date=study_date,
            minutes_studied=0,
            community_score=0,
        ).on_conflict_do_nothing(index_elements=["user_id", "study_date"])
        db.execute(stmt)

    def increment(
        self,
        db: Session,
        *,
        user_id: int,
        study_date: date,
        minutes: int = 0,
        points: int = 0,
        threshold: Optional[int] = None,
        threshold_bonus: int = 0,
    ) -> None:
        """Atomic `+=` on the day's row.

        The threshold bonus is decided inside the same UPDATE from the
        pre-update `minutes_studied`, so two concurrent increments cannot both
        claim it or lose each other's minutes.
        """
        self.ensure_row(db, user_id=user_id, study_date=study_date)

        score_delta = points
        if threshold is not None and threshold_bonus:
            score_delta = points + case(
                (
                    and_(
                        DailyStudyStat.minutes_studied < threshold,
                        DailyStudyStat.minutes_studied + minutes >= threshold,
                    ),
                    threshold_bonus,
                ),
                else_=0,
            )

        db.execute(
            update(DailyStudyStat)
            .where(DailyStudyStat.user_id == user_id)
            .where(DailyStudyStat.study_date == study_date)
            .values(
                minutes_studied=DailyStudyStat.minutes_studied + minutes,
                community_score=DailyStudyStat.community_score + score_delta,
            )
            .execution_options(synchronize_session=False)
        )

    def reset(self, db: Session, user_id: int, study_date: date) -> None:
        db.query(DailyStudyStat).filter(
            DailyStudyStat.user_id == user_id,
            DailyStudyStat.study_date == study_date,
        ).delete(synchronize_session=False)


study_stat = CRUDStudyStat(DailyStudyStat)
