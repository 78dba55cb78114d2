from datetime import date, datetime, timedelta, timezone
from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.core.constants import (
    ASSIGNMENT_COMPLETION_POINTS,
    DAILY_HOUR_BONUS_POINTS,
    DAILY_MINUTES_THRESHOLD,
    LESSON_COMPLETION_POINTS,
)
from app.crud.assignment_submission import assignment_submission as crud_submission
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.study_stat import study_stat as crud_study_stat
from app.schemas.study_stat import DailyStudyStat, StudyStatsSummary

logger = logging.getLogger(__name__)


def lesson_minutes(duration_minutes: Optional[int]) -> int:
    return max(int(duration_minutes or 0), 0)


def utc_day(moment: datetime) -> date:
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


class EngagementService:
    """Gamified study record per learner and UTC day. Display only, never feeds progress or access."""

    def on_lesson_completed(self, db: Session, *, user_id: int, lesson, completed_at: datetime) -> None:
        minutes = lesson_minutes(lesson.duration)
        crud_study_stat.increment(
            db,
            user_id=user_id,
            study_date=utc_day(completed_at),
            minutes=minutes,
            points=LESSON_COMPLETION_POINTS,
            threshold=DAILY_MINUTES_THRESHOLD,
            threshold_bonus=DAILY_HOUR_BONUS_POINTS,
        )
        logger.debug(f"Study stat for user {user_id}: +{minutes}min from lesson {lesson.id}")

    def on_assignment_completed(self, db: Session, *, user_id: int, assignment_id: int, graded_at: datetime) -> None:
        crud_study_stat.increment(
            db,
            user_id=user_id,
            study_date=utc_day(graded_at),
            points=ASSIGNMENT_COMPLETION_POINTS,
        )
        logger.debug(f"Study stat for user {user_id}: assignment {assignment_id} graded")

    def get_study_stats(self, db: Session, *, user_id: int, days: int = 7, today: Optional[date] = None) -> StudyStatsSummary:
        today = today or datetime.now(timezone.utc).date()
        start = today - timedelta(days=days - 1)
        rows = {row.study_date: row for row in crud_study_stat.get_range(db, user_id=user_id, start=start, end=today)}

        series = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            row = rows.get(day)
            series.append(DailyStudyStat(
                study_date=day,
                minutes_studied=row.minutes_studied if row else 0,
                hours_studied=row.hours_studied if row else 0.0,
                community_score=row.community_score if row else 0,
            ))

        return StudyStatsSummary(
            days=series,
            total_hours=round(sum(item.minutes_studied for item in series) / 60, 2),
            total_community_score=sum(item.community_score for item in series),
        )

    def replay_day(self, db: Session, *, user_id: int, study_date: date) -> Optional[DailyStudyStat]:
        """Rebuild one day's stat from ledger events in the order they happened."""
        lessons = crud_lesson_progress.get_completed_on(db, user_id=user_id, day=study_date)
        gradings = crud_submission.get_graded_on(db, user_id=user_id, day=study_date)

        events = [(lp.completed_at, "lesson", lp) for lp in lessons]
        events += [(sub.graded_at, "assignment", sub) for sub in gradings]
        events.sort(key=lambda event: (event[0].replace(tzinfo=None), event[1]))

        crud_study_stat.reset(db, user_id=user_id, study_date=study_date)
        for occurred_at, kind, record in events:
            if kind == "lesson":
                self.on_lesson_completed(db, user_id=user_id, lesson=record.lesson, completed_at=occurred_at)
            else:
                self.on_assignment_completed(db, user_id=user_id, assignment_id=record.assignment_id, graded_at=occurred_at)
        db.commit()

        logger.info(f"Replayed {len(events)} events for user {user_id} on {study_date}")
        row = crud_study_stat.get_by_user_and_date(db, user_id=user_id, study_date=study_date)
        return DailyStudyStat.model_validate(row) if row else None


engagement_service = EngagementService()
