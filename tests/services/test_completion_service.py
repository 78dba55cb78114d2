from datetime import date, datetime, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.constants import RoleEnum, SubmissionStatusEnum
from app.crud.course_enrollment import course_enrollment as crud_enrollment
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.study_stat import study_stat as crud_study_stat
from app.models.notification import Notification
from app.schemas.course_enrollment import CourseEnrollmentCreate
from app.services.completion import completion_service
from app.services.course_progress import course_progress_service
from app.services.engagement import engagement_service
from app.services.enrollment import enrollment_service
from tests.helpers.factories import assignment_ids_of, lesson_ids_of

COMPLETED_AT = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _grade(db, learner, assignment_id, grader_context, grade=90.0, feedback=None):
    return completion_service.grade_assignment(
        db,
        user_id=learner.id,
        assignment_id=assignment_id,
        grade=grade,
        feedback=feedback,
        current_user_context=grader_context,
    )


def test_three_lessons_and_one_assignment(db_session: Session, user_factory, course_factory, context_for):
    print("\n[TEST] Progress counts lessons and assignments together")
    learner = user_factory()
    teacher = user_factory(full_name="Teacher")
    course = course_factory(modules=((10, 10, 10),), assignments=1)
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)

    percents = []
    for lesson_id in lesson_ids_of(course):
        result = completion_service.mark_lesson_complete(
            db_session, user_id=learner.id, lesson_id=lesson_id, completed_at=COMPLETED_AT
        )
        percents.append(result.progress.percent)
    assert percents == [25, 50, 75]

    progress = course_progress_service.get_course_progress(db_session, user_id=learner.id, course_id=course.id)
    assert (progress.completed, progress.total, progress.percent) == (3, 4, 75)

    [assignment_id] = assignment_ids_of(course)
    completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id, content="answer")
    result = _grade(db_session, learner, assignment_id, context_for(teacher, RoleEnum.TEACHER))
    assert result.submission.status == SubmissionStatusEnum.COMPLETED.value
    assert result.progress.percent == 100
    print("[OK] 75% after lessons, 100% after grading")


def test_completing_twice_changes_nothing(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(modules=((10, 10),))
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    lesson_id = lesson_ids_of(course)[0]

    first = completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_id, completed_at=COMPLETED_AT)
    second = completion_service.mark_lesson_complete(
        db_session, user_id=learner.id, lesson_id=lesson_id, completed_at=datetime(2026, 3, 5, tzinfo=timezone.utc)
    )

    assert first.progress.percent == second.progress.percent == 50
    assert second.lesson_progress.completed_at == first.lesson_progress.completed_at

    stat = crud_study_stat.get_by_user_and_date(db_session, user_id=learner.id, study_date=COMPLETED_AT.date())
    assert stat.community_score == 10
    assert crud_study_stat.get_by_user_and_date(db_session, user_id=learner.id, study_date=datetime(2026, 3, 5).date()) is None


def test_mark_completed_reports_only_the_first_flip(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory()
    lesson_id = lesson_ids_of(course)[0]

    assert crud_lesson_progress.mark_completed(db_session, user_id=learner.id, lesson_id=lesson_id, completed_at=COMPLETED_AT) is True
    assert crud_lesson_progress.mark_completed(db_session, user_id=learner.id, lesson_id=lesson_id, completed_at=COMPLETED_AT) is False


def test_progress_never_decreases(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(modules=((5, 5), (5, 5, 5)))
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)

    lesson_ids = lesson_ids_of(course)
    previous = 0
    for lesson_id in lesson_ids + lesson_ids[:2]:
        result = completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_id)
        assert result.progress.percent >= previous
        previous = result.progress.percent
    assert previous == 100


def test_completion_requires_enrollment(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory()

    with pytest.raises(HTTPException) as exc:
        completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_ids_of(course)[0])
    assert exc.value.status_code == 403
    assert completion_service.get_completed_lessons(db_session, user_id=learner.id, course_id=course.id) == []


def test_locked_lesson_cannot_be_completed(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="49.99", modules=((10,), (10,)))
    crud_enrollment.create(db_session, obj_in=CourseEnrollmentCreate(user_id=learner.id, course_id=course.id, is_premium=False))
    first_lesson, second_lesson = lesson_ids_of(course)

    result = completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=first_lesson)
    assert result.progress.percent == 50

    with pytest.raises(HTTPException) as exc:
        completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=second_lesson)
    assert exc.value.status_code == 403
    assert completion_service.get_completed_lessons(db_session, user_id=learner.id, course_id=course.id) == [first_lesson]


def test_unknown_lesson_is_not_found(db_session: Session, user_factory):
    learner = user_factory()
    with pytest.raises(HTTPException) as exc:
        completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=99999)
    assert exc.value.status_code == 404


def test_ledger_write_survives_study_stat_failure(db_session: Session, user_factory, course_factory, monkeypatch):
    learner = user_factory()
    course = course_factory(modules=((30, 30),))
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    lesson_id = lesson_ids_of(course)[0]

    def broken(*args, **kwargs):
        raise SQLAlchemyError("study stat table unavailable")

    monkeypatch.setattr(engagement_service, "on_lesson_completed", broken)

    result = completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_id, completed_at=COMPLETED_AT)
    assert result.lesson_progress.is_completed is True
    assert result.progress.percent == 50
    assert crud_study_stat.get_by_user_and_date(db_session, user_id=learner.id, study_date=COMPLETED_AT.date()) is None

    monkeypatch.undo()
    stat = engagement_service.replay_day(db_session, user_id=learner.id, study_date=COMPLETED_AT.date())
    assert stat.community_score == 10
    assert stat.hours_studied == pytest.approx(0.5)


def test_progress_falls_back_to_ledger_when_snapshot_write_fails(db_session: Session, user_factory, course_factory, monkeypatch):
    learner = user_factory()
    course = course_factory(modules=((10, 10),))
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)

    def broken(*args, **kwargs):
        raise SQLAlchemyError("snapshot table locked")

    monkeypatch.setattr(course_progress_service, "refresh_course_progress", broken)
    result = completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_ids_of(course)[0])
    assert result.progress.percent == 50

    monkeypatch.undo()
    healed = course_progress_service.reconcile_learner_progress(db_session, user_id=learner.id)
    assert healed[course.id].percent == 50


def test_students_cannot_grade(db_session: Session, user_factory, course_factory, context_for):
    learner = user_factory()
    other = user_factory()
    course = course_factory(assignments=1)
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    [assignment_id] = assignment_ids_of(course)
    completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id)

    with pytest.raises(HTTPException) as exc:
        _grade(db_session, learner, assignment_id, context_for(other, RoleEnum.STUDENT))
    assert exc.value.status_code == 403


def test_grade_must_fit_assignment_points(db_session: Session, user_factory, course_factory, context_for):
    learner = user_factory()
    admin = user_factory(full_name="Admin")
    course = course_factory(assignments=1)
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    [assignment_id] = assignment_ids_of(course)
    completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id)

    with pytest.raises(HTTPException) as exc:
        _grade(db_session, learner, assignment_id, context_for(admin, RoleEnum.ADMIN), grade=150)
    assert exc.value.status_code == 422

    with pytest.raises(HTTPException) as exc:
        _grade(db_session, learner, assignment_id, context_for(admin, RoleEnum.ADMIN), grade=float("nan"))
    assert exc.value.status_code == 422
    assert crud_study_stat.get_range(db_session, user_id=learner.id, start=date.min, end=date.max) == []

    result = _grade(db_session, learner, assignment_id, context_for(admin, RoleEnum.ADMIN), grade=100)
    assert result.submission.grade == 100


def test_grading_without_submission_is_not_found(db_session: Session, user_factory, course_factory, context_for):
    learner = user_factory()
    teacher = user_factory()
    course = course_factory(assignments=1)
    [assignment_id] = assignment_ids_of(course)

    with pytest.raises(HTTPException) as exc:
        _grade(db_session, learner, assignment_id, context_for(teacher, RoleEnum.TEACHER))
    assert exc.value.status_code == 404


def test_regrading_keeps_first_completion(db_session: Session, user_factory, course_factory, context_for):
    print("\n[TEST] Re-grading updates the grade only")
    learner = user_factory()
    teacher = user_factory()
    course = course_factory(modules=((10,),), assignments=1)
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    [assignment_id] = assignment_ids_of(course)
    completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id)

    teacher_context = context_for(teacher, RoleEnum.TEACHER)
    first = _grade(db_session, learner, assignment_id, teacher_context, grade=60)
    second = _grade(db_session, learner, assignment_id, teacher_context, grade=80, feedback="Better")

    assert second.submission.grade == 80
    assert second.submission.graded_at == first.submission.graded_at
    assert second.progress.completed == 1

    stats = engagement_service.get_study_stats(db_session, user_id=learner.id, days=1, today=first.submission.graded_at.date())
    assert stats.total_community_score == 20

    notifications = db_session.query(Notification).filter(Notification.user_id == learner.id).all()
    assert len(notifications) == 2
    assert "Feedback: Better" in notifications[-1].message


def test_graded_assignment_cannot_be_resubmitted(db_session: Session, user_factory, course_factory, context_for):
    learner = user_factory()
    teacher = user_factory()
    course = course_factory(assignments=1)
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    [assignment_id] = assignment_ids_of(course)

    completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id, content="v1")
    resubmitted = completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id, content="v2")
    assert resubmitted.content == "v2"
    assert resubmitted.status == SubmissionStatusEnum.SUBMITTED.value

    _grade(db_session, learner, assignment_id, context_for(teacher, RoleEnum.TEACHER))
    with pytest.raises(HTTPException) as exc:
        completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_id, content="v3")
    assert exc.value.status_code == 409


def test_assignments_are_locked_for_free_tier_on_paid_course(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="20", assignments=1)
    crud_enrollment.create(db_session, obj_in=CourseEnrollmentCreate(user_id=learner.id, course_id=course.id))

    with pytest.raises(HTTPException) as exc:
        completion_service.submit_assignment(db_session, user_id=learner.id, assignment_id=assignment_ids_of(course)[0])
    assert exc.value.status_code == 403
