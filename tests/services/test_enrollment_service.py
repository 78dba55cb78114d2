from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import AccessDecisionEnum, EnrollmentOutcomeEnum
from app.crud.course_enrollment import course_enrollment as crud_enrollment
from app.crud.course_progress import course_progress as crud_course_progress
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.models.course_payment import CoursePayment
from app.models.notification import Notification
from app.schemas.course_enrollment import CourseEnrollmentCreate
from app.services.access import access_service
from app.services.completion import completion_service
from app.services.enrollment import enrollment_service, price_in_minor_units
from tests.helpers.factories import lesson_ids_of


def test_price_in_minor_units():
    assert price_in_minor_units(Decimal("49.99")) == 4999
    assert price_in_minor_units(Decimal("0")) == 0
    assert price_in_minor_units(None) == 0


def test_free_course_enrolls_as_premium(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(modules=((10,), (10,)), assignments=1)

    result = enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    assert result.status == EnrollmentOutcomeEnum.ENROLLED.value
    assert result.enrollment.is_premium is True

    snapshot = crud_course_progress.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id)
    assert (snapshot.percent, snapshot.total_count) == (0, 3)

    access_map = access_service.get_course_access_map(db_session, user_id=learner.id, course_id=course.id)
    assert set(access_map.lessons.values()) == {AccessDecisionEnum.ALLOWED.value}
    assert set(access_map.assignments.values()) == {AccessDecisionEnum.ALLOWED.value}


def test_enrolling_twice_conflicts(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory()
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)

    with pytest.raises(HTTPException) as exc:
        enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    assert exc.value.status_code == 409


def test_unknown_course_is_not_found(db_session: Session, user_factory):
    learner = user_factory()
    with pytest.raises(HTTPException) as exc:
        enrollment_service.enroll(db_session, user_id=learner.id, course_id=31337)
    assert exc.value.status_code == 404


def test_paid_course_waits_for_payment(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="49.99", modules=((10,), (10,)))

    result = enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    assert result.status == EnrollmentOutcomeEnum.PAYMENT_REQUIRED.value
    assert result.price == Decimal("49.99")
    assert result.enrollment is None
    assert crud_enrollment.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id) is None

    access_map = access_service.get_course_access_map(db_session, user_id=learner.id, course_id=course.id)
    assert access_map.is_enrolled is False
    assert set(access_map.lessons.values()) == {AccessDecisionEnum.NOT_ENROLLED.value}


def test_payment_confirmation_unlocks_everything(db_session: Session, user_factory, course_factory):
    print("\n[TEST] Free tier to premium upgrade")
    learner = user_factory()
    course = course_factory(price="49.99", modules=((10,), (10,)), assignments=1)
    free_tier = crud_enrollment.create(db_session, obj_in=CourseEnrollmentCreate(user_id=learner.id, course_id=course.id))
    first_lesson, second_lesson = lesson_ids_of(course)

    before = access_service.get_course_access_map(db_session, user_id=learner.id, course_id=course.id)
    assert before.lessons == {first_lesson: "allowed", second_lesson: "locked"}
    assert set(before.assignments.values()) == {"locked"}

    enrollment = enrollment_service.confirm_premium_enrollment(
        db_session, user_id=learner.id, course_id=course.id, amount=4999, external_reference="cs_test_upgrade"
    )
    assert enrollment.id == free_tier.id
    assert enrollment.is_premium is True

    after = access_service.get_course_access_map(db_session, user_id=learner.id, course_id=course.id)
    assert set(after.lessons.values()) == {"allowed"}
    assert set(after.assignments.values()) == {"allowed"}
    assert after.is_premium is True

    notification = db_session.query(Notification).filter(Notification.user_id == learner.id).one()
    assert notification.notification_type == "enrollment"
    print("[OK] Upgrade kept the same enrollment and unlocked all units")


def test_payment_confirmation_is_idempotent(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="10")

    first = enrollment_service.confirm_premium_enrollment(
        db_session, user_id=learner.id, course_id=course.id, amount=1000, external_reference="cs_test_repeat"
    )
    second = enrollment_service.confirm_premium_enrollment(
        db_session, user_id=learner.id, course_id=course.id, amount=1000, external_reference="cs_test_repeat"
    )
    assert first.id == second.id
    assert db_session.query(CoursePayment).count() == 1
    assert db_session.query(Notification).count() == 1


def test_underpayment_is_rejected(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="10")

    with pytest.raises(HTTPException) as exc:
        enrollment_service.confirm_premium_enrollment(
            db_session, user_id=learner.id, course_id=course.id, amount=500, external_reference="cs_test_short"
        )
    assert exc.value.status_code == 422
    assert crud_enrollment.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id) is None


def test_confirmation_for_unknown_user(db_session: Session, course_factory):
    course = course_factory(price="10")
    with pytest.raises(HTTPException) as exc:
        enrollment_service.confirm_premium_enrollment(db_session, user_id=555, course_id=course.id, amount=1000)
    assert exc.value.status_code == 404


def test_withdraw_keeps_ledger_by_default(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(modules=((10, 10),))
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    lesson_id = lesson_ids_of(course)[0]
    completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_id)

    enrollment_service.withdraw(db_session, user_id=learner.id, course_id=course.id)
    assert crud_enrollment.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id) is None
    assert crud_course_progress.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id) is None
    assert crud_lesson_progress.get_by_user_and_lesson(db_session, user_id=learner.id, lesson_id=lesson_id).is_completed

    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    snapshot = crud_course_progress.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id)
    assert snapshot.percent == 50


def test_withdraw_can_purge_ledger(db_session: Session, user_factory, course_factory, monkeypatch):
    monkeypatch.setattr(settings, "PURGE_PROGRESS_ON_WITHDRAW", True)
    learner = user_factory()
    course = course_factory(modules=((10, 10),))
    enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)
    lesson_id = lesson_ids_of(course)[0]
    completion_service.mark_lesson_complete(db_session, user_id=learner.id, lesson_id=lesson_id)

    enrollment_service.withdraw(db_session, user_id=learner.id, course_id=course.id)
    assert crud_lesson_progress.get_by_user_and_lesson(db_session, user_id=learner.id, lesson_id=lesson_id) is None


def test_withdraw_when_not_enrolled(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    course = course_factory()
    with pytest.raises(HTTPException) as exc:
        enrollment_service.withdraw(db_session, user_id=learner.id, course_id=course.id)
    assert exc.value.status_code == 404


def test_list_enrollments(db_session: Session, user_factory, course_factory):
    learner = user_factory()
    courses = [course_factory() for _ in range(3)]
    for course in courses[:2]:
        enrollment_service.enroll(db_session, user_id=learner.id, course_id=course.id)

    enrollments = enrollment_service.list_enrollments(db_session, user_id=learner.id)
    assert sorted(e.course_id for e in enrollments) == sorted(c.id for c in courses[:2])
