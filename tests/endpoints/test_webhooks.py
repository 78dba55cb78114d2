import stripe
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.crud.course_enrollment import course_enrollment as crud_enrollment
from app.models.course_payment import CoursePayment
from tests.helpers.asserts import api_call, data_of, error_code_of
from tests.helpers.factories import lesson_ids_of


def _checkout_event(user_id, course_id, amount_total, session_id="cs_test_123", payment_status="paid"):
    return {
        "id": "evt_test",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "payment_status": payment_status,
                "amount_total": amount_total,
                "currency": "usd",
                "metadata": {"userId": str(user_id), "courseId": str(course_id)},
            }
        },
    }


def _post_event(client, monkeypatch, event):
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig_header, secret: event)
    return client.post("/stripe-webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=test"})


def test_checkout_completed_grants_premium(client: TestClient, db_session: Session, monkeypatch, user_factory, course_factory, auth_headers):
    print("\n[TEST] Stripe checkout confirmation")
    learner = user_factory()
    course = course_factory(price="49.99", modules=((10,), (10,)))
    headers = auth_headers(learner)

    response = _post_event(client, monkeypatch, _checkout_event(learner.id, course.id, 4999))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["applied"] is True

    enrollment = crud_enrollment.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id)
    assert enrollment.is_premium is True

    access_map = data_of(api_call(client, "GET", f"/courses/{course.id}/access-map", headers=headers))
    assert set(access_map["lessons"].values()) == {"allowed"}

    response = _post_event(client, monkeypatch, _checkout_event(learner.id, course.id, 4999))
    assert response.status_code == 200
    assert db_session.query(CoursePayment).count() == 1

    api_call(client, "POST", f"/lessons/{lesson_ids_of(course)[1]}/complete", headers=headers)
    print("[OK] Premium enrollment applied once")


def test_unpaid_session_is_ignored(client: TestClient, db_session: Session, monkeypatch, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="10")

    response = _post_event(client, monkeypatch, _checkout_event(learner.id, course.id, 1000, payment_status="unpaid"))
    assert response.status_code == 200
    assert response.json()["applied"] is False
    assert crud_enrollment.get_by_user_and_course(db_session, user_id=learner.id, course_id=course.id) is None


def test_missing_metadata_is_bad_request(client: TestClient, monkeypatch):
    event = _checkout_event(1, 1, 1000)
    event["data"]["object"]["metadata"] = {"userId": "1"}

    response = _post_event(client, monkeypatch, event)
    assert response.status_code == 400
    assert error_code_of(response) == "BAD_REQUEST"


def test_underpaid_session_is_rejected(client: TestClient, monkeypatch, user_factory, course_factory):
    learner = user_factory()
    course = course_factory(price="10")

    response = _post_event(client, monkeypatch, _checkout_event(learner.id, course.id, 100))
    assert response.status_code == 422


def test_other_event_types_are_acknowledged(client: TestClient, monkeypatch):
    response = _post_event(client, monkeypatch, {"type": "invoice.paid", "data": {"object": {}}})
    assert response.status_code == 200
    assert response.json() == {"status": "success", "applied": False}


def test_bad_signature(client: TestClient, monkeypatch):
    def reject(payload, sig_header, secret):
        raise stripe.SignatureVerificationError("No signatures found matching the expected signature", sig_header)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)
    response = client.post("/stripe-webhook", content=b"{}", headers={"stripe-signature": "bogus"})
    assert response.status_code == 400
    assert error_code_of(response) == "BAD_REQUEST"
