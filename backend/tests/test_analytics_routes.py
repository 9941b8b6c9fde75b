from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.core import config as app_config
from app.models.checkout_event import CheckoutEvent
from app.models.payment_log import PaymentLog


def _seed(db_session) -> None:
    now = datetime.now(timezone.utc)
    rows = [
        CheckoutEvent(session_id="a", event_type="form_submitted", event_metadata={"time_since_load": 3000}, created_at=now - timedelta(hours=1)),
        CheckoutEvent(session_id="a", event_type="payment_modal_opened", event_metadata={}, created_at=now - timedelta(minutes=50)),
        CheckoutEvent(session_id="a", event_type="payment_method_selected", payment_method="card", event_metadata={}, created_at=now - timedelta(minutes=45)),
        CheckoutEvent(session_id="a", event_type="checkout_started", event_metadata={}, created_at=now - timedelta(minutes=40)),
        CheckoutEvent(session_id="a", event_type="payment_completed", payment_method="à vista", event_metadata={}, created_at=now - timedelta(minutes=30)),
        CheckoutEvent(session_id="b", event_type="form_submitted", event_metadata={}, created_at=now - timedelta(minutes=20)),
        # Outside a 7-day window.
        CheckoutEvent(session_id="old", event_type="form_submitted", event_metadata={}, created_at=now - timedelta(days=10)),
    ]
    db_session.add_all(rows)
    db_session.add(
        PaymentLog(name="Joana", email="joana@example.com", payment_method="PIX", aceitou=True, created_at=now - timedelta(hours=2))
    )
    db_session.commit()


def test_conversion_analytics_requires_admin_token(client):
    res = client.post("/get-conversion-analytics", json={"days": 7})
    assert res.status_code == 401
    assert res.json()["code"] == "UNAUTHORIZED"

    res2 = client.post("/get-conversion-analytics", json={"days": 7}, headers={"Authorization": "Bearer nope"})
    assert res2.status_code == 401


def test_conversion_analytics_document(client, db_session, admin_headers):
    _seed(db_session)

    res = client.post("/get-conversion-analytics", json={"days": 7}, headers=admin_headers)
    assert res.status_code == 200
    body = res.json()

    assert body["period"] == "7 days"
    assert body["total_events"] == 7  # 6 in-window events + 1 payment log
    funnel = body["funnel"]
    assert funnel["total_sessions"] == 3  # a, b, legacy_1
    assert funnel["steps"]["form_submitted"] == {"count": 2, "percentage": 66.67}
    assert funnel["steps"]["payment_modal_opened"] == {"count": 1, "percentage": 50.0}
    assert funnel["steps"]["payment_method_selected"]["count"] == 2
    assert funnel["steps"]["payment_completed"] == {"count": 1, "percentage": 100.0}
    assert funnel["abandonment_rate"] == 0.0
    assert funnel["overall_conversion"] == 33.33

    assert len(body["daily"]) == 7
    assert body["daily"][-1]["date"] == datetime.now(timezone.utc).date().isoformat()

    methods = {m["payment_method"]: m for m in body["payment_methods"]}
    assert methods["card"]["count"] == 1
    assert methods["PIX"]["count"] == 1
    assert body["generated_at"]


def test_conversion_analytics_defaults_to_30_days_without_body(client, admin_headers):
    res = client.post("/get-conversion-analytics", headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["period"] == "30 days"
    assert len(body["daily"]) == 30
    assert body["total_events"] == 0


def test_conversion_analytics_rejects_out_of_range_days(client, admin_headers):
    res = client.post("/get-conversion-analytics", json={"days": 0}, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["code"] == "VALIDATION_ERROR"


def test_admin_check_skipped_without_token_in_dev(client):
    app_config.settings.ADMIN_API_TOKEN = ""
    res = client.post("/get-conversion-analytics", json={"days": 1})
    assert res.status_code == 200


def test_granular_analytics(client, db_session, admin_headers):
    _seed(db_session)

    res = client.post("/get-granular-analytics", json={"days": 7, "limit": 3}, headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["total_sessions"] == 2
    assert body["total_events"] == 6
    assert len(body["recent_events"]) == 3
    newest = body["recent_events"][0]
    assert newest["session_id"] == "b"
    assert newest["event_type"] == "form_submitted"
    assert "metadata" in newest
    assert [s["event_type"] for s in body["steps"]][0] == "page_loaded"
