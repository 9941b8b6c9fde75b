from __future__ import annotations


def _assert_error_shape(res, *, code: str | None = None):
    data = res.json()
    assert isinstance(data, dict)
    assert isinstance(data.get("error"), str) and data["error"]
    assert isinstance(data.get("code"), str) and data["code"]
    if code is not None:
        assert data["code"] == code


def test_error_shape_401_admin_endpoint(client):
    res = client.post("/get-granular-analytics", headers={"Authorization": "Bearer wrong"})
    assert res.status_code == 401
    _assert_error_shape(res, code="UNAUTHORIZED")
    assert res.json()["error"] == "Invalid admin token"


def test_error_shape_404_unknown_route(client):
    res = client.get("/does-not-exist")
    assert res.status_code == 404
    _assert_error_shape(res, code="NOT_FOUND")


def test_error_shape_405_wrong_method(client):
    res = client.get("/track-checkout-event")
    assert res.status_code == 405
    _assert_error_shape(res, code="METHOD_NOT_ALLOWED")


def test_error_shape_422_request_validation_error(client):
    res = client.post("/track-checkout-event", json={"session_id": "s"})
    assert res.status_code == 422
    _assert_error_shape(res, code="VALIDATION_ERROR")
    body = res.json()
    assert isinstance(body.get("details"), dict)
    assert isinstance(body["details"].get("errors"), list)


def test_error_shape_422_malformed_json(client):
    res = client.post(
        "/log-payment",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert res.status_code == 422
    _assert_error_shape(res, code="VALIDATION_ERROR")


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
