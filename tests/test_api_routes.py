# tests/test_api_routes.py
from __future__ import annotations

from fastapi.testclient import TestClient

from portfolio_engine.db import SessionLocal
from portfolio_engine.main import create_app
from portfolio_engine.routers.financial_reports import get_report_dispatch
from portfolio_engine.services import financial_reports


def _no_dispatch(landlord_id: int, report_id: int) -> None:
    return None


def _client() -> TestClient:
    app = create_app()
    app.dependency_overrides[get_report_dispatch] = lambda: _no_dispatch
    return TestClient(app)


def _headers() -> dict[str, str]:
    return {"X-Actor-Id": "agent-7"}


def _landlord_with_property(c: TestClient) -> tuple[int, int]:
    r = c.post("/api/landlords", json={"display_name": "HTTP Lettings"}, headers=_headers())
    assert r.status_code == 201
    lid = r.json()["id"]
    r = c.post(
        f"/api/landlords/{lid}/properties",
        json={"address_line1": "3 Quay St", "city": "Bristol", "postcode": "BS1 4DJ", "bedrooms": 2},
        headers=_headers(),
    )
    assert r.status_code == 201
    return lid, r.json()["id"]


def _tenancy_body(pid: int) -> dict:
    return {"property_id": pid, "tenant_id": "tenant-http", "start_date": "2024-01-01", "rent_amount": 1000}


def test_health():
    c = _client()
    r = c.get("/api/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers.get("X-Request-ID")


def test_tenancy_and_payment_round_trip():
    c = _client()
    lid, pid = _landlord_with_property(c)

    r = c.post(f"/api/landlords/{lid}/tenancies", json=_tenancy_body(pid), headers=_headers())
    assert r.status_code == 201
    tid = r.json()["id"]
    assert r.json()["status"] == "active"

    r = c.post(f"/api/landlords/{lid}/tenancies", json=_tenancy_body(pid), headers=_headers())
    assert r.status_code == 409
    assert r.json()["error"] == "conflict"

    r = c.get(f"/api/landlords/{lid}/properties")
    assert r.json()[0]["status"] == "occupied"

    r = c.post(
        f"/api/landlords/{lid}/rent-payments",
        json={
            "tenancy_id": tid,
            "amount": 1000,
            "payment_date": "2024-01-05",
            "method": "card_payment",
            "period_start": "2024-01-01",
            "period_end": "2024-01-31",
        },
        headers=_headers(),
    )
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "completed"
    assert body["allocated_to_rent"] == 1000.0
    assert body["allocated_to_arrears"] == 0.0

    r = c.get(f"/api/landlords/{lid}/rent-payments", params={"tenancyId": tid})
    assert len(r.json()) == 1

    r = c.get(f"/api/landlords/{lid}/tenancies/{tid}/balance")
    assert r.json()["open_period_outstanding"] == 0.0

    r = c.patch(f"/api/landlords/{lid}/tenancies/{tid}/end", json={"end_date": "2024-06-30"})
    assert r.status_code == 200
    assert r.json()["status"] == "ended"

    r = c.get(f"/api/landlords/{lid}/portfolio-summary")
    assert r.json()["occupied_properties"] == 0
    assert r.json()["vacant_properties"] == 1


def test_error_codes():
    c = _client()
    lid, pid = _landlord_with_property(c)

    r = c.get("/api/landlords/999999")
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    r = c.patch(f"/api/landlords/{lid}/properties/{pid}", json={"status": "occupied"})
    assert r.status_code == 422
    assert r.json()["error"] == "validation"

    r = c.post(f"/api/landlords/{lid}/tenancies", json={**_tenancy_body(pid), "end_date": "2023-01-01"})
    assert r.status_code == 422

    r = c.patch(f"/api/landlords/{lid}/rent-payments/424242/cancel")
    assert r.status_code == 404

    for listing in (
        "rent-payments",
        "maintenance-requests",
        "maintenance-requests/urgent",
        "inspections",
        "tenancies",
        "financial-reports",
    ):
        r = c.get(f"/api/landlords/999999/{listing}")
        assert r.status_code == 404, listing
        assert r.json()["error"] == "not_found"


def test_report_generation_is_accepted_then_polled():
    c = _client()
    lid, _ = _landlord_with_property(c)
    body = {"period_start": "2024-01-01", "period_end": "2024-01-31"}

    r = c.post(f"/api/landlords/{lid}/financial-reports", json=body, headers=_headers())
    assert r.status_code == 202
    rid = r.json()["id"]
    assert r.json()["status"] == "generating"

    r = c.post(f"/api/landlords/{lid}/financial-reports", json=body, headers=_headers())
    assert r.status_code == 409

    db = SessionLocal()
    try:
        financial_reports.process_report_now(db, landlord_id=lid, report_id=rid)
    finally:
        db.close()

    r = c.get(f"/api/landlords/{lid}/financial-reports/{rid}")
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["net_rental_income"] == 0.0

    assert len(c.get(f"/api/landlords/{lid}/financial-reports").json()) == 1


def test_maintenance_and_inspection_over_http():
    c = _client()
    lid, pid = _landlord_with_property(c)

    r = c.post(
        f"/api/landlords/{lid}/maintenance-requests",
        json={"property_id": pid, "title": "Gas smell", "priority": "emergency", "category": "heating"},
    )
    assert r.status_code == 201
    mid = r.json()["id"]
    assert [x["id"] for x in c.get(f"/api/landlords/{lid}/maintenance-requests/urgent").json()] == [mid]

    r = c.patch(f"/api/landlords/{lid}/maintenance-requests/{mid}", json={"status": "assigned"})
    assert r.json()["status"] == "assigned"
    r = c.patch(f"/api/landlords/{lid}/maintenance-requests/{mid}", json={"status": "submitted"})
    assert r.status_code == 409

    r = c.post(
        f"/api/landlords/{lid}/inspections",
        json={"property_id": pid, "inspection_type": "move_in", "scheduled_date": "2024-03-01T10:00:00"},
    )
    assert r.status_code == 201
    iid = r.json()["id"]

    r = c.patch(
        f"/api/landlords/{lid}/inspections/{iid}/complete",
        json={
            "outcome": "minor_issues",
            "issues": [
                {"category": "plumbing", "description": "Dripping tap", "severity": "low", "action_required": True}
            ],
        },
    )
    assert r.status_code == 200
    out = r.json()
    assert out["status"] == "completed"
    assert out["requires_follow_up"] is True
    assert len(out["follow_up_request_ids"]) == 1
    assert out["issues_found"][0]["description"] == "Dripping tap"


def test_incoming_request_id_is_echoed():
    c = _client()
    r = c.get("/api/health", headers={"X-Request-ID": "trace-123"})
    assert r.headers["X-Request-ID"] == "trace-123"
