"""End-to-end checks of the API Gateway handler against a temporary store."""

from __future__ import annotations

import json

import pytest

from sentinel_city import environment, narrative
from sentinel_city.alerts import generate_alert
from sentinel_city.handlers import api


@pytest.fixture
def ward(call):
    status, body = call("POST", "/wards", {"name": "Colaba", "lat": 18.9, "lng": 72.8})
    assert status == 201
    return body


def test_health(call) -> None:
    assert call("GET", "/") == (200, {"status": "Sentinel City backend running"})


def test_cors_preflight() -> None:
    resp = api.handler({"httpMethod": "OPTIONS", "path": "/wards"}, None)
    assert resp["statusCode"] == 200
    assert resp["headers"]["Access-Control-Allow-Origin"] == "*"


def test_unknown_route(call) -> None:
    assert call("GET", "/nowhere") == (404, {"error": "Not found"})
    assert call("DELETE", "/wards")[0] == 404


def test_malformed_body_is_rejected(api_store) -> None:
    resp = api.handler({"httpMethod": "POST", "path": "/wards", "body": "{oops"}, None)
    assert resp["statusCode"] == 400
    assert "Invalid request body" in json.loads(resp["body"])["error"]


def test_create_and_list_wards(call, ward) -> None:
    status, wards = call("GET", "/wards")
    assert status == 200
    assert wards == [ward]


def test_create_ward_requires_fields(call) -> None:
    status, body = call("POST", "/wards", {"name": "Colaba"})
    assert status == 400
    assert body == {"error": "name, lat and lng are required"}


def test_signals_for_new_ward_are_zero(call, ward) -> None:
    status, body = call("GET", f"/signals/{ward['id']}")
    assert status == 200
    assert body["signals"]["clinicVisits"] == 0
    assert body["signals"]["updatedAt"] is None
    assert body["alert"]["level"] == "normal"
    assert body["diseaseData"] == {}


def test_signal_round_trip_matches_direct_alert(call, ward) -> None:
    submitted = {"clinicVisits": 75, "pharmacySales": 20, "pollution": 95,
                 "temperature": 12, "mobility": 40}
    status, posted = call("POST", f"/signals/{ward['id']}", submitted)
    assert status == 201
    assert posted["alert"]["confidence"] == 85

    status, read_back = call("GET", f"/signals/{ward['id']}")
    assert status == 200
    assert read_back["alert"] == generate_alert(submitted, {}) == posted["alert"]


def test_signals_unknown_ward(call) -> None:
    assert call("GET", "/signals/missing") == (404, {"error": "Ward not found"})
    assert call("POST", "/signals/missing", {"clinicVisits": 1})[0] == 404


def test_negative_signal_rejected(call, ward) -> None:
    status, body = call("POST", f"/signals/{ward['id']}", {"pharmacySales": -3})
    assert status == 400
    assert "pharmacySales" in body["error"]


def test_disease_data_updates_alert(call, ward) -> None:
    status, body = call("POST", f"/disease-data/{ward['id']}",
                        {"disease": " Dengue ", "clinicVisits": 72, "pharmacySales": 10})
    assert status == 200
    assert body["disease"] == "dengue"
    assert body["data"]["clinicVisits"] == 72
    assert body["alert"]["level"] == "high"
    assert body["alert"]["disease"] == "dengue"

    status, listing = call("GET", f"/disease-data/{ward['id']}")
    assert status == 200
    assert list(listing["diseases"]) == ["dengue"]

    # recomputed on every read of the ward's signals
    _, signals = call("GET", f"/signals/{ward['id']}")
    assert signals["alert"]["confidence"] == 88


def test_disease_name_required(call, ward) -> None:
    status, body = call("POST", f"/disease-data/{ward['id']}", {"disease": "  "})
    assert status == 400
    assert body == {"error": "Disease name is required"}


def test_all_alerts(call, ward) -> None:
    _, other = call("POST", "/wards", {"name": "Bandra", "lat": 19.06, "lng": 72.83})
    call("POST", f"/signals/{other['id']}", {"pharmacySales": 90})

    status, alerts = call("GET", "/all-alerts")
    assert status == 200
    assert [a["wardName"] for a in alerts] == ["Colaba", "Bandra"]
    assert alerts[0]["alert"]["level"] == "normal"
    assert alerts[1]["alert"]["level"] == "medium"
    assert alerts[1]["lat"] == 19.06


def test_analytics_overview(call, ward) -> None:
    _, other = call("POST", "/wards", {"name": "Bandra", "lat": 19.06, "lng": 72.83})
    call("POST", f"/signals/{ward['id']}", {"clinicVisits": 60, "pharmacySales": 40})

    status, snapshot = call("GET", "/analytics/overview")
    assert status == 200
    assert snapshot["baseline"]["respiratoryBaseline"] == 50.0
    first, second = snapshot["wards"]
    assert first["wardId"] == ward["id"]
    assert first["situationOfConcern"] is True
    assert second["wardId"] == other["id"]
    assert second["spreadRiskScore"] == 0


def test_analytics_overview_empty(call) -> None:
    assert call("GET", "/analytics/overview") == (
        200, {"baseline": {"respiratoryBaseline": 0}, "wards": []})


def test_simulate_policy(call) -> None:
    status, body = call("POST", "/simulate-policy", {"cases": 1000, "policy": "mobile_clinic"})
    assert status == 200
    assert (body["reducedCases"], body["hospitalLoad"], body["costSaved"]) == (650, 100, 175000)


def test_simulate_policy_invalid_cases(call) -> None:
    status, body = call("POST", "/simulate-policy", {"cases": -5, "policy": "mask_advisory"})
    assert status == 400
    assert body == {"error": "cases must be a non-negative number"}


def test_simulation_history(call, api_store, db_path) -> None:
    seeded = [{"policy": "mask_advisory", "originalCases": 500, "reducedCases": 375}]
    db_path.write_text(json.dumps({"simulationHistory": seeded}), encoding="utf-8")
    assert call("GET", "/simulation-history") == (200, seeded)


def test_ai_alert_uses_narrative(call, ward, monkeypatch) -> None:
    seen = {}

    def fake_narrative(ward_name, signals, disease_data):
        seen["ward_name"] = ward_name
        return {"prediction": "Calm", "prevention": ["a", "b", "c"], "risk": "Low"}

    monkeypatch.setattr(narrative, "generate_narrative", fake_narrative)
    status, body = call("GET", f"/ai-alerts/{ward['id']}")
    assert status == 200
    assert body["risk"] == "Low"
    assert seen["ward_name"] == "Colaba"


def test_ai_alert_unknown_ward(call) -> None:
    assert call("GET", "/ai-alerts/missing")[0] == 404


def test_environment_prefers_stored_reading(call, api_store, ward, monkeypatch) -> None:
    api_store.put_environment(ward["id"], {"pollution": 70, "temperature": 18,
                                           "source": "open-meteo", "fetchedAt": "t"})

    def fail(*args):
        raise AssertionError("live lookup should not run")

    monkeypatch.setattr(environment, "fetch_environment", fail)
    status, body = call("GET", f"/environment/{ward['id']}")
    assert status == 200
    assert body["pollution"] == 70
    assert body["wardId"] == ward["id"]


def test_environment_live_lookup(call, ward, monkeypatch) -> None:
    monkeypatch.setattr(environment, "fetch_environment",
                        lambda lat, lng: {"pollution": 55, "temperature": 31, "source": "open-meteo"})
    status, body = call("GET", f"/environment/{ward['id']}")
    assert status == 200
    assert body["temperature"] == 31
    assert body["fetchedAt"]


def test_geocode_route(call, monkeypatch) -> None:
    monkeypatch.setattr(environment, "geocode_place",
                        lambda q: {"lat": 1.0, "lng": 2.0, "displayName": q} if q == "Colaba" else None)
    assert call("GET", "/geocode", query={"q": "Colaba"}) == (
        200, {"lat": 1.0, "lng": 2.0, "displayName": "Colaba"})
    assert call("GET", "/geocode", query={"q": "Atlantis"})[0] == 404
    assert call("GET", "/geocode")[0] == 400


def test_unexpected_errors_become_500(call, api_store, monkeypatch) -> None:
    def boom():
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(api_store, "list_wards", boom)
    status, body = call("GET", "/wards")
    assert status == 500
    assert "disk on fire" in body["error"]
