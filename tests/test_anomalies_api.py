"""
Tests for the solar anomalies API blueprint.

Covers:
- Response envelope ({ok, data, error})
- Query validation (400) and authentication (401)
- On-demand detection for a unit and for the signed-in user
- Resolution (200, idempotent, 404)
"""

from __future__ import annotations

import pytest

from app.schemas import ErrorResponse, SuccessResponse

BASE = "/api/v1/anomalies"
FAILURE_SERIES = [10, 10, 10, 10, 0]


def login(client, user_id: int) -> None:
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


@pytest.fixture()
def detected_unit(client, app_seed):
    """A unit owned by user 1 with anomalies already detected."""
    unit_id = app_seed.create_unit(capacity_kw=5.0, user_id=1)
    app_seed.daily_series(unit_id, FAILURE_SERIES)
    resp = client.post(f"{BASE}/units/{unit_id}/run-detection")
    assert resp.status_code == 200
    return unit_id


class TestListing:
    def test_empty_list_envelope(self, client):
        resp = client.get(f"{BASE}/")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["ok"] is True
        assert body["error"] is None
        assert body["data"] == {"anomalies": [], "total": 0}
        SuccessResponse[dict].model_validate(body)

    def test_lists_detected_anomalies(self, client, detected_unit):
        body = client.get(f"{BASE}/", query_string={"unit_id": detected_unit}).get_json()

        anomalies = body["data"]["anomalies"]
        assert body["data"]["total"] == len(anomalies) > 0
        mechanical = [a for a in anomalies if a["anomaly_type"] == "MECHANICAL"]
        assert len(mechanical) == 1
        assert mechanical[0]["severity"] == "CRITICAL"
        assert mechanical[0]["affected_start_date"] == "2024-01-05"
        assert mechanical[0]["resolved"] is False
        assert mechanical[0]["metadata"]["drop_percentage"] == 100

    def test_type_filter_is_case_insensitive(self, client, detected_unit):
        body = client.get(f"{BASE}/", query_string={"type": "mechanical"}).get_json()

        assert [a["anomaly_type"] for a in body["data"]["anomalies"]] == ["MECHANICAL"]

    @pytest.mark.parametrize(
        "params",
        [{"type": "LIGHTNING"}, {"severity": "URGENT"}, {"limit": "0"}, {"limit": "501"}, {"unit_id": "abc"}],
    )
    def test_invalid_query_is_400(self, client, params):
        resp = client.get(f"{BASE}/", query_string=params)

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["ok"] is False
        assert body["data"] is None
        assert body["error"]["message"] == "Invalid request"
        assert body["details"]["errors"]
        assert ErrorResponse.model_validate(body).error.message == "Invalid request"


class TestCurrentUser:
    def test_me_requires_session(self, client):
        resp = client.get(f"{BASE}/me")

        assert resp.status_code == 401
        assert resp.get_json()["ok"] is False

    def test_me_only_lists_owned_units(self, client, app_seed, detected_unit):
        other = app_seed.create_unit(user_id=2)
        app_seed.daily_series(other, FAILURE_SERIES)
        client.post(f"{BASE}/units/{other}/run-detection")

        login(client, 1)
        body = client.get(f"{BASE}/me").get_json()

        assert {a["unit_id"] for a in body["data"]["anomalies"]} == {detected_unit}

    def test_statistics(self, client, detected_unit):
        login(client, 1)
        body = client.get(f"{BASE}/me/statistics").get_json()

        stats = body["data"]
        assert stats["total"] == sum(stats["by_type"].values())
        assert stats["by_type"]["MECHANICAL"] == 1
        assert list(stats["by_severity"]) == ["CRITICAL", "WARNING", "INFO"]
        assert sum(item["value"] for item in stats["pie_chart_data"]) == stats["total"]

    def test_statistics_requires_session(self, client):
        assert client.get(f"{BASE}/me/statistics").status_code == 401


class TestRunDetection:
    def test_unit_detection_summary(self, client, app_seed):
        unit_id = app_seed.create_unit(capacity_kw=5.0)
        app_seed.daily_series(unit_id, FAILURE_SERIES)

        first = client.post(f"{BASE}/units/{unit_id}/run-detection").get_json()["data"]
        second = client.post(f"{BASE}/units/{unit_id}/run-detection").get_json()["data"]

        assert first["units_processed"] == 1
        assert first["outcomes"][0]["status"] == "completed"
        assert first["total_created"] == first["total_detected"] > 0
        assert second["total_created"] == 0
        assert second["total_skipped"] == first["total_detected"]

    def test_unit_without_readings_reports_no_data(self, client, app_seed):
        unit_id = app_seed.create_unit()

        data = client.post(f"{BASE}/units/{unit_id}/run-detection").get_json()["data"]

        assert data["outcomes"][0]["status"] == "no_data"
        assert data["units_failed"] == 0

    def test_unknown_unit_is_404(self, client):
        resp = client.post(f"{BASE}/units/999/run-detection")

        assert resp.status_code == 404
        assert "not found" in resp.get_json()["error"]["message"]

    def test_me_detection_runs_owned_units(self, client, app_seed):
        unit_id = app_seed.create_unit(user_id=5)
        app_seed.daily_series(unit_id, FAILURE_SERIES)
        login(client, 5)

        body = client.post(f"{BASE}/me/run-detection").get_json()

        assert body["ok"] is True
        assert [o["unit_id"] for o in body["data"]["outcomes"]] == [unit_id]
        assert body["data"]["total_created"] > 0

    def test_me_detection_without_units(self, client):
        login(client, 6)

        body = client.post(f"{BASE}/me/run-detection").get_json()

        assert body["message"] == "No solar units for this user"
        assert body["data"]["units_processed"] == 0

    def test_me_detection_requires_session(self, client):
        assert client.post(f"{BASE}/me/run-detection").status_code == 401


class TestResolve:
    def test_resolve_and_resolve_again(self, client, detected_unit):
        anomaly_id = client.get(f"{BASE}/").get_json()["data"]["anomalies"][0]["anomaly_id"]

        first = client.patch(f"{BASE}/{anomaly_id}/resolve")
        second = client.patch(f"{BASE}/{anomaly_id}/resolve")

        assert first.status_code == 200
        assert first.get_json()["data"]["resolved"] is True
        assert first.get_json()["data"]["resolved_at"] is not None
        assert second.status_code == 200
        assert second.get_json()["data"]["resolved_at"] == first.get_json()["data"]["resolved_at"]

        unresolved = client.get(f"{BASE}/", query_string={"resolved": "false"}).get_json()["data"]
        assert anomaly_id not in {a["anomaly_id"] for a in unresolved["anomalies"]}

    def test_resolve_unknown_is_404(self, client):
        resp = client.patch(f"{BASE}/424242/resolve")

        assert resp.status_code == 404
        assert resp.get_json()["ok"] is False


def test_unknown_api_route_uses_json_envelope(client):
    resp = client.get("/api/v1/does-not-exist")

    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False
