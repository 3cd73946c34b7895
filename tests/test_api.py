"""
Tests for the Flask API.
"""

import pytest

from driver_api.app import create_app
from driver_core.exports import BOM

from .conftest import fixed_clock

GAIN = {"type": "gain", "amount": "150", "date": "2024-05-15", "platform": "uber", "tripCount": 10}
FOOD = {"type": "expense", "category": "food", "amount": "50", "date": "2024-05-15"}


@pytest.fixture
def client(tmp_path):
    app = create_app(tmp_path, clock=fixed_clock)
    app.testing = True
    return app.test_client()


class TestEntryRoutes:
    def test_create_and_list(self, client):
        response = client.post("/entries", json=GAIN)
        assert response.status_code == 201
        created = response.get_json()
        assert created["amount"] == "150.00"
        assert created["date"] == "2024-05-15T12:00:00.000Z"

        listed = client.get("/entries?period=today").get_json()
        assert [item["id"] for item in listed["items"]] == [created["id"]]
        assert client.get("/entries?period=yesterday").get_json()["items"] == []

    def test_custom_range_from_query(self, client):
        client.post("/entries", json=GAIN)
        listed = client.get("/entries?start=2024-05-01&end=2024-05-31").get_json()
        assert len(listed["items"]) == 1

    def test_update_and_delete(self, client):
        entry_id = client.post("/entries", json=GAIN).get_json()["id"]
        updated = client.put(f"/entries/{entry_id}", json={"description": "Airport"})
        assert updated.get_json()["description"] == "Airport"

        assert client.delete(f"/entries/{entry_id}").status_code == 204
        missing = client.get(f"/entries/{entry_id}")
        assert missing.status_code == 404
        assert missing.get_json()["error"] == "Record not found"

    def test_validation_error(self, client):
        response = client.post("/entries", json={**GAIN, "amount": "-1"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Validation error"

    def test_oversized_amount_is_a_validation_error(self, client):
        response = client.post("/entries", json={**GAIN, "amount": "1e30"})
        assert response.status_code == 400
        assert "too large" in response.get_json()["details"]

    def test_requires_json_body(self, client):
        response = client.post("/entries", data="amount=1")
        assert response.status_code == 400


class TestShiftRoutes:
    def test_shift_crud(self, client):
        response = client.post(
            "/shifts",
            json={"date": "2024-05-15", "start": "08:00", "end": "12:00",
                  "pauses": [{"start": "10:00", "end": "10:30"}]},
        )
        assert response.status_code == 201
        shift = response.get_json()
        assert shift["pauses"] == [
            {"start": "2024-05-15T10:00:00.000Z", "end": "2024-05-15T10:30:00.000Z"}
        ]

        replaced = client.put(
            f"/shifts/{shift['id']}", json={"date": "2024-05-15", "start": "09:00", "end": "11:00"}
        ).get_json()
        assert replaced["start"] == "2024-05-15T09:00:00.000Z"
        assert replaced["pauses"] == []

        assert len(client.get("/shifts?period=today").get_json()["items"]) == 1
        assert client.delete(f"/shifts/{shift['id']}").status_code == 204

    def test_pauses_must_be_a_list(self, client):
        response = client.post(
            "/shifts", json={"date": "2024-05-15", "start": "08:00", "end": "12:00", "pauses": {}}
        )
        assert response.status_code == 400


class TestStatsAndGoals:
    def test_stats_with_goal_progress(self, client):
        client.post("/entries", json=GAIN)
        client.post("/entries", json=FOOD)
        client.put("/goals", json={"daily": {"profit": "200"}})

        payload = client.get("/stats?period=today").get_json()
        assert payload["stats"]["profit"] == "100.00"
        assert payload["stats"]["profit_per_trip"] == "10.00"
        assert payload["goal_bucket"] == "daily"
        assert payload["profit_progress"]["display_percent"] == 50
        assert payload["revenue_progress"] is None

    def test_goals_round_trip_and_overview(self, client):
        client.post("/entries", json=GAIN)
        saved = client.put("/goals", json={"monthly": {"revenue": "300"}}).get_json()
        assert saved == {"daily": {}, "weekly": {}, "monthly": {"revenue": "300.00"}}
        assert client.get("/goals").get_json() == saved

        items = client.get("/goals/overview").get_json()["items"]
        assert items == [
            {
                "bucket": "monthly",
                "metric": "revenue",
                "progress": {
                    "current": "150.00",
                    "target": "300.00",
                    "percent": "50.00",
                    "display_percent": 50,
                    "bar_width": "50.00",
                },
            }
        ]

    def test_unknown_goal_bucket(self, client):
        assert client.put("/goals", json={"yearly": {}}).status_code == 400

    def test_insights(self, client):
        client.post("/entries", json=GAIN)
        payload = client.get("/insights?period=all").get_json()
        assert payload["best_platform"] == {"value": "Uber", "metric": "15.00"}
        assert payload["most_efficient_fuel"] == {"value": None, "metric": None}


class TestBackupAndExports:
    def test_backup_round_trip(self, client):
        client.post("/entries", json=GAIN)
        backup = client.get("/backup").get_json()
        client.delete(f"/entries/{backup['entries'][0]['id']}")

        response = client.post("/backup", json=backup)
        assert response.status_code == 200
        assert len(client.get("/entries?period=all").get_json()["items"]) == 1

    def test_rejected_backup(self, client):
        client.post("/entries", json=GAIN)
        response = client.post("/backup", json={"entries": [], "shifts": {}, "goals": {}})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Backup rejected"
        assert len(client.get("/entries?period=all").get_json()["items"]) == 1

    def test_csv_export(self, client):
        client.post("/entries", json=GAIN)
        response = client.get("/export.csv?period=today")
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert response.headers["Content-Disposition"].startswith("attachment; filename=")
        assert response.get_data(as_text=True).startswith(BOM + "Date,Type")

    def test_empty_export(self, client):
        response = client.get("/export.csv?period=today")
        assert response.status_code == 400
        assert response.get_json()["error"] == "Nothing to export"

    def test_report(self, client):
        client.post("/entries", json=GAIN)
        response = client.get("/report?period=today")
        assert response.status_code == 200
        assert response.mimetype == "text/html"
        assert "Period: 15/05/2024 to 15/05/2024" in response.get_data(as_text=True)
