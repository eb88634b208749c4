"""
API endpoint tests.

Uses FastAPI TestClient (backed by httpx) against an app wired to an
in-memory store seeded from sample_records.py.  Each test group covers one
endpoint: happy path, filters, invalid parameters, and store failures.
"""

import pytest

# FastAPI TestClient requires fastapi + httpx; skip the entire module if not installed
pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient  # noqa: E402

from utils.config import KnownValues  # noqa: E402

FARMERS = KnownValues.FARMERS_COLLECTION


@pytest.fixture()
def client(repository):
    """TestClient over a fresh seeded repository."""
    from api.app import create_app
    app = create_app(repository=repository)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def flaky_client(flaky_repository):
    """TestClient whose store can be told to fail reads or writes."""
    from api.app import create_app
    app = create_app(repository=flaky_repository)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def _ids(resp):
    return [item["id"] for item in resp.json()["items"]]


# ── /health ───────────────────────────────────────────────────────────────────

class TestHealth:
    def test_health_ok_without_fetching(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["data_source"] == "MemoryDataSource"
        assert body["collections"][FARMERS] == {"loaded": False, "records": 0, "generation": 0}

    def test_health_reports_loaded_collections(self, client):
        client.get("/api/v1/records/farmers")
        body = client.get("/health").json()
        assert body["collections"][FARMERS]["loaded"] is True
        assert body["collections"][FARMERS]["records"] == 4

    def test_request_id_header(self, client):
        assert len(client.get("/health").headers["X-Request-ID"]) == 8


# ── /api/v1/records/{entity} ──────────────────────────────────────────────────

class TestListRecords:
    def test_all_farmers(self, client):
        resp = client.get("/api/v1/records/farmers")
        assert resp.status_code == 200
        body = resp.json()
        assert body["entity"] == "farmers"
        assert _ids(resp) == ["f1", "f2", "f3", "f4"]
        assert body["stats"]["total_farmers"] == 4
        assert body["stats"]["trained_farmers"] == 2
        assert body["stats"]["total_animals"] == 26
        assert body["pagination"] == {
            "page": 1, "limit": 15, "total": 4, "total_pages": 1,
            "has_next": False, "has_prev": False,
        }
        assert body["generation"] > 0

    def test_items_are_canonical(self, client):
        first = client.get("/api/v1/records/farmers").json()["items"][0]
        assert first["name"] == "Jane Doe"
        assert first["goats_male"] == 3
        assert first["total_animals"] == 8
        assert first["trained"] is True
        assert first["training_modules"] == "Goat Husbandry"
        assert first["submitted_at"] == "2024-03-05T00:00:00"

    def test_pagination(self, client):
        resp = client.get("/api/v1/records/farmers", params={"page": 2, "limit": 2})
        assert _ids(resp) == ["f3", "f4"]
        pagination = resp.json()["pagination"]
        assert pagination["total_pages"] == 2
        assert pagination["has_prev"] and not pagination["has_next"]

    def test_page_past_the_end(self, client):
        resp = client.get("/api/v1/records/farmers", params={"page": 5, "limit": 2})
        assert resp.status_code == 200
        assert resp.json()["items"] == []
        assert resp.json()["pagination"]["total"] == 4

    def test_stats_cover_all_pages(self, client):
        resp = client.get("/api/v1/records/farmers", params={"limit": 1})
        assert len(resp.json()["items"]) == 1
        assert resp.json()["filters"]["active"] is False
        assert resp.json()["stats"]["total_farmers"] == 4

    def test_gender_filter(self, client):
        resp = client.get("/api/v1/records/farmers", params={"gender": "female"})
        assert _ids(resp) == ["f1", "f3"]
        assert resp.json()["filters"]["categories"] == {"gender": "female"}
        assert resp.json()["filters"]["active"] is True

    def test_region_and_date_range(self, client):
        resp = client.get("/api/v1/records/farmers", params={
            "region": "North", "start_date": "2024-03-01", "end_date": "2024-03-31",
        })
        assert _ids(resp) == ["f1", "f3"]
        assert resp.json()["stats"]["regions"] == 1

    def test_search(self, client):
        resp = client.get("/api/v1/records/farmers", params={"q": "otieno"})
        assert _ids(resp) == ["f4"]

    def test_no_match(self, client):
        resp = client.get("/api/v1/records/farmers", params={"q": "zzz"})
        body = resp.json()
        assert body["items"] == []
        assert body["stats"]["total_farmers"] == 0
        assert body["pagination"]["total_pages"] == 1

    def test_infrastructure_type_filter(self, client):
        resp = client.get("/api/v1/records/infrastructure", params={"type": "Silo"})
        assert _ids(resp) == ["i2"]
        assert resp.json()["items"][0]["utilization_display"] == "0%"

    def test_borehole_location_filter(self, client):
        resp = client.get("/api/v1/records/boreholes", params={"location": "No location"})
        assert _ids(resp) == ["b2"]

    def test_livestock_offtake_gender_filter(self, client):
        resp = client.get("/api/v1/records/livestock-offtake", params={"gender": "male"})
        assert _ids(resp) == ["lo2"]
        assert resp.json()["stats"]["total_animals"] == 1
        assert resp.json()["items"][0]["live_weights"] == [28.0]

    def test_fodder_offtake_search(self, client):
        resp = client.get("/api/v1/records/fodder-offtake", params={"q": "kariuki"})
        assert _ids(resp) == ["fo2"]
        assert resp.json()["stats"]["total_bales"] == 25

    def test_animal_health_region_is_county(self, client):
        resp = client.get("/api/v1/records/animal-health", params={"region": "East"})
        assert _ids(resp) == ["ah2"]
        assert resp.json()["items"][0]["total_doses"] == 50

    def test_animal_health_search_matches_vaccine(self, client):
        resp = client.get("/api/v1/records/animal-health", params={"q": "ccpp"})
        assert _ids(resp) == ["ah1"]

    @pytest.mark.parametrize("params", [
        {"page": 0}, {"limit": 0}, {"limit": 501}, {"start_date": "03/01/2024"},
    ])
    def test_invalid_params(self, client, params):
        assert client.get("/api/v1/records/farmers", params=params).status_code == 422

    def test_unknown_entity(self, client):
        assert client.get("/api/v1/records/cattle").status_code == 404

    def test_fetch_failure_is_503(self, flaky_client, flaky_source):
        flaky_source.fail_fetch = True
        resp = flaky_client.get("/api/v1/records/farmers")
        assert resp.status_code == 503
        assert resp.json()["error"] == "Data source unavailable"


class TestGetRecord:
    def test_found(self, client):
        resp = client.get("/api/v1/records/farmers/f2")
        assert resp.status_code == 200
        assert resp.json()["name"] == "John Smith"
        assert resp.json()["trained"] is True

    def test_missing(self, client):
        assert client.get("/api/v1/records/farmers/nope").status_code == 404


# ── Mutations ─────────────────────────────────────────────────────────────────

class TestMutations:
    def test_update(self, client):
        before = client.get("/api/v1/records/farmers").json()["generation"]
        resp = client.patch("/api/v1/records/farmers/f1", json={"changes": {"name": "Janet"}})
        assert resp.status_code == 200
        body = resp.json()
        assert body["affected"] == 1
        assert body["records"] == 4
        assert body["generation"] > before
        assert client.get("/api/v1/records/farmers/f1").json()["name"] == "Janet"

    def test_update_unknown_id_is_404(self, client):
        resp = client.patch("/api/v1/records/farmers/no-such-id",
                            json={"changes": {"name": "Ghost"}})
        assert resp.status_code == 404
        listed = client.get("/api/v1/records/farmers").json()
        assert listed["pagination"]["total"] == 4
        assert client.get("/api/v1/records/farmers/no-such-id").status_code == 404

    def test_update_requires_changes(self, client):
        resp = client.patch("/api/v1/records/farmers/f1", json={"changes": {}})
        assert resp.status_code == 422

    def test_delete_training_changes_trained_count(self, client):
        resp = client.post("/api/v1/records/training/delete", json={"ids": ["t1"]})
        assert resp.status_code == 200
        assert resp.json()["affected"] == 1
        assert resp.json()["records"] == 1
        stats = client.get("/api/v1/records/farmers").json()["stats"]
        assert stats["trained_farmers"] == 1

    def test_delete_requires_ids(self, client):
        assert client.post("/api/v1/records/farmers/delete", json={"ids": []}).status_code == 422

    def test_refresh_bumps_generation(self, client):
        first = client.post("/api/v1/records/farmers/refresh").json()["generation"]
        second = client.post("/api/v1/records/farmers/refresh").json()["generation"]
        assert second > first

    def test_rejected_write_is_503(self, flaky_client, flaky_source):
        flaky_source.fail_batch = True
        resp = flaky_client.patch("/api/v1/records/farmers/f1", json={"changes": {"name": "x"}})
        assert resp.status_code == 503
        assert resp.json()["error"] == "Write rejected"
        flaky_source.fail_batch = False
        assert flaky_client.get("/api/v1/records/farmers/f1").json()["name"] == "Jane Doe"


# ── /api/v1/reference ─────────────────────────────────────────────────────────

class TestReference:
    def test_entities(self, client):
        resp = client.get("/api/v1/reference/entities")
        assert resp.status_code == 200
        assert [e["name"] for e in resp.json()] == [
            "farmers", "training", "infrastructure", "boreholes", "fodder",
            "livestock-offtake", "fodder-offtake", "animal-health",
        ]
        assert resp.headers["Cache-Control"] == "max-age=300"

    def test_date_ranges(self, client):
        resp = client.get("/api/v1/reference/date-ranges", params={"today": "2024-03-06"})
        assert resp.json() == {
            "week": {"start_date": "2024-03-03", "end_date": "2024-03-09"},
            "month": {"start_date": "2024-03-01", "end_date": "2024-03-31"},
        }

    def test_options_narrowed_by_region(self, client):
        resp = client.get("/api/v1/reference/farmers/options", params={"region": "North"})
        body = resp.json()
        assert body["region"] == "North"
        assert body["options"]["location"] == ["Kiambu", "Nyeri"]
        assert body["options"]["region"] == ["East", "North", "South"]

    def test_options_follow_new_snapshot(self, client):
        url = "/api/v1/reference/infrastructure/options"
        assert client.get(url).json()["options"]["type"] == ["Hay Store", "Silo"]
        client.patch("/api/v1/records/infrastructure/i1", json={"changes": {"type": "Barn"}})
        assert client.get(url).json()["options"]["type"] == ["Barn", "Silo"]

    def test_options_unknown_entity(self, client):
        assert client.get("/api/v1/reference/cattle/options").status_code == 404


# ── /api/v1/dashboard/summary ─────────────────────────────────────────────────

class TestDashboardSummary:
    def test_summary(self, client):
        resp = client.get("/api/v1/dashboard/summary")
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_farmers"] == 4
        assert body["training_rate"] == 50.0
        assert body["top_region"] == {"name": "North", "farmers": 2}
        assert body["vaccination"]["comment"] == "EVARGE action needed"

    def test_summary_range(self, client):
        resp = client.get("/api/v1/dashboard/summary", params={
            "start_date": "2024-04-01", "end_date": "2024-04-30",
        })
        body = resp.json()
        assert body["total_farmers"] == 1
        assert body["trained_farmers"] == 1

    def test_summary_invalidated_by_delete(self, client):
        assert client.get("/api/v1/dashboard/summary").json()["total_farmers"] == 4
        client.post("/api/v1/records/farmers/delete", json={"ids": ["f4"]})
        assert client.get("/api/v1/dashboard/summary").json()["total_farmers"] == 3

    def test_bad_date(self, client):
        resp = client.get("/api/v1/dashboard/summary", params={"start_date": "March"})
        assert resp.status_code == 422


# ── /api/v1/upload/{entity} ───────────────────────────────────────────────────

UPLOAD_HEADER = "name,gender,phone,location,region,modules,date\n"


class TestUpload:
    def test_valid_csv(self, client):
        content = UPLOAD_HEADER + "Ann,Female,0712000000,Embu,East,Goat Husbandry,2024-05-01\n"
        resp = client.post("/api/v1/upload/training",
                           files={"file": ("training.csv", content.encode(), "text/csv")})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["success_count"] == 1
        assert body["report"] == ""
        listed = client.get("/api/v1/records/training").json()
        assert listed["pagination"]["total"] == 3

    def test_invalid_rows_reported(self, client):
        content = UPLOAD_HEADER + ",Female,12ab,Embu,East,Goat Husbandry,2024-05-01\n"
        resp = client.post("/api/v1/upload/training",
                           files={"file": ("training.csv", content.encode(), "text/csv")})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is False
        assert {e["field"] for e in body["validation_errors"]} == {"Name", "Phone"}
        assert body["report"].startswith("Validation Errors:")
        assert client.get("/api/v1/records/training").json()["pagination"]["total"] == 2

    def test_unsupported_format(self, client):
        resp = client.post("/api/v1/upload/training",
                           files={"file": ("training.txt", b"x", "text/plain")})
        assert resp.json()["success"] is False

    def test_handler_is_sync(self):
        # Sync handlers run in the threadpool, off the event loop.
        import inspect
        from api.routes.upload import upload_records
        assert not inspect.iscoroutinefunction(upload_records)

    def test_missing_file(self, client):
        assert client.post("/api/v1/upload/training").status_code == 422

    def test_unknown_entity(self, client):
        resp = client.post("/api/v1/upload/cattle",
                           files={"file": ("x.csv", b"a\n1", "text/csv")})
        assert resp.status_code == 404
