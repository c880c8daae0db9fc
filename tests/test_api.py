"""
Tests for the admin HTTP API.
"""
import pytest
from fastapi.testclient import TestClient

from core.database.operations import create_product, get_db
from core.scrapers.websites.static_scraper import StaticLookupClient
from core.updater import batch
from core.updater.batch import BatchRunner
from api.main import app, get_runner


@pytest.fixture
def runner(session_factory, ingester, update_logger, scheduler):
    return BatchRunner(
        session_factory=session_factory,
        lookup_client=StaticLookupClient(),
        ingester=ingester,
        update_logger=update_logger,
        scheduler=scheduler,
        sleep=lambda _seconds: None,
    )


@pytest.fixture
def client(runner, session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_runner] = lambda: runner
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRun:

    def test_manual_run_reports_processed(self, client, db):
        create_product(db, name="Mouse", sku="012345678905")
        create_product(db, name="Unknown", sku="111")

        response = client.post("/run")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Update Processed!"
        assert body["processed"] == 2
        assert body["updated"] == 1
        assert body["failed"] == 1
        assert body["next_run_at"] is not None

    def test_run_in_progress_conflict(self, client):
        with batch._run_lock:
            response = client.post("/run")
        assert response.status_code == 409
        assert response.json() == {"detail": "An update run is already in progress"}

    def test_error_responses_documented(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        conflict = paths["/run"]["post"]["responses"]["409"]
        schema = conflict["content"]["application/json"]["schema"]
        assert schema["$ref"].endswith("/ErrorResponse")
        assert "500" in paths["/candidates"]["get"]["responses"]


class TestSchedule:

    def test_install_show_and_cancel(self, client):
        installed = client.post("/schedule/install").json()
        assert installed["hook"] == "missing_info_update_event"
        assert installed["next_run_at"] is not None

        shown = client.get("/schedule").json()
        assert shown["next_run_at"] == installed["next_run_at"]

        assert client.delete("/schedule").json() == {"removed": 1}
        assert client.get("/schedule").json()["next_run_at"] is None


class TestCandidatesAndLog:

    def test_candidates(self, client, db):
        create_product(db, name="Mouse", sku="012345678905")
        create_product(db, name="Draft", sku="1", status="draft")

        response = client.get("/candidates")

        assert response.status_code == 200
        names = [p["name"] for p in response.json()]
        assert names == ["Mouse"]

    def test_log_after_run(self, client, db):
        create_product(db, name="Mouse", sku="012345678905")
        client.post("/run")

        body = client.get("/log").json()
        assert body["count"] == 1
        assert "Barcode: 012345678905, Success: Yes" in body["lines"][0]

    def test_root(self, client):
        assert client.get("/").json()["name"] == "Barcode Auto Updater"
