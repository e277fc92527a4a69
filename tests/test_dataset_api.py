"""
tests/test_dataset_api.py

HTTP contract of the dataset router.  The database and orchestrator are
swapped for in-process doubles; pipeline passes run as FastAPI background
tasks, which the test client drains before returning.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.main import app as fastapi_app
from app.services.run_orchestrator import RunOrchestrator, get_run_orchestrator
from db.models.dataset_run import DatasetRun, DatasetRunStatus
from db.session import get_db
from tests.factories import SAMPLE_ROWS


@pytest.fixture()
def client(session_factory: sessionmaker, orchestrator: RunOrchestrator) -> Iterator[TestClient]:
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_run_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


def _create(client: TestClient, rows=SAMPLE_ROWS, **extra) -> dict:
    response = client.post("/datasets", json={"name": "Q3 publishers", "rows": rows, **extra})
    assert response.status_code == 202, response.text
    return response.json()


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestWriteEndpoints:
    def test_create_dataset_is_accepted_and_processed(self, client: TestClient) -> None:
        accepted = _create(client, version_label="2026-Q3")

        assert accepted["status"] == "pending"
        assert accepted["processing_step"] == "queued"

        detail = client.get(f"/datasets/{accepted['dataset_id']}").json()
        assert detail["status"] == "completed"
        assert detail["processing_progress"] == 100
        assert detail["version_label"] == "2026-Q3"
        assert detail["record_count"] == 3
        assert detail["current_version_id"] is not None
        assert detail["sections_ready"] == list(range(11))

    def test_unmappable_rows_return_422_with_codes(self, client: TestClient) -> None:
        response = client.post("/datasets", json={"name": "bad", "rows": [{"Revenue": "10"}]})

        assert response.status_code == 422
        codes = [error["code"] for error in response.json()["detail"]["errors"]]
        assert codes == ["identity_field_unmapped"]

    def test_invalid_explicit_mapping_returns_422(self, client: TestClient) -> None:
        response = client.post(
            "/datasets",
            json={
                "name": "bad",
                "rows": [{"Partner": "Alpha"}],
                "field_mapping": {"Partner": "partner_score"},
            },
        )

        assert response.status_code == 422
        codes = {error["code"] for error in response.json()["detail"]["errors"]}
        assert "invalid_mapping_field" in codes

    def test_upload_csv(self, client: TestClient) -> None:
        content = b"Publisher,Revenue,Approved\nAlpha,100,80\nBeta,0,0\nGamma,50,50\n"

        response = client.post(
            "/datasets/upload",
            files={"file": ("q3.csv", content, "text/csv")},
        )

        assert response.status_code == 202, response.text
        detail = client.get(f"/datasets/{response.json()['dataset_id']}").json()
        assert detail["name"] == "q3.csv"
        assert detail["status"] == "completed"

    def test_upload_rejects_non_csv(self, client: TestClient) -> None:
        response = client.post(
            "/datasets/upload",
            files={"file": ("q3.json", b"{}", "application/json")},
        )

        assert response.status_code == 400

    def test_recompute_existing_dataset(self, client: TestClient) -> None:
        accepted = _create(client)
        before = client.get(f"/datasets/{accepted['dataset_id']}").json()["current_version_id"]

        response = client.post(f"/datasets/{accepted['dataset_id']}/recompute")

        assert response.status_code == 202
        after = client.get(f"/datasets/{accepted['dataset_id']}").json()
        assert after["status"] == "completed"
        assert after["current_version_id"] != before

    def test_recompute_restarts_stalled_processing_run(
        self, client: TestClient, session_factory: sessionmaker
    ) -> None:
        accepted = _create(client)
        with session_factory() as db:
            db.get(DatasetRun, uuid.UUID(accepted["dataset_id"])).status = DatasetRunStatus.PROCESSING
            db.commit()

        response = client.post(f"/datasets/{accepted['dataset_id']}/recompute")

        assert response.status_code == 202
        assert client.get(f"/datasets/{accepted['dataset_id']}").json()["status"] == "completed"

    def test_recompute_unknown_dataset_is_404(self, client: TestClient) -> None:
        response = client.post(f"/datasets/{uuid.uuid4()}/recompute")

        assert response.status_code == 404

    def test_recompute_with_unmappable_rows_is_422(self, client: TestClient) -> None:
        accepted = _create(client)

        response = client.post(
            f"/datasets/{accepted['dataset_id']}/recompute",
            json={"rows": [{"Revenue": "1"}]},
        )

        assert response.status_code == 422


class TestReadEndpoints:
    def test_metrics_come_from_current_version(self, client: TestClient) -> None:
        accepted = _create(client)

        body = client.get(f"/datasets/{accepted['dataset_id']}/metrics").json()

        metrics = {metric["metric_key"]: metric["value_num"] for metric in body["metrics"]}
        assert body["version_id"] is not None
        assert metrics["total_gmv"] == pytest.approx(150.0)
        assert metrics["top10_share"] == pytest.approx(1.0)
        assert metrics["content_share"] == pytest.approx(100 / 150)

    def test_evidence_tables(self, client: TestClient) -> None:
        accepted = _create(client)

        body = client.get(f"/datasets/{accepted['dataset_id']}/evidence").json()
        table = client.get(f"/datasets/{accepted['dataset_id']}/evidence/topn_table").json()

        assert len(body["tables"]) == 10
        assert table["row_count"] == 2
        assert [row["name"] for row in table["data_json"]] == ["Alpha Media", "Gamma Deals"]
        assert table["data_json"][-1]["cumPct"] == "100.0%"

    def test_unknown_evidence_table_is_404(self, client: TestClient) -> None:
        accepted = _create(client)

        response = client.get(f"/datasets/{accepted['dataset_id']}/evidence/not_a_table")

        assert response.status_code == 404

    def test_sections(self, client: TestClient) -> None:
        accepted = _create(client)

        body = client.get(f"/datasets/{accepted['dataset_id']}/sections").json()

        assert [section["section_id"] for section in body["sections"]] == list(range(11))
        assert body["sections"][0]["title"] == "Executive Summary - KPI Cockpit"

    def test_failed_dataset_has_no_snapshot(self, client: TestClient) -> None:
        accepted = _create(client, rows=[{"name": "", "revenue": "5"}])

        detail = client.get(f"/datasets/{accepted['dataset_id']}").json()
        metrics = client.get(f"/datasets/{accepted['dataset_id']}/metrics").json()

        assert detail["status"] == "error"
        assert detail["error_message"].startswith("NoResolvableRecordsError: ")
        assert metrics["version_id"] is None
        assert metrics["metrics"] == []

    def test_list_datasets_with_status_filter(self, client: TestClient) -> None:
        _create(client)
        _create(client, rows=[{"name": "", "revenue": "5"}])

        everything = client.get("/datasets").json()["datasets"]
        errored = client.get("/datasets", params={"status": "error"}).json()["datasets"]

        assert len(everything) == 2
        assert [item["status"] for item in errored] == ["error"]

    def test_unknown_dataset_is_404(self, client: TestClient) -> None:
        assert client.get(f"/datasets/{uuid.uuid4()}").status_code == 404
