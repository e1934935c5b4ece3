"""Tests for the sanitization submission and status routes"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from pdf_cdr.adapters.queue import FileJobQueue
from pdf_cdr.api.sanitise_api import SanitiserAPI
from pdf_cdr.config import AppSettings
from pdf_cdr.core.exceptions import PersistenceError

PARAMS = {
    "id": "doc-1",
    "success_callback_url": "http://caller/ok",
    "failure_callback_url": "http://caller/err",
}
PDF_HEADERS = {"Content-Type": "application/pdf"}


def make_settings(tmp_path, **application) -> AppSettings:
    return AppSettings.model_validate({
        "application": {"max_upload_bytes": 1024, **application},
        "storage": {"base_dir": str(tmp_path / "docs")},
        "queue": {"jobs_dir": str(tmp_path / "jobs")},
        "renderer": {"timeout_seconds": 30},
        "pipeline": {"work_dir": str(tmp_path / "scratch")},
    })


class TestSanitiseRoutes:
    @pytest.fixture
    def api(self, tmp_path):
        return SanitiserAPI(make_settings(tmp_path), regenerator=MagicMock())

    @pytest.fixture
    def client(self, api):
        # No context manager: lifespan (and the worker pool) is not started
        return TestClient(api.app)

    def stored_files(self, tmp_path):
        return list((tmp_path / "docs").iterdir())

    def test_accepts_pdf(self, api, client, tmp_path):
        response = client.post("/sanitise/pdf", params=PARAMS, content=b"%PDF-1.7", headers=PDF_HEADERS)

        assert response.status_code == 200
        assert response.text == "PDF added to queue for processing"
        assert len(self.stored_files(tmp_path)) == 1

    def test_accepted_job_is_queued(self, api, client, tmp_path):
        client.post("/sanitise/pdf", params=PARAMS, content=b"%PDF-1.7", headers=PDF_HEADERS)

        assert "doc-1" in api.queue
        [stored] = self.stored_files(tmp_path)
        assert stored.read_bytes() == b"%PDF-1.7"
        assert client.get("/sanitise/jobs/doc-1").json()["status"] == "queued"

    def test_content_type_with_parameters_accepted(self, client):
        response = client.post(
            "/sanitise/pdf", params=PARAMS, content=b"%PDF",
            headers={"Content-Type": "application/pdf; charset=binary"},
        )
        assert response.status_code == 200

    def test_wrong_content_type(self, client, tmp_path):
        response = client.post(
            "/sanitise/pdf", params=PARAMS, content=b"%PDF", headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 415
        assert self.stored_files(tmp_path) == []

    def test_empty_body_is_queued(self, api, client, tmp_path):
        # An empty stream is not a PDF; the job fails in the renderer and reports via callback
        response = client.post("/sanitise/pdf", params=PARAMS, content=b"", headers=PDF_HEADERS)

        assert response.status_code == 200
        assert "doc-1" in api.queue
        [stored] = self.stored_files(tmp_path)
        assert stored.read_bytes() == b""

    def test_oversized_body(self, client, tmp_path):
        response = client.post("/sanitise/pdf", params=PARAMS, content=b"x" * 2048, headers=PDF_HEADERS)
        assert response.status_code == 413
        assert self.stored_files(tmp_path) == []

    @pytest.mark.parametrize("missing", ["id", "success_callback_url", "failure_callback_url"])
    def test_missing_query_parameter(self, client, missing):
        params = {k: v for k, v in PARAMS.items() if k != missing}
        response = client.post("/sanitise/pdf", params=params, content=b"%PDF", headers=PDF_HEADERS)
        assert response.status_code == 400
        assert missing in response.json()["message"]

    def test_unsafe_id_rejected(self, client):
        params = dict(PARAMS, id="../../etc")
        response = client.post("/sanitise/pdf", params=params, content=b"%PDF", headers=PDF_HEADERS)
        assert response.status_code == 400

    def test_duplicate_id(self, client, tmp_path):
        client.post("/sanitise/pdf", params=PARAMS, content=b"%PDF", headers=PDF_HEADERS)
        response = client.post("/sanitise/pdf", params=PARAMS, content=b"%PDF", headers=PDF_HEADERS)

        assert response.status_code == 409
        assert len(self.stored_files(tmp_path)) == 1

    def test_queue_failure_removes_stored_upload(self, tmp_path):
        queue = FileJobQueue(str(tmp_path / "jobs"))
        queue.enqueue = AsyncMock(side_effect=PersistenceError("disk full"))
        api = SanitiserAPI(make_settings(tmp_path), queue=queue, regenerator=MagicMock())
        client = TestClient(api.app)

        response = client.post("/sanitise/pdf", params=PARAMS, content=b"%PDF", headers=PDF_HEADERS)

        assert response.status_code == 500
        assert self.stored_files(tmp_path) == []

    def test_error_body_shape(self, client):
        response = client.post(
            "/sanitise/pdf", params=PARAMS, content=b"%PDF", headers={"Content-Type": "text/plain"}
        )
        data = response.json()
        assert data["error"] == "HTTP_415"
        assert data["message"] == "Body must be application/pdf"
        assert "timestamp" in data

    def test_rate_limited(self, tmp_path):
        api = SanitiserAPI(make_settings(tmp_path, submit_rate_limit="2/minute"), regenerator=MagicMock())
        client = TestClient(api.app)

        statuses = [
            client.post(
                "/sanitise/pdf", params=dict(PARAMS, id=f"doc-{n}"), content=b"%PDF", headers=PDF_HEADERS
            ).status_code
            for n in range(3)
        ]
        assert statuses == [200, 200, 429]


class TestJobStatusRoute:
    @pytest.fixture
    def client(self, tmp_path):
        return TestClient(SanitiserAPI(make_settings(tmp_path), regenerator=MagicMock()).app)

    def test_queued_job_status(self, client):
        client.post("/sanitise/pdf", params=PARAMS, content=b"%PDF", headers=PDF_HEADERS)

        response = client.get("/sanitise/jobs/doc-1")

        assert response.status_code == 200
        data = response.json()
        assert data["job_id"] == "doc-1"
        assert data["status"] == "queued"
        assert data["attempts"] == 0
        assert data["error"] is None

    def test_unknown_job(self, client):
        assert client.get("/sanitise/jobs/nope").status_code == 404
