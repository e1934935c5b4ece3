"""Submit a PDF over HTTP and receive the sanitized result via callback.

Runs the real worker pool, isolated renderer and file-backed queue; only the
outbound HTTP session is mocked.
"""
import time

import fitz
import pytest
import requests
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from pdf_cdr.adapters.callbacks import CallbackDispatcher
from pdf_cdr.api.sanitise_api import SanitiserAPI
from pdf_cdr.config import AppSettings

PDF_HEADERS = {"Content-Type": "application/pdf"}


def make_settings(tmp_path) -> AppSettings:
    return AppSettings.model_validate({
        "storage": {"base_dir": str(tmp_path / "docs")},
        "queue": {"jobs_dir": str(tmp_path / "jobs"), "poll_interval_seconds": 0.05},
        "workers": {"concurrency": 2},
        "renderer": {"timeout_seconds": 60, "dpi": 36},
        "pipeline": {"work_dir": str(tmp_path / "scratch")},
    })


def pdf_bytes(page_count):
    doc = fitz.open()
    for i in range(page_count):
        doc.new_page(width=300, height=300).insert_text((20, 40), f"page {i}")
    data = doc.tobytes()
    doc.close()
    return data


def submit(client, job_id, body):
    return client.post(
        "/sanitise/pdf",
        params={
            "id": job_id,
            "success_callback_url": "http://caller/ok",
            "failure_callback_url": "http://caller/err",
        },
        content=body,
        headers=PDF_HEADERS,
    )


def wait_for_terminal(client, job_id, timeout=90):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = client.get(f"/sanitise/jobs/{job_id}").json()["status"]
        if status in ("succeeded", "failed"):
            return status
        time.sleep(0.1)
    raise AssertionError(f"Job {job_id} did not finish")


def wait_until(predicate, timeout=30):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        time.sleep(0.05)


class TestServiceEndToEnd:
    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.post.return_value.raise_for_status.return_value = None
        return session

    @pytest.fixture
    def api(self, tmp_path, session):
        return SanitiserAPI(make_settings(tmp_path), dispatcher=CallbackDispatcher(session=session))

    def test_success_and_failure_callbacks(self, api, session, tmp_path):
        with TestClient(api.app) as client:
            assert submit(client, "good", pdf_bytes(3)).status_code == 200
            assert submit(client, "bad", b"%PDF-1.4 truncated nonsense").status_code == 200

            assert wait_for_terminal(client, "good") == "succeeded"
            assert wait_for_terminal(client, "bad") == "failed"
            wait_until(lambda: session.post.call_count == 2)
            wait_until(lambda: len(list((tmp_path / "docs").iterdir())) == 1)

        calls = {call.args[0]: call.kwargs for call in session.post.call_args_list}
        assert len(session.post.call_args_list) == 2

        success = calls["http://caller/ok"]
        assert success["params"] == {"id": "good"}
        with fitz.open(stream=success["data"], filetype="pdf") as doc:
            assert doc.page_count == 3
            assert doc[0].get_text().strip() == ""

        failure = calls["http://caller/err"]
        assert failure["json"]["id"] == "bad"
        assert failure["json"]["error"]

        # Only the stored sanitized output remains
        remaining = list((tmp_path / "docs").iterdir())
        assert len(remaining) == 1
        assert list((tmp_path / "scratch").iterdir()) == []

    def test_callback_failure_does_not_change_job_state(self, api, session):
        session.post.side_effect = requests.ConnectionError("caller down")

        with TestClient(api.app) as client:
            submit(client, "doc-1", pdf_bytes(1))
            assert wait_for_terminal(client, "doc-1") == "succeeded"
            wait_until(lambda: session.post.call_count == 1)
            time.sleep(0.3)
            assert client.get("/sanitise/jobs/doc-1").json()["status"] == "succeeded"

        assert session.post.call_count == 1

    def test_empty_upload_fails_with_callback(self, api, session, tmp_path):
        with TestClient(api.app) as client:
            assert submit(client, "empty", b"").status_code == 200

            assert wait_for_terminal(client, "empty") == "failed"
            wait_until(lambda: session.post.call_count == 1)
            wait_until(lambda: list((tmp_path / "docs").iterdir()) == [])

        [call] = session.post.call_args_list
        assert call.args[0] == "http://caller/err"
        assert call.kwargs["json"]["id"] == "empty"
        assert call.kwargs["json"]["error"]
