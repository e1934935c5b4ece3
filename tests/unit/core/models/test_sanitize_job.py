"""Tests for the SanitizeJob lifecycle."""
import pytest

from pdf_cdr.core.exceptions import InvalidTransitionError
from pdf_cdr.core.models import Failure, JobStatus, SanitizeJob, Success


def make_job(**overrides) -> SanitizeJob:
    fields = {
        "job_id": "doc-1",
        "input_handle": "a" * 32,
        "success_url": "http://caller/ok",
        "failure_url": "http://caller/err",
    }
    fields.update(overrides)
    return SanitizeJob(**fields)


class TestJobStatus:
    def test_terminal_states(self):
        assert JobStatus.SUCCEEDED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert not JobStatus.QUEUED.is_terminal
        assert not JobStatus.RUNNING.is_terminal


class TestTransitions:
    def test_new_job_is_queued(self):
        job = make_job()
        assert job.status is JobStatus.QUEUED
        assert job.attempts == 0

    def test_start_claims_and_counts_attempt(self):
        job = make_job().start("worker-a")
        assert job.status is JobStatus.RUNNING
        assert job.attempts == 1
        assert job.claimed_by == "worker-a"

    def test_running_to_terminal(self):
        running = make_job().start("w")
        assert running.transition(JobStatus.SUCCEEDED).status is JobStatus.SUCCEEDED
        assert running.transition(JobStatus.FAILED, error="boom").error == "boom"

    def test_transition_returns_copy(self):
        job = make_job()
        running = job.start("w")
        assert job.status is JobStatus.QUEUED
        assert running is not job

    @pytest.mark.parametrize("terminal", [JobStatus.SUCCEEDED, JobStatus.FAILED])
    def test_terminal_states_never_move(self, terminal):
        done = make_job().start("w").transition(terminal)
        for target in JobStatus:
            with pytest.raises(InvalidTransitionError):
                done.transition(target)

    def test_queued_cannot_skip_running(self):
        with pytest.raises(InvalidTransitionError):
            make_job().transition(JobStatus.SUCCEEDED)

    def test_running_cannot_go_back_to_queued(self):
        with pytest.raises(InvalidTransitionError):
            make_job().start("w").transition(JobStatus.QUEUED)

    def test_restart_keeps_running_and_counts_attempt(self):
        job = make_job().start("w").restart()
        assert job.status is JobStatus.RUNNING
        assert job.attempts == 2

    def test_restart_requires_running(self):
        with pytest.raises(InvalidTransitionError):
            make_job().restart()


class TestSerialization:
    def test_dict_round_trip_preserves_fields(self):
        job = make_job().start("w").transition(JobStatus.FAILED, error="bad page")
        restored = SanitizeJob.from_dict(job.to_dict())
        assert restored == job

    def test_timestamps_are_timezone_aware(self):
        job = make_job()
        assert job.created_at.tzinfo is not None


class TestOutcomes:
    def test_success_maps_to_succeeded(self):
        outcome = Success(job_id="doc-1", document=b"%PDF", output_handle="b" * 32)
        assert outcome.status is JobStatus.SUCCEEDED

    def test_failure_payload(self):
        outcome = Failure(job_id="doc-1", error="The input PDF has no pages.")
        assert outcome.status is JobStatus.FAILED
        assert outcome.to_payload() == {"id": "doc-1", "error": "The input PDF has no pages."}
