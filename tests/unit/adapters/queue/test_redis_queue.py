"""Tests for RedisJobQueue implementing JobQueuePort."""
import json

import pytest
import redis
from unittest.mock import MagicMock

from pdf_cdr.adapters.queue import RedisJobQueue
from pdf_cdr.core.exceptions import DuplicateJobError, PersistenceError
from pdf_cdr.core.models import Failure, JobStatus, SanitizeJob
from pdf_cdr.core.ports.queue import JobQueuePort

HANDLE = "c" * 32


def job_record(status=JobStatus.RUNNING, job_id="doc-1") -> bytes:
    job = SanitizeJob(job_id, HANDLE, "http://caller/ok", "http://caller/err")
    if status is not JobStatus.QUEUED:
        job = job.start("node-a")
    if status.is_terminal:
        job = job.transition(status)
    return json.dumps(job.to_dict()).encode()


def mock_client():
    client = MagicMock()
    pipe = MagicMock()
    client.pipeline.return_value.__enter__.return_value = pipe
    return client, pipe


class TestRedisJobQueue:
    def test_implements_queue_port(self):
        assert isinstance(RedisJobQueue(MagicMock(), instance_id="node-a"), JobQueuePort)

    @pytest.mark.asyncio
    async def test_enqueue_writes_record_and_queues_id(self):
        client, pipe = mock_client()
        pipe.exists.return_value = 0
        queue = RedisJobQueue(client, instance_id="node-a")

        job = await queue.enqueue("doc-1", HANDLE, "http://ok", "http://err")

        assert job.status is JobStatus.QUEUED
        pipe.watch.assert_called_once_with("cdr:job:doc-1")
        pipe.multi.assert_called_once()
        pipe.lpush.assert_called_once_with("cdr:queued", "doc-1")
        pipe.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_enqueue_duplicate(self):
        client, pipe = mock_client()
        pipe.exists.return_value = 1
        queue = RedisJobQueue(client, instance_id="node-a")

        with pytest.raises(DuplicateJobError):
            await queue.enqueue("doc-1", HANDLE, "http://ok", "http://err")
        pipe.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_enqueue_race_is_duplicate(self):
        client, pipe = mock_client()
        pipe.exists.return_value = 0
        pipe.execute.side_effect = redis.WatchError()
        queue = RedisJobQueue(client, instance_id="node-a")

        with pytest.raises(DuplicateJobError):
            await queue.enqueue("doc-1", HANDLE, "http://ok", "http://err")

    @pytest.mark.asyncio
    async def test_connection_failure_is_persistence_error(self):
        client, pipe = mock_client()
        pipe.watch.side_effect = redis.ConnectionError("refused")
        queue = RedisJobQueue(client, instance_id="node-a")

        with pytest.raises(PersistenceError):
            await queue.enqueue("doc-1", HANDLE, "http://ok", "http://err")

    @pytest.mark.asyncio
    async def test_claim_moves_id_to_running_list(self):
        client = MagicMock()
        client.lmove.return_value = b"doc-1"
        client.get.return_value = job_record(JobStatus.QUEUED)
        queue = RedisJobQueue(client, instance_id="node-a")

        job = await queue.claim()

        client.lmove.assert_called_once_with("cdr:queued", "cdr:running:node-a", "RIGHT", "LEFT")
        assert job.status is JobStatus.RUNNING
        assert job.claimed_by == "node-a"
        saved = json.loads(client.set.call_args[0][1])
        assert saved["status"] == "running"

    @pytest.mark.asyncio
    async def test_claim_empty(self):
        client = MagicMock()
        client.lmove.return_value = None
        assert await RedisJobQueue(client, instance_id="node-a").claim() is None

    @pytest.mark.asyncio
    async def test_claim_failure_is_persistence_error(self):
        client = MagicMock()
        client.lmove.side_effect = redis.ConnectionError("refused")
        with pytest.raises(PersistenceError):
            await RedisJobQueue(client, instance_id="node-a").claim()

    @pytest.mark.asyncio
    async def test_complete_transitions_and_clears_running(self):
        client, pipe = mock_client()
        pipe.get.return_value = job_record(JobStatus.RUNNING)
        queue = RedisJobQueue(client, instance_id="node-a")

        assert await queue.complete("doc-1", Failure(job_id="doc-1", error="boom")) is True

        saved = json.loads(pipe.set.call_args[0][1])
        assert saved["status"] == "failed"
        assert saved["error"] == "boom"
        pipe.lrem.assert_called_once_with("cdr:running:node-a", 0, "doc-1")

    @pytest.mark.asyncio
    async def test_duplicate_completion_is_noop(self):
        client, pipe = mock_client()
        pipe.get.return_value = job_record(JobStatus.FAILED)
        queue = RedisJobQueue(client, instance_id="node-a")

        assert await queue.complete("doc-1", Failure(job_id="doc-1", error="boom")) is False
        pipe.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_recover_reads_own_running_list(self):
        client = MagicMock()
        client.lrange.return_value = [b"doc-1"]
        client.get.return_value = job_record(JobStatus.RUNNING)
        queue = RedisJobQueue(client, instance_id="node-a")

        recovered = await queue.recover()

        client.lrange.assert_called_once_with("cdr:running:node-a", 0, -1)
        assert [job.job_id for job in recovered] == ["doc-1"]

    @pytest.mark.asyncio
    async def test_recover_drops_finished_ids(self):
        client = MagicMock()
        client.lrange.return_value = [b"doc-1"]
        client.get.return_value = job_record(JobStatus.SUCCEEDED)
        queue = RedisJobQueue(client, instance_id="node-a")

        assert await queue.recover() == []
        client.lrem.assert_called_once_with("cdr:running:node-a", 0, "doc-1")

    @pytest.mark.asyncio
    async def test_get_missing(self):
        client = MagicMock()
        client.get.return_value = None
        assert await RedisJobQueue(client, instance_id="node-a").get("nope") is None

    @pytest.mark.asyncio
    async def test_list_jobs_filters_by_status(self):
        client = MagicMock()
        client.scan_iter.return_value = [b"cdr:job:a", b"cdr:job:b"]
        client.mget.return_value = [
            job_record(JobStatus.RUNNING, "a"),
            job_record(JobStatus.FAILED, "b"),
        ]
        queue = RedisJobQueue(client, instance_id="node-a")

        failed = await queue.list_jobs(JobStatus.FAILED)
        assert [job.job_id for job in failed] == ["b"]
