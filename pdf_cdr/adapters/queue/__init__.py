"""Durable job queue adapters."""
from pdf_cdr.adapters.queue.job_store import FileJobQueue
from pdf_cdr.adapters.queue.redis_adapter import RedisJobQueue

__all__ = ["FileJobQueue", "RedisJobQueue"]
