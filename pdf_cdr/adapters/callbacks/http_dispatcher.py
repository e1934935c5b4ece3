"""
HTTP callback dispatcher.

Delivers the single terminal outcome of a job to the caller-supplied
endpoint: the sanitized bytes to the success URL, or an `{id, error}` JSON
payload to the failure URL.
"""
import asyncio
import logging
from typing import Optional

import requests

from pdf_cdr.core.exceptions import CallbackDeliveryError
from pdf_cdr.core.models import CallbackOutcome, SanitizeJob, Success
from pdf_cdr.core.retry_utils import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


class CallbackDispatcher:
    """
    Posts job outcomes to callback URLs.

    Delivery is best-effort. A failed request is logged and reported to the
    caller as False; it never changes the job's terminal state.
    """

    def __init__(
        self,
        timeout: float = 30,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            timeout: Per-request timeout in seconds
            retry_config: Retry policy (default: a single attempt)
            session: Optional requests session (default: module-level requests)
        """
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig.for_callbacks()
        self._http = session or requests

    async def dispatch(self, job: SanitizeJob, outcome: CallbackOutcome) -> bool:
        """Deliver `outcome` for `job`.

        Returns:
            True if the endpoint accepted the callback
        """
        if isinstance(outcome, Success):
            kind, send = "success", self._post_success
        else:
            kind, send = "failure", self._post_failure

        try:
            if self.retry_config.max_retries > 0:
                await retry_with_backoff(send, job, outcome, **self.retry_config.as_kwargs())
            else:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, send, job, outcome)
        except CallbackDeliveryError as e:
            logger.error(f"Job {job.job_id}: {kind} callback not delivered: {e}")
            return False

        logger.info(f"Job {job.job_id}: {kind} callback delivered")
        return True

    def _post_success(self, job: SanitizeJob, outcome: Success) -> None:
        """Send the sanitized document bytes to the success URL."""
        self._post(
            job.success_url,
            params={"id": job.job_id},
            data=outcome.document,
            headers={"Content-Type": "application/octet-stream"},
        )

    def _post_failure(self, job: SanitizeJob, outcome) -> None:
        """Send the error payload to the failure URL."""
        self._post(job.failure_url, json=outcome.to_payload())

    def _post(self, url: str, **kwargs) -> None:
        try:
            response = self._http.post(url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise CallbackDeliveryError(f"POST {url} failed: {e}") from e
