"""Background-work submission for downstream recomputation.

The sync engine only submits work; running it belongs to the worker
processes. Submission is fire-and-forget: callers log enqueue failures and
move on.
"""

import logging
from typing import Any, Optional, Protocol

from redis import Redis
from rq import Queue
from rq.job import Job

from config import settings

logger = logging.getLogger(__name__)

# Work kinds submitted by the syncer
SYNC_ACCOUNT = "sync_account"


class WorkQueue(Protocol):
    """Fire-and-forget work submission."""

    def enqueue(self, kind: str, payload: dict[str, Any]) -> Optional[str]:
        """Submit work of ``kind``; returns a job id when the backend has one."""
        ...


class RQWorkQueue:
    """WorkQueue backed by rq/redis.

    A job of kind ``k`` runs the function ``<BACKGROUND_TASK_MODULE>.<k>``
    in the worker, called with the payload as keyword arguments. The
    function is referenced by dotted path so this process never imports
    worker code.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        queue_name: Optional[str] = None,
        job_timeout: Optional[int] = None,
        task_module: Optional[str] = None,
    ):
        self._redis_url = redis_url or settings.REDIS_URL
        self._queue_name = queue_name or settings.BACKGROUND_QUEUE_NAME
        self._job_timeout = job_timeout or settings.BACKGROUND_JOB_TIMEOUT
        self._task_module = task_module or settings.BACKGROUND_TASK_MODULE
        self._queue: Optional[Queue] = None

    @property
    def queue(self) -> Queue:
        """Lazily connect so constructing the queue never touches redis."""
        if self._queue is None:
            self._queue = Queue(
                self._queue_name,
                connection=Redis.from_url(self._redis_url),
                default_timeout=self._job_timeout,
            )
        return self._queue

    def enqueue(self, kind: str, payload: dict[str, Any]) -> Optional[str]:
        job: Job = self.queue.enqueue(
            f"{self._task_module}.{kind}",
            kwargs=payload,
            job_timeout=self._job_timeout,
        )
        logger.info("Enqueued %s job %s", kind, job.id)
        return job.id
