"""Bounded-concurrency execution of per-object transfer jobs."""

import enum
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from swiftfs.common.logger import get_logger, log_with_context

logger = get_logger(__name__)


class JobKind(enum.Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    DELETE = "delete"


@dataclass(frozen=True)
class TransferJob:
    kind: JobKind
    source: str
    destination: str = ""


@dataclass(frozen=True)
class BatchResult:
    total: int
    dispatched: int
    succeeded: int
    failed: int

    @property
    def not_dispatched(self) -> int:
        return self.total - self.dispatched


class CancellationToken:
    """Batch-wide flag checked before any new job starts."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class TransferBatch:
    """Runs jobs through at most `slots` concurrent workers, failing fast.

    The first failing job cancels the batch: no further job is dispatched,
    jobs already running finish, and run() raises that first error once
    they have all drained. Errors from other jobs running at the same time
    are counted and logged but not raised.
    """

    def __init__(
        self,
        handler: Callable[[TransferJob], None],
        slots: int,
        name: str = "batch",
        token: Optional[CancellationToken] = None,
    ):
        if slots < 1:
            raise ValueError(f"slots must be at least 1, got {slots}")
        self.handler = handler
        self.slots = slots
        self.name = name
        self.batch_id = f"{name}-{uuid.uuid4().hex[:8]}"
        self._own_token = token is None
        self.token = token or CancellationToken()

        self._lock = threading.Lock()
        self._semaphore = threading.BoundedSemaphore(slots)
        self._reset()

    def _reset(self) -> None:
        self._dispatched = 0
        self._succeeded = 0
        self._failed = 0
        self._first_error: Optional[BaseException] = None

    def _execute(self, job: TransferJob) -> None:
        try:
            if self.token.cancelled:
                # Cancelled between dispatch and start: never ran.
                with self._lock:
                    self._dispatched -= 1
                return
            self.handler(job)
        except Exception as e:
            with self._lock:
                self._failed += 1
                if self._first_error is None:
                    self._first_error = e
            # Cancel before the slot is released so the dispatcher sees it.
            self.token.cancel()
            log_with_context(
                logger,
                logging.ERROR,
                "Job failed",
                batch_id=self.batch_id,
                job=job,
                error=str(e),
            )
        else:
            with self._lock:
                self._succeeded += 1
        finally:
            self._semaphore.release()

    def run(self, jobs: Iterable[TransferJob]) -> BatchResult:
        """Execute every job, or stop dispatching at the first failure.

        Counters start from zero on each call. A token the batch created
        itself is renewed too; a caller's token is left as it is.
        """
        self._reset()
        if self._own_token:
            self.token = CancellationToken()
        jobs = list(jobs)
        log_with_context(
            logger,
            logging.INFO,
            "Batch started",
            batch_id=self.batch_id,
            total_jobs=len(jobs),
            slots=self.slots,
        )

        with ThreadPoolExecutor(
            max_workers=self.slots, thread_name_prefix=self.name
        ) as executor:
            for job in jobs:
                self._semaphore.acquire()
                if self.token.cancelled:
                    self._semaphore.release()
                    break
                with self._lock:
                    self._dispatched += 1
                executor.submit(self._execute, job)
        # Leaving the executor waits for every dispatched job.

        result = BatchResult(
            total=len(jobs),
            dispatched=self._dispatched,
            succeeded=self._succeeded,
            failed=self._failed,
        )

        if self._first_error is not None:
            log_with_context(
                logger,
                logging.ERROR,
                "Batch aborted",
                batch_id=self.batch_id,
                dispatched=result.dispatched,
                succeeded=result.succeeded,
                failed=result.failed,
                discarded_errors=result.failed - 1,
                not_dispatched=result.not_dispatched,
            )
            raise self._first_error

        log_with_context(
            logger,
            logging.INFO,
            "Batch complete",
            batch_id=self.batch_id,
            dispatched=result.dispatched,
            succeeded=result.succeeded,
        )
        return result
