"""Structured JSON logging for transfer batches.

Every record carries the batch it belongs to and the worker thread that
emitted it. Records about a single transfer also carry the job as a nested
object, so one grep on a key or local path finds its whole history.
"""

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
            "batch_id": getattr(record, "batch_id", ""),
        }

        job = getattr(record, "job", None)
        if job:
            log_entry["job"] = job
        slots = getattr(record, "slots", None)
        if slots is not None:
            log_entry["slots"] = slots

        # Merge extra structured fields
        if hasattr(record, "extra_data") and isinstance(record.extra_data, dict):
            log_entry.update(record.extra_data)

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Create a structured JSON logger writing to stdout."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(os.environ.get("SWIFTFS_LOG_LEVEL", "INFO").upper())
        logger.propagate = False
    return logger


def job_fields(job) -> dict:
    """Loggable view of a TransferJob."""
    return {
        "kind": getattr(job.kind, "value", job.kind),
        "source": job.source,
        "destination": job.destination,
    }


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    batch_id: str = "",
    job=None,
    slots: Optional[int] = None,
    **kwargs,
) -> None:
    """Log a message with batch, job and free-form structured context."""
    extra = {
        "batch_id": batch_id,
        "job": job_fields(job) if job is not None else None,
        "slots": slots,
        "extra_data": kwargs,
    }
    logger.log(level, message, extra=extra)
