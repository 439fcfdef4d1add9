"""Scheduling loop that drives the listener.

The listener itself never retries or sleeps. This loop decides when the
next pass runs and backs off when a pass fails on a store error.

Implementation: Uses tenacity for the retry/backoff of failed passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import tenacity

from blobwatch.cancellation import CancellationToken
from blobwatch.exceptions import StorageError
from blobwatch.listener import BlobSink, ContainerScannerListener
from blobwatch.storage.base import BlobDescriptor

logger = logging.getLogger(__name__)

__all__ = ["WatchSummary", "run_watch"]


@dataclass
class WatchSummary:
    """Counters for one ``run_watch`` session."""

    polls: int = 0
    blobs_detected: int = 0
    failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "polls": self.polls,
            "blobs_detected": self.blobs_detected,
            "failures": self.failures,
        }


def run_watch(
    listener: ContainerScannerListener,
    sink: BlobSink,
    cancel: CancellationToken,
    *,
    poll_interval_seconds: float = 30.0,
    max_polls: Optional[int] = None,
    max_consecutive_failures: int = 5,
    backoff_seconds: float = 1.0,
) -> WatchSummary:
    """Poll until cancelled or ``max_polls`` passes have completed.

    A pass that raises ``StorageError`` is retried with exponential backoff;
    after ``max_consecutive_failures`` failed attempts the last error is
    raised. Waits are interrupted as soon as ``cancel`` is triggered.

    Args:
        listener: Listener holding the tracked containers
        sink: Receives every detected blob
        cancel: Stops the loop (and the current pass) when cancelled
        poll_interval_seconds: Pause between successful passes
        max_polls: Stop after this many successful passes (None = forever)
        max_consecutive_failures: Attempts per pass before giving up
        backoff_seconds: Base delay of the exponential backoff
    """
    if max_consecutive_failures < 1:
        raise ValueError("max_consecutive_failures must be at least 1")

    summary = WatchSummary()

    def counting_sink(blob: BlobDescriptor) -> None:
        summary.blobs_detected += 1
        sink(blob)

    def before_sleep(retry_state: tenacity.RetryCallState) -> None:
        summary.failures += 1
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Poll attempt %d/%d failed: %s. Retrying in %.1fs...",
            retry_state.attempt_number,
            max_consecutive_failures,
            exception,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    retrying = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(max_consecutive_failures),
        wait=tenacity.wait_exponential(
            multiplier=backoff_seconds,
            min=backoff_seconds,
            max=max(backoff_seconds, poll_interval_seconds),
        ),
        retry=tenacity.retry_if_exception_type(StorageError),
        before_sleep=before_sleep,
        sleep=cancel.wait,
        reraise=True,
    )

    while not cancel.is_cancellation_requested:
        try:
            retrying(listener.poll, counting_sink, cancel)
        except StorageError:
            summary.failures += 1
            logger.error(
                "Giving up after %d failed poll attempts", max_consecutive_failures
            )
            raise
        summary.polls += 1

        if max_polls is not None and summary.polls >= max_polls:
            break
        if cancel.wait(poll_interval_seconds):
            break

    logger.info(
        "Watch stopped after %d poll(s); %d blob(s) detected",
        summary.polls,
        summary.blobs_detected,
        extra=summary.to_dict(),
    )
    return summary
