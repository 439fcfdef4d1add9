"""Polling listener that reports new and modified blobs to a sink.

The listener owns no thread or timer. A scheduler calls :meth:`poll`
repeatedly; each call is one full pass over the tracked containers.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from blobwatch.cancellation import CancellationToken
from blobwatch.logging_config import log_performance
from blobwatch.scanner import scan_container
from blobwatch.storage.base import BlobContainer, BlobDescriptor
from blobwatch.watermarks import WatermarkSet

logger = logging.getLogger(__name__)

__all__ = ["BlobSink", "ContainerScannerListener"]

BlobSink = Callable[[BlobDescriptor], None]


class ContainerScannerListener:
    """Detect blobs added or modified since the previous poll.

    Only one ``poll`` may run at a time against a given watermark set.

    Example:
        >>> listener = ContainerScannerListener([get_container("./landing")])
        >>> listener.poll(lambda blob: print(blob.uri), CancellationToken())
    """

    def __init__(
        self,
        containers: Optional[Iterable[BlobContainer]] = None,
        watermarks: Optional[WatermarkSet] = None,
    ) -> None:
        if watermarks is not None and containers is not None:
            raise ValueError("Pass either containers or watermarks, not both")
        self.watermarks = watermarks if watermarks is not None else WatermarkSet(containers)

    def add_container(self, container: BlobContainer) -> int:
        """Track another container; it is scanned from the beginning of time."""
        return self.watermarks.add(container)

    def poll(self, sink: BlobSink, cancel: CancellationToken) -> None:
        """Run one pass over every tracked container.

        For each container in order: stop if cancellation was requested,
        otherwise scan it, store the new watermark, then hand every detected
        blob to ``sink``. Containers appended during the pass are scanned in
        the same pass.

        Raises:
            StorageError: When a store fails for reasons other than a missing
                container or a vanished blob
        """
        started = time.monotonic()
        scanned = 0
        detected = 0

        index = 0
        while index < len(self.watermarks):
            if cancel.is_cancellation_requested:
                logger.info("Poll cancelled before container %d of %d", index + 1, len(self.watermarks))
                break

            container = self.watermarks.container_at(index)
            result = scan_container(container, self.watermarks.watermark_at(index), cancel)
            self.watermarks.set_watermark(index, result.watermark)
            scanned += 1

            if result.blobs:
                logger.info(
                    "Detected %d new blob(s) in %s",
                    len(result.blobs),
                    container.name,
                    extra={"container": container.uri},
                )
            for blob in result.blobs:
                sink(blob)
            detected += len(result.blobs)

            if result.cancelled:
                logger.info("Poll cancelled while scanning %s", container.name)
                break
            index += 1

        log_performance(
            logger,
            "poll",
            time.monotonic() - started,
            containers_scanned=scanned,
            blobs_detected=detected,
        )
