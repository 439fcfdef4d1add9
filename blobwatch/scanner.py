"""Full-listing scan of a single container.

Every poll lists every blob in the container. The set of blobs reported
depends only on store metadata and the prior watermark.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from blobwatch.cancellation import CancellationToken
from blobwatch.exceptions import BlobNotFoundError, ContainerUnavailableError, StorageError
from blobwatch.storage.base import BlobContainer, BlobDescriptor

logger = logging.getLogger(__name__)

__all__ = ["ScanResult", "scan_container"]


@dataclass
class ScanResult:
    """Outcome of scanning one container.

    Attributes:
        watermark: Updated watermark, never older than the prior one
        blobs: Blobs newer than the prior watermark, in listing order
        cancelled: The scan stopped because cancellation was requested
        container_available: False if the container could not be ensured
        listed: Number of names the listing produced before the scan ended
        skipped: Listed blobs whose metadata could not be fetched
    """

    watermark: datetime
    blobs: List[BlobDescriptor] = field(default_factory=list)
    cancelled: bool = False
    container_available: bool = True
    listed: int = 0
    skipped: int = 0


def scan_container(
    container: BlobContainer,
    watermark: datetime,
    cancel: CancellationToken,
) -> ScanResult:
    """Find blobs in ``container`` modified after ``watermark``.

    The returned watermark is the newest last-modified time among every blob
    whose metadata was fetched, new or not, so it tracks the store's own
    clock. A blob is reported only if it is strictly newer than the
    watermark passed in.

    On cancellation the watermark accumulated so far is returned with no
    blobs; the caller re-polls instead of receiving a partial result.

    Raises:
        StorageError: For store failures other than an unavailable container
    """
    try:
        container.ensure_exists()
    except ContainerUnavailableError as exc:
        logger.debug("Container %s unavailable, nothing to scan: %s", container.name, exc)
        return ScanResult(watermark=watermark, container_available=False)

    newest = watermark
    found: List[BlobDescriptor] = []
    listed = 0
    skipped = 0

    try:
        for name in container.list_blob_names():
            if cancel.is_cancellation_requested:
                logger.debug(
                    "Scan of %s cancelled after %d blobs", container.name, listed
                )
                return ScanResult(watermark=newest, cancelled=True, listed=listed, skipped=skipped)

            listed += 1
            try:
                blob = container.fetch_properties(name)
            except BlobNotFoundError:
                # Deleted between listing and fetch.
                skipped += 1
                continue
            except StorageError as exc:
                skipped += 1
                logger.warning(
                    "Skipping %s in %s: %s", name, container.name, exc, extra={"container": container.uri}
                )
                continue

            if blob.last_modified > newest:
                newest = blob.last_modified
            if blob.last_modified > watermark:
                found.append(blob)
    except ContainerUnavailableError as exc:
        logger.debug("Container %s vanished mid-listing: %s", container.name, exc)
        return ScanResult(watermark=watermark, container_available=False, listed=listed, skipped=skipped)

    return ScanResult(watermark=newest, blobs=found, listed=listed, skipped=skipped)
