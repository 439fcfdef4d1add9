"""Per-container watermarks tracked by the poller.

A watermark is the latest last-modified time observed for any blob in a
container. It only ever comes from store metadata, never from the local
clock, so skew between this machine and the store cannot move it.

Records live in an ordered list addressed by index. Containers may be
appended while a poll is iterating; earlier indexes stay valid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

from blobwatch.storage.base import BlobContainer, ensure_utc

logger = logging.getLogger(__name__)

__all__ = ["EPOCH_START", "ContainerWatermark", "WatermarkSet"]

# Older than any real blob.
EPOCH_START = datetime(1900, 1, 1, tzinfo=timezone.utc)


@dataclass
class ContainerWatermark:
    """A tracked container and the newest last-modified time seen in it."""

    container: BlobContainer
    watermark: datetime = EPOCH_START

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "container": self.container.name,
            "watermark": self.watermark.isoformat(),
        }


class WatermarkSet:
    """Ordered (container, watermark) records, mutated in place by polling.

    Example:
        >>> watermarks = WatermarkSet([get_container("./landing")])
        >>> watermarks.watermark_at(0) == EPOCH_START
        True
    """

    def __init__(self, containers: Optional[Iterable[BlobContainer]] = None) -> None:
        self._records: List[ContainerWatermark] = [
            ContainerWatermark(container) for container in containers or ()
        ]

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> ContainerWatermark:
        return self._records[index]

    def __iter__(self) -> Iterator[ContainerWatermark]:
        return iter(list(self._records))

    def add(self, container: BlobContainer) -> int:
        """Start tracking a container from ``EPOCH_START``; return its index."""
        self._records.append(ContainerWatermark(container))
        logger.debug("Tracking container %s at index %d", container.name, len(self._records) - 1)
        return len(self._records) - 1

    def container_at(self, index: int) -> BlobContainer:
        return self._records[index].container

    def watermark_at(self, index: int) -> datetime:
        return self._records[index].watermark

    def set_watermark(self, index: int, value: datetime) -> None:
        """Overwrite the watermark at ``index``.

        Raises:
            ValueError: If ``value`` is older than the current watermark
        """
        value = ensure_utc(value)
        record = self._records[index]
        if value < record.watermark:
            raise ValueError(
                f"Watermark for {record.container.name} cannot move backwards "
                f"({record.watermark.isoformat()} -> {value.isoformat()})"
            )
        record.watermark = value

    def snapshot(self) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self._records]

    def __repr__(self) -> str:
        return f"WatermarkSet(containers={len(self._records)})"
