"""Abstract base class for blob containers.

Defines the three store capabilities the change detector relies on:
ensure-exists, flat listing and per-blob metadata fetch.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

__all__ = [
    "BlobContainer",
    "BlobDescriptor",
    "ensure_utc",
    "get_env_value",
    "normalize_prefix",
]


def normalize_prefix(prefix: Optional[str]) -> str:
    """Strip slashes and spaces so a prefix joins cleanly with blob names."""
    if not prefix:
        return ""
    return str(prefix).strip("/ ")


def get_env_value(key: Optional[str]) -> Optional[str]:
    """Read a credential or endpoint from the environment variable named ``key``."""
    return os.environ.get(key) if key else None


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be UTC, which is what S3 and
    Azure report.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class BlobDescriptor:
    """Identity and store-reported metadata of one blob."""

    container: str
    name: str
    uri: str
    last_modified: datetime
    size: Optional[int] = None
    etag: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "last_modified", ensure_utc(self.last_modified))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "container": self.container,
            "name": self.name,
            "uri": self.uri,
            "last_modified": self.last_modified.isoformat(),
            "size": self.size,
            "etag": self.etag,
            "metadata": self.metadata,
        }


class BlobContainer(ABC):
    """A remote, mutable, unordered collection of blobs.

    Subclasses translate their SDK errors into the blobwatch taxonomy:

    - ``ensure_exists`` raises ``ContainerUnavailableError`` when the container
      is deleted or being deleted and cannot be (re)created.
    - ``list_blob_names`` may raise ``ContainerUnavailableError`` if the
      container vanishes while the listing is paged.
    - ``fetch_properties`` raises ``BlobNotFoundError`` for blobs removed
      since they were listed.

    Any other failure surfaces as ``StorageError``.
    """

    def __init__(self, uri: str, **options: Any) -> None:
        self.uri = uri
        self.options = options

    @property
    @abstractmethod
    def scheme(self) -> str:
        """Return the URI scheme for this backend (e.g., 'local', 's3', 'az')."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the container name used in logs and descriptors."""

    @abstractmethod
    def ensure_exists(self) -> None:
        """Create the container if it does not exist yet."""

    @abstractmethod
    def list_blob_names(self) -> Iterator[str]:
        """Lazily yield the name of every blob, flat (no hierarchy)."""

    @abstractmethod
    def fetch_properties(self, name: str) -> BlobDescriptor:
        """Fetch the current metadata of a single blob."""

    def blob_uri(self, name: str) -> str:
        """Build the URI of a blob in this container."""
        return f"{self.uri.rstrip('/')}/{name.lstrip('/')}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(uri={self.uri!r})"
