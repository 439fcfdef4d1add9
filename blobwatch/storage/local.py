"""Local filesystem container backend."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from blobwatch.exceptions import BlobNotFoundError, ContainerUnavailableError, StorageError
from blobwatch.storage.base import BlobContainer, BlobDescriptor

logger = logging.getLogger(__name__)

__all__ = ["LocalContainer"]


class LocalContainer(BlobContainer):
    """Directory tree treated as a blob container.

    Used for tests, local samples and shared network mounts. Blob names are
    POSIX paths relative to the root directory; last-modified is the file
    mtime reported by the filesystem.

    Example:
        >>> container = LocalContainer("./landing/")
        >>> container.ensure_exists()
        >>> for name in container.list_blob_names():
        ...     print(container.fetch_properties(name).last_modified)
    """

    def __init__(self, uri: str, **options: Any) -> None:
        super().__init__(uri, **options)
        path = uri[len("file://"):] if uri.startswith("file://") else uri
        self.root = Path(path).expanduser().resolve()

    @property
    def scheme(self) -> str:
        return "local"

    @property
    def name(self) -> str:
        return str(self.root)

    def _resolve(self, name: str) -> Path:
        return self.root / Path(*name.split("/"))

    def blob_uri(self, name: str) -> str:
        return self._resolve(name).as_uri()

    def ensure_exists(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as exc:
            raise ContainerUnavailableError(
                f"Local container root {self.root} is not a directory",
                backend_type=self.scheme,
                operation="ensure_exists",
                container=self.name,
                original_error=exc,
            )
        except OSError as exc:
            raise StorageError(
                f"Failed to create local container {self.root}",
                backend_type=self.scheme,
                operation="ensure_exists",
                container=self.name,
                original_error=exc,
            )

    def list_blob_names(self) -> Iterator[str]:
        if not self.root.is_dir():
            raise ContainerUnavailableError(
                f"Local container root {self.root} disappeared",
                backend_type=self.scheme,
                operation="list",
                container=self.name,
            )
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                yield full.relative_to(self.root).as_posix()

    def fetch_properties(self, name: str) -> BlobDescriptor:
        path = self._resolve(name)
        try:
            stat = path.stat()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(
                f"Blob {name} not found",
                backend_type=self.scheme,
                operation="fetch_properties",
                container=self.name,
                blob=name,
                original_error=exc,
            )
        except OSError as exc:
            raise StorageError(
                f"Failed to stat blob {name}",
                backend_type=self.scheme,
                operation="fetch_properties",
                container=self.name,
                blob=name,
                original_error=exc,
            )

        return BlobDescriptor(
            container=self.name,
            name=name,
            uri=path.as_uri(),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
        )
