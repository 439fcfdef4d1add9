"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from blobwatch.exceptions import (  # noqa: E402
    BlobNotFoundError,
    ContainerUnavailableError,
    StorageError,
)
from blobwatch.storage.base import BlobContainer, BlobDescriptor  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def ts(minutes: int) -> datetime:
    """Store timestamp ``minutes`` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


class FakeContainer(BlobContainer):
    """In-memory container with knobs for the failure modes a store can show.

    Blobs are listed in insertion order.
    """

    def __init__(self, name: str = "fake") -> None:
        super().__init__(f"mem://{name}")
        self._name = name
        self.blobs: Dict[str, datetime] = {}
        self.unavailable = False
        self.ensure_error: Optional[Exception] = None
        self.vanished: Set[str] = set()
        self.fetch_errors: Dict[str, Exception] = {}
        self.on_listed: Optional[Callable[[str], None]] = None
        self.ensure_calls = 0
        self.fetched: List[str] = []

    @property
    def scheme(self) -> str:
        return "mem"

    @property
    def name(self) -> str:
        return self._name

    def put(self, name: str, last_modified: datetime) -> "FakeContainer":
        self.blobs[name] = last_modified
        return self

    def ensure_exists(self) -> None:
        self.ensure_calls += 1
        if self.ensure_error is not None:
            raise self.ensure_error
        if self.unavailable:
            raise ContainerUnavailableError("being deleted", backend_type="mem", container=self._name)

    def list_blob_names(self) -> Iterator[str]:
        for name in list(self.blobs):
            if self.on_listed is not None:
                self.on_listed(name)
            yield name

    def fetch_properties(self, name: str) -> BlobDescriptor:
        self.fetched.append(name)
        if name in self.fetch_errors:
            raise self.fetch_errors[name]
        if name in self.vanished or name not in self.blobs:
            raise BlobNotFoundError(f"Blob {name} not found", backend_type="mem", blob=name)
        return BlobDescriptor(
            container=self._name,
            name=name,
            uri=self.blob_uri(name),
            last_modified=self.blobs[name],
        )


@pytest.fixture
def fake_container() -> FakeContainer:
    return FakeContainer("landing")


@pytest.fixture
def make_container() -> Callable[..., FakeContainer]:
    def _make(name: str = "fake", **blobs: datetime) -> FakeContainer:
        container = FakeContainer(name)
        for blob_name, modified in blobs.items():
            container.put(blob_name, modified)
        return container

    return _make


@pytest.fixture
def collected() -> List[BlobDescriptor]:
    """List that doubles as a sink via ``collected.append``."""
    return []


@pytest.fixture
def storage_error() -> StorageError:
    return StorageError("access denied", backend_type="mem", operation="ensure_exists")
