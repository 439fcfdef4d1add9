"""Unit tests covering the container backend registry."""

from datetime import datetime, timedelta, timezone

import pytest

from blobwatch import storage as storage_mod
from blobwatch.cancellation import CancellationToken
from blobwatch.scanner import scan_container
from blobwatch.storage import (
    BACKEND_REGISTRY,
    BlobDescriptor,
    get_container,
    list_backends,
    parse_uri,
    register_backend,
)
from blobwatch.storage.base import ensure_utc, normalize_prefix
from blobwatch.storage.local import LocalContainer
from tests.conftest import FakeContainer, ts


@pytest.mark.parametrize(
    "uri,expected",
    [
        ("./data/landing", ("local", "./data/landing")),
        ("/abs/path", ("local", "/abs/path")),
        ("file:///tmp/landing", ("local", "/tmp/landing")),
        ("s3://bucket/prefix", ("s3", "bucket/prefix")),
        ("az://uploads", ("azure", "uploads")),
        ("wasbs://c@acct.blob.core.windows.net/x", ("azure", "c@acct.blob.core.windows.net/x")),
        ("abfss://lake@acct.dfs.core.windows.net", ("azure", "lake@acct.dfs.core.windows.net")),
        ("GS://bucket", ("gs", "bucket")),
    ],
)
def test_parse_uri(uri, expected):
    assert parse_uri(uri) == expected


def test_builtin_backends_are_registered():
    assert list_backends() == ["azure", "local", "s3"]


def test_get_container_builds_local(tmp_path):
    container = get_container(str(tmp_path))

    assert isinstance(container, LocalContainer)


def test_unknown_scheme_is_rejected():
    with pytest.raises(ValueError, match="Container backend 'gs' is not available"):
        get_container("gs://bucket")


def test_register_backend_adds_factory(monkeypatch):
    monkeypatch.setattr(storage_mod, "BACKEND_REGISTRY", dict(BACKEND_REGISTRY))

    @register_backend("MEM")
    def _mem_factory(uri, **options):
        return FakeContainer(uri.split("://", 1)[1])

    container = get_container("mem://scratch")

    assert isinstance(container, FakeContainer)
    assert container.name == "scratch"
    assert "mem" in list_backends()
    assert "mem" not in BACKEND_REGISTRY


def test_normalize_prefix():
    assert normalize_prefix(" /incoming/2024/ ") == "incoming/2024"
    assert normalize_prefix(None) == ""


def test_ensure_utc_handles_naive_and_offset_datetimes():
    naive = datetime(2024, 1, 1, 12, 0)
    offset = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    assert ensure_utc(naive) == ts(0)
    assert ensure_utc(offset) == ts(0)
    assert ensure_utc(offset).utcoffset() == timedelta(0)


def test_blob_descriptor_treats_naive_last_modified_as_utc():
    blob = BlobDescriptor("c", "a", "mem://c/a", datetime(2024, 1, 1, 12, 1))

    assert blob.last_modified.tzinfo is not None
    assert blob.last_modified == ts(1)


def test_scan_compares_naive_store_times_against_aware_watermark(make_container):
    container = make_container("c", old=datetime(2024, 1, 1, 11, 0), new=datetime(2024, 1, 1, 12, 5))

    result = scan_container(container, ts(0), CancellationToken())

    assert [blob.name for blob in result.blobs] == ["new"]
    assert result.watermark == ts(5)


def test_blob_descriptor_equality_ignores_metadata():
    a = BlobDescriptor("c", "a", "mem://c/a", ts(1), metadata={"x": 1})
    b = BlobDescriptor("c", "a", "mem://c/a", ts(1), metadata={"x": 2})

    assert a == b
    assert a.to_dict()["last_modified"] == "2024-01-01T12:01:00+00:00"
