"""Unit tests for the S3 container backend with moto mocking."""

from unittest.mock import patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from blobwatch.cancellation import CancellationToken
from blobwatch.exceptions import BlobNotFoundError, ContainerUnavailableError, StorageError
from blobwatch.listener import ContainerScannerListener
from blobwatch.scanner import scan_container
from blobwatch.storage import get_container
from blobwatch.storage.s3 import S3Container
from blobwatch.watermarks import EPOCH_START


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)
    monkeypatch.delenv("AWS_REGION", raising=False)


@pytest.fixture
def s3_client(aws_credentials):
    """Create a mocked S3 client with an existing bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket="landing")
        yield client


def _client_error(code: str, status: int, operation: str = "HeadObject") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class TestS3ContainerInit:
    """Tests for S3Container construction."""

    def test_parses_bucket_and_prefix(self, s3_client):
        container = S3Container("s3://landing/incoming/", client=s3_client)

        assert container.bucket == "landing"
        assert container.prefix == "incoming"
        assert container.name == "s3://landing/incoming"
        assert container.scheme == "s3"

    def test_requires_bucket(self, s3_client):
        with pytest.raises(ValueError, match="must name a bucket"):
            S3Container("s3://", client=s3_client)

    def test_registry_builds_s3_container(self, s3_client):
        container = get_container("s3://landing", client=s3_client)

        assert isinstance(container, S3Container)
        assert container.client is s3_client

    def test_builds_client_from_environment(self, aws_credentials):
        with mock_aws():
            container = S3Container("s3://landing", region="eu-west-1")

        assert container.client.meta.region_name == "eu-west-1"


class TestS3EnsureExists:
    """Tests for bucket auto-creation."""

    def test_existing_bucket_is_left_alone(self, s3_client):
        container = S3Container("s3://landing", client=s3_client)

        container.ensure_exists()

        assert [b["Name"] for b in s3_client.list_buckets()["Buckets"]] == ["landing"]

    def test_missing_bucket_is_created(self, s3_client):
        container = S3Container("s3://fresh-bucket", client=s3_client)

        container.ensure_exists()

        s3_client.head_bucket(Bucket="fresh-bucket")

    def test_missing_bucket_is_created_in_region(self, aws_credentials):
        with mock_aws():
            container = S3Container("s3://eu-bucket", region="eu-west-1")
            container.ensure_exists()

            location = container.client.get_bucket_location(Bucket="eu-bucket")
            assert location["LocationConstraint"] == "eu-west-1"

    def test_bucket_being_deleted_is_unavailable(self, s3_client):
        container = S3Container("s3://going", client=s3_client)
        with patch.object(s3_client, "head_bucket", side_effect=_client_error("404", 404, "HeadBucket")), \
                patch.object(s3_client, "create_bucket", side_effect=_client_error("OperationAborted", 409, "CreateBucket")):
            with pytest.raises(ContainerUnavailableError) as exc_info:
                container.ensure_exists()

        assert exc_info.value.error_code == "STG002"

    def test_access_denied_is_a_storage_error(self, s3_client):
        container = S3Container("s3://landing", client=s3_client)
        with patch.object(s3_client, "head_bucket", side_effect=_client_error("403", 403, "HeadBucket")):
            with pytest.raises(StorageError) as exc_info:
                container.ensure_exists()

        assert not isinstance(exc_info.value, ContainerUnavailableError)
        assert exc_info.value.details["operation"] == "ensure_exists"


class TestS3ListAndFetch:
    """Tests for listing and metadata fetch."""

    def test_lists_all_keys_flat(self, s3_client):
        for key in ["a.csv", "nested/deep/b.csv", "c.json"]:
            s3_client.put_object(Bucket="landing", Key=key, Body=b"x")
        container = S3Container("s3://landing", client=s3_client)

        assert sorted(container.list_blob_names()) == ["a.csv", "c.json", "nested/deep/b.csv"]

    def test_prefix_narrows_listing(self, s3_client):
        s3_client.put_object(Bucket="landing", Key="incoming/a.csv", Body=b"x")
        s3_client.put_object(Bucket="landing", Key="incoming-old/b.csv", Body=b"x")
        s3_client.put_object(Bucket="landing", Key="other/c.csv", Body=b"x")
        container = S3Container("s3://landing/incoming", client=s3_client)

        assert list(container.list_blob_names()) == ["incoming/a.csv"]

    def test_listing_pages_through_large_buckets(self, s3_client):
        for i in range(1005):
            s3_client.put_object(Bucket="landing", Key=f"k{i:04d}", Body=b"")
        container = S3Container("s3://landing", client=s3_client)

        assert len(list(container.list_blob_names())) == 1005

    def test_listing_deleted_bucket_is_unavailable(self, s3_client):
        container = S3Container("s3://never-created", client=s3_client)

        with pytest.raises(ContainerUnavailableError):
            list(container.list_blob_names())

    def test_fetch_properties(self, s3_client):
        s3_client.put_object(
            Bucket="landing", Key="data/file.csv", Body=b"abc", Metadata={"source": "crm"}
        )
        container = S3Container("s3://landing", client=s3_client)

        blob = container.fetch_properties("data/file.csv")

        assert blob.name == "data/file.csv"
        assert blob.uri == "s3://landing/data/file.csv"
        assert blob.size == 3
        assert blob.last_modified.tzinfo is not None
        assert blob.etag and '"' not in blob.etag
        assert blob.metadata == {"source": "crm"}

    def test_fetch_missing_key_raises_not_found(self, s3_client):
        container = S3Container("s3://landing", client=s3_client)

        with pytest.raises(BlobNotFoundError) as exc_info:
            container.fetch_properties("missing.csv")

        assert exc_info.value.details["blob"] == "missing.csv"


class TestS3Scanning:
    """Change detection against a mocked bucket."""

    def test_first_poll_reports_everything_second_poll_nothing(self, s3_client):
        s3_client.put_object(Bucket="landing", Key="a.csv", Body=b"1")
        s3_client.put_object(Bucket="landing", Key="b.csv", Body=b"2")
        listener = ContainerScannerListener([S3Container("s3://landing", client=s3_client)])
        seen = []

        listener.poll(seen.append, CancellationToken())
        assert sorted(blob.name for blob in seen) == ["a.csv", "b.csv"]
        assert listener.watermarks.watermark_at(0) > EPOCH_START

        seen.clear()
        listener.poll(seen.append, CancellationToken())
        assert seen == []

    def test_key_deleted_between_list_and_fetch_is_skipped(self, s3_client):
        for key in ["a.csv", "b.csv", "c.csv"]:
            s3_client.put_object(Bucket="landing", Key=key, Body=b"x")
        container = S3Container("s3://landing", client=s3_client)
        real_head = s3_client.head_object

        def head_after_delete(Bucket, Key):
            if Key == "b.csv":
                s3_client.delete_object(Bucket=Bucket, Key=Key)
            return real_head(Bucket=Bucket, Key=Key)

        with patch.object(s3_client, "head_object", side_effect=head_after_delete):
            result = scan_container(container, EPOCH_START, CancellationToken())

        assert [blob.name for blob in result.blobs] == ["a.csv", "c.csv"]
        assert result.skipped == 1

    def test_poll_creates_missing_bucket(self, s3_client):
        listener = ContainerScannerListener([S3Container("s3://created-on-poll", client=s3_client)])

        listener.poll(lambda blob: None, CancellationToken())

        s3_client.head_bucket(Bucket="created-on-poll")
        assert listener.watermarks.watermark_at(0) == EPOCH_START
