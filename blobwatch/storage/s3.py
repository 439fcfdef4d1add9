"""S3-compatible container backend for blobwatch."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from blobwatch.exceptions import BlobNotFoundError, ContainerUnavailableError, StorageError
from blobwatch.storage.base import (
    BlobContainer,
    BlobDescriptor,
    get_env_value,
    normalize_prefix,
)

logger = logging.getLogger(__name__)

__all__ = ["S3Container"]

# Bucket is being deleted, was deleted underneath us, or the name is taken.
_UNAVAILABLE_CODES = frozenset(
    {"OperationAborted", "NoSuchBucket", "BucketAlreadyExists"}
)
_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _http_status(exc: ClientError) -> int:
    try:
        return int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0))
    except (TypeError, ValueError):
        return 0


class S3Container(BlobContainer):
    """S3 bucket (optionally narrowed to a key prefix) as a blob container.

    Supports AWS S3, MinIO, and any S3-compatible object storage.

    Example:
        >>> container = S3Container("s3://landing-bucket/incoming/")
        >>> container.ensure_exists()
        >>> names = list(container.list_blob_names())

    Options:
        client: Pre-built boto3 S3 client (tests, shared sessions)
        key / secret: Access key pair (overrides env vars)
        region: AWS region
        endpoint_url: Custom S3 endpoint (MinIO, LocalStack, ...)
        endpoint_url_env / access_key_env / secret_key_env: Environment
            variable names to read the above from
    """

    def __init__(self, uri: str, **options: Any) -> None:
        super().__init__(uri, **options)
        path = uri[len("s3://"):] if uri.startswith("s3://") else uri
        bucket, _, prefix = path.partition("/")
        if not bucket:
            raise ValueError(f"S3 container URI must name a bucket: {uri!r}")
        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)
        self.client = options.get("client") or self._build_client()

    def _build_client(self) -> Any:
        endpoint_url = self.options.get("endpoint_url") or get_env_value(
            self.options.get("endpoint_url_env", "AWS_ENDPOINT_URL")
        )
        access_key = self.options.get("key") or get_env_value(
            self.options.get("access_key_env", "AWS_ACCESS_KEY_ID")
        )
        secret_key = self.options.get("secret") or get_env_value(
            self.options.get("secret_key_env", "AWS_SECRET_ACCESS_KEY")
        )

        client_kwargs: Dict[str, Any] = {}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key
        region = self.options.get("region") or get_env_value("AWS_REGION")
        if region:
            client_kwargs["region_name"] = region

        client = boto3.client("s3", **client_kwargs)
        logger.debug(
            "Created S3 client for bucket '%s' with endpoint: %s",
            self.bucket,
            endpoint_url or "default",
        )
        return client

    @property
    def scheme(self) -> str:
        return "s3"

    @property
    def name(self) -> str:
        return f"s3://{self.bucket}/{self.prefix}" if self.prefix else f"s3://{self.bucket}"

    def blob_uri(self, name: str) -> str:
        return f"s3://{self.bucket}/{name}"

    def _storage_error(
        self, message: str, operation: str, exc: Exception, blob: str | None = None
    ) -> StorageError:
        return StorageError(
            message,
            backend_type=self.scheme,
            operation=operation,
            container=self.name,
            blob=blob,
            original_error=exc,
        )

    def ensure_exists(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as exc:
            if _http_status(exc) != 404 and _error_code(exc) not in {"404", "NoSuchBucket", "NotFound"}:
                raise self._storage_error(
                    f"Unable to access bucket {self.bucket}", "ensure_exists", exc
                )
        except BotoCoreError as exc:
            raise self._storage_error(
                f"Unable to access bucket {self.bucket}", "ensure_exists", exc
            )

        create_kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        region = getattr(self.client.meta, "region_name", None)
        if region and region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

        logger.info("Creating S3 bucket %s", self.bucket)
        try:
            self.client.create_bucket(**create_kwargs)
        except ClientError as exc:
            code = _error_code(exc)
            if code == "BucketAlreadyOwnedByYou":
                return
            if code in _UNAVAILABLE_CODES or _http_status(exc) == 409:
                raise ContainerUnavailableError(
                    f"Bucket {self.bucket} is unavailable ({code})",
                    backend_type=self.scheme,
                    operation="ensure_exists",
                    container=self.name,
                    original_error=exc,
                )
            raise self._storage_error(
                f"Failed to create bucket {self.bucket}", "ensure_exists", exc
            )
        except BotoCoreError as exc:
            raise self._storage_error(
                f"Failed to create bucket {self.bucket}", "ensure_exists", exc
            )

    def list_blob_names(self) -> Iterator[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        list_kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        if self.prefix:
            list_kwargs["Prefix"] = f"{self.prefix}/"

        try:
            for page in paginator.paginate(**list_kwargs):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except ClientError as exc:
            if _error_code(exc) == "NoSuchBucket":
                raise ContainerUnavailableError(
                    f"Bucket {self.bucket} disappeared while listing",
                    backend_type=self.scheme,
                    operation="list",
                    container=self.name,
                    original_error=exc,
                )
            raise self._storage_error(f"Failed to list bucket {self.bucket}", "list", exc)
        except BotoCoreError as exc:
            raise self._storage_error(f"Failed to list bucket {self.bucket}", "list", exc)

    def fetch_properties(self, name: str) -> BlobDescriptor:
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=name)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES or _http_status(exc) == 404:
                raise BlobNotFoundError(
                    f"Blob {name} not found",
                    backend_type=self.scheme,
                    operation="fetch_properties",
                    container=self.name,
                    blob=name,
                    original_error=exc,
                )
            raise self._storage_error(
                f"Failed to fetch properties of {name}", "fetch_properties", exc, blob=name
            )
        except BotoCoreError as exc:
            raise self._storage_error(
                f"Failed to fetch properties of {name}", "fetch_properties", exc, blob=name
            )

        etag = response.get("ETag")
        return BlobDescriptor(
            container=self.name,
            name=name,
            uri=self.blob_uri(name),
            last_modified=response["LastModified"],
            size=response.get("ContentLength"),
            etag=etag.strip('"') if etag else None,
            metadata=dict(response.get("Metadata") or {}),
        )
