"""Azure Blob Storage container backend for blobwatch."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional, Tuple

from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContainerClient

from blobwatch.exceptions import BlobNotFoundError, ContainerUnavailableError, StorageError
from blobwatch.storage.base import BlobContainer, BlobDescriptor, get_env_value, normalize_prefix

logger = logging.getLogger(__name__)

__all__ = ["AzureBlobContainer", "parse_azure_uri"]

_UNAVAILABLE_CODES = frozenset({"ContainerBeingDeleted", "ContainerDisabled"})
_AZURE_SCHEMES = ("az://", "wasbs://", "wasb://", "abfss://", "abfs://")


def parse_azure_uri(uri: str) -> Tuple[str, Optional[str], str]:
    """Split an Azure container URI into (container, account, prefix).

    Examples:
        >>> parse_azure_uri("az://uploads/incoming")
        ('uploads', None, 'incoming')
        >>> parse_azure_uri("wasbs://uploads@acct.blob.core.windows.net/in")
        ('uploads', 'acct', 'in')
    """
    path = uri
    for scheme in _AZURE_SCHEMES:
        if uri.startswith(scheme):
            path = uri[len(scheme):]
            break

    authority, _, prefix = path.partition("/")
    container, _, host = authority.partition("@")
    account = host.split(".", 1)[0] if host else None
    if not container:
        raise ValueError(f"Azure container URI must name a container: {uri!r}")
    return container, account, normalize_prefix(prefix)


class AzureBlobContainer(BlobContainer):
    """Azure Blob Storage / ADLS Gen2 container.

    Credentials are resolved in order: connection string, account name and
    key, then ``DefaultAzureCredential`` against the account URL.

    Options:
        client: Pre-built ``ContainerClient`` (tests, shared sessions)
        connection_string_env: Env var holding a connection string
            (default ``AZURE_STORAGE_CONNECTION_STRING``)
        account_name_env / account_key_env: Env vars holding the account
            name and key (default ``AZURE_STORAGE_ACCOUNT``/``AZURE_STORAGE_KEY``)
        account_url: Blob endpoint, e.g. ``https://acct.blob.core.windows.net``
    """

    def __init__(self, uri: str, **options: Any) -> None:
        super().__init__(uri, **options)
        self.container_name, self.account, self.prefix = parse_azure_uri(uri)
        self.client: ContainerClient = options.get("client") or self._build_client().get_container_client(
            self.container_name
        )

    def _build_client(self) -> BlobServiceClient:
        """Build the BlobServiceClient using the first available credential."""
        conn_env = self.options.get("connection_string_env", "AZURE_STORAGE_CONNECTION_STRING")
        conn = get_env_value(conn_env)
        if conn:
            logger.debug("Azure storage using connection string from %s", conn_env)
            return BlobServiceClient.from_connection_string(conn)

        account = get_env_value(self.options.get("account_name_env", "AZURE_STORAGE_ACCOUNT")) or self.account
        key = get_env_value(self.options.get("account_key_env", "AZURE_STORAGE_KEY"))
        account_url: Optional[str] = self.options.get("account_url")
        if not account_url and account:
            account_url = f"https://{account}.blob.core.windows.net"

        if account_url and key:
            logger.debug("Azure storage using account key for %s", account_url)
            return BlobServiceClient(account_url=account_url, credential=key)

        if account_url:
            logger.debug("Azure storage using DefaultAzureCredential for %s", account_url)
            return BlobServiceClient(account_url=account_url, credential=DefaultAzureCredential())

        raise ValueError(
            "Azure container requires a connection string, an account name, or account_url"
        )

    @property
    def scheme(self) -> str:
        return "az"

    @property
    def name(self) -> str:
        if self.prefix:
            return f"az://{self.container_name}/{self.prefix}"
        return f"az://{self.container_name}"

    def blob_uri(self, name: str) -> str:
        return f"az://{self.container_name}/{name}"

    def _storage_error(
        self, message: str, operation: str, exc: Exception, blob: Optional[str] = None
    ) -> StorageError:
        return StorageError(
            message,
            backend_type=self.scheme,
            operation=operation,
            container=self.name,
            blob=blob,
            original_error=exc,
        )

    def _unavailable(self, message: str, operation: str, exc: Exception) -> ContainerUnavailableError:
        return ContainerUnavailableError(
            message,
            backend_type=self.scheme,
            operation=operation,
            container=self.name,
            original_error=exc,
        )

    def ensure_exists(self) -> None:
        try:
            self.client.create_container()
            logger.info("Created Azure container %s", self.container_name)
        except ResourceExistsError as exc:
            if getattr(exc, "error_code", None) in _UNAVAILABLE_CODES:
                raise self._unavailable(
                    f"Container {self.container_name} is being deleted", "ensure_exists", exc
                )
        except HttpResponseError as exc:
            if getattr(exc, "error_code", None) in _UNAVAILABLE_CODES or exc.status_code == 409:
                raise self._unavailable(
                    f"Container {self.container_name} is unavailable", "ensure_exists", exc
                )
            raise self._storage_error(
                f"Failed to create container {self.container_name}", "ensure_exists", exc
            )
        except AzureError as exc:
            raise self._storage_error(
                f"Failed to create container {self.container_name}", "ensure_exists", exc
            )

    def list_blob_names(self) -> Iterator[str]:
        list_kwargs: Dict[str, Any] = {}
        if self.prefix:
            list_kwargs["name_starts_with"] = f"{self.prefix}/"

        try:
            for blob in self.client.list_blobs(**list_kwargs):
                yield blob.name
        except ResourceNotFoundError as exc:
            raise self._unavailable(
                f"Container {self.container_name} disappeared while listing", "list", exc
            )
        except AzureError as exc:
            raise self._storage_error(
                f"Failed to list container {self.container_name}", "list", exc
            )

    def fetch_properties(self, name: str) -> BlobDescriptor:
        try:
            props = self.client.get_blob_client(name).get_blob_properties()
        except ResourceNotFoundError as exc:
            raise BlobNotFoundError(
                f"Blob {name} not found",
                backend_type=self.scheme,
                operation="fetch_properties",
                container=self.name,
                blob=name,
                original_error=exc,
            )
        except AzureError as exc:
            raise self._storage_error(
                f"Failed to fetch properties of {name}", "fetch_properties", exc, blob=name
            )

        etag = props.etag
        return BlobDescriptor(
            container=self.name,
            name=name,
            uri=self.blob_uri(name),
            last_modified=props.last_modified,
            size=props.size,
            etag=etag.strip('"') if etag else None,
            metadata=dict(props.metadata or {}),
        )
