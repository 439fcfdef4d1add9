"""Container backends for blobwatch.

Provides a unified interface over the stores that can be watched:
local filesystem, AWS S3 (and compatibles), and Azure Blob Storage.

Usage:
    from blobwatch.storage import get_container

    container = get_container("./landing/")
    container = get_container("s3://my-bucket/incoming/")
    container = get_container("az://uploads")
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from blobwatch.storage.base import BlobContainer, BlobDescriptor, ensure_utc

logger = logging.getLogger(__name__)

__all__ = [
    "BlobContainer",
    "BlobDescriptor",
    "ensure_utc",
    "BACKEND_REGISTRY",
    "register_backend",
    "list_backends",
    "parse_uri",
    "get_container",
]

BACKEND_REGISTRY: Dict[str, Callable[..., BlobContainer]] = {}


def register_backend(
    name: str,
) -> Callable[[Callable[..., BlobContainer]], Callable[..., BlobContainer]]:
    """Decorator to register a container backend factory.

    Usage:
        @register_backend("gcs")
        def _gcs_factory(uri: str, **options) -> BlobContainer:
            return GCSContainer(uri, **options)
    """
    def decorator(factory: Callable[..., BlobContainer]) -> Callable[..., BlobContainer]:
        BACKEND_REGISTRY[name.lower()] = factory
        return factory

    return decorator


def list_backends() -> List[str]:
    """Return all registered container backend identifiers."""
    return sorted(BACKEND_REGISTRY.keys())


def parse_uri(uri: str) -> tuple[str, str]:
    """Parse a container URI into scheme and path.

    Examples:
        >>> parse_uri("./data/landing/")
        ('local', './data/landing/')
        >>> parse_uri("s3://my-bucket/incoming/")
        ('s3', 'my-bucket/incoming/')
        >>> parse_uri("wasbs://uploads@acct.blob.core.windows.net/")
        ('azure', 'uploads@acct.blob.core.windows.net/')
        >>> parse_uri("gs://bucket")
        ('gs', 'bucket')
    """
    if uri.startswith("s3://"):
        return ("s3", uri[5:])
    for prefix in ("az://", "wasbs://", "wasb://", "abfss://", "abfs://"):
        if uri.startswith(prefix):
            return ("azure", uri[len(prefix):])
    if uri.startswith("file://"):
        return ("local", uri[7:])
    if "://" in uri:
        scheme, _, rest = uri.partition("://")
        return (scheme.lower(), rest)
    return ("local", uri)


def get_container(uri: str, **options: Any) -> BlobContainer:
    """Build the container handle for a URI.

    Args:
        uri: Local path or cloud container URI
        **options: Backend-specific options (credentials, injected clients)

    Raises:
        ValueError: If no backend is registered for the URI scheme
    """
    scheme, _ = parse_uri(uri)
    factory = BACKEND_REGISTRY.get(scheme)
    if factory is None:
        raise ValueError(
            f"Container backend '{scheme}' is not available. "
            f"Available backends: {', '.join(list_backends())}."
        )
    return factory(uri, **options)


@register_backend("local")
def _local_factory(uri: str, **options: Any) -> BlobContainer:
    from blobwatch.storage.local import LocalContainer
    return LocalContainer(uri, **options)


@register_backend("s3")
def _s3_factory(uri: str, **options: Any) -> BlobContainer:
    from blobwatch.storage.s3 import S3Container
    return S3Container(uri, **options)


@register_backend("azure")
def _azure_factory(uri: str, **options: Any) -> BlobContainer:
    from blobwatch.storage.azure import AzureBlobContainer
    return AzureBlobContainer(uri, **options)
