"""Polling change detection over blob containers.

Layer Structure:
    blobwatch.storage     - Container backends (local, s3, azure)
    blobwatch.watermarks  - Per-container high-water marks
    blobwatch.scanner     - Full-listing scan of one container
    blobwatch.listener    - One poll pass over every tracked container
    blobwatch.executor    - Detected blob -> function execution bridge
    blobwatch.runner      - Scheduling loop with backoff
"""

__version__ = "1.0.0"

from blobwatch.cancellation import CancellationToken
from blobwatch.exceptions import (
    BlobWatchError,
    BlobNotFoundError,
    ConfigValidationError,
    ContainerUnavailableError,
    ExecutionError,
    StorageError,
)
from blobwatch.listener import BlobSink, ContainerScannerListener
from blobwatch.scanner import ScanResult, scan_container
from blobwatch.storage import BlobContainer, BlobDescriptor, get_container
from blobwatch.watermarks import EPOCH_START, ContainerWatermark, WatermarkSet

__all__ = [
    "__version__",
    "CancellationToken",
    "BlobWatchError",
    "BlobNotFoundError",
    "ConfigValidationError",
    "ContainerUnavailableError",
    "ExecutionError",
    "StorageError",
    "BlobSink",
    "ContainerScannerListener",
    "ScanResult",
    "scan_container",
    "BlobContainer",
    "BlobDescriptor",
    "get_container",
    "EPOCH_START",
    "ContainerWatermark",
    "WatermarkSet",
]
