"""Custom exception classes for blobwatch.

This module provides specific exception types for better error handling and debugging.
"""

from typing import Optional, Dict, Any


class BlobWatchError(Exception):
    """Base exception for all blobwatch errors."""

    error_code: str = "ERR000"  # Override in subclasses

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        """
        Initialize blobwatch exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context
            error_code: Optional error code override
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:
        """Return string representation with error code and details."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class ConfigValidationError(BlobWatchError):
    """Raised when configuration validation fails.

    Examples:
        - Missing required configuration keys
        - Invalid configuration values
        - Unsupported container URI schemes
    """

    error_code = "CFG001"

    def __init__(self, message: str, config_path: Optional[str] = None, key: Optional[str] = None):
        """
        Initialize configuration validation error.

        Args:
            message: Description of validation failure
            config_path: Path to config file that failed validation
            key: Specific configuration key that caused the error
        """
        details = {}
        if config_path:
            details['config_path'] = config_path
        if key:
            details['config_key'] = key
        super().__init__(message, details)


class StorageError(BlobWatchError):
    """Raised when a storage operation fails.

    Examples:
        - Authentication or permission failures
        - Network connectivity issues
        - Throttling surfaced by the store
    """

    error_code = "STG001"

    def __init__(
        self,
        message: str,
        backend_type: Optional[str] = None,
        operation: Optional[str] = None,
        container: Optional[str] = None,
        blob: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize storage error.

        Args:
            message: Description of storage failure
            backend_type: Storage backend type (s3, azure, local)
            operation: Operation that failed (ensure_exists, list, fetch_properties)
            container: Container involved in the operation
            blob: Blob name involved in the operation
            original_error: Original exception that caused this error
        """
        details = {}
        if backend_type:
            details['backend_type'] = backend_type
        if operation:
            details['operation'] = operation
        if container:
            details['container'] = container
        if blob:
            details['blob'] = blob
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error


class ContainerUnavailableError(StorageError):
    """Raised when a container cannot be made available.

    The container was deleted, is being deleted, or its name is occupied by
    something that is not a container. Scans treat this as "nothing to see".
    """

    error_code = "STG002"


class BlobNotFoundError(StorageError):
    """Raised when a listed blob no longer exists at metadata fetch time."""

    error_code = "STG003"


class ExecutionError(BlobWatchError):
    """Raised when a triggered function fails and the failure is surfaced.

    Examples:
        - Handler raised while processing a detected blob
        - Handler could not be imported
    """

    error_code = "EXE001"

    def __init__(
        self,
        message: str,
        function_name: Optional[str] = None,
        blob_uri: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize execution error.

        Args:
            message: Description of the execution failure
            function_name: Name of the function that failed
            blob_uri: URI of the blob that triggered the function
            original_error: Original exception raised by the function
        """
        details = {}
        if function_name:
            details['function_name'] = function_name
        if blob_uri:
            details['blob_uri'] = blob_uri
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error
