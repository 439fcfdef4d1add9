"""Bridge from detected blobs to the functions that process them.

The poller only knows about a sink. :class:`BlobTriggerDispatcher` is the
sink used when blobs should trigger user functions: it wraps each blob in a
:class:`FunctionInstance` and hands it to a :class:`FunctionExecutor`.
Function failures are captured as :class:`DelayedException` objects so one
bad blob does not stop the pass.
"""

from __future__ import annotations

import importlib
import logging
import traceback
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from blobwatch.cancellation import CancellationToken
from blobwatch.exceptions import ExecutionError
from blobwatch.storage.base import BlobDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    "FunctionInstance",
    "DelayedException",
    "FunctionExecutor",
    "CallableFunctionExecutor",
    "BlobTriggerDispatcher",
    "load_handler",
]

BlobHandler = Callable[[BlobDescriptor], Any]


@dataclass(frozen=True)
class FunctionInstance:
    """One scheduled invocation of a function for a triggering blob."""

    function_name: str
    blob: BlobDescriptor
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DelayedException:
    """A function failure captured for the caller to surface later."""

    instance: FunctionInstance
    exception: BaseException
    traceback_text: str = ""

    def raise_(self) -> None:
        """Raise the captured failure as an ``ExecutionError``."""
        raise ExecutionError(
            f"Function {self.instance.function_name} failed",
            function_name=self.instance.function_name,
            blob_uri=self.instance.blob.uri,
            original_error=self.exception if isinstance(self.exception, Exception) else None,
        ) from self.exception

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance.id,
            "function_name": self.instance.function_name,
            "blob_uri": self.instance.blob.uri,
            "error_type": type(self.exception).__name__,
            "error": str(self.exception),
        }


class FunctionExecutor(ABC):
    """Runs function instances on behalf of the dispatcher."""

    @abstractmethod
    def try_execute(
        self, instance: FunctionInstance, cancel: CancellationToken
    ) -> Optional[DelayedException]:
        """Execute ``instance``; return the failure instead of raising it."""


class CallableFunctionExecutor(FunctionExecutor):
    """Executes a plain Python callable that takes the triggering blob."""

    def __init__(self, handler: BlobHandler, function_name: Optional[str] = None) -> None:
        self.handler = handler
        self.function_name = function_name or getattr(handler, "__qualname__", repr(handler))

    def try_execute(
        self, instance: FunctionInstance, cancel: CancellationToken
    ) -> Optional[DelayedException]:
        if cancel.is_cancellation_requested:
            logger.debug("Not starting %s for %s: cancelled", instance.function_name, instance.blob.uri)
            return None
        try:
            self.handler(instance.blob)
        except Exception as exc:
            return DelayedException(instance, exc, traceback.format_exc())
        return None


class BlobTriggerDispatcher:
    """Sink that triggers a function for every detected blob.

    Example:
        >>> dispatcher = BlobTriggerDispatcher(CallableFunctionExecutor(process))
        >>> listener.poll(dispatcher, cancel)
        >>> dispatcher.raise_first_failure()
    """

    def __init__(
        self,
        executor: FunctionExecutor,
        cancel: Optional[CancellationToken] = None,
        function_name: Optional[str] = None,
    ) -> None:
        self.executor = executor
        self.cancel = cancel or CancellationToken.none()
        self.function_name = function_name or getattr(executor, "function_name", type(executor).__name__)
        self.executed_count = 0
        self.skipped_count = 0
        self.failures: List[DelayedException] = []

    def __call__(self, blob: BlobDescriptor) -> None:
        if self.cancel.is_cancellation_requested:
            self.skipped_count += 1
            logger.debug("Not dispatching %s for %s: cancelled", self.function_name, blob.uri)
            return
        instance = FunctionInstance(function_name=self.function_name, blob=blob)
        logger.debug("Executing %s for %s (instance %s)", instance.function_name, blob.uri, instance.id)
        failure = self.executor.try_execute(instance, self.cancel)
        self.executed_count += 1
        if failure is not None:
            logger.error(
                "Function %s failed for %s: %s",
                instance.function_name,
                blob.uri,
                failure.exception,
                extra=failure.to_dict(),
            )
            self.failures.append(failure)

    def raise_first_failure(self) -> None:
        if self.failures:
            self.failures[0].raise_()


def load_handler(target: str) -> BlobHandler:
    """Import a handler given as ``"package.module:function"``.

    Raises:
        ExecutionError: If the module or attribute cannot be resolved
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ExecutionError(f"Handler must look like 'package.module:function', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ExecutionError(f"Cannot import handler module {module_name!r}", original_error=exc)

    handler = module
    for part in attr.split("."):
        try:
            handler = getattr(handler, part)
        except AttributeError as exc:
            raise ExecutionError(f"Handler {target!r} not found", original_error=exc)
    if not callable(handler):
        raise ExecutionError(f"Handler {target!r} is not callable")
    return handler
