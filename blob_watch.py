"""CLI entrypoint for blobwatch.

This file wires together:

- Config loading and validation
- Container construction
- The polling listener and its scheduling loop
- Handler dispatch for detected blobs

Examples:
    blob-watch --container ./landing --once
    blob-watch --config watch.yaml --handler jobs.ingest:on_blob
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from blobwatch import __version__
from blobwatch.cancellation import CancellationToken
from blobwatch.config import ContainerConfig, WatchConfig, load_config
from blobwatch.exceptions import BlobWatchError, ConfigValidationError
from blobwatch.executor import BlobTriggerDispatcher, CallableFunctionExecutor, load_handler
from blobwatch.listener import BlobSink, ContainerScannerListener
from blobwatch.logging_config import log_exception, parse_log_level, setup_logging
from blobwatch.runner import run_watch
from blobwatch.storage import BlobDescriptor, list_backends

logger = logging.getLogger(__name__)


def _log_blob(blob: BlobDescriptor) -> None:
    logger.info(
        "New blob %s (last modified %s)",
        blob.uri,
        blob.last_modified.isoformat(),
        extra={"container": blob.container, "blob": blob},
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch blob containers and report new or modified blobs",
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument(
        "--container",
        action="append",
        default=[],
        help="Container URI to watch (repeatable; added to those from --config)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between polls (overrides watch.poll_interval_seconds)",
    )
    parser.add_argument("--once", action="store_true", help="Run a single poll and exit")
    parser.add_argument("--max-polls", type=int, default=None, help="Stop after this many polls")
    parser.add_argument(
        "--handler",
        help="Function to run per detected blob, as 'package.module:function'",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG, INFO, WARNING, ERROR). Can also set via BLOBWATCH_LOG_LEVEL env var",
    )
    parser.add_argument(
        "--log-format",
        choices=["human", "json", "simple"],
        default=None,
        help="Log format (default: human). Can also set via BLOBWATCH_LOG_FORMAT env var",
    )
    parser.add_argument("--log-file", default=None, help="Also write JSON logs to this file")
    parser.add_argument(
        "--list-backends",
        action="store_true",
        help="List available container backends and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"blobwatch {__version__}",
        help="Show version and exit",
    )
    return parser


def _resolve_config(args: argparse.Namespace) -> WatchConfig:
    config = load_config(args.config) if args.config else WatchConfig()
    config.containers.extend(ContainerConfig(uri=uri) for uri in args.container)
    if not config.containers:
        raise ConfigValidationError("No containers to watch; use --container or --config", args.config)
    if args.interval is not None:
        if args.interval < 0:
            raise ConfigValidationError("--interval must be >= 0", key="interval")
        config.poll_interval_seconds = args.interval
    if args.once:
        config.max_polls = 1
    elif args.max_polls is not None:
        config.max_polls = args.max_polls
    if args.handler:
        config.handler = args.handler
    return config


def _install_signal_handlers(cancel: CancellationToken) -> None:
    def _handle(signum: int, frame: object) -> None:
        logger.info("Received signal %d, stopping after the current blob", signum)
        cancel.cancel()

    signal.signal(signal.SIGINT, _handle)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_backends:
        print("Available container backends:")
        for backend in list_backends():
            print(f"  - {backend}")
        return 0

    try:
        config = _resolve_config(args)
    except (ConfigValidationError, FileNotFoundError) as exc:
        setup_logging(format_type=args.log_format)
        logger.error("Configuration error: %s", exc)
        return 2

    level_name = args.log_level or config.log.level
    log_file = args.log_file or config.log.file
    setup_logging(
        level=parse_log_level(level_name) if level_name else None,
        format_type=args.log_format or config.log.format,
        log_file=Path(log_file) if log_file else None,
        use_colors=True,
    )

    cancel = CancellationToken()
    _install_signal_handlers(cancel)

    try:
        containers = config.build_containers()
        handler = load_handler(config.handler) if config.handler else None
    except ValueError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except BlobWatchError as exc:
        log_exception(logger, "Watch failed", exc)
        return 1

    dispatcher: Optional[BlobTriggerDispatcher] = None
    sink: BlobSink = _log_blob
    if handler is not None:
        dispatcher = BlobTriggerDispatcher(
            CallableFunctionExecutor(handler, function_name=config.handler),
            cancel=cancel,
        )
        sink = dispatcher

    try:
        listener = ContainerScannerListener(containers)
        logger.info("Watching %d container(s)", len(containers))
        summary = run_watch(
            listener,
            sink,
            cancel,
            poll_interval_seconds=config.poll_interval_seconds,
            max_polls=config.max_polls,
            max_consecutive_failures=config.max_consecutive_failures,
        )
    except BlobWatchError as exc:
        log_exception(logger, "Watch failed", exc)
        return 1

    if dispatcher is not None and dispatcher.failures:
        logger.error(
            "%d of %d function execution(s) failed",
            len(dispatcher.failures),
            dispatcher.executed_count,
        )
        return 1

    logger.info("Done: %s", summary.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
