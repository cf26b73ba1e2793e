"""Command-line entry point for the directory watcher."""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from .config import ConfigError, WatchConfig, load_config
from .monitor import DirectoryWatcher, WatchError
from .notifier import create_notifier


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="sic-watcher",
        description="Print the path of every regular file that appears in a directory",
    )
    parser.add_argument(
        "-0",
        dest="null_separator",
        action="store_true",
        default=None,
        help="Terminate each path with a null byte instead of a newline",
    )
    parser.add_argument(
        "--config",
        help="Optional YAML file with watcher tunables",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument("directory", help="Directory to watch")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        stream=sys.stderr,
    )

    if args.config:
        try:
            config = load_config(Path(args.config), directory=args.directory, null_separator=args.null_separator)
        except ConfigError as exc:
            logging.error("%s", exc)
            return 1
    else:
        config = WatchConfig(directory=args.directory, null_separator=bool(args.null_separator))

    watcher = DirectoryWatcher(config, create_notifier(config.backend), sys.stdout.buffer)

    def _handle_signal(signum, _frame) -> None:
        logging.getLogger(__name__).info("Received signal %s, shutting down", signum)
        watcher.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        watcher.run()
    except WatchError as exc:
        logging.error("sic-watcher: %s", exc)
        if isinstance(exc.__cause__, BrokenPipeError):
            # Keep the interpreter from failing again when it flushes stdout at exit.
            devnull = os.open(os.devnull, os.O_WRONLY)
            os.dup2(devnull, sys.stdout.fileno())
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
