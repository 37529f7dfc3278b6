from __future__ import annotations

import argparse
import errno
import os
import sys
from functools import wraps
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from dissect.rpm.exceptions import ConfigError
from dissect.rpm.helpers import config
from dissect.rpm.tools.logging import configure_logging

if TYPE_CHECKING:
    from types import ModuleType


def configure_generic_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", type=Path, help="directory or file to search for a .rpmcfg.py config")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="increase output verbosity")
    parser.add_argument("--version", action="store_true", help="print version")
    parser.add_argument("-q", "--quiet", action="store_true", help="do not output logging information")


def process_generic_arguments(args: argparse.Namespace) -> ModuleType:
    """Configure logging, handle ``--version`` and return the loaded configuration."""
    configure_logging(args.verbose, args.quiet, as_plain_text=True)

    if args.version:
        try:
            print("dissect.rpm version " + version("dissect.rpm"))
        except PackageNotFoundError:
            print("unable to determine version")
        sys.exit(0)

    paths = [args.config] if args.config else [Path.cwd()]
    if getattr(args, "package", None):
        paths.append(args.package)

    try:
        return config.load(paths)
    except ConfigError as e:
        sys.exit(f"Invalid configuration: {e}")


def catch_sigpipe(func: Callable) -> Callable:
    """Catches ``KeyboardInterrupt`` and ``BrokenPipeError`` (``OSError 22`` on Windows)."""

    @wraps(func)
    def wrapper(*args, **kwargs) -> int:
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            print("Aborted!", file=sys.stderr)
            return 1
        except OSError as e:
            # Only catch BrokenPipeError or OSError 22
            if e.errno in (errno.EPIPE, errno.EINVAL):
                devnull = os.open(os.devnull, os.O_WRONLY)
                os.dup2(devnull, sys.stdout.fileno())
                return 1
            # Raise other exceptions
            raise

    return wrapper
