"""Command-line entry point: watch files and reload them as they change.

Usage:
    python -m hotreload src/app.py README.md
    python -m hotreload --interval 500 --loud notes.txt

Files are held in memory by a headless FileHost. Every reload is printed;
Ctrl-C stops watching through the same PROCESS_EXIT path an editor uses.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich.console import Console

from hotreload import __version__
from hotreload.config import load_config
from hotreload.config.schema import Scope
from hotreload.errors import ConfigError
from hotreload.filehost import Buffer, FileHost
from hotreload.host import Handle, HostEvent
from hotreload.logging import get_logger, setup_logging
from hotreload.watching import ReconciliationDriver

log = get_logger()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hotreload",
        description="Reload files into memory whenever they change on disk",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file layered over system/user/project config",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--interval",
        type=int,
        help="Poll every N milliseconds instead of using native notifications",
    )
    mode.add_argument(
        "--native",
        action="store_true",
        help="Use native notifications even if a config file sets an interval",
    )
    parser.add_argument(
        "--scope",
        choices=[s.value for s in Scope],
        help="Which open files to watch",
    )
    parser.add_argument(
        "--loud",
        action="store_true",
        help="Show a notification for every reload",
    )
    parser.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="Files to watch",
    )
    return parser


def _options_from_args(parsed: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if parsed.interval is not None:
        options["interval"] = parsed.interval
    elif parsed.native:
        options["interval"] = "off"
    if parsed.scope is not None:
        options["scope"] = parsed.scope
    if parsed.loud:
        options["silent"] = False
    if parsed.verbose:
        # -v = verbose, -vv = trace
        options["logging"] = {"verbose": min(parsed.verbose + 2, 4)}
    return options


async def _watch(host: FileHost, driver: ReconciliationDriver, files: Sequence[Path]) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

    async with driver:
        for path in files:
            host.open(path.expanduser().absolute())
        try:
            await stop.wait()
        finally:
            host.emit(HostEvent.PROCESS_EXIT)


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)
    console = Console(stderr=True)

    try:
        config = load_config(
            str(Path.cwd()),
            _options_from_args(parsed),
            config_file=parsed.config,
        )
    except ConfigError as e:
        console.print(f"hotreload: {e}", style="bold red", markup=False)
        return 2

    setup_logging(config.logging)

    def on_reload(handle: Handle, buffer: Buffer) -> None:
        console.print(f"reloaded {buffer.path} ({len(buffer.content)} bytes)", markup=False)

    host = FileHost(console=console, on_reload=on_reload)
    driver = ReconciliationDriver(host, config)

    try:
        asyncio.run(_watch(host, driver, parsed.files))
    except KeyboardInterrupt:
        log.info("Interrupted")
    return 0


def main() -> None:
    """Console script entry point."""
    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
