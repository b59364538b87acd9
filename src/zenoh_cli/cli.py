"""Process entry point: one-shot commands or the interactive REPL."""

from __future__ import annotations

import argparse
import asyncio
import logging
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Sequence

import zenoh

from zenoh_cli import display
from zenoh_cli.actor import CommandActor, start_actor
from zenoh_cli.commands import handle
from zenoh_cli.config import ZENOH_MODES, SessionSettings, build_session_settings, load_env, to_zenoh_config
from zenoh_cli.errors import ConfigError, Exit
from zenoh_cli.log_utils import build_log_config, configure_logging, log_event
from zenoh_cli.paths import history_file
from zenoh_cli.repl import interactive_loop
from zenoh_cli.session import Session, ZenohSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def package_version() -> str:
    try:
        return version("zenoh-cli")
    except PackageNotFoundError:
        return "0.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zenoh-cli",
        description="Query, write and watch a Zenoh network. Without a command, starts a REPL.",
    )
    parser.add_argument("command", nargs="*", help="Run a single command and exit, e.g. 'get demo/**'")
    parser.add_argument("-c", "--config", type=Path, help="Zenoh JSON5 config file (default: $ZENOH_CONFIG)")
    parser.add_argument("-m", "--mode", choices=ZENOH_MODES, help="Session mode")
    parser.add_argument("-e", "--connect", action="append", default=[], metavar="ENDPOINT", help="Endpoint to connect to")
    parser.add_argument("-l", "--listen", action="append", default=[], metavar="ENDPOINT", help="Endpoint to listen on")
    parser.add_argument("--no-history", action="store_true", help="Do not persist REPL history")
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_version()}")
    return parser


def open_session(settings: SessionSettings) -> Session:
    return ZenohSession.open(to_zenoh_config(settings))


async def run_once(actor: CommandActor, line: str) -> int:
    """Run one command; map its outcome to a process exit code."""
    try:
        await handle(actor, line)
    except Exit:
        return EXIT_OK
    except Exception as exc:  # noqa: BLE001
        logger.debug("One-shot command failed", exc_info=True)
        display.print_error(str(exc) or type(exc).__name__)
        return EXIT_FAILURE
    return EXIT_OK


async def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(build_log_config())
    zenoh.init_log_from_env_or("error")
    load_env()

    try:
        settings = build_session_settings(
            config_file=args.config,
            mode=args.mode,
            connect=args.connect,
            listen=args.listen,
        )
        session = open_session(settings)
    except ConfigError as exc:
        display.print_error(str(exc))
        return EXIT_FAILURE
    except zenoh.ZError as exc:
        display.print_error(f"failed to create zenoh session: {exc}")
        return EXIT_FAILURE

    log_event(logger, "cli.session.open", mode=settings.mode, config=str(settings.config_file or ""))
    actor = start_actor(session)
    try:
        if args.command:
            return await run_once(actor, " ".join(args.command))
        display.print_banner(package_version())
        await interactive_loop(actor, history_path=None if args.no_history else history_file())
        return EXIT_OK
    finally:
        actor.close()
        await actor.wait_closed()


def main(argv: Sequence[str] | None = None) -> int:
    try:
        return asyncio.run(run(argv))
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


def main_entry() -> None:
    raise SystemExit(main())
