"""Interactive REPL loop."""

from __future__ import annotations

import logging
from pathlib import Path

from prompt_toolkit import PromptSession  # type: ignore
from prompt_toolkit.history import FileHistory  # type: ignore

from zenoh_cli import display
from zenoh_cli.actor import CommandActor
from zenoh_cli.commands import Interrupt, handle
from zenoh_cli.errors import Exit, ZenohCliError

logger = logging.getLogger(__name__)

PROMPT = "> "


async def interactive_loop(
    actor: CommandActor,
    *,
    history_path: Path | None = None,
    session: PromptSession | None = None,
    interrupt: Interrupt | None = None,
) -> None:
    """Read commands until EOF, Ctrl-C at the prompt, or ``quit``.

    Command failures are printed and the loop carries on.
    """
    if session is None:
        history = FileHistory(str(history_path)) if history_path is not None else None
        session = PromptSession(history=history)

    while True:
        try:
            line = await session.prompt_async(PROMPT)
        except (EOFError, KeyboardInterrupt):
            break

        if not line.strip():
            continue

        try:
            await handle(actor, line, interrupt=interrupt)
        except Exit:
            break
        except ZenohCliError as exc:
            display.print_error(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Command failed unexpectedly: %s", line)
            display.print_error(str(exc) or type(exc).__name__)
