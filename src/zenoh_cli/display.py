"""Shared rich console utilities for terminal output."""

from __future__ import annotations

from io import StringIO
from threading import Lock
from typing import Any

from prompt_toolkit.formatted_text import ANSI  # type: ignore
from prompt_toolkit.shortcuts import print_formatted_text  # type: ignore
from rich.console import Console
from rich.table import Table
from rich.text import Text

from zenoh_cli.errors import PayloadDecodingError

# Render through rich into a buffer, then hand the ANSI text to prompt_toolkit
# so output does not tear the prompt line.
_render_buffer = StringIO()
_render_console = Console(
    file=_render_buffer,
    force_terminal=True,
    color_system="standard",
    markup=False,
    highlight=False,
)
_render_lock = Lock()


def _render_and_print(*args: Any, **kwargs: Any) -> None:
    kwargs.setdefault("end", "\n")
    with _render_lock:
        _render_buffer.seek(0)
        _render_buffer.truncate(0)
        _render_console.print(*args, **kwargs)
        output = _render_buffer.getvalue()
    if output:
        print_formatted_text(ANSI(output), end="")


def decode_payload(key: str, payload: bytes) -> str:
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise PayloadDecodingError(key) from exc


def print_banner(version: str) -> None:
    _render_and_print(Text(f"Zenoh CLI v{version}"))


def print_key_value(key: str, payload: bytes) -> None:
    """Print ``key: value``; raises PayloadDecodingError for non-text payloads."""
    value = decode_payload(key, payload)
    line = Text()
    line.append(key, style="bright_black")
    line.append(f": {value}")
    _render_and_print(line)


def print_value(value: str) -> None:
    _render_and_print(Text(value))


def print_ok() -> None:
    _render_and_print(Text("ok", style="bright_black"))


def print_notice(message: str) -> None:
    _render_and_print(Text(message, style="bright_black"))


def print_error(message: str) -> None:
    _render_and_print(Text(f"error: {message}", style="red"))


def print_help(entries: list[tuple[str, str]]) -> None:
    """Render ``(usage, description)`` rows as a two-column table."""
    table = Table(show_header=False, box=None)
    table.add_column("Usage", style="cyan", no_wrap=True)
    table.add_column("Description")
    for usage, description in entries:
        table.add_row(usage, description)
    _render_and_print(table)
