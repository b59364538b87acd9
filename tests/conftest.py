from __future__ import annotations

from pathlib import Path

import pytest
from rich.text import Text

from zenoh_cli import display


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path_factory, monkeypatch):
    """Force tests to use a temporary HOME/XDG dirs so history and logs stay out of the real home."""
    base = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(base))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(base / ".config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(base / ".local" / "state"))
    monkeypatch.setenv("XDG_DATA_HOME", str(base / ".local" / "share"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(base / ".cache"))
    for name in ("ZENOH_CONFIG", "ZENOH_CLI_MODE", "ZENOH_CLI_CONNECT", "ZENOH_CLI_LISTEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(Path, "home", lambda: base)


@pytest.fixture
def rendered(monkeypatch) -> list[str]:
    """Capture display output as plain text lines instead of writing to the terminal."""
    lines: list[str] = []

    def _capture(*args, **_kwargs) -> None:
        for renderable in args:
            lines.append(renderable.plain if isinstance(renderable, Text) else str(renderable))

    monkeypatch.setattr(display, "_render_and_print", _capture)
    return lines
