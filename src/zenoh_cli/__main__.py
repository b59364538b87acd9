"""Module entrypoint for `python -m zenoh_cli`."""

from __future__ import annotations

from zenoh_cli.cli import main_entry

if __name__ == "__main__":
    main_entry()
