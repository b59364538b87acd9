"""Session configuration from Zenoh config files, environment and CLI flags.

Precedence, highest first: command-line flags, environment variables (a
``.env`` file in the user config directory or the working directory fills in
unset ones), then the Zenoh config file named by ``--config``/``ZENOH_CONFIG``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

import zenoh
from dotenv import load_dotenv

from zenoh_cli.errors import ConfigError
from zenoh_cli.paths import config_dir

logger = logging.getLogger(__name__)

ZENOH_MODES = ("peer", "client", "router")


@dataclass(frozen=True)
class SessionSettings:
    config_file: Path | None = None
    mode: str | None = None
    connect: tuple[str, ...] = ()
    listen: tuple[str, ...] = ()


def env_file() -> Path:
    return config_dir() / ".env"


def load_env() -> None:
    """Load ``.env`` files without overriding variables already set."""
    load_dotenv(env_file(), override=False)
    load_dotenv(override=False)


def _split_endpoints(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def settings_from_env(environ: Mapping[str, str] | None = None) -> SessionSettings:
    env = os.environ if environ is None else environ
    config_file = env.get("ZENOH_CONFIG")
    return SessionSettings(
        config_file=Path(config_file) if config_file else None,
        mode=env.get("ZENOH_CLI_MODE") or None,
        connect=_split_endpoints(env.get("ZENOH_CLI_CONNECT")),
        listen=_split_endpoints(env.get("ZENOH_CLI_LISTEN")),
    )


def build_session_settings(
    *,
    config_file: Path | None = None,
    mode: str | None = None,
    connect: Iterable[str] = (),
    listen: Iterable[str] = (),
    environ: Mapping[str, str] | None = None,
) -> SessionSettings:
    """Merge CLI overrides onto environment settings and validate the result."""
    base = settings_from_env(environ)
    settings = SessionSettings(
        config_file=config_file or base.config_file,
        mode=mode or base.mode,
        connect=tuple(connect) or base.connect,
        listen=tuple(listen) or base.listen,
    )
    if settings.mode is not None and settings.mode not in ZENOH_MODES:
        raise ConfigError(f"unknown mode {settings.mode!r}; expected one of {', '.join(ZENOH_MODES)}")
    if settings.config_file is not None and not settings.config_file.is_file():
        raise ConfigError(f"config file not found: {settings.config_file}")
    return settings


def to_zenoh_config(settings: SessionSettings) -> zenoh.Config:
    try:
        if settings.config_file is not None:
            logger.info("Loading zenoh config from %s", settings.config_file)
            config = zenoh.Config.from_file(str(settings.config_file))
        else:
            config = zenoh.Config()
        if settings.mode:
            config.insert_json5("mode", json.dumps(settings.mode))
        if settings.connect:
            config.insert_json5("connect/endpoints", json.dumps(list(settings.connect)))
        if settings.listen:
            config.insert_json5("listen/endpoints", json.dumps(list(settings.listen)))
    except (zenoh.ZError, ValueError) as exc:
        raise ConfigError(f"invalid zenoh configuration: {exc}") from exc
    return config
