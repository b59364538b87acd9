from __future__ import annotations

import pytest
import zenoh

from zenoh_cli import cli

from tests.utils import MemorySession


@pytest.fixture
def memory_session(monkeypatch: pytest.MonkeyPatch) -> MemorySession:
    session = MemorySession({"demo/a": b"1"})
    monkeypatch.setattr(cli, "open_session", lambda _settings: session)
    monkeypatch.setattr(cli, "configure_logging", lambda _config: None)
    monkeypatch.setattr(zenoh, "init_log_from_env_or", lambda _level: None)
    return session


def test_one_shot_success_exits_zero(memory_session: MemorySession, rendered: list[str]) -> None:
    assert cli.main(["get", "demo/a"]) == cli.EXIT_OK
    assert rendered == ["demo/a: 1"]
    assert memory_session.closed is True


def test_one_shot_joins_words_into_one_command(memory_session: MemorySession, rendered: list[str]) -> None:
    assert cli.main(["put", "demo/b", "hello", "there"]) == cli.EXIT_OK
    assert memory_session.storage["demo/b"] == b"hello there"


def test_one_shot_failure_exits_non_zero(memory_session: MemorySession, rendered: list[str]) -> None:
    assert cli.main(["frobnicate"]) == cli.EXIT_FAILURE
    assert rendered == ["error: unknown command: frobnicate"]


def test_one_shot_operation_error_exits_non_zero(memory_session: MemorySession, rendered: list[str]) -> None:
    memory_session.failures["remove"] = RuntimeError("denied")
    assert cli.main(["delete", "demo/a"]) == cli.EXIT_FAILURE
    assert rendered == ["error: failed to delete demo/a: denied"]


def test_one_shot_quit_is_a_clean_exit(memory_session: MemorySession) -> None:
    assert cli.main(["quit"]) == cli.EXIT_OK
    assert memory_session.calls == []


def test_bad_configuration_exits_before_opening_a_session(
    monkeypatch: pytest.MonkeyPatch, rendered: list[str]
) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda _config: None)
    monkeypatch.setattr(zenoh, "init_log_from_env_or", lambda _level: None)
    monkeypatch.setenv("ZENOH_CLI_MODE", "bridge")

    def _fail_open(_settings):
        raise AssertionError("session must not be opened")

    monkeypatch.setattr(cli, "open_session", _fail_open)

    assert cli.main(["zid"]) == cli.EXIT_FAILURE
    assert rendered[0].startswith("error: unknown mode 'bridge'")
