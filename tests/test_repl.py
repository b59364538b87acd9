from __future__ import annotations

import pytest

from zenoh_cli.repl import interactive_loop

from tests.utils import MemorySession, running_actor


class ScriptedPrompt:
    """Stands in for a prompt_toolkit PromptSession, replaying fixed input."""

    def __init__(self, lines: list[str]) -> None:
        self._lines = list(lines)
        self.prompts = 0

    async def prompt_async(self, _message: str) -> str:
        self.prompts += 1
        if not self._lines:
            raise EOFError
        return self._lines.pop(0)


@pytest.mark.asyncio
async def test_errors_are_printed_and_the_loop_continues(rendered: list[str]) -> None:
    session = MemorySession()
    prompt = ScriptedPrompt(["put demo/k v", "", "bogus", "get demo/k", "quit", "zid"])

    async with running_actor(session) as actor:
        await interactive_loop(actor, session=prompt)  # type: ignore[arg-type]

    assert rendered == ["ok", "error: unknown command: bogus", "demo/k: v"]
    assert prompt.prompts == 5
    assert "identity" not in session.calls


@pytest.mark.asyncio
async def test_end_of_input_leaves_the_loop(rendered: list[str]) -> None:
    prompt = ScriptedPrompt(["get nothing/here"])

    async with running_actor(MemorySession()) as actor:
        await interactive_loop(actor, session=prompt)  # type: ignore[arg-type]

    assert rendered == ["no replies received"]


@pytest.mark.asyncio
async def test_payload_errors_do_not_end_the_session(rendered: list[str]) -> None:
    session = MemorySession({"blob": b"\xff", "text": b"ok"})
    prompt = ScriptedPrompt(["get blob", "get text"])

    async with running_actor(session) as actor:
        await interactive_loop(actor, session=prompt)  # type: ignore[arg-type]

    assert rendered == ["error: payload of blob is not valid utf-8", "text: ok"]
