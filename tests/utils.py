from __future__ import annotations

import asyncio
import contextlib
import threading
from collections import deque
from typing import AsyncIterator, Callable, Iterator

from zenoh_cli.actor import CommandActor, start_actor
from zenoh_cli.errors import SubscriptionClosed
from zenoh_cli.session import KeyValue


def key_matches(pattern: str, key: str) -> bool:
    """Minimal ``*``/``**`` chunk matcher, enough for the tests."""

    def _match(pattern_chunks: list[str], key_chunks: list[str]) -> bool:
        if not pattern_chunks:
            return not key_chunks
        head, rest = pattern_chunks[0], pattern_chunks[1:]
        if head == "**":
            return any(_match(rest, key_chunks[i:]) for i in range(len(key_chunks) + 1))
        if not key_chunks:
            return False
        return (head == "*" or head == key_chunks[0]) and _match(rest, key_chunks[1:])

    return _match(pattern.split("/"), key.split("/"))


class MemorySubscription:
    def __init__(self, pattern: str, owner: "MemorySession") -> None:
        self.pattern = pattern
        self.closed = False
        self._owner = owner
        self._pending: deque[KeyValue] = deque()
        self._ended = False

    def deliver(self, item: KeyValue) -> None:
        self._pending.append(item)

    def end(self) -> None:
        self._ended = True

    def try_next(self) -> KeyValue | None:
        with self._owner.lock:
            if self.closed:
                raise SubscriptionClosed("subscription is closed")
            if self._pending:
                return self._pending.popleft()
            if self._ended:
                raise SubscriptionClosed("subscription ended")
            return None

    def close(self) -> None:
        with self._owner.lock:
            self.closed = True
            self._owner.subscriptions.remove(self)


class MemorySession:
    """In-process session double: a dict store plus subscriber fan-out.

    ``failures`` maps an operation name (``query``, ``write``, ``remove``,
    ``subscribe``, ``identity``) to the exception that call should raise.
    ``reply_error_after`` makes a query fail after that many replies.
    """

    def __init__(
        self,
        entries: dict[str, bytes] | None = None,
        *,
        zid: str = "a1b2c3d4e5f60718",
        peers: tuple[str, ...] = (),
        routers: tuple[str, ...] = (),
    ) -> None:
        self.storage: dict[str, bytes] = dict(entries or {})
        self.subscriptions: list[MemorySubscription] = []
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.reply_error_after: int | None = None
        self.closed = False
        self.lock = threading.RLock()
        self._zid = zid
        self._peers = list(peers)
        self._routers = list(routers)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def query(self, selector: str) -> Iterator[KeyValue]:
        self._record("query")
        with self.lock:
            matches = [(key, value) for key, value in sorted(self.storage.items()) if key_matches(selector, key)]
        return self._iter_replies(matches)

    def _iter_replies(self, matches: list[KeyValue]) -> Iterator[KeyValue]:
        for index, item in enumerate(matches):
            if self.reply_error_after is not None and index >= self.reply_error_after:
                raise RuntimeError("queryable replied with an error")
            yield item

    def write(self, key: str, payload: bytes) -> None:
        self._record("write")
        with self.lock:
            self.storage[key] = payload
        self.publish(key, payload)

    def remove(self, key: str) -> None:
        self._record("remove")
        with self.lock:
            self.storage.pop(key, None)

    def subscribe(self, pattern: str) -> MemorySubscription:
        self._record("subscribe")
        subscription = MemorySubscription(pattern, self)
        with self.lock:
            self.subscriptions.append(subscription)
        return subscription

    def publish(self, key: str, payload: bytes) -> None:
        """Deliver a sample as if another peer had written it."""
        with self.lock:
            for subscription in self.subscriptions:
                if key_matches(subscription.pattern, key):
                    subscription.deliver((key, payload))

    def identity(self) -> str:
        self._record("identity")
        return self._zid

    def enumerate_peers(self) -> list[str]:
        self._record("peers")
        return list(self._peers)

    def enumerate_routers(self) -> list[str]:
        self._record("routers")
        return list(self._routers)

    def close(self) -> None:
        self.closed = True


@contextlib.asynccontextmanager
async def running_actor(session: MemorySession, **kwargs) -> AsyncIterator[CommandActor]:
    """Start a strict actor and make sure it has shut down afterwards."""
    kwargs.setdefault("strict", True)
    actor = start_actor(session, **kwargs)
    try:
        yield actor
    finally:
        actor.close()
        await asyncio.wait_for(actor.wait_closed(), timeout=5)


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait until ``predicate`` holds, failing the test after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
