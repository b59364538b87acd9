"""Bounded, single-use reply channels between the actor and its callers.

A reply channel wraps a pair of anyio memory object streams. The actor owns
the send side and closes it to mark the end of a reply sequence; the caller
owns the receive side and may close it early (``detach``) to tell the actor it
is no longer interested, which is how a live subscription is cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

import anyio

T = TypeVar("T")

DEFAULT_REPLY_CAPACITY = 8
SINGLE_REPLY_CAPACITY = 1


class ReplyDropped(Exception):
    """The consumer detached before the actor could deliver a reply."""


@dataclass(frozen=True)
class _Failure:
    error: Exception


class ReplyChannel(Generic[T]):
    def __init__(self, capacity: int = DEFAULT_REPLY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("reply channel capacity must be at least 1")
        self._send, self._receive = anyio.create_memory_object_stream(capacity)

    # Producer side (actor).

    @property
    def consumer_closed(self) -> bool:
        """True once the consumer has detached its receive side."""
        return self._send.statistics().open_receive_streams == 0

    async def send(self, value: T) -> None:
        """Push a value, waiting while the channel is full.

        Raises ``ReplyDropped`` if the consumer has detached, including while
        this call was waiting for room.
        """
        try:
            await self._send.send(value)
        except anyio.BrokenResourceError as exc:
            raise ReplyDropped() from exc

    async def fail(self, error: Exception) -> None:
        """Push an error item; the consumer raises it on receipt."""
        try:
            await self._send.send(_Failure(error))
        except anyio.BrokenResourceError as exc:
            raise ReplyDropped() from exc

    def close(self) -> None:
        """Mark the end of the reply sequence."""
        self._send.close()

    # Consumer side (driver).

    async def receive(self) -> T:
        """Return the next value, raising error items.

        Raises ``anyio.EndOfStream`` once the producer has closed the channel
        and every buffered item has been received.
        """
        item = await self._receive.receive()
        if isinstance(item, _Failure):
            raise item.error
        return item

    def detach(self) -> None:
        """Close the receive side; pending and future pushes are dropped."""
        self._receive.close()

    def __aiter__(self) -> "ReplyChannel[T]":
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except anyio.EndOfStream:
            raise StopAsyncIteration from None

    def __enter__(self) -> "ReplyChannel[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.detach()
