"""Session capability consumed by the actor, and its Zenoh implementation.

Only the actor calls these methods. All of them may block on the network, so
the actor runs them off the event loop.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Protocol, Tuple

import zenoh

from zenoh_cli.errors import SubscriptionClosed

logger = logging.getLogger(__name__)

KeyValue = Tuple[str, bytes]


class Subscription(Protocol):
    def try_next(self) -> KeyValue | None:
        """Return the next sample without blocking, or None when none is ready.

        Raises ``SubscriptionClosed`` once the source has ended.
        """
        ...

    def close(self) -> None: ...


class Session(Protocol):
    def query(self, selector: str) -> Iterator[KeyValue]:
        """Dispatch a query and return a lazy iterator over its replies.

        Dispatch failures raise from this call; a reply carrying an error
        raises from the iterator.
        """
        ...

    def write(self, key: str, payload: bytes) -> None: ...

    def remove(self, key: str) -> None: ...

    def subscribe(self, pattern: str) -> Subscription: ...

    def identity(self) -> str: ...

    def enumerate_peers(self) -> list[str]: ...

    def enumerate_routers(self) -> list[str]: ...

    def close(self) -> None: ...


class ReplyError(RuntimeError):
    """A queryable answered with an error instead of a sample."""


def _sample_to_key_value(sample: zenoh.Sample) -> KeyValue:
    return str(sample.key_expr), sample.payload.to_bytes()


class ZenohSubscription:
    def __init__(self, subscriber: zenoh.Subscriber) -> None:
        self._subscriber = subscriber
        self._closed = False

    def try_next(self) -> KeyValue | None:
        if self._closed:
            raise SubscriptionClosed("subscription is closed")
        try:
            sample = self._subscriber.try_recv()
        except zenoh.ZError as exc:
            raise SubscriptionClosed(str(exc)) from exc
        if sample is None:
            return None
        return _sample_to_key_value(sample)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._subscriber.undeclare()


class ZenohSession:
    """Adapter from ``zenoh.Session`` to the actor's session capability."""

    def __init__(self, session: zenoh.Session) -> None:
        self._session = session

    @classmethod
    def open(cls, config: zenoh.Config) -> "ZenohSession":
        logger.info("Opening zenoh session")
        return cls(zenoh.open(config))

    def query(self, selector: str) -> Iterator[KeyValue]:
        replies = self._session.get(selector)
        return self._iter_replies(replies)

    @staticmethod
    def _iter_replies(replies: Iterable[zenoh.Reply]) -> Iterator[KeyValue]:
        for reply in replies:
            result = reply.result
            if isinstance(result, zenoh.ReplyError):
                raise ReplyError(result.payload.to_string())
            yield _sample_to_key_value(result)

    def write(self, key: str, payload: bytes) -> None:
        self._session.put(key, payload, encoding=zenoh.Encoding.TEXT_PLAIN)

    def remove(self, key: str) -> None:
        self._session.delete(key)

    def subscribe(self, pattern: str) -> ZenohSubscription:
        return ZenohSubscription(self._session.declare_subscriber(pattern))

    def identity(self) -> str:
        return str(self._session.info.zid())

    def enumerate_peers(self) -> list[str]:
        return [str(zid) for zid in self._session.info.peers_zid()]

    def enumerate_routers(self) -> list[str]:
        return [str(zid) for zid in self._session.info.routers_zid()]

    def close(self) -> None:
        logger.info("Closing zenoh session")
        self._session.close()
