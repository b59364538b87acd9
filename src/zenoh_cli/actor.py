"""The command actor: sole owner of the session handle.

Requests arrive over a bounded FIFO channel and are handled strictly one at a
time, so the session is only ever touched by a single task. A slow request
(or a live subscription) holds up everything queued behind it; that is the
price of not sharing the handle.

No timeouts are applied here. A query, write or delete that hangs is bounded
only by the session's own timeout behaviour.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, TypeVar

import anyio

from zenoh_cli.channels import ReplyDropped
from zenoh_cli.errors import NetworkOperationError, SubmissionError, SubscriptionClosed
from zenoh_cli.log_utils import log_context, log_event
from zenoh_cli.requests import Delete, Get, Identity, Peers, Put, Request, Routers, Subscribe, describe
from zenoh_cli.session import Session

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_INBOUND_CAPACITY = 8
SUBSCRIBE_POLL_INTERVAL_S = 0.001

_END = object()


class ActorState(enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class CommandActor:
    """Serializes every session operation behind a message-passing interface.

    With ``strict=True`` an unexpected exception inside a handler (a bug, as
    opposed to a failed session call) is re-raised after being reported to the
    caller, which stops the actor. The test suite runs the actor this way.
    """

    def __init__(
        self,
        session: Session,
        *,
        capacity: int = DEFAULT_INBOUND_CAPACITY,
        poll_interval: float = SUBSCRIBE_POLL_INTERVAL_S,
        strict: bool = False,
    ) -> None:
        self._session = session
        self._inbound_send, self._inbound_receive = anyio.create_memory_object_stream(capacity)
        self._task: asyncio.Task[None] | None = None
        self.poll_interval = poll_interval
        self.strict = strict
        self.state = ActorState.IDLE

    def start(self) -> "CommandActor":
        if self._task is not None:
            raise RuntimeError("actor already started")
        self._task = asyncio.get_running_loop().create_task(self.run(), name="zenoh-cli-actor")
        return self

    async def submit(self, request: Request) -> None:
        """Queue a request, waiting while the inbound channel is full."""
        try:
            await self._inbound_send.send(request)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
            raise SubmissionError("failed to send command: actor is not accepting requests") from exc

    def close(self) -> None:
        """Stop accepting requests; the actor exits once the queue drains."""
        self._inbound_send.close()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def run(self) -> None:
        log_event(logger, "actor.start")
        try:
            async with self._inbound_receive:
                async for request in self._inbound_receive:
                    await self._process(request)
        finally:
            self._session.close()
            log_event(logger, "actor.stop")

    async def _process(self, request: Request) -> None:
        self.state = ActorState.PROCESSING
        with log_context(**describe(request)):
            log_event(logger, "actor.request.start", level=logging.DEBUG)
            try:
                await self._dispatch(request)
            except ReplyDropped:
                log_event(logger, "actor.reply.dropped", level=logging.DEBUG)
            except Exception as exc:
                logger.exception("Unexpected failure while handling request")
                try:
                    await request.reply.fail(exc)
                except ReplyDropped:
                    pass
                if self.strict:
                    raise
            finally:
                request.reply.close()
                self.state = ActorState.IDLE
                log_event(logger, "actor.request.done", level=logging.DEBUG)

    async def _dispatch(self, request: Request) -> None:
        if isinstance(request, Get):
            await self._handle_get(request)
        elif isinstance(request, Put):
            await self._handle_put(request)
        elif isinstance(request, Delete):
            await self._handle_delete(request)
        elif isinstance(request, Subscribe):
            await self._handle_subscribe(request)
        elif isinstance(request, Identity):
            await self._handle_identity(request)
        elif isinstance(request, (Peers, Routers)):
            await self._handle_enumerate(request)
        else:
            raise TypeError(f"unsupported request: {request!r}")

    async def _call(self, func: Callable[..., R], *args: Any) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def _handle_get(self, request: Get) -> None:
        try:
            replies = await self._call(self._session.query, request.selector)
        except Exception as exc:
            log_event(logger, "actor.get.dispatch_failed", level=logging.WARNING, error=str(exc))
            await request.reply.fail(NetworkOperationError("query", request.selector, exc))
            return

        count = 0
        while True:
            try:
                item = await self._call(next, replies, _END)
            except Exception as exc:
                log_event(logger, "actor.get.reply_failed", level=logging.WARNING, error=str(exc), replies=count)
                await request.reply.fail(NetworkOperationError("query", request.selector, exc))
                return
            if item is _END:
                break
            await request.reply.send(item)
            count += 1
        log_event(logger, "actor.get.done", replies=count)

    async def _handle_put(self, request: Put) -> None:
        try:
            await self._call(self._session.write, request.key, request.payload)
        except Exception as exc:
            await request.reply.fail(NetworkOperationError("put", request.key, exc))
            return
        await request.reply.send(None)

    async def _handle_delete(self, request: Delete) -> None:
        try:
            await self._call(self._session.remove, request.key)
        except Exception as exc:
            await request.reply.fail(NetworkOperationError("delete", request.key, exc))
            return
        await request.reply.send(None)

    async def _handle_subscribe(self, request: Subscribe) -> None:
        try:
            subscription = await self._call(self._session.subscribe, request.pattern)
        except Exception as exc:
            await request.reply.fail(NetworkOperationError("subscribe to", request.pattern, exc))
            return

        log_event(logger, "actor.subscribe.declared")
        try:
            while True:
                if request.reply.consumer_closed:
                    log_event(logger, "actor.subscribe.cancelled")
                    return
                try:
                    item = subscription.try_next()
                except SubscriptionClosed:
                    log_event(logger, "actor.subscribe.ended")
                    return
                except Exception as exc:
                    await request.reply.fail(NetworkOperationError("receive from", request.pattern, exc))
                    return
                if item is None:
                    await asyncio.sleep(self.poll_interval)
                    continue
                await request.reply.send(item)
        except ReplyDropped:
            log_event(logger, "actor.subscribe.cancelled")
        finally:
            subscription.close()

    async def _handle_identity(self, request: Identity) -> None:
        try:
            zid = await self._call(self._session.identity)
        except Exception as exc:
            await request.reply.fail(NetworkOperationError("get zid", None, exc))
            return
        await request.reply.send(zid)

    async def _handle_enumerate(self, request: Peers | Routers) -> None:
        if isinstance(request, Peers):
            label, enumerate_ids = "list peers", self._session.enumerate_peers
        else:
            label, enumerate_ids = "list routers", self._session.enumerate_routers
        try:
            ids = await self._call(enumerate_ids)
        except Exception as exc:
            await request.reply.fail(NetworkOperationError(label, None, exc))
            return
        for zid in ids:
            await request.reply.send(zid)


def start_actor(session: Session, **kwargs: Any) -> CommandActor:
    """Create the actor for ``session`` and start it on the running loop."""
    return CommandActor(session, **kwargs).start()
