"""Command registry and the driver that turns text into actor requests.

Every command builds one request with a fresh reply channel, submits it and
drains the channel with one of three protocols: a single reply (put, delete,
zid), a bounded sequence (get, peers, routers) or a live sequence that runs
until interrupted (subscribe).
"""

from __future__ import annotations

import asyncio
import enum
import logging
import signal
from dataclasses import dataclass
from typing import Awaitable, Callable, ClassVar, Type, TypeVar

import anyio
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from zenoh_cli import display
from zenoh_cli.actor import CommandActor
from zenoh_cli.channels import ReplyChannel
from zenoh_cli.errors import DispatchError, Exit, OperationFailedError
from zenoh_cli.log_utils import log_event
from zenoh_cli.requests import Delete, Get, Identity, Peers, Put, Request, Routers, Subscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")
ArgsT = TypeVar("ArgsT", bound="_Args")

Interrupt = Callable[[], Awaitable[None]]
CommandHandler = Callable[[CommandActor, str, Interrupt], Awaitable[None]]

EXIT_COMMANDS = {"quit", "q"}


class DrainOutcome(enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class CommandDef:
    name: str
    aliases: tuple[str, ...]
    usage: str
    description: str
    handler: CommandHandler


COMMANDS: dict[str, CommandDef] = {}


def register_command(
    name: str, *, usage: str, description: str, aliases: tuple[str, ...] = ()
) -> Callable[[CommandHandler], CommandHandler]:
    """Decorator to register a command under its name and aliases."""

    def _decorator(func: CommandHandler) -> CommandHandler:
        entry = CommandDef(name=name, aliases=aliases, usage=usage, description=description, handler=func)
        for verb in (name, *aliases):
            COMMANDS[verb] = entry
        return func

    return _decorator


async def handle(actor: CommandActor, line: str, *, interrupt: Interrupt | None = None) -> None:
    """Run one command line against the actor.

    Raises ``Exit`` for quit commands, ``DispatchError`` for lines that do not
    name a valid command, and whatever error the actor replied with.
    """
    parts = line.split(maxsplit=1)
    verb = parts[0] if parts else ""
    argument = parts[1] if len(parts) > 1 else ""
    if verb in EXIT_COMMANDS:
        raise Exit()
    if not verb:
        raise DispatchError("missing command")
    entry = COMMANDS.get(verb)
    if entry is None:
        raise DispatchError(f"unknown command: {verb}")
    await entry.handler(actor, argument.strip(), interrupt or wait_for_interrupt)


async def wait_for_interrupt() -> None:
    """Return when SIGINT arrives; the previous SIGINT handler is restored."""
    loop = asyncio.get_running_loop()
    fired = asyncio.Event()
    previous = signal.getsignal(signal.SIGINT)
    try:
        loop.add_signal_handler(signal.SIGINT, fired.set)
    except (NotImplementedError, RuntimeError):
        # No loop signal support here; Ctrl-C surfaces as KeyboardInterrupt.
        await asyncio.Event().wait()
        return
    try:
        await fired.wait()
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        signal.signal(signal.SIGINT, previous)


# Argument models


class _Args(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    # When set, the last field takes the remainder of the line.
    rest_of_line: ClassVar[bool] = False


class SelectorArgs(_Args):
    selector: str = Field(..., min_length=1, description="selector")


class KeyArgs(_Args):
    key: str = Field(..., min_length=1, description="key expression")


class PutArgs(_Args):
    key: str = Field(..., min_length=1, description="key expression")
    payload: str = Field(..., min_length=1, description="payload")

    rest_of_line: ClassVar[bool] = True


def parse_args(model: Type[ArgsT], argument: str) -> ArgsT:
    """Map whitespace-separated words onto the model's fields in order.

    Models with ``rest_of_line`` give the remainder of the line to their last
    field, so payloads may contain spaces; any other model rejects extra words.
    """
    names = list(model.model_fields)
    if model.rest_of_line:
        words = argument.split(maxsplit=len(names) - 1)
    else:
        words = argument.split()
        if len(words) > len(names):
            raise DispatchError(f"unexpected arguments: {' '.join(words[len(names):])}")
    try:
        return model.model_validate(dict(zip(names, words)))
    except ValidationError as exc:
        field_name = str(exc.errors()[0]["loc"][0])
        label = model.model_fields[field_name].description or field_name
        raise DispatchError(f"missing {label}") from None


# Reply protocols


async def _submit(actor: CommandActor, request: Request) -> None:
    log_event(logger, "command.submit", level=logging.DEBUG, kind=type(request).__name__.lower())
    await actor.submit(request)


async def receive_single(reply: ReplyChannel[T], failure_message: str) -> T:
    """Await exactly one reply; a channel closed without one is a failure."""
    with reply:
        try:
            return await reply.receive()
        except anyio.EndOfStream:
            raise OperationFailedError(failure_message) from None


async def drain_bounded(reply: ReplyChannel[T], render: Callable[[T], None]) -> int:
    """Render every reply until the actor closes the channel; return the count."""
    count = 0
    with reply:
        async for item in reply:
            render(item)
            count += 1
    return count


async def drain_until_interrupted(
    reply: ReplyChannel[T], render: Callable[[T], None], interrupt: Interrupt
) -> DrainOutcome:
    """Render replies until the channel closes or ``interrupt`` completes.

    Leaving this function always detaches the consumer side, which is what
    tells the actor to tear down a live subscription.
    """
    interrupted = asyncio.ensure_future(interrupt())
    receiving: asyncio.Future[T] | None = None
    try:
        with reply:
            while True:
                receiving = asyncio.ensure_future(reply.receive())
                done, _ = await asyncio.wait({receiving, interrupted}, return_when=asyncio.FIRST_COMPLETED)
                if interrupted in done:
                    return DrainOutcome.CANCELLED
                try:
                    item = receiving.result()
                except anyio.EndOfStream:
                    return DrainOutcome.COMPLETED
                finally:
                    receiving = None
                render(item)
    finally:
        pending = [task for task in (receiving, interrupted) if task is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


def _print_key_value(item: tuple[str, bytes]) -> None:
    key, payload = item
    display.print_key_value(key, payload)


# Commands


@register_command("get", usage="get <selector>", description="Query every value matching a selector.")
async def _handle_get(actor: CommandActor, argument: str, _interrupt: Interrupt) -> None:
    args = parse_args(SelectorArgs, argument)
    request = Get(args.selector)
    await _submit(actor, request)
    if await drain_bounded(request.reply, _print_key_value) == 0:
        display.print_notice("no replies received")


@register_command("put", usage="put <key> <payload>", description="Write a text payload under a key.")
async def _handle_put(actor: CommandActor, argument: str, _interrupt: Interrupt) -> None:
    args = parse_args(PutArgs, argument)
    request = Put(args.key, args.payload.encode("utf-8"))
    await _submit(actor, request)
    await receive_single(request.reply, f"failed to write {args.key}")
    display.print_ok()


@register_command(
    "delete", aliases=("del",), usage="delete <key>", description="Delete the value stored under a key."
)
async def _handle_delete(actor: CommandActor, argument: str, _interrupt: Interrupt) -> None:
    args = parse_args(KeyArgs, argument)
    request = Delete(args.key)
    await _submit(actor, request)
    await receive_single(request.reply, f"failed to delete {args.key}")
    display.print_ok()


@register_command(
    "subscribe",
    aliases=("sub",),
    usage="subscribe <pattern>",
    description="Print live samples for a key pattern until Ctrl-C.",
)
async def _handle_subscribe(actor: CommandActor, argument: str, interrupt: Interrupt) -> None:
    args = parse_args(KeyArgs, argument)
    request = Subscribe(args.key)
    await _submit(actor, request)
    outcome = await drain_until_interrupted(request.reply, _print_key_value, interrupt)
    log_event(logger, "command.subscribe.finished", pattern=args.key, outcome=outcome.value)


@register_command("zid", usage="zid", description="Print the id of this session.")
async def _handle_zid(actor: CommandActor, _argument: str, _interrupt: Interrupt) -> None:
    request = Identity()
    await _submit(actor, request)
    display.print_value(await receive_single(request.reply, "failed to get zid"))


@register_command("peers", usage="peers", description="List the ids of connected peers.")
async def _handle_peers(actor: CommandActor, _argument: str, _interrupt: Interrupt) -> None:
    request = Peers()
    await _submit(actor, request)
    if await drain_bounded(request.reply, display.print_value) == 0:
        display.print_notice("no peers found")


@register_command("routers", usage="routers", description="List the ids of connected routers.")
async def _handle_routers(actor: CommandActor, _argument: str, _interrupt: Interrupt) -> None:
    request = Routers()
    await _submit(actor, request)
    if await drain_bounded(request.reply, display.print_value) == 0:
        display.print_notice("no routers found")


@register_command("help", usage="help", description="Show available commands.")
async def _handle_help(_actor: CommandActor, _argument: str, _interrupt: Interrupt) -> None:
    entries: list[tuple[str, str]] = []
    seen: set[str] = set()
    for entry in COMMANDS.values():
        if entry.name in seen:
            continue
        seen.add(entry.name)
        usage = entry.usage
        if entry.aliases:
            usage = f"{usage} ({', '.join(entry.aliases)})"
        entries.append((usage, entry.description))
    entries.append(("quit (q)", "Leave the REPL."))
    display.print_help(entries)
