"""Typed requests accepted by the command actor.

Each request carries its own reply channel, typed to the shape of the
operation's result. ``Request`` is the closed union of every kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from zenoh_cli.channels import DEFAULT_REPLY_CAPACITY, SINGLE_REPLY_CAPACITY, ReplyChannel
from zenoh_cli.session import KeyValue


def _single_reply() -> ReplyChannel:
    return ReplyChannel(SINGLE_REPLY_CAPACITY)


def _stream_reply() -> ReplyChannel:
    return ReplyChannel(DEFAULT_REPLY_CAPACITY)


@dataclass(frozen=True)
class Get:
    selector: str
    reply: ReplyChannel[KeyValue] = field(default_factory=_stream_reply, compare=False)


@dataclass(frozen=True)
class Put:
    key: str
    payload: bytes
    reply: ReplyChannel[None] = field(default_factory=_single_reply, compare=False)


@dataclass(frozen=True)
class Delete:
    key: str
    reply: ReplyChannel[None] = field(default_factory=_single_reply, compare=False)


@dataclass(frozen=True)
class Subscribe:
    pattern: str
    reply: ReplyChannel[KeyValue] = field(default_factory=_stream_reply, compare=False)


@dataclass(frozen=True)
class Identity:
    reply: ReplyChannel[str] = field(default_factory=_single_reply, compare=False)


@dataclass(frozen=True)
class Peers:
    reply: ReplyChannel[str] = field(default_factory=_stream_reply, compare=False)


@dataclass(frozen=True)
class Routers:
    reply: ReplyChannel[str] = field(default_factory=_stream_reply, compare=False)


Request = Union[Get, Put, Delete, Subscribe, Identity, Peers, Routers]


def describe(request: Request) -> dict[str, str]:
    """Return log fields naming the request kind and its key or selector."""
    fields = {"kind": type(request).__name__.lower()}
    if isinstance(request, Get):
        fields["selector"] = request.selector
    elif isinstance(request, (Put, Delete)):
        fields["key"] = request.key
    elif isinstance(request, Subscribe):
        fields["pattern"] = request.pattern
    return fields
