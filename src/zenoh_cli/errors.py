"""Error types shared by the actor, the command driver and the CLI."""

from __future__ import annotations


class ZenohCliError(RuntimeError):
    """Base class for every error rendered to the user as ``error: ...``."""


class DispatchError(ZenohCliError):
    """Raised when a command line cannot be turned into a request."""


class SubmissionError(ZenohCliError):
    """Raised when the actor no longer accepts requests."""


class NetworkOperationError(ZenohCliError):
    """A session call failed; carries the operation, its key/selector and cause."""

    def __init__(self, operation: str, target: str | None, cause: BaseException | str) -> None:
        self.operation = operation
        self.target = target
        self.cause = cause
        subject = f"{operation} {target}" if target else operation
        super().__init__(f"failed to {subject}: {cause}")


class OperationFailedError(ZenohCliError):
    """The actor closed a single-value reply channel without replying."""


class PayloadDecodingError(ZenohCliError):
    """A payload could not be rendered as UTF-8 text."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"payload of {key} is not valid utf-8")


class SubscriptionClosed(ZenohCliError):
    """The subscription source ended and will not yield further samples."""


class ConfigError(ZenohCliError):
    """Raised when session configuration cannot be loaded."""


class Exit(Exception):
    """Control-flow signal that ends the REPL loop."""

    def __str__(self) -> str:
        return "exit"
