"""Exception taxonomy shared by the CDC pipeline and the task worker."""

from __future__ import annotations

from typing import Optional


class FluxCdcError(Exception):
    """Base class for all fluxcdc errors."""


class TransportError(FluxCdcError):
    """The engine could not be reached or answered with a non-2xx status.

    Never retried within the same tick; the owning loop tries again on its
    next cycle.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(FluxCdcError):
    """A response body could not be parsed into the expected shape."""


class PublishError(FluxCdcError):
    """Writing one record to the broker failed."""

    def __init__(self, topic: str, key: str, message: str) -> None:
        super().__init__(f"Failed to publish {key} to {topic}: {message}")
        self.topic = topic
        self.key = key


class HandlerError(FluxCdcError):
    """Business-logic failure of a task handler, reported as a task failure."""


class InputError(HandlerError):
    """Task variables are missing or do not match the topic's input model."""


class UnknownTopicError(HandlerError):
    """A leased task names a topic without a registered handler."""

    def __init__(self, topic: str) -> None:
        super().__init__(f"No handler registered for topic: {topic}")
        self.topic = topic


class FatalStartupError(FluxCdcError):
    """The engine is unreachable at startup; the process must exit."""


class CheckpointError(FluxCdcError):
    """Loading or saving the poll watermark failed."""
