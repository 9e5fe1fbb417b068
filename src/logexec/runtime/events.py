"""Events exchanged between the supervisor and its worker tasks.

Every worker (the two stream forwarders, the child-wait task and the
signal relay) reports to the supervisor by sending a SupervisorEvent on
one shared memory object stream.
"""

from __future__ import annotations

import errno
import signal
from dataclasses import dataclass
from enum import Enum

import anyio

from ..errors import PrematureEOF

__all__ = [
    "ChildResult",
    "EventKind",
    "OutcomeKind",
    "StreamOutcome",
    "SupervisorEvent",
]


class EventKind(Enum):
    SIGNAL = "signal"
    FORWARDERS_DONE = "forwarders_done"
    CHILD_EXITED = "child_exited"
    STREAM_ERROR = "stream_error"


class OutcomeKind(Enum):
    """How a forwarder stopped.

    - CLOSED: the pipe was already closed under us (bad file descriptor)
    - PREMATURE_EOF: end of stream while nobody asked for shutdown
    - READ_ERROR: any other failure reading the child's output
    - WRITE_ERROR: the sink refused a line
    """

    CLOSED = "closed"
    PREMATURE_EOF = "premature_eof"
    READ_ERROR = "read_error"
    WRITE_ERROR = "write_error"


def _is_closed_error(exc: BaseException) -> bool:
    if isinstance(exc, anyio.ClosedResourceError):
        return True
    if isinstance(exc, OSError) and exc.errno == errno.EBADF:
        return True
    return "bad file descriptor" in str(exc).lower()


@dataclass(frozen=True)
class StreamOutcome:
    """Terminal result of one forwarder.

    Attributes:
        stream: Stream name (stdout/stderr)
        kind: How the forwarder stopped
        error: The exception that stopped it
    """

    stream: str
    kind: OutcomeKind
    error: BaseException

    @classmethod
    def from_read_error(cls, stream: str, exc: BaseException) -> "StreamOutcome":
        if isinstance(exc, PrematureEOF):
            return cls(stream, OutcomeKind.PREMATURE_EOF, exc)
        if _is_closed_error(exc):
            return cls(stream, OutcomeKind.CLOSED, exc)
        return cls(stream, OutcomeKind.READ_ERROR, exc)

    @classmethod
    def from_write_error(cls, stream: str, exc: BaseException) -> "StreamOutcome":
        if _is_closed_error(exc):
            return cls(stream, OutcomeKind.CLOSED, exc)
        return cls(stream, OutcomeKind.WRITE_ERROR, exc)

    @property
    def is_benign(self) -> bool:
        return self.kind is OutcomeKind.CLOSED


@dataclass(frozen=True)
class ChildResult:
    """Wait outcome of the child process.

    Attributes:
        returncode: Exit code, negative when killed by a signal
            (None if the wait itself failed)
        error: Exception raised while waiting, if any
    """

    returncode: int | None = None
    error: BaseException | None = None

    @property
    def killed_by(self) -> signal.Signals | None:
        if self.returncode is None or self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode)
        except ValueError:
            return None


@dataclass(frozen=True)
class SupervisorEvent:
    kind: EventKind
    signum: signal.Signals | None = None
    outcome: StreamOutcome | None = None
    result: ChildResult | None = None

    @classmethod
    def from_signal(cls, signum: signal.Signals) -> "SupervisorEvent":
        return cls(EventKind.SIGNAL, signum=signum)

    @classmethod
    def forwarders_done(cls) -> "SupervisorEvent":
        return cls(EventKind.FORWARDERS_DONE)

    @classmethod
    def child_exited(cls, result: ChildResult) -> "SupervisorEvent":
        return cls(EventKind.CHILD_EXITED, result=result)

    @classmethod
    def stream_error(cls, outcome: StreamOutcome) -> "SupervisorEvent":
        return cls(EventKind.STREAM_ERROR, outcome=outcome)
