"""Sink interface for finished log lines."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

__all__ = ["LineSink"]


@runtime_checkable
class LineSink(Protocol):
    """Destination for bounded lines.

    write() may block and may raise; forwarders call it from a worker
    thread and treat any exception as a terminal write error.
    """

    def write(self, data: bytes) -> object: ...
