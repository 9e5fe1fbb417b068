"""Runtime module: child process, stream splitting and forwarding.

This module provides the pieces the supervisor wires together: the
process runner, the line splitter, the stream forwarders and the exit
status resolver.
"""

from __future__ import annotations

from .events import ChildResult, EventKind, OutcomeKind, StreamOutcome, SupervisorEvent
from .exit_status import resolve_exit_status
from .forwarder import ForwarderCountdown, StreamForwarder
from .process_runner import ProcessRunner, ProcessSpec
from .splitter import DEFAULT_MAX_LINE, LineSplitter, bound_line

__all__ = [
    "ChildResult",
    "DEFAULT_MAX_LINE",
    "EventKind",
    "ForwarderCountdown",
    "LineSplitter",
    "OutcomeKind",
    "ProcessRunner",
    "ProcessSpec",
    "StreamForwarder",
    "StreamOutcome",
    "SupervisorEvent",
    "bound_line",
    "resolve_exit_status",
]
