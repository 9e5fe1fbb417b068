"""Log sinks: where forwarded lines end up."""

from __future__ import annotations

from .base import LineSink
from .syslog import (
    SYSLOG_PATHS,
    Facility,
    Severity,
    SyslogWriter,
    connect_unix_syslog,
)

__all__ = [
    "Facility",
    "LineSink",
    "SYSLOG_PATHS",
    "Severity",
    "SyslogWriter",
    "connect_unix_syslog",
]
