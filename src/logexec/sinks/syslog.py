"""Syslog sink over local unix sockets.

Each writer is bound to a fixed (facility, severity, tag) triple, so the
child's stdout and stderr go out as two writers with different severities.

Connection tries datagram sockets first, then stream sockets, each against
the usual local syslog paths, and keeps the first one that connects.

Unlike SysLogHandler.emit(), SyslogWriter.write() lets send errors
propagate: a forwarder must see a broken syslog connection.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import socket
from enum import IntEnum

from ..errors import SinkConnectError

__all__ = [
    "SYSLOG_PATHS",
    "Facility",
    "Severity",
    "SyslogWriter",
    "connect_unix_syslog",
]

logger = logging.getLogger(__name__)

_Handler = logging.handlers.SysLogHandler

SYSLOG_SOCKTYPES: tuple[socket.SocketKind, ...] = (socket.SOCK_DGRAM, socket.SOCK_STREAM)
SYSLOG_PATHS: tuple[str, ...] = (
    "/run/systemd/journal/syslog",
    "/dev/log",
    "/var/run/syslog",
    "/var/run/log",
)


def _normalize(value: str) -> str:
    value = value.strip().lower()
    if value.startswith("log_"):
        value = value[len("log_"):]
    return value


class Facility(IntEnum):
    """Syslog facility (unshifted, as SysLogHandler expects)."""

    KERN = _Handler.LOG_KERN
    USER = _Handler.LOG_USER
    MAIL = _Handler.LOG_MAIL
    DAEMON = _Handler.LOG_DAEMON
    AUTH = _Handler.LOG_AUTH
    SYSLOG = _Handler.LOG_SYSLOG
    LPR = _Handler.LOG_LPR
    NEWS = _Handler.LOG_NEWS
    UUCP = _Handler.LOG_UUCP
    CRON = _Handler.LOG_CRON
    AUTHPRIV = _Handler.LOG_AUTHPRIV
    FTP = _Handler.LOG_FTP
    LOCAL0 = _Handler.LOG_LOCAL0
    LOCAL1 = _Handler.LOG_LOCAL1
    LOCAL2 = _Handler.LOG_LOCAL2
    LOCAL3 = _Handler.LOG_LOCAL3
    LOCAL4 = _Handler.LOG_LOCAL4
    LOCAL5 = _Handler.LOG_LOCAL5
    LOCAL6 = _Handler.LOG_LOCAL6
    LOCAL7 = _Handler.LOG_LOCAL7

    @classmethod
    def from_string(cls, value: str) -> "Facility":
        """解析 facility 名称（忽略大小写，可带 LOG_ 前缀）。

        Raises:
            ValueError: 未知的 facility
        """
        name = _normalize(value)
        if name in _Handler.facility_names:
            try:
                return cls(_Handler.facility_names[name])
            except ValueError:
                pass
        raise ValueError(f"unknown syslog facility: {value!r}")

    @property
    def label(self) -> str:
        return self.name.lower()


class Severity(IntEnum):
    """Syslog severity."""

    EMERG = _Handler.LOG_EMERG
    ALERT = _Handler.LOG_ALERT
    CRIT = _Handler.LOG_CRIT
    ERR = _Handler.LOG_ERR
    WARNING = _Handler.LOG_WARNING
    NOTICE = _Handler.LOG_NOTICE
    INFO = _Handler.LOG_INFO
    DEBUG = _Handler.LOG_DEBUG

    @classmethod
    def from_string(cls, value: str) -> "Severity":
        """解析 severity 名称（支持 error/warn/critical/panic 等别名）。

        Raises:
            ValueError: 未知的 severity
        """
        name = _normalize(value)
        if name in _Handler.priority_names:
            return cls(_Handler.priority_names[name])
        raise ValueError(f"unknown syslog severity: {value!r}")

    @property
    def label(self) -> str:
        return self.name.lower()


class SyslogWriter(logging.handlers.SysLogHandler):
    """A SysLogHandler that writes raw lines at a fixed priority.

    Attributes:
        severity: Severity stamped on every line
        tag: Syslog tag; the ident is "tag[pid]: "
    """

    def __init__(
        self,
        address: str,
        facility: Facility = Facility.LOCAL0,
        severity: Severity = Severity.INFO,
        tag: str = "logexec",
        socktype: socket.SocketKind = socket.SOCK_DGRAM,
    ) -> None:
        self.severity = severity
        self.tag = tag
        # connects, raising OSError on failure (see createSocket)
        super().__init__(address=address, facility=int(facility), socktype=socktype)
        self.ident = f"{tag}[{os.getpid()}]: "

    def createSocket(self) -> None:
        # SysLogHandler ignores connection errors here; we need them
        self.unixsocket = True
        sock = socket.socket(socket.AF_UNIX, self.socktype)
        try:
            sock.connect(self.address)
        except OSError:
            sock.close()
            raise
        self.socket = sock

    @property
    def priority(self) -> int:
        return self.encodePriority(self.facility, int(self.severity))

    def mapPriority(self, levelName: str) -> str:
        return self.severity.label

    def write(self, data: bytes) -> int:
        """Send one line.

        A failed send on a unix socket is retried once on a fresh
        connection, as emit() does; a second failure propagates.

        Returns:
            Number of payload bytes written
        """
        packet = b"<%d>" % self.priority + self.ident.encode("utf-8") + data
        if self.append_nul:
            packet += b"\000"

        with self.lock:
            try:
                self._send(packet)
            except OSError as e:
                logger.debug(f"syslog send to {self.address} failed ({e}), reconnecting")
                self.socket.close()
                self.createSocket()
                self._send(packet)
        return len(data)

    def _send(self, packet: bytes) -> None:
        if self.socktype == socket.SOCK_DGRAM:
            self.socket.send(packet)
        else:
            self.socket.sendall(packet)

    def close(self) -> None:
        # a send stuck in an abandoned worker thread holds the lock
        if not self.lock.acquire(blocking=False):
            logger.debug(f"{self!r} busy, leaving socket to process exit")
            return
        try:
            super().close()
        finally:
            self.lock.release()

    def __repr__(self) -> str:
        kind = "unixgram" if self.socktype == socket.SOCK_DGRAM else "unix"
        return (
            f"SyslogWriter(address={self.address}, "
            f"transport={kind}, "
            f"facility={Facility(self.facility).label}, "
            f"severity={self.severity.label}, "
            f"tag={self.tag})"
        )


def connect_unix_syslog(
    facility: Facility,
    severity: Severity,
    tag: str,
    paths: tuple[str, ...] = SYSLOG_PATHS,
    socktypes: tuple[socket.SocketKind, ...] = SYSLOG_SOCKTYPES,
) -> SyslogWriter:
    """Connect a writer to the first local syslog socket that accepts.

    Transports are tried in order (datagram, then stream); for each, every
    path is tried in order.

    Raises:
        SinkConnectError: No transport/path combination worked
    """
    attempts: list[tuple[str, str]] = []
    for socktype in socktypes:
        for path in paths:
            try:
                writer = SyslogWriter(path, facility, severity, tag, socktype=socktype)
            except OSError as e:
                attempts.append((socktype.name, path))
                logger.debug(f"syslog {socktype.name} {path}: {e}")
                continue
            logger.debug(f"Connected {writer!r}")
            return writer
    raise SinkConnectError(attempts)
