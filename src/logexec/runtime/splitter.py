"""Line splitting for captured child output.

logexec runtime module

Turns a raw byte stream into trimmed, length-bounded log lines:
- Reads through a buffer of twice the maximum line length
- A line that does not fit in the buffer arrives as a partial fragment;
  only its first fragment is emitted, the rest of that line is dropped
- Emitted lines are whitespace-trimmed and capped at max_line bytes,
  ending in "..." when cut
- End of stream is reported as PrematureEOF, never as a silent stop
"""

from __future__ import annotations

from typing import Protocol

from ..errors import PrematureEOF

__all__ = [
    "DEFAULT_MAX_LINE",
    "ELLIPSIS",
    "ByteSource",
    "LineSplitter",
    "bound_line",
]

DEFAULT_MAX_LINE = 8 * 1024
ELLIPSIS = b"..."


class ByteSource(Protocol):
    """Anything with an asyncio.StreamReader style read()."""

    async def read(self, n: int = -1) -> bytes: ...


def bound_line(line: bytes, max_line: int) -> bytes:
    """Trim whitespace and cap the line at max_line bytes.

    Args:
        line: Raw line without its terminator
        max_line: Maximum length of the result

    Returns:
        The trimmed line, cut to max_line - 3 bytes plus "..." if it was
        longer than max_line
    """
    line = line.strip()
    if len(line) > max_line:
        line = line[: max_line - len(ELLIPSIS)] + ELLIPSIS
    return line


class LineSplitter:
    """Split a byte stream into bounded log lines.

    Example:
        splitter = LineSplitter(process.stdout, max_line=8192)
        while True:
            line = await splitter.next()  # raises PrematureEOF at end
            sink.write(line)
    """

    def __init__(
        self,
        source: ByteSource,
        max_line: int = DEFAULT_MAX_LINE,
        name: str = "",
    ) -> None:
        if max_line <= len(ELLIPSIS):
            raise ValueError(f"max_line must be greater than {len(ELLIPSIS)}, got {max_line}")
        self.source = source
        self.max_line = max_line
        self.name = name
        self.capacity = max_line * 2
        self._buf = bytearray()
        self._eof = False
        self._last_was_partial = False

    async def next(self) -> bytes:
        """Return the next bounded line.

        Raises:
            PrematureEOF: The stream ended
            Exception: Any error raised by the underlying source
        """
        while True:
            line, partial = await self._read_line()

            if partial and self._last_was_partial:
                # middle of a long line
                continue
            if not partial and self._last_was_partial:
                # tail of a long line
                self._last_was_partial = False
                continue
            if partial:
                # head of a long line, emitted truncated
                self._last_was_partial = True

            return bound_line(line, self.max_line)

    async def _read_line(self) -> tuple[bytes, bool]:
        """Read one physical line.

        Returns:
            Tuple of (line, partial). partial is True when the buffer filled
            up before a newline was seen; line is then the whole buffer.
        """
        while True:
            idx = self._buf.find(b"\n", 0, self.capacity)
            if idx >= 0:
                line = bytes(self._buf[:idx])
                del self._buf[: idx + 1]
                if line.endswith(b"\r"):
                    line = line[:-1]
                return line, False

            if len(self._buf) >= self.capacity:
                fragment = bytes(self._buf[: self.capacity])
                del self._buf[: self.capacity]
                return fragment, True

            if self._eof:
                if self._buf:
                    # unterminated last line
                    line = bytes(self._buf)
                    self._buf.clear()
                    return line, False
                raise PrematureEOF(self.name)

            chunk = await self.source.read(self.capacity - len(self._buf))
            if not chunk:
                self._eof = True
            else:
                self._buf += chunk
