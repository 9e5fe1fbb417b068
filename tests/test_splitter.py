"""LineSplitter unit tests.

Test coverage:
- Trimming and truncation of bounded lines
- Short lines pass through unchanged
- Lines longer than the read buffer emit only their first fragment
- Reads split at arbitrary chunk boundaries
- End of stream and read errors
"""

from __future__ import annotations

import asyncio

import pytest

from logexec.errors import PrematureEOF
from logexec.runtime.splitter import ELLIPSIS, LineSplitter, bound_line


class ChunkSource:
    """Byte source that hands out predefined chunks, honoring read(n)."""

    def __init__(self, *chunks: bytes, error: BaseException | None = None) -> None:
        self._chunks = [c for c in chunks if c]
        self._error = error
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if not self._chunks:
            if self._error is not None:
                raise self._error
            return b""
        chunk = self._chunks.pop(0)
        if 0 < n < len(chunk):
            self._chunks.insert(0, chunk[n:])
            chunk = chunk[:n]
        return chunk


async def collect(splitter: LineSplitter) -> list[bytes]:
    lines = []
    with pytest.raises(PrematureEOF):
        while True:
            lines.append(await splitter.next())
    return lines


# =============================================================================
# bound_line
# =============================================================================


class TestBoundLine:
    """Test trimming and truncation."""

    def test_short_line_unchanged(self):
        assert bound_line(b"hello world", 100) == b"hello world"

    def test_whitespace_trimmed(self):
        assert bound_line(b" \t hello \r ", 100) == b"hello"

    def test_exactly_max_line_kept(self):
        assert bound_line(b"0123456789", 10) == b"0123456789"

    def test_over_max_line_truncated(self):
        """maxline=10, 16 bytes -> 7 bytes + '...'."""
        result = bound_line(b"0123456789ABCDEF", 10)
        assert result == b"0123456..."
        assert len(result) == 10

    @pytest.mark.parametrize("length", [11, 50, 1000])
    def test_truncated_length_is_max_line(self, length: int):
        result = bound_line(b"a" * length, 10)
        assert len(result) == 10
        assert result.endswith(ELLIPSIS)

    def test_trim_happens_before_truncation(self):
        """Padding does not count against the limit."""
        assert bound_line(b"    0123456789    ", 10) == b"0123456789"

    def test_empty_line(self):
        assert bound_line(b"   ", 10) == b""


# =============================================================================
# LineSplitter
# =============================================================================


class TestLineSplitter:
    """Test splitting a stream into lines."""

    @pytest.mark.asyncio
    async def test_single_line(self):
        splitter = LineSplitter(ChunkSource(b"hello world\n"), max_line=100)
        assert await collect(splitter) == [b"hello world"]

    @pytest.mark.asyncio
    async def test_multiple_lines_in_one_chunk(self):
        splitter = LineSplitter(ChunkSource(b"one\ntwo\nthree\n"), max_line=100)
        assert await collect(splitter) == [b"one", b"two", b"three"]

    @pytest.mark.asyncio
    async def test_line_split_across_chunks(self):
        splitter = LineSplitter(ChunkSource(b"hel", b"lo wo", b"rld\nbye", b"\n"), max_line=100)
        assert await collect(splitter) == [b"hello world", b"bye"]

    @pytest.mark.asyncio
    async def test_crlf_line_endings(self):
        splitter = LineSplitter(ChunkSource(b"dos\r\nline\r\n"), max_line=100)
        assert await collect(splitter) == [b"dos", b"line"]

    @pytest.mark.asyncio
    async def test_blank_lines_are_emitted_empty(self):
        splitter = LineSplitter(ChunkSource(b"a\n\n  \nb\n"), max_line=100)
        assert await collect(splitter) == [b"a", b"", b"", b"b"]

    @pytest.mark.asyncio
    async def test_truncates_line_within_buffer(self):
        """maxline=10: a 16 byte line still fits the 20 byte buffer."""
        splitter = LineSplitter(ChunkSource(b"0123456789ABCDEF\n"), max_line=10)
        assert await collect(splitter) == [b"0123456..."]

    @pytest.mark.asyncio
    async def test_overlong_line_emits_first_fragment_only(self):
        """A line longer than the buffer yields exactly one bounded line."""
        long_line = b"".join(bytes([65 + i % 26]) for i in range(95))
        source = ChunkSource(long_line + b"\nnext\n")
        splitter = LineSplitter(source, max_line=10)

        lines = await collect(splitter)

        assert lines == [long_line[:7] + b"...", b"next"]

    @pytest.mark.asyncio
    async def test_overlong_line_in_small_chunks(self):
        chunks = [b"z" * 3 for _ in range(20)] + [b"\nafter\n"]
        splitter = LineSplitter(ChunkSource(*chunks), max_line=10)
        assert await collect(splitter) == [b"zzzzzzz...", b"after"]

    @pytest.mark.asyncio
    async def test_line_filling_buffer_exactly(self):
        """A line of exactly 2*maxline bytes fills the buffer; its newline is a tail."""
        splitter = LineSplitter(ChunkSource(b"y" * 20 + b"\nok\n"), max_line=10)
        assert await collect(splitter) == [b"yyyyyyy...", b"ok"]

    @pytest.mark.asyncio
    async def test_consecutive_overlong_lines(self):
        data = b"a" * 50 + b"\n" + b"b" * 50 + b"\n"
        splitter = LineSplitter(ChunkSource(data), max_line=10)
        assert await collect(splitter) == [b"aaaaaaa...", b"bbbbbbb..."]

    @pytest.mark.asyncio
    async def test_unterminated_last_line(self):
        """Data without a trailing newline is emitted before the EOF error."""
        splitter = LineSplitter(ChunkSource(b"first\nlast"), max_line=100)
        assert await collect(splitter) == [b"first", b"last"]

    @pytest.mark.asyncio
    async def test_empty_stream_is_premature_eof(self):
        splitter = LineSplitter(ChunkSource(), max_line=100, name="stdout")
        with pytest.raises(PrematureEOF) as exc_info:
            await splitter.next()
        assert exc_info.value.stream == "stdout"
        assert "got EOF" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_eof_is_sticky(self):
        splitter = LineSplitter(ChunkSource(), max_line=100)
        for _ in range(2):
            with pytest.raises(PrematureEOF):
                await splitter.next()

    @pytest.mark.asyncio
    async def test_read_error_propagates(self):
        error = ConnectionResetError("pipe broke")
        splitter = LineSplitter(ChunkSource(b"ok\n", error=error), max_line=100)
        assert await splitter.next() == b"ok"
        with pytest.raises(ConnectionResetError):
            await splitter.next()

    @pytest.mark.asyncio
    async def test_reads_never_exceed_buffer(self):
        class RecordingSource(ChunkSource):
            def __init__(self, *chunks):
                super().__init__(*chunks)
                self.sizes: list[int] = []

            async def read(self, n: int = -1) -> bytes:
                self.sizes.append(n)
                return await super().read(n)

        source = RecordingSource(b"q" * 100 + b"\n")
        splitter = LineSplitter(source, max_line=10)
        await collect(splitter)
        assert source.sizes
        assert all(0 < n <= 20 for n in source.sizes)

    @pytest.mark.asyncio
    async def test_stream_reader_source(self):
        """Works directly on an asyncio.StreamReader."""
        reader = asyncio.StreamReader()
        reader.feed_data(b"from reader\n")
        reader.feed_eof()
        splitter = LineSplitter(reader, max_line=100)
        assert await collect(splitter) == [b"from reader"]

    def test_max_line_too_small(self):
        with pytest.raises(ValueError):
            LineSplitter(ChunkSource(), max_line=3)
