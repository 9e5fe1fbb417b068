"""Stream forwarders: drain one child stream into one sink.

A forwarder runs until its splitter or its sink fails. It has no normal
exit: when the child exits its pipes reach EOF, which the splitter reports
as PrematureEOF, and the supervisor decides what that EOF means.

Sink writes run in a worker thread. When the supervisor cancels the
forwarders, a write still in progress is abandoned rather than joined.
"""

from __future__ import annotations

import logging

from anyio import to_thread
from anyio.abc import ObjectSendStream

from ..sinks.base import LineSink
from .events import StreamOutcome, SupervisorEvent
from .splitter import LineSplitter

__all__ = ["ForwarderCountdown", "StreamForwarder"]

logger = logging.getLogger(__name__)


class ForwarderCountdown:
    """Emit a single FORWARDERS_DONE event once every forwarder has exited."""

    def __init__(self, count: int, events: ObjectSendStream[SupervisorEvent]) -> None:
        self._remaining = count
        self._events = events

    @property
    def remaining(self) -> int:
        return self._remaining

    def done(self) -> None:
        if self._remaining <= 0:
            return
        self._remaining -= 1
        if self._remaining == 0:
            logger.debug("All forwarders finished")
            self._events.send_nowait(SupervisorEvent.forwarders_done())


class StreamForwarder:
    """Forward bounded lines from a LineSplitter to a sink.

    Attributes:
        name: Stream name used in logs and outcomes (stdout/stderr)
        splitter: Source of bounded lines
        sink: Destination for each line
    """

    def __init__(
        self,
        name: str,
        splitter: LineSplitter,
        sink: LineSink,
        events: ObjectSendStream[SupervisorEvent],
        countdown: ForwarderCountdown,
    ) -> None:
        self.name = name
        self.splitter = splitter
        self.sink = sink
        self._events = events
        self._countdown = countdown
        self.lines_forwarded = 0

    async def run(self) -> None:
        """Forward lines until a read or write fails, then report it once."""
        try:
            outcome = await self._pump()
            logger.debug(
                f"Forwarder {self.name} stopped after {self.lines_forwarded} line(s): "
                f"{outcome.kind.value}: {outcome.error}"
            )
            self._events.send_nowait(SupervisorEvent.stream_error(outcome))
        finally:
            self._countdown.done()

    async def _pump(self) -> StreamOutcome:
        while True:
            try:
                line = await self.splitter.next()
            except Exception as e:
                return StreamOutcome.from_read_error(self.name, e)

            try:
                # a blocked write must not hold up cancellation on fatal paths
                await to_thread.run_sync(self.sink.write, line, abandon_on_cancel=True)
            except Exception as e:
                return StreamOutcome.from_write_error(self.name, e)
            self.lines_forwarded += 1
