"""Supervisor: the central event loop around the child process.

The supervisor owns the child, its two stream forwarders, the child-wait
task and the signal relay. Every one of them reports through a single
memory object stream of SupervisorEvent values; the loop below arbitrates
them:

- SIGNAL: forwarded unchanged to the child (or logged and dropped when
  pass-through is disabled)
- FORWARDERS_DONE: both streams are finished
- CHILD_EXITED: a nonzero exit is reported on the stderr sink and ends
  supervision at once with the child's code
- STREAM_ERROR: a closed pipe is ignored; an EOF kills the child and lets
  the following CHILD_EXITED decide whether the EOF was premature; any other
  error kills the child, is reported on the stderr sink and is fatal

Supervision ends normally once the child exited with 0 and both forwarders
are done.
"""

from __future__ import annotations

import asyncio
import logging
import math
import signal
from collections.abc import Iterable
from enum import Enum

import anyio
from anyio import to_thread
from anyio.abc import ObjectReceiveStream, ObjectSendStream

from .runtime.events import (
    ChildResult,
    EventKind,
    OutcomeKind,
    StreamOutcome,
    SupervisorEvent,
)
from .runtime.exit_status import FALLBACK_EXIT_CODE, resolve_exit_status
from .runtime.forwarder import ForwarderCountdown, StreamForwarder
from .runtime.process_runner import ProcessRunner
from .runtime.splitter import DEFAULT_MAX_LINE, LineSplitter
from .signal_relay import PASS_SIGNALS, SignalRelay
from .sinks.base import LineSink

__all__ = ["Supervisor", "SupervisorState"]

logger = logging.getLogger(__name__)

NON_ZERO_EXIT_MESSAGE = "Command return non-zero exit status: {code}"
LOGGING_ERROR_MESSAGE = "Error logging command output: {error}"


class SupervisorState(Enum):
    RUNNING = "running"
    CHILD_EXITED = "child_exited"
    STREAMS_DONE = "streams_done"
    TERMINATED = "terminated"


class Supervisor:
    """Supervise one child process and forward its output.

    Example:
        runner = ProcessRunner()
        process = await runner.spawn(ProcessSpec(argv=["my-daemon"]))
        supervisor = Supervisor(process, stdout_sink, stderr_sink, runner=runner)
        exit_code = await supervisor.run()

    Attributes:
        process: The child process (stdout/stderr must be pipes)
        stdout_sink: Sink for the child's stdout lines
        stderr_sink: Sink for the child's stderr lines and for diagnostics
        max_line: Maximum bytes per forwarded line
        pass_signals: Forward caught signals to the child
        signals: Signals intercepted while supervising
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        stdout_sink: LineSink,
        stderr_sink: LineSink,
        *,
        max_line: int = DEFAULT_MAX_LINE,
        pass_signals: bool = True,
        signals: Iterable[signal.Signals] = PASS_SIGNALS,
        runner: ProcessRunner | None = None,
    ) -> None:
        if process.stdout is None or process.stderr is None:
            raise ValueError("child stdout and stderr must be pipes")

        self.process = process
        self.stdout_sink = stdout_sink
        self.stderr_sink = stderr_sink
        self.max_line = max_line
        self.pass_signals = pass_signals
        self.signals = tuple(signals)
        self.runner = runner if runner is not None else ProcessRunner()

        self.child_result: ChildResult | None = None
        self.streams_done = False
        self.exit_code: int | None = None
        self.forwarders: list[StreamForwarder] = []

        # EOF seen before the child was reaped; the child has been killed
        self._pending_eof: StreamOutcome | None = None
        self._killed = False

    @property
    def state(self) -> SupervisorState:
        """Current state, derived from what the event loop has observed.

        TERMINATED wins over CHILD_EXITED, which wins over STREAMS_DONE:
        once the child has been reaped the state is CHILD_EXITED whether or
        not the streams finished first. STREAMS_DONE therefore only means
        both streams are done while the child is still pending.
        """
        if self.exit_code is not None:
            return SupervisorState.TERMINATED
        if self.child_result is not None:
            return SupervisorState.CHILD_EXITED
        if self.streams_done:
            return SupervisorState.STREAMS_DONE
        return SupervisorState.RUNNING

    async def run(self) -> int:
        """Supervise the child until it is done.

        Returns:
            The exit code logexec should exit with
        """
        send, receive = anyio.create_memory_object_stream(math.inf)
        relay = SignalRelay(send, self.signals)

        async with send, receive:
            await relay.start()
            try:
                async with anyio.create_task_group() as tg:
                    countdown = ForwarderCountdown(2, send)
                    self.forwarders = [
                        self._make_forwarder("stdout", self.process.stdout, self.stdout_sink, send, countdown),
                        self._make_forwarder("stderr", self.process.stderr, self.stderr_sink, send, countdown),
                    ]
                    for forwarder in self.forwarders:
                        tg.start_soon(forwarder.run, name=f"forward-{forwarder.name}")
                    tg.start_soon(self._wait_child, send, name="child-wait")

                    try:
                        code = await self._event_loop(receive)
                    finally:
                        # fatal paths leave forwarders and the wait pending
                        tg.cancel_scope.cancel()
            finally:
                await relay.stop()

        self.exit_code = code
        logger.debug(f"Supervisor terminated pid={self.process.pid} exit_code={code}")
        return code

    def _make_forwarder(
        self,
        name: str,
        stream: asyncio.StreamReader,
        sink: LineSink,
        events: ObjectSendStream[SupervisorEvent],
        countdown: ForwarderCountdown,
    ) -> StreamForwarder:
        splitter = LineSplitter(stream, max_line=self.max_line, name=name)
        return StreamForwarder(name, splitter, sink, events, countdown)

    async def _wait_child(self, events: ObjectSendStream[SupervisorEvent]) -> None:
        try:
            returncode = await self.process.wait()
        except Exception as e:
            result = ChildResult(error=e)
        else:
            result = ChildResult(returncode=returncode)
        logger.debug(f"Subprocess exited pid={self.process.pid} result={result}")
        events.send_nowait(SupervisorEvent.child_exited(result))

    async def _event_loop(self, events: ObjectReceiveStream[SupervisorEvent]) -> int:
        while self.child_result is None or not self.streams_done:
            event = await events.receive()

            if event.kind is EventKind.SIGNAL:
                self._on_signal(event.signum)
                continue

            if event.kind is EventKind.FORWARDERS_DONE:
                self.streams_done = True
                continue

            if event.kind is EventKind.CHILD_EXITED:
                code = await self._on_child_exited(event.result)
            else:
                code = await self._on_stream_error(event.outcome)
            if code is not None:
                return code

        return 0

    def _on_signal(self, sig: signal.Signals) -> None:
        if not self.pass_signals:
            logger.info(f"logexec caught signal {sig.name}, not passing through")
            return
        logger.info(f"logexec caught signal {sig.name}, passing through")
        self.runner.send_signal(self.process, sig)

    async def _on_child_exited(self, result: ChildResult) -> int | None:
        self.child_result = result

        if (
            self._pending_eof is not None
            and self._killed
            and result.killed_by is signal.SIGKILL
        ):
            # the child outlived its output streams
            logger.error(LOGGING_ERROR_MESSAGE.format(error=self._pending_eof.error))
            return FALLBACK_EXIT_CODE

        code = resolve_exit_status(result)
        if code != 0:
            await self._report(NON_ZERO_EXIT_MESSAGE.format(code=code))
            return code
        return None

    async def _on_stream_error(self, outcome: StreamOutcome) -> int | None:
        if outcome.is_benign:
            logger.debug(f"{outcome.stream} closed: {outcome.error}")
            return None

        if outcome.kind is OutcomeKind.PREMATURE_EOF:
            if self.child_result is not None:
                logger.debug(f"{outcome.stream} reached EOF after child exit")
                return None
            if self._pending_eof is None:
                self._pending_eof = outcome
                self._killed = self.runner.kill(self.process)
                logger.debug(
                    f"{outcome.stream} reached EOF before child exit, "
                    f"killed={self._killed}"
                )
            return None

        self.runner.kill(self.process)
        await self._report(LOGGING_ERROR_MESSAGE.format(error=outcome.error))
        logger.error(LOGGING_ERROR_MESSAGE.format(error=outcome.error))
        return FALLBACK_EXIT_CODE

    async def _report(self, message: str) -> None:
        """Write a diagnostic line to the stderr sink."""
        try:
            await to_thread.run_sync(self.stderr_sink.write, message.encode("utf-8"))
        except Exception as e:
            logger.warning(f"Failed to write diagnostic to stderr sink: {e}")
