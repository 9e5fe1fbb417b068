"""Process runner for the supervised child.

logexec runtime module

This module provides:
- Spawning the child with inherited stdin and piped stdout/stderr
- Signal delivery to the child (pass-through of caught signals)
- Forced kill used on fatal supervisor paths

Key design points:
- The child stays in logexec's process group; signals are relayed
  explicitly instead of relying on the terminal
- Signals are sent with os.kill on the pid. Popen.send_signal polls (and
  may reap) the child first, which would race with asyncio's child watcher
  and lose the exit status
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass

from ..errors import StartupError

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
]

logger = logging.getLogger(__name__)

# asyncio.StreamReader buffer limit for the child's pipes
DEFAULT_STREAM_LIMIT = 64 * 1024


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for the child process.

    Attributes:
        argv: Command line arguments (first element is the executable)
    """

    argv: list[str]


@dataclass
class ProcessRunner:
    """Spawn the child and deliver signals to it.

    Example:
        runner = ProcessRunner()
        process = await runner.spawn(ProcessSpec(argv=["my-daemon", "-v"]))
        runner.send_signal(process, signal.SIGHUP)
    """

    stream_limit: int = DEFAULT_STREAM_LIMIT

    async def spawn(self, spec: ProcessSpec) -> asyncio.subprocess.Process:
        """Start the child.

        stdin is inherited from logexec; stdout and stderr are pipes.

        Args:
            spec: Process specification

        Returns:
            The running process, with stdout/stderr stream readers

        Raises:
            StartupError: The command could not be started
        """
        if not spec.argv:
            raise StartupError("Error starting command: empty command line")

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.stream_limit,
            )
        except OSError as e:
            raise StartupError(f"Error starting command: {e}") from e

        logger.debug(f"Started subprocess pid={process.pid} argv={spec.argv[0]}")
        return process

    def send_signal(
        self,
        process: asyncio.subprocess.Process,
        sig: int,
    ) -> bool:
        """Send a signal to the child.

        Args:
            process: The child process
            sig: Signal number

        Returns:
            True if the signal was delivered, False if the child is gone
        """
        if process.returncode is not None:
            logger.debug(f"Not signalling exited subprocess pid={process.pid}")
            return False
        try:
            os.kill(process.pid, sig)
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={process.pid}")
            return False
        logger.debug(f"Sent {signal.Signals(sig).name} to pid={process.pid}")
        return True

    def kill(self, process: asyncio.subprocess.Process) -> bool:
        """Force kill the child (SIGKILL)."""
        return self.send_signal(process, signal.SIGKILL)
