"""信号转发模块。

拦截一组固定的终止/中断信号，并把每次收到的信号作为事件交给 supervisor：
- SIGHUP / SIGINT / SIGQUIT / SIGTERM
- 是否真正转发给子进程由 supervisor 根据 --ignoresig 决定

logexec 自身不会因这些信号退出，它只在子进程退出后退出。
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Iterable

from anyio import BrokenResourceError, ClosedResourceError
from anyio.abc import ObjectSendStream

from .runtime.events import SupervisorEvent

__all__ = ["PASS_SIGNALS", "SignalRelay"]

logger = logging.getLogger(__name__)

PASS_SIGNALS: tuple[signal.Signals, ...] = (
    signal.SIGHUP,
    signal.SIGINT,
    signal.SIGQUIT,
    signal.SIGTERM,
)


class SignalRelay:
    """信号转发器。

    在事件循环上安装信号处理器，每收到一个信号就向事件流发送一个
    SIGNAL 事件。

    Example:
        ```python
        relay = SignalRelay(send_stream)
        await relay.start()
        try:
            ...  # supervisor 事件循环
        finally:
            await relay.stop()
        ```

    Attributes:
        signals: 拦截的信号列表
    """

    def __init__(
        self,
        events: ObjectSendStream[SupervisorEvent],
        signals: Iterable[signal.Signals] = PASS_SIGNALS,
    ) -> None:
        """初始化信号转发器。

        Args:
            events: supervisor 事件流的发送端
            signals: 拦截的信号（默认 PASS_SIGNALS）
        """
        self._events = events
        self.signals = tuple(signals)

        # 内部状态
        self._installed: list[signal.Signals] = []
        self._running: bool = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self.received: int = 0

    @property
    def is_running(self) -> bool:
        """是否正在拦截信号。"""
        return self._running

    async def start(self) -> None:
        """开始拦截信号。

        必须在 asyncio 事件循环中调用。
        """
        if self._running:
            logger.warning("SignalRelay already running")
            return

        if sys.platform == "win32":
            raise RuntimeError("signal relay requires a POSIX platform")

        self._loop = asyncio.get_running_loop()
        self._running = True

        for sig in self.signals:
            self._loop.add_signal_handler(sig, self._handle_signal, sig)
            self._installed.append(sig)

        logger.debug(
            f"Signal handlers installed ({', '.join(s.name for s in self._installed)})"
        )

    async def stop(self) -> None:
        """停止拦截信号，恢复默认处理器。"""
        if not self._running:
            return

        self._running = False

        if self._loop:
            for sig in self._installed:
                try:
                    self._loop.remove_signal_handler(sig)
                except Exception as e:
                    logger.debug(f"Error removing handler for {sig.name}: {e}")
        self._installed.clear()

        logger.debug("Signal handlers removed")

    def _handle_signal(self, sig: signal.Signals) -> None:
        """把信号转换成 SIGNAL 事件。"""
        self.received += 1
        try:
            self._events.send_nowait(SupervisorEvent.from_signal(sig))
        except (BrokenResourceError, ClosedResourceError):
            # supervisor 已退出事件循环
            logger.debug(f"Dropped {sig.name}, supervisor is shutting down")
