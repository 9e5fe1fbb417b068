"""logexec 应用入口。

包含启动流程（连接 syslog、启动子进程）和主入口点。
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Sequence

from .config import Config, load_config
from .errors import SinkConnectError, StartupError
from .runtime.process_runner import ProcessRunner, ProcessSpec
from .sinks.syslog import SyslogWriter, connect_unix_syslog
from .supervisor import Supervisor

__all__ = ["configure_logging", "main", "open_sinks", "run"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def open_sinks(config: Config) -> tuple[SyslogWriter, SyslogWriter]:
    """连接 stdout / stderr 两个 syslog writer。

    Raises:
        StartupError: 任一 writer 无法连接
    """
    stdout_writer = _connect("stdout", config)
    try:
        stderr_writer = _connect("stderr", config)
    except StartupError:
        stdout_writer.close()
        raise
    return stdout_writer, stderr_writer


def _connect(stream: str, config: Config) -> SyslogWriter:
    level = config.stdout_level if stream == "stdout" else config.stderr_level
    try:
        return connect_unix_syslog(config.facility, level, config.tag)
    except SinkConnectError as e:
        raise StartupError(f"Error initializing {stream} syslog: {e}") from e


async def run(
    config: Config,
    sinks: tuple[SyslogWriter, SyslogWriter] | None = None,
    runner: ProcessRunner | None = None,
) -> int:
    """启动子进程并监管到结束。

    Args:
        config: 配置
        sinks: (stdout, stderr) writer，None 时按配置连接 syslog
        runner: 进程启动器

    Returns:
        logexec 的退出码

    Raises:
        StartupError: 启动阶段失败
    """
    logger.debug(f"Starting logexec: {config}")

    if sinks is None:
        sinks = open_sinks(config)
    stdout_sink, stderr_sink = sinks
    runner = runner if runner is not None else ProcessRunner()

    try:
        process = await runner.spawn(ProcessSpec(argv=config.argv))
        supervisor = Supervisor(
            process,
            stdout_sink,
            stderr_sink,
            max_line=config.max_line,
            pass_signals=config.pass_signals,
            runner=runner,
        )
        return await supervisor.run()
    finally:
        for sink in (stdout_sink, stderr_sink):
            sink.close()


def configure_logging(config: Config) -> None:
    """配置 logexec 自身的诊断日志（输出到 stderr）。"""
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=[stderr_handler],
    )
    # 只对 logexec 命名空间启用详细日志
    logging.getLogger("logexec").setLevel(logging.DEBUG if config.debug else logging.INFO)


def main(argv: Sequence[str] | None = None) -> None:
    """主入口点。"""
    config = load_config(argv)
    configure_logging(config)

    try:
        exit_code = asyncio.run(run(config))
    except StartupError as e:
        logger.error(str(e))
        exit_code = 1

    if exit_code != 0:
        # 致命或非零退出时 sink 写线程可能仍被阻塞，不等待它
        _exit(exit_code)
    sys.exit(exit_code)


def _exit(code: int) -> None:
    """刷新诊断日志后立即结束进程，不等待被放弃的 worker 线程。

    不调用 logging.shutdown()：阻塞中的 SyslogWriter 持有自身的锁。
    """
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(code)


if __name__ == "__main__":
    main()
