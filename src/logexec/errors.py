"""logexec 异常类。"""

from __future__ import annotations

__all__ = [
    "LogexecError",
    "PrematureEOF",
    "SinkConnectError",
    "StartupError",
]


class LogexecError(Exception):
    """logexec 基础异常。"""
    pass


class PrematureEOF(LogexecError):
    """子进程输出流在未请求关闭时到达 EOF。

    Attributes:
        stream: 流名称 (stdout/stderr)
    """

    def __init__(self, stream: str = "") -> None:
        self.stream = stream
        where = f" {stream}" if stream else ""
        super().__init__(f"Error reading{where}: got EOF. Exiting")


class SinkConnectError(LogexecError):
    """无法连接到任何本地 syslog 套接字。

    Attributes:
        attempts: 尝试过的 (传输类型, 路径) 列表
    """

    def __init__(self, attempts: list[tuple[str, str]] | None = None) -> None:
        self.attempts = attempts or []
        super().__init__("Unix syslog delivery error")


class StartupError(LogexecError):
    """启动阶段失败（连接 syslog、启动子进程）。"""
    pass
