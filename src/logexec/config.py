"""logexec 配置管理。

命令行参数（兼容单横线写法，如 -maxline 8192）:
    logexec [选项] command [args...]

    --facility:    syslog facility (默认 local0)
    --stdoutLevel: stdout 行的 syslog 级别 (默认 info)
    --stderrLevel: stderr 行的 syslog 级别 (默认 warning)
    --tag:         所有日志消息的 tag (默认 logexec)
    --maxline:     单行日志最大字节数 (默认 8192)
    --ignoresig:   不将信号转发给子进程
    --debug:       在 stderr 上输出调试日志

环境变量（作为对应参数的默认值）:
    LOGEXEC_FACILITY / LOGEXEC_STDOUT_LEVEL / LOGEXEC_STDERR_LEVEL
    LOGEXEC_TAG / LOGEXEC_MAXLINE
    LOGEXEC_IGNORESIG: true/1/yes/on = 不转发信号
    LOGEXEC_DEBUG:     true/1/yes/on = 调试日志
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .runtime.splitter import DEFAULT_MAX_LINE, ELLIPSIS
from .sinks.syslog import Facility, Severity

__all__ = ["Config", "build_parser", "load_config"]

DEFAULT_TAG = "logexec"
DEFAULT_FACILITY = Facility.LOCAL0
DEFAULT_STDOUT_LEVEL = Severity.INFO
DEFAULT_STDERR_LEVEL = Severity.WARNING


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_max_line(value: str) -> int:
    """解析 maxline，必须能容纳至少一个字节加省略号。"""
    try:
        max_line = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if max_line <= len(ELLIPSIS):
        raise argparse.ArgumentTypeError(
            f"maxline must be greater than {len(ELLIPSIS)}, got {max_line}"
        )
    return max_line


def _enum_type(parse):
    """把 from_string 解析器包装成 argparse type。"""

    def convert(value: str):
        try:
            return parse(value)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e))

    return convert


@dataclass
class Config:
    """logexec 配置。

    Attributes:
        command: 子进程命令
        args: 子进程参数
        facility: syslog facility
        stdout_level: stdout 行的 severity
        stderr_level: stderr 行的 severity
        tag: syslog tag
        max_line: 单行最大字节数
        ignore_signals: 是否不转发信号给子进程
        debug: 调试日志
    """

    command: str
    args: list[str] = field(default_factory=list)
    facility: Facility = DEFAULT_FACILITY
    stdout_level: Severity = DEFAULT_STDOUT_LEVEL
    stderr_level: Severity = DEFAULT_STDERR_LEVEL
    tag: str = DEFAULT_TAG
    max_line: int = DEFAULT_MAX_LINE
    ignore_signals: bool = False
    debug: bool = False

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def pass_signals(self) -> bool:
        return not self.ignore_signals

    def __repr__(self) -> str:
        return (
            f"Config(command={self.command}, "
            f"args={self.args}, "
            f"facility={self.facility.label}, "
            f"stdout_level={self.stdout_level.label}, "
            f"stderr_level={self.stderr_level.label}, "
            f"tag={self.tag}, "
            f"max_line={self.max_line}, "
            f"ignore_signals={self.ignore_signals}, "
            f"debug={self.debug})"
        )


def build_parser(env: Mapping[str, str] | None = None) -> argparse.ArgumentParser:
    """构建参数解析器，默认值取自环境变量。"""
    if env is None:
        env = os.environ

    parser = argparse.ArgumentParser(
        prog="logexec",
        description="Run a command and send its stdout/stderr to syslog.",
    )
    parser.add_argument(
        "--facility", "-facility",
        type=_enum_type(Facility.from_string),
        default=env.get("LOGEXEC_FACILITY", DEFAULT_FACILITY.label),
        help="logging facility (default: %(default)s)",
    )
    parser.add_argument(
        "--stdoutLevel", "-stdoutLevel",
        dest="stdout_level",
        type=_enum_type(Severity.from_string),
        default=env.get("LOGEXEC_STDOUT_LEVEL", DEFAULT_STDOUT_LEVEL.label),
        help="log level for stdout (default: %(default)s)",
    )
    parser.add_argument(
        "--stderrLevel", "-stderrLevel",
        dest="stderr_level",
        type=_enum_type(Severity.from_string),
        default=env.get("LOGEXEC_STDERR_LEVEL", DEFAULT_STDERR_LEVEL.label),
        help="log level for stderr (default: %(default)s)",
    )
    parser.add_argument(
        "--tag", "-tag",
        default=env.get("LOGEXEC_TAG", DEFAULT_TAG),
        help="tag for all log messages (default: %(default)s)",
    )
    parser.add_argument(
        "--maxline", "-maxline",
        dest="max_line",
        type=_parse_max_line,
        default=env.get("LOGEXEC_MAXLINE", str(DEFAULT_MAX_LINE)),
        help="maximum amount of text to log in a line (default: %(default)s)",
    )
    parser.add_argument(
        "--ignoresig", "-ignoresig",
        dest="ignore_signals",
        action="store_true",
        default=_parse_bool(env.get("LOGEXEC_IGNORESIG"), default=False),
        help="do not pass signals on to child process",
    )
    parser.add_argument(
        "--debug", "-debug",
        action="store_true",
        default=_parse_bool(env.get("LOGEXEC_DEBUG"), default=False),
        help="debug logging on stderr",
    )
    parser.add_argument("command", nargs="?", help="command to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="command arguments")
    return parser


def load_config(
    argv: Sequence[str] | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """从命令行参数和环境变量加载配置。

    参数错误时由 argparse 打印用法并以退出码 2 退出。
    """
    parser = build_parser(env)
    ns = parser.parse_args(argv)
    if not ns.command:
        parser.error("No command provided")

    return Config(
        command=ns.command,
        args=list(ns.args),
        facility=ns.facility,
        stdout_level=ns.stdout_level,
        stderr_level=ns.stderr_level,
        tag=ns.tag,
        max_line=ns.max_line,
        ignore_signals=ns.ignore_signals,
        debug=ns.debug,
    )
