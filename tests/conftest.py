"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CHILD_PATH = FIXTURES_DIR / "fake_child.py"


class ListSink:
    """内存 sink，记录每一行。

    on_line: 可选回调，每写入一行调用一次（在 worker 线程中）
    fail_with: 非 None 时 write() 抛出该异常
    """

    def __init__(self, on_line=None, fail_with: BaseException | None = None) -> None:
        self.lines: list[bytes] = []
        self.closed = False
        self.on_line = on_line
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def write(self, data: bytes) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.lines.append(bytes(data))
        if self.on_line is not None:
            self.on_line(bytes(data))
        return len(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def stdout_sink() -> ListSink:
    """stdout 内存 sink。"""
    return ListSink()


@pytest.fixture
def stderr_sink() -> ListSink:
    """stderr 内存 sink。"""
    return ListSink()


@pytest.fixture
def fake_child() -> list[str]:
    """fake_child.py 的命令行前缀。"""
    return [sys.executable, str(FAKE_CHILD_PATH)]


@pytest.fixture
def make_sink():
    """ListSink 工厂。"""
    return ListSink
