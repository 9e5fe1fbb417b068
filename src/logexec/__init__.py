"""logexec - run a command and send its output to syslog.

stdout 和 stderr 分别以不同的 syslog 级别记录，信号转发给子进程，
子进程的退出码即 logexec 的退出码。

用法:
    logexec [--facility local0] [--tag myapp] command [args...]
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
