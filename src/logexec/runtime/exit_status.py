"""Map the child's wait outcome to logexec's own exit code."""

from __future__ import annotations

import logging

from .events import ChildResult

__all__ = ["FALLBACK_EXIT_CODE", "resolve_exit_status"]

logger = logging.getLogger(__name__)

FALLBACK_EXIT_CODE = 1


def resolve_exit_status(result: ChildResult | None) -> int:
    """Resolve the exit code for a wait outcome.

    - no result or return code 0 -> 0
    - positive return code -> that code
    - wait error (process never ran, ...) -> 1
    - killed by a signal or any other shape -> 1

    Never raises.
    """
    if result is None:
        return 0

    if result.error is not None:
        logger.debug(f"Wait failed: {type(result.error).__name__}: {result.error}")
        return FALLBACK_EXIT_CODE

    code = result.returncode
    if code is None:
        return 0
    if not isinstance(code, int):
        logger.debug(f"Unknown wait status {code!r}, using {FALLBACK_EXIT_CODE}")
        return FALLBACK_EXIT_CODE
    if code < 0:
        # no exit status to replicate
        sig = result.killed_by
        logger.debug(
            f"Child killed by {sig.name if sig else -code}, using {FALLBACK_EXIT_CODE}"
        )
        return FALLBACK_EXIT_CODE
    return code
