"""Bounded retry for best-effort provisioning."""

import time
from typing import Callable

import structlog

from cdbg_bootstrap.core.exceptions import FatalBootstrapError

logger = structlog.get_logger()


def retry(
    operation: Callable[[], object],
    attempts: int,
    delay: float,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Run ``operation`` until it succeeds or ``attempts`` are used up.

    Fatal errors propagate immediately. Any other exception is logged and the
    operation is retried after ``delay`` seconds.

    Returns:
        True if an attempt succeeded, False if the budget was exhausted.
    """
    for attempt in range(1, attempts + 1):
        try:
            operation()
            return True
        except FatalBootstrapError:
            raise
        except Exception as e:
            logger.warning(
                "Failed to prepare the Cloud Debugger agent",
                attempt=attempt,
                attempts=attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            if attempt < attempts:
                sleep(delay)
    return False
