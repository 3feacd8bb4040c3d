import logging
from typing import Any, Callable, Optional


def best_effort(log: logging.Logger, name: str, fn: Callable, *args, **kwargs) -> Optional[Any]:
    """
    Run a non-critical side effect. A failure is logged with its traceback and
    swallowed; the caller gets None and carries on.
    """
    try:
        return fn(*args, **kwargs)
    except Exception:
        log.exception(f"{name} failed (non-fatal)")
        return None
