"""Optional completion callbacks.

Every canoe entry point that accepts a callback also returns (or raises) the
same outcome, so a callback is purely a notification. ``None`` means no-op.
"""

import inspect
from collections.abc import Callable
from typing import Any

StreamCallback = Callable[[BaseException | None, Any], Any]


async def invoke_callback(
    callback: StreamCallback | None,
    error: BaseException | None,
    result: Any = None,
) -> None:
    """Call ``callback(error, result)``, awaiting it if it is a coroutine.

    Args:
        callback: The callback, or None
        error: The error the operation ended with, if any
        result: The operation's result when it succeeded
    """
    if callback is None:
        return
    outcome = callback(error, result)
    if inspect.isawaitable(outcome):
        await outcome
