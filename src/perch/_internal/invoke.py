"""Invoke helpers — call sync or async handlers uniformly.

Handlers can be ``def`` or ``async def``. Any code that calls a
user-provided handler must handle both cases, so the check lives here.

Usage::

    from perch._internal.invoke import invoke

    result = await invoke(handler, *args, **kwargs)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
