"""Response policies — what happens to a handler's return value.

A policy is an async callable ``policy(ctx, call)``: ``call()`` runs the
handler (or the next policy inward) and the policy decides what reaches
``ctx.body`` and what is returned to the router.

- ``body_policy``: assign the return value to ``ctx.body``.
- ``json_policy``: assign a success/error envelope to ``ctx.body`` and
  swallow handler errors.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from perch.context import Context
from perch.decorators.metadata import ResponsePolicy
from perch.errors import HTTPError

logger = logging.getLogger("perch.decorators")

DataWrapper = Callable[[Any], Any]
ErrorWrapper = Callable[[Exception], Any]


def error_message(exc: Exception) -> str:
    """Client-facing message for *exc*: the HTTP detail or ``str(exc)``."""
    if isinstance(exc, HTTPError) and exc.detail:
        return exc.detail
    return str(exc)


def default_data_wrapper(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def default_error_wrapper(exc: Exception) -> dict[str, Any]:
    return {"success": False, "errorMessage": error_message(exc)}


def body_policy(*, returning: bool = False) -> ResponsePolicy:
    """Assign the handler's return value to ``ctx.body``.

    With ``returning=True`` the value is also returned, which is what an
    enclosing policy needs to see it. Handler errors propagate.
    """

    async def assign_body(ctx: Context, call: Callable[[], Awaitable[Any]]) -> Any:
        value = await call()
        ctx.body = value
        return value if returning else None

    return assign_body


def json_policy(
    data_wrapper: DataWrapper | None = None,
    error_wrapper: ErrorWrapper | None = None,
) -> ResponsePolicy:
    """Wrap results in an envelope and turn handler errors into envelopes.

    Defaults produce ``{"success": True, "data": value}`` and
    ``{"success": False, "errorMessage": message}``. Any ``Exception``
    raised by the handler is logged and swallowed; the request completes
    normally with the error envelope as its body.
    """
    wrap_data = data_wrapper or default_data_wrapper
    wrap_error = error_wrapper or default_error_wrapper

    async def envelope(ctx: Context, call: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await call()
        except Exception as exc:
            logger.warning("Enveloped error on %s %s: %s", ctx.method, ctx.path, exc, exc_info=True)
            ctx.body = wrap_error(exc)
        else:
            ctx.body = wrap_data(value)
        return ctx.body

    return envelope
