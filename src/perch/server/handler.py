"""ASGI handler — translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Builds the Request,
matches the route, pre-reads the body, hands the route handler a
``Context``, and sends the resulting Response back through ``send()``.
"""

import json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.context import Context, context_var
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.router import Router
from perch.server.errors import handle_http_error, handle_internal_error
from perch.server.negotiation import negotiate
from perch.server.sender import send_response

if TYPE_CHECKING:
    from perch.app import App


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    app: "App",
    router: Router,
    error_handlers: dict[int | type, Callable[..., Any]],
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    try:
        match = router.match(request.method, request.path)
        request = request.with_path_params(match.path_params)
        request_body = await read_request_body(request, app.config.max_content_length)

        ctx = Context(request, app=app, request_body=request_body)
        token = context_var.set(ctx)
        try:
            result = await invoke(match.route.handler, ctx)
        finally:
            context_var.reset(token)

        response = build_response(result, ctx)
    except HTTPError as exc:
        response = await handle_http_error(exc, request, error_handlers)
    except Exception as exc:
        response = await handle_internal_error(exc, request, error_handlers, app.config.debug)

    await send_response(response, send)


def build_response(result: Any, ctx: Context) -> Response:
    """Turn a handler result into a Response.

    A non-``None`` return value wins; otherwise whatever the handler (or a
    response policy) assigned to ``ctx.body`` is sent. ``ctx.status``
    overrides the negotiated status when set.
    """
    response = negotiate(result if result is not None else ctx.body)
    if ctx.status is not None:
        response = response.with_status(ctx.status)
    return response


async def read_request_body(request: Request, max_length: int) -> Any:
    """Read and parse the body so binding can stay synchronous.

    Returns the decoded JSON value, a ``dict`` of form fields, or ``None``
    for body-less methods, empty bodies, and other content types (the raw
    bytes stay available through ``ctx.request.body()``).

    Raises ``HTTPError`` 413 above *max_length* and 400 for malformed
    JSON or form bodies.
    """
    if not request.has_body:
        return None

    declared = request.content_length
    if declared is not None and declared > max_length:
        raise HTTPError(status=413, detail="Request body too large")

    raw = await request.body()
    if len(raw) > max_length:
        raise HTTPError(status=413, detail="Request body too large")
    if not raw:
        return None

    content_type = request.content_type or ""
    if "json" in content_type:
        try:
            return json.loads(raw)
        except ValueError:
            raise HTTPError(status=400, detail="Malformed JSON body") from None
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        try:
            return dict(await request.form())
        except ValueError as exc:
            raise HTTPError(status=400, detail=f"Malformed form body: {exc}") from None
    return None
