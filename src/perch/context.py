"""Per-request context passed explicitly to every route handler.

The router calls ``handler(ctx)``. ``Context`` carries the request side
(method, path params, query, parsed body) and the response side (``body``,
``status``) that response policies assign to.

``context_var`` also exposes the current context to code that has no
parameter for it (``Controller.ctx``, ``get_context()``). It is set by the
request pipeline and reset after each request.

Thread safety:
    ``ContextVar`` is task-local under asyncio. No locks needed.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, NoReturn

from perch.errors import HTTPError
from perch.http.query import QueryParams
from perch.http.request import Request

if TYPE_CHECKING:
    from perch.app import App


class Context:
    """The request context handed to route handlers.

    Request side::

        ctx.method          # "GET"
        ctx.params          # {"id": 42} for /users/{id:int}
        ctx.query           # first value per key
        ctx.queries         # every value per key
        ctx.request_body    # parsed JSON/form mapping, or None

    Response side::

        ctx.body = {"id": 42}
        ctx.status = 201
    """

    __slots__ = ("app", "body", "request", "request_body", "status")

    def __init__(
        self,
        request: Request,
        *,
        app: App | None = None,
        request_body: Any = None,
    ) -> None:
        self.request = request
        self.app = app
        self.request_body = request_body
        self.body: Any = None
        self.status: int | None = None

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def params(self) -> Mapping[str, Any]:
        return self.request.path_params

    @property
    def query(self) -> QueryParams:
        return self.request.query

    @property
    def queries(self) -> dict[str, list[str]]:
        return self.request.query.lists()

    def throw(self, message: str, status: int = 400) -> NoReturn:
        """Abort the request with a client-visible error."""
        raise HTTPError(status=status, detail=message)

    def __repr__(self) -> str:
        return f"<Context {self.method} {self.path}>"


context_var: ContextVar[Context] = ContextVar("perch_context")
"""The current request context. Set by the ASGI handler before dispatch."""


def get_context() -> Context:
    """Return the current request context.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()
