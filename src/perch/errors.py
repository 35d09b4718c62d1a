"""perch exception hierarchy.

Shared across Router, App, the request pipeline, and the decorator layer
so every module raises and catches the same types.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when app or route configuration is invalid.

    Raised at startup (during ``App._freeze()``), never at request time:
    unknown verbs, malformed paths, unresolvable handlers.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, the binder, or handlers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405 — route exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class BindingError(HTTPError):
    """400 — a handler parameter could not be bound from the request.

    Raised for missing required parameters and failed type conversions.
    ``source`` is ``"path"``, ``"query"`` or ``"body"``; ``key`` is the
    parameter key (``None`` for whole-source bindings).
    """

    def __init__(self, detail: str, *, source: str = "", key: str | None = None) -> None:
        super().__init__(status=400, detail=detail)
        object.__setattr__(self, "source", source)
        object.__setattr__(self, "key", key)
