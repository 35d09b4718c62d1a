"""perch — declarative route mapping and parameter binding for ASGI.

Handlers declare the paths and verbs they serve and how each parameter is
pulled from the request; perch registers them once at startup and binds,
validates and coerces arguments per request.

Basic usage::

    from perch import App
    from perch.decorators import bind_query, install, map_route, wrap_response_json

    app = App()

    @map_route("/hello")
    @bind_query("name", default_value="world")
    @wrap_response_json()
    def hello(name):
        return {"greeting": f"Hello, {name}!"}

    install(app)  # serve `app` with any ASGI server
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "BindingError",
    "ConfigurationError",
    "Context",
    "Controller",
    "HTTPError",
    "Mapper",
    "MethodNotAllowed",
    "NotFound",
    "PerchError",
    "Request",
    "Response",
    "get_context",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name in ("Context", "get_context"):
        from perch import context as _ctx

        return getattr(_ctx, name)

    if name == "Controller":
        from perch.controller import Controller

        return Controller

    if name == "Mapper":
        from perch.decorators.mapper import Mapper

        return Mapper

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name in (
        "BindingError",
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
