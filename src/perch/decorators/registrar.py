"""Route registrar — deferred, once-only registration of mapped handlers.

``declare_route`` runs at import time and only queues a closure.
``init_app`` runs once at startup (from the app's before-start hook):
it resolves every queued closure against the live app (paths, verbs,
controller instances, endpoints) and only then touches the router.

State machine::

    PENDING ──init_app()──> REGISTERED ──init_app()──> REGISTERED (no-op)

A ``ConfigurationError`` during resolution leaves the registrar PENDING
and the router untouched.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import TYPE_CHECKING, Any

from perch._internal.invoke import invoke
from perch._internal.types import Handler
from perch.context import Context
from perch.controller import controller_owner, is_method_like
from perch.decorators.binder import bind
from perch.decorators.metadata import HandlerBindings, MetadataStore, ResponsePolicy
from perch.errors import ConfigurationError
from perch.routing.route import PathSegment
from perch.routing.router import parse_path

if TYPE_CHECKING:
    from perch.app import App

logger = logging.getLogger("perch.decorators")


class RequestMethod(Enum):
    """HTTP verbs a mapping can register. Values name the router method."""

    POST = "post"
    GET = "get"
    PUT = "put"
    DELETE = "delete"
    OPTIONS = "options"


class RegistrarState(Enum):
    PENDING = "pending"
    REGISTERED = "registered"


@dataclass(frozen=True, slots=True)
class RouteSpec:
    """Explicit form of a route declaration.

    ``map_route("/a")`` and ``map_route(["/a", "/b"])`` are sugar for
    ``RouteSpec(paths=...)``.
    """

    paths: str | Sequence[str]
    methods: RequestMethod | str | Sequence[RequestMethod | str] | None = None


@dataclass(frozen=True, slots=True)
class RouteMapping:
    """A resolved declaration: every path is bound for every verb."""

    paths: tuple[str, ...]
    methods: frozenset[RequestMethod]
    handler: Handler

    @property
    def verbs(self) -> tuple[RequestMethod, ...]:
        """Verbs to register, ``GET`` when none were declared."""
        if not self.methods:
            return (RequestMethod.GET,)
        return tuple(m for m in RequestMethod if m in self.methods)


# A queued registration: resolves against the app, returns mapping + endpoint
PendingRegistration = Callable[["App"], tuple[RouteMapping, Handler]]


class RouteRegistrar:
    """Collects route declarations and commits them to an app once."""

    __slots__ = ("_app", "_mappings", "_pending", "_state", "store")

    def __init__(self, store: MetadataStore | None = None) -> None:
        self.store = store or MetadataStore()
        self._pending: list[PendingRegistration] = []
        self._mappings: tuple[RouteMapping, ...] = ()
        self._state = RegistrarState.PENDING
        self._app: App | None = None

    @property
    def state(self) -> RegistrarState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of declarations waiting for ``init_app``."""
        return len(self._pending)

    @property
    def mappings(self) -> tuple[RouteMapping, ...]:
        return self._mappings

    def declare_route(self, spec: Any, handler: Handler) -> None:
        """Queue *handler* for registration under *spec*.

        Nothing is validated here; validation happens in ``init_app`` so
        every configuration error surfaces at startup.
        """
        if self._state is RegistrarState.REGISTERED:
            msg = (
                f"Cannot declare route for {_describe(handler)}: routes were already "
                "registered. Declare routes before the app starts."
            )
            raise RuntimeError(msg)

        def resolve(app: App) -> tuple[RouteMapping, Handler]:
            paths, methods = normalize_spec(spec)
            prefix = app.config.route_prefix.rstrip("/")
            if prefix:
                paths = tuple(prefix + path for path in paths)
            for path in paths:
                parse_path(path)
            target = resolve_handler(app, handler)
            endpoint = wrap_handler(
                target,
                self.store.lookup(handler),
                self.store.response_policies(handler),
            )
            return RouteMapping(paths, methods, target), endpoint

        self._pending.append(resolve)

    def init_app(self, app: App) -> tuple[RouteMapping, ...]:
        """Register every pending declaration on ``app.router``.

        Idempotent: once REGISTERED, further calls return the existing
        mappings without touching any router.
        """
        if self._state is RegistrarState.REGISTERED:
            if app is not self._app:
                logger.warning("Routes already registered on another app; ignoring %r", app)
            else:
                logger.debug("init_app called again; %d mappings already registered", len(self._mappings))
            return self._mappings

        resolved = [resolve(app) for resolve in self._pending]
        _check_duplicates(mapping for mapping, _ in resolved)

        for mapping, endpoint in resolved:
            for path in mapping.paths:
                for verb in mapping.verbs:
                    logger.debug("map_route %s %s -> %s", verb.name, path, _describe(mapping.handler))
                    getattr(app.router, verb.value)(path, endpoint)

        self._pending.clear()
        self._mappings = tuple(mapping for mapping, _ in resolved)
        self._app = app
        self._state = RegistrarState.REGISTERED
        return self._mappings


def _check_duplicates(mappings: Iterable[RouteMapping]) -> None:
    """Raise if two mappings claim the same verb on the same path.

    Paths compare by parsed segments, so "/a" and "/a/" collide, as do
    parameter segments in the same position whatever their names.
    """
    seen: dict[tuple[RequestMethod, tuple[str, ...]], tuple[str, Handler]] = {}
    for mapping in mappings:
        for path in mapping.paths:
            shape = tuple(_segment_key(seg) for seg in parse_path(path))
            for verb in mapping.verbs:
                previous = seen.get((verb, shape))
                if previous is not None:
                    earlier_path, earlier_handler = previous
                    msg = (
                        f"Duplicate route {verb.name} {path!r}: already mapped to "
                        f"{_describe(earlier_handler)} ({earlier_path!r}), "
                        f"cannot also map {_describe(mapping.handler)}"
                    )
                    raise ConfigurationError(msg)
                seen[(verb, shape)] = (path, mapping.handler)


def _segment_key(segment: PathSegment) -> str:
    if not segment.is_param:
        return segment.value
    return "{*}" if segment.param_type == "path" else "{}"


def normalize_spec(spec: Any) -> tuple[tuple[str, ...], frozenset[RequestMethod]]:
    """Turn a route spec into ``(paths, methods)``.

    Accepts a path string, a sequence of paths, a ``RouteSpec``, or a
    mapping with ``paths`` (or ``value``) and ``methods`` (or ``method``).
    """
    if isinstance(spec, RouteSpec):
        raw_paths, raw_methods = spec.paths, spec.methods
    elif isinstance(spec, Mapping):
        raw_paths = spec.get("paths", spec.get("value"))
        raw_methods = spec.get("methods", spec.get("method"))
    else:
        raw_paths, raw_methods = spec, None

    if isinstance(raw_paths, str):
        paths: tuple[Any, ...] = (raw_paths,)
    elif isinstance(raw_paths, Sequence):
        paths = tuple(raw_paths)
    else:
        msg = f"Route spec must be a path, a list of paths, or RouteSpec; got {spec!r}"
        raise ConfigurationError(msg)

    if not paths:
        msg = f"Route spec {spec!r} declares no paths"
        raise ConfigurationError(msg)
    for path in paths:
        if not isinstance(path, str):
            msg = f"Route path must be a string, got {path!r}"
            raise ConfigurationError(msg)

    return paths, parse_methods(raw_methods)


def parse_methods(raw: Any) -> frozenset[RequestMethod]:
    """Parse verbs given as enum members or case-insensitive names."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str | RequestMethod):
        items = [raw]
    else:
        try:
            items = list(raw)
        except TypeError:
            msg = f"Request methods must be a name, a RequestMethod, or a list of them; got {raw!r}"
            raise ConfigurationError(msg) from None

    methods: set[RequestMethod] = set()
    for item in items:
        if isinstance(item, RequestMethod):
            methods.add(item)
            continue
        try:
            methods.add(RequestMethod(str(item).lower()))
        except ValueError:
            allowed = ", ".join(m.name for m in RequestMethod)
            msg = f"Unknown request method {item!r}. Expected one of: {allowed}"
            raise ConfigurationError(msg) from None
    return frozenset(methods)


def resolve_handler(app: App, handler: Handler) -> Handler:
    """Return the callable the router should reach for *handler*.

    Methods of ``Controller`` subclasses are bound to the app's controller
    instance; methods of any other class cannot be resolved.
    """
    owner = controller_owner(handler)
    if owner is not None:
        return handler.__get__(app.controller(owner), owner)
    if not inspect.ismethod(handler) and is_method_like(handler):
        msg = (
            f"{_describe(handler)} is defined in a class that does not extend "
            "perch.Controller; its instance cannot be resolved."
        )
        raise ConfigurationError(msg)
    return handler


def wrap_handler(
    handler: Handler,
    bindings: HandlerBindings,
    policies: Sequence[ResponsePolicy] = (),
) -> Handler:
    """Build the endpoint the router calls as ``endpoint(ctx)``.

    Binds arguments when the handler has bindings (otherwise forwards the
    call arguments, i.e. the context, unchanged), invokes the handler, and
    runs the response policies around that call, first-declared innermost.
    """

    @wraps(handler)
    async def endpoint(ctx: Context, *args: Any) -> Any:
        call_args = bind(ctx, bindings) if bindings else [ctx, *args]

        async def call() -> Any:
            return await invoke(handler, *call_args)

        for policy in policies:
            call = _chain(policy, ctx, call)
        return await call()

    return endpoint


def _chain(
    policy: ResponsePolicy,
    ctx: Context,
    inner: Callable[[], Awaitable[Any]],
) -> Callable[[], Awaitable[Any]]:
    async def call() -> Any:
        return await policy(ctx, inner)

    return call


def _describe(handler: Any) -> str:
    func = handler.__func__ if inspect.ismethod(handler) else handler
    module = getattr(func, "__module__", "?")
    return f"{module}.{getattr(func, '__qualname__', repr(func))}"
