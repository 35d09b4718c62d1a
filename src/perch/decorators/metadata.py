"""Metadata store — per-handler parameter bindings and response policies.

Filled at import time by the decorators, read-only once the app starts.
Records are keyed by handler identity, taken from the unwrapped function
so the order decorators are stacked in never changes the key.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from perch.errors import ConfigurationError


class ParamSource(Enum):
    """Where a parameter value comes from.

    Declaration order is the binding precedence order.
    """

    PATH_PARAM = "path"
    QUERY = "query"
    BODY = "body"


class ValueType(Enum):
    """Target type a bound value is coerced to."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class QueryCollectionMode(Enum):
    """Whether a query binding reads the first value or every value."""

    FIRST = "first"
    ALL = "all"


def is_present(value: Any) -> bool:
    """Default required-predicate: anything but ``None`` counts."""
    return value is not None


@dataclass(frozen=True, slots=True)
class BindingOptions:
    """Per-binding options shared by every parameter decorator."""

    default_value: Any = None
    required: bool = False
    is_required: Callable[[Any], bool] = is_present
    value_type: ValueType = ValueType.STRING
    collection_mode: QueryCollectionMode = QueryCollectionMode.FIRST


@dataclass(frozen=True, slots=True)
class ParameterBinding:
    """How to produce positional argument ``index`` of a handler."""

    index: int
    source: ParamSource
    key: str | None = None
    default_value: Any = None
    required: bool = False
    is_required: Callable[[Any], bool] = is_present
    value_type: ValueType = ValueType.STRING
    collection_mode: QueryCollectionMode = QueryCollectionMode.FIRST


@dataclass(frozen=True, slots=True)
class HandlerBindings:
    """All bindings of one handler, split by source and sorted by index."""

    by_path_param: tuple[ParameterBinding, ...] = ()
    by_query: tuple[ParameterBinding, ...] = ()
    by_body: tuple[ParameterBinding, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.by_path_param or self.by_query or self.by_body)

    @property
    def arity(self) -> int:
        """Length of the argument list the bindings produce."""
        return max((b.index for _, group in self.groups() for b in group), default=-1) + 1

    def groups(self) -> tuple[tuple[ParamSource, tuple[ParameterBinding, ...]], ...]:
        """The three groups in processing order: path, query, body."""
        return (
            (ParamSource.PATH_PARAM, self.by_path_param),
            (ParamSource.QUERY, self.by_query),
            (ParamSource.BODY, self.by_body),
        )


# A response policy wraps the call of the original handler:
#   await policy(ctx, call) where call() -> Awaitable[result]
ResponsePolicy = Callable[[Any, Callable[[], Awaitable[Any]]], Awaitable[Any]]


def handler_key(handler: Any) -> Any:
    """Identity under which *handler*'s metadata is stored."""
    if inspect.ismethod(handler):
        handler = handler.__func__
    return inspect.unwrap(handler)


class MetadataStore:
    """Append-only table of bindings and response policies per handler."""

    __slots__ = ("_bindings", "_policies")

    def __init__(self) -> None:
        self._bindings: dict[Any, list[ParameterBinding]] = {}
        self._policies: dict[Any, list[ResponsePolicy]] = {}

    def record(
        self,
        handler: Any,
        index: int,
        source: ParamSource,
        options: BindingOptions | None = None,
        *,
        key: str | None = None,
    ) -> ParameterBinding:
        """Append a ParameterBinding for argument *index* of *handler*."""
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            msg = f"Parameter index must be a non-negative int, got {index!r}"
            raise ConfigurationError(msg)
        if not isinstance(source, ParamSource):
            msg = f"Unknown parameter source {source!r}"
            raise ConfigurationError(msg)

        opts = options or BindingOptions()
        binding = ParameterBinding(
            index=index,
            source=source,
            key=key,
            default_value=opts.default_value,
            required=opts.required,
            is_required=opts.is_required,
            value_type=opts.value_type,
            collection_mode=opts.collection_mode,
        )
        self._bindings.setdefault(handler_key(handler), []).append(binding)
        return binding

    def lookup(self, handler: Any) -> HandlerBindings:
        """Project *handler*'s bindings into per-source, index-sorted groups."""
        records = self._bindings.get(handler_key(handler), [])

        def group(source: ParamSource) -> tuple[ParameterBinding, ...]:
            # sorted() is stable: equal indices keep record order
            return tuple(sorted((b for b in records if b.source is source), key=lambda b: b.index))

        return HandlerBindings(
            by_path_param=group(ParamSource.PATH_PARAM),
            by_query=group(ParamSource.QUERY),
            by_body=group(ParamSource.BODY),
        )

    def add_response_policy(self, handler: Any, policy: ResponsePolicy) -> None:
        """Append a response policy; the first one added runs innermost."""
        self._policies.setdefault(handler_key(handler), []).append(policy)

    def response_policies(self, handler: Any) -> tuple[ResponsePolicy, ...]:
        return tuple(self._policies.get(handler_key(handler), ()))
