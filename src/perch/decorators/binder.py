"""Parameter binder — builds a handler's positional arguments from a request.

Resolution rules per binding:

- **Query**: the query string (first value, or every value in ``all`` mode).
- **Body**: the parsed body; when the key is absent there, the query string
  answers instead (so a GET with ``?x=2`` still binds ``x``).
- **PathParam**: the matched route's path parameters; then, on verbs that
  carry a body, the body followed by the query string; on GET and other
  body-less verbs the query string only.

A value that fails the binding's required-predicate is replaced by its
default. A required binding still failing the predicate raises
``BindingError`` (400) and binding stops. Surviving values are coerced to
the binding's ``ValueType``.

Groups run in the order path, query, body; a later group overwrites an
earlier group's slot at the same index. Binding is synchronous and only
mutates the argument list it returns.
"""

import json
import math
from collections.abc import Mapping
from typing import Any

from perch.context import Context
from perch.decorators.metadata import (
    HandlerBindings,
    ParameterBinding,
    ParamSource,
    QueryCollectionMode,
    ValueType,
)
from perch.errors import BindingError


def bind(ctx: Context, bindings: HandlerBindings) -> list[Any]:
    """Return the argument list for a handler with *bindings*.

    Slots no binding targets are ``None``.
    """
    args: list[Any] = [None] * bindings.arity
    for _source, group in bindings.groups():
        for binding in group:
            args[binding.index] = bind_one(ctx, binding)
    return args


def bind_one(ctx: Context, binding: ParameterBinding) -> Any:
    """Produce the value of a single binding."""
    if binding.key is None:
        return _whole_source(ctx, binding)

    value = _fetch(ctx, binding)
    if not binding.is_required(value):
        value = binding.default_value

    if not binding.is_required(value):
        if binding.required:
            raise BindingError(
                _missing_message(binding),
                source=binding.source.value,
                key=binding.key,
            )
        return value

    try:
        if binding.source is ParamSource.QUERY and binding.collection_mode is QueryCollectionMode.ALL:
            items = value if isinstance(value, list) else [value]
            return [convert(item, binding.value_type) for item in items]
        return convert(value, binding.value_type)
    except (ValueError, TypeError):
        msg = (
            f"Convert parameter error: {binding.source.value} parameter "
            f"[{binding.key}] expects {binding.value_type.value}, got {value!r}"
        )
        raise BindingError(msg, source=binding.source.value, key=binding.key) from None


def convert(value: Any, value_type: ValueType) -> Any:
    """Coerce *value* to *value_type*.

    Raises ``ValueError`` or ``TypeError`` when the value does not convert.
    """
    match value_type:
        case ValueType.STRING:
            return value
        case ValueType.BOOLEAN:
            return _to_bool(value)
        case ValueType.NUMBER:
            return _to_number(value)
        case ValueType.JSON:
            return json.loads(value) if isinstance(value, str | bytes) else value
    msg = f"Unknown value type {value_type!r}"
    raise TypeError(msg)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    msg = f"Expected 'true' or 'false', got {value!r}"
    raise ValueError(msg)


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        msg = "Booleans are not numbers"
        raise TypeError(msg)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        # Python accepts "1_000"; HTTP clients never mean that
        if "_" in text:
            msg = f"Not a number: {value!r}"
            raise ValueError(msg)
        try:
            return int(text)
        except ValueError:
            number = float(text)
    else:
        msg = f"Cannot convert {type(value).__name__} to a number"
        raise TypeError(msg)
    if math.isnan(number):
        msg = "NaN is not a number"
        raise ValueError(msg)
    return number


def _fetch(ctx: Context, binding: ParameterBinding) -> Any:
    key = binding.key
    match binding.source:
        case ParamSource.QUERY:
            if binding.collection_mode is QueryCollectionMode.ALL:
                return ctx.queries.get(key)
            return ctx.query.get(key)
        case ParamSource.BODY:
            body = ctx.request_body
            if isinstance(body, Mapping) and key in body:
                return body[key]
            return ctx.query.get(key)
        case ParamSource.PATH_PARAM:
            if key in ctx.params:
                return ctx.params[key]
            body = ctx.request_body
            if ctx.request.has_body and isinstance(body, Mapping) and key in body:
                return body[key]
            return ctx.query.get(key)
    return None


def _whole_source(ctx: Context, binding: ParameterBinding) -> Any:
    match binding.source:
        case ParamSource.QUERY:
            if binding.collection_mode is QueryCollectionMode.ALL:
                return ctx.queries
            return dict(ctx.query)
        case ParamSource.BODY:
            return ctx.request_body if ctx.request_body is not None else {}
        case ParamSource.PATH_PARAM:
            return dict(ctx.params)
    return None


def _missing_message(binding: ParameterBinding) -> str:
    match binding.source:
        case ParamSource.QUERY:
            return f"Missing query parameter [{binding.key}]"
        case ParamSource.BODY:
            return f"Missing body parameter [{binding.key}]"
        case _:
            return f"Missing parameter [{binding.key}] in path"
