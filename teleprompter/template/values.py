"""
Value model for template rendering.

Caller-supplied value maps hold plain Python data. Before the compiler looks
at a value it is converted into one of a closed set of value types, so the
truthiness, iteration and text rules below are decided per type rather than
by duck typing.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class StringValue:
    """A text value."""
    text: str


@dataclass(frozen=True)
class BoolValue:
    """A boolean flag."""
    flag: bool


@dataclass(frozen=True)
class NumberValue:
    """A numeric value."""
    number: Union[int, float]


@dataclass(frozen=True)
class ListValue:
    """An ordered sequence of values."""
    items: tuple = ()


@dataclass(frozen=True, eq=False)
class MapValue:
    """A nested mapping, walked by dot-paths."""
    entries: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MissingValue:
    """An unresolved reference."""


MISSING = MissingValue()

Value = Union[StringValue, BoolValue, NumberValue, ListValue, MapValue, MissingValue]


def to_value(obj: Any) -> Value:
    """
    Convert plain Python data into the value model.

    Args:
        obj: A string, bool, number, list/tuple, mapping or None

    Returns:
        The matching value; ``None`` becomes ``MISSING`` and anything else
        unrecognized becomes its ``str()`` form
    """
    if obj is None:
        return MISSING
    if isinstance(obj, bool):
        return BoolValue(obj)
    if isinstance(obj, (int, float)):
        return NumberValue(obj)
    if isinstance(obj, str):
        return StringValue(obj)
    if isinstance(obj, Mapping):
        return MapValue(obj)
    if isinstance(obj, (list, tuple)):
        return ListValue(tuple(to_value(item) for item in obj))
    return StringValue(str(obj))


def walk(value: Value, segments: list[str]) -> Value:
    """Follow path segments through nested maps, starting at ``value``."""
    current = value
    for segment in segments:
        if isinstance(current, MapValue) and segment in current.entries:
            current = to_value(current.entries[segment])
        else:
            return MISSING
    return current


def resolve_path(values: Mapping[str, Any], path: str) -> Value:
    """
    Resolve a dot-path against a value map.

    Nested traversal is tried first (``user.email`` walks ``values["user"]
    ["email"]``). When that fails, a flat key spelled exactly like the path is
    used, which is how the variable form stores dotted names.

    Args:
        values: Root value map
        path: Dot-separated variable name

    Returns:
        The resolved value, or ``MISSING``
    """
    resolved = walk(MapValue(values), path.split("."))
    if isinstance(resolved, MissingValue) and "." in path and path in values:
        return to_value(values[path])
    return resolved


def is_truthy(value: Value) -> bool:
    """Decide whether a value selects the body of an ``#if`` block."""
    if isinstance(value, StringValue):
        return value.text != ""
    if isinstance(value, BoolValue):
        return value.flag
    if isinstance(value, NumberValue):
        return value.number != 0
    if isinstance(value, ListValue):
        return len(value.items) > 0
    if isinstance(value, MapValue):
        return True
    return False


def iterate(value: Value) -> tuple:
    """Return the elements an ``#each`` block visits; non-lists visit none."""
    if isinstance(value, ListValue):
        return value.items
    return ()


def _number_text(number: Union[int, float]) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def to_text(value: Value) -> str:
    """
    Render a value as substitution text.

    Args:
        value: Any value

    Returns:
        Strings verbatim, ``true``/``false`` for flags, lists joined with
        commas, maps as compact JSON and an empty string for ``MISSING``
    """
    if isinstance(value, StringValue):
        return value.text
    if isinstance(value, BoolValue):
        return "true" if value.flag else "false"
    if isinstance(value, NumberValue):
        return _number_text(value.number)
    if isinstance(value, ListValue):
        return ",".join(to_text(item) for item in value.items)
    if isinstance(value, MapValue):
        return json.dumps(
            dict(value.entries),
            separators=(",", ":"),
            ensure_ascii=False,
            default=str
        )
    return ""
