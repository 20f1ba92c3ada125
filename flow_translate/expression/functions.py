"""
Builtin expression functions and their names in each dialect.

Each builtin has one implementation shared by both dialects so that a
translated expression evaluates to the same value as its source.
"""

import json
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any

from flow_translate.expression.dialects import FLOW_GRAPH, NODE_GRAPH

# Past this a float carries no more decimal digits
MAX_ROUND_DIGITS = 15


def to_text(value: Any) -> str:
    """
    Coerce a value to the string form used by concatenation.

    None becomes an empty string, booleans lowercase, and integral floats
    drop their trailing ``.0``.
    """
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _upper(value):
    return to_text(value).upper()


def _lower(value):
    return to_text(value).lower()


def _capitalize(value):
    text = to_text(value)
    return text[:1].upper() + text[1:]


def _trim(value):
    return to_text(value).strip()


def _replace(value, search, replacement=""):
    return to_text(value).replace(to_text(search), to_text(replacement))


def _substring(value, start, end=None):
    text = to_text(value)
    begin = max(int(start), 0)
    if end is None:
        return text[begin:]
    return text[begin : max(int(end), begin)]


def _split(value, separator=","):
    return to_text(value).split(to_text(separator))


def _contains(value, search):
    if isinstance(value, (list, tuple)):
        return search in value
    return to_text(search) in to_text(value)


def _length(value):
    if value is None:
        return 0
    if isinstance(value, (str, list, dict)):
        return len(value)
    return len(to_text(value))


def _now():
    return datetime.now(timezone.utc).isoformat()


_DATE_TOKENS = (
    ("YYYY", "%Y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
)


def _parse_date(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(to_text(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _format_date(value, pattern="ISO"):
    moment = _parse_date(value)
    if moment is None:
        return ""
    if pattern == "ISO":
        return moment.isoformat()
    fmt = to_text(pattern)
    for token, directive in _DATE_TOKENS:
        fmt = fmt.replace(token, directive)
    return moment.strftime(fmt)


def _date_shift(unit: str):
    def shift(value, amount):
        moment = _parse_date(value)
        if moment is None:
            return ""
        return (moment + timedelta(**{unit: float(amount)})).isoformat()

    return shift


def _first(value):
    if isinstance(value, (list, tuple, str)) and value:
        return value[0]
    return None


def _last(value):
    if isinstance(value, (list, tuple, str)) and value:
        return value[-1]
    return None


def _join(value, separator=","):
    if not isinstance(value, (list, tuple)):
        return to_text(value)
    return to_text(separator).join(to_text(item) for item in value)


def _keys(value):
    if isinstance(value, dict):
        return list(value.keys())
    return []


def _round(value, digits=0):
    # Half away from zero
    digits = int(digits)
    if abs(digits) > MAX_ROUND_DIGITS:
        raise ValueError(f"digits must be between -{MAX_ROUND_DIGITS} and {MAX_ROUND_DIGITS}")
    factor = 10 ** digits
    number = float(value)
    rounded = math.floor(abs(number) * factor + 0.5) / factor
    result = math.copysign(rounded, number)
    return int(result) if digits == 0 else result


def _floor(value):
    return math.floor(float(value))


def _ceil(value):
    return math.ceil(float(value))


def _if(condition, when_true, when_false=None):
    return when_true if condition else when_false


def _if_empty(value, fallback):
    return fallback if _is_empty(value) else value


@dataclass(frozen=True)
class BuiltinFunction:
    """
    A function both dialects know, under different names.

    Attributes:
        name: Canonical name used in logs
        node_graph: Name in node-graph expressions (e.g. ``$str.upper``)
        flow_graph: Name in flow-graph expressions (e.g. ``upper``)
        impl: Implementation used by the evaluator
        min_args: Fewest arguments the implementation accepts
        max_args: Most arguments the implementation accepts
    """

    name: str
    node_graph: str
    flow_graph: str
    impl: Callable[..., Any]
    min_args: int = 1
    max_args: int = 1

    def name_in(self, dialect: str) -> str:
        if dialect == NODE_GRAPH:
            return self.node_graph
        if dialect == FLOW_GRAPH:
            return self.flow_graph
        raise ValueError(f"Unknown dialect: {dialect}")


class FunctionTable:
    """Lookup of builtin functions by dialect-specific name."""

    def __init__(self, functions: Iterable[BuiltinFunction]):
        self._functions = tuple(functions)
        by_dialect = {NODE_GRAPH: {}, FLOW_GRAPH: {}}
        for function in self._functions:
            by_dialect[NODE_GRAPH][function.node_graph] = function
            by_dialect[FLOW_GRAPH][function.flow_graph] = function
        self._by_dialect = MappingProxyType(
            {dialect: MappingProxyType(names) for dialect, names in by_dialect.items()}
        )

    def __iter__(self):
        return iter(self._functions)

    def __len__(self):
        return len(self._functions)

    def lookup(self, name: str, dialect: str) -> BuiltinFunction | None:
        return self._by_dialect[dialect].get(name)

    def translate_name(self, name: str, source: str, target: str) -> str | None:
        """
        Map a function name from one dialect to the other.

        Returns:
            Target-dialect name, or None when the function is unknown
        """
        function = self.lookup(name, source)
        if function is None:
            return None
        return function.name_in(target)


BUILTINS = FunctionTable(
    [
        BuiltinFunction("upper", "$str.upper", "upper", _upper),
        BuiltinFunction("lower", "$str.lower", "lower", _lower),
        BuiltinFunction("capitalize", "$str.capitalize", "capitalize", _capitalize),
        BuiltinFunction("trim", "$str.trim", "trim", _trim),
        BuiltinFunction("replace", "$str.replace", "replace", _replace, 2, 3),
        BuiltinFunction("substring", "$str.substring", "substring", _substring, 2, 3),
        BuiltinFunction("split", "$str.split", "split", _split, 1, 2),
        BuiltinFunction("contains", "$str.contains", "contains", _contains, 2, 2),
        BuiltinFunction("length", "$str.length", "length", _length),
        BuiltinFunction("now", "$date.now", "now", _now, 0, 0),
        BuiltinFunction("formatDate", "$date.format", "formatDate", _format_date, 1, 2),
        BuiltinFunction("addDays", "$date.addDays", "addDays", _date_shift("days"), 2, 2),
        BuiltinFunction("addHours", "$date.addHours", "addHours", _date_shift("hours"), 2, 2),
        BuiltinFunction(
            "addMinutes", "$date.addMinutes", "addMinutes", _date_shift("minutes"), 2, 2
        ),
        BuiltinFunction("first", "$array.first", "first", _first),
        BuiltinFunction("last", "$array.last", "last", _last),
        BuiltinFunction("join", "$array.join", "join", _join, 1, 2),
        BuiltinFunction("keys", "$obj.keys", "keys", _keys),
        BuiltinFunction("round", "$math.round", "round", _round, 1, 2),
        BuiltinFunction("floor", "$math.floor", "floor", _floor),
        BuiltinFunction("ceil", "$math.ceil", "ceil", _ceil),
        BuiltinFunction("if", "$if", "ifThenElse", _if, 2, 3),
        BuiltinFunction("ifEmpty", "$ifEmpty", "ifempty", _if_empty, 2, 2),
    ]
)
