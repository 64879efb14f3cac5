"""Parameter types and their text rendering rules.

Every ParameterType has exactly one rendering function in _RENDERERS.
Rendering turns a Python value (as decoded from YAML or passed by a
directive) into the single CLI token handed to the program.
"""

from __future__ import annotations

import math
import os
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict

from .errors import ValueRenderError

LIST_SEPARATOR = ","


class ParameterType(str, Enum):
    """Closed set of parameter kinds understood by the argument compiler."""

    STRING = "string"
    CHOICE = "choice"
    FILE = "file"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    DATE = "date"
    STRING_LIST = "stringList"
    CHOICE_LIST = "choiceList"
    FILE_LIST = "fileList"
    INT_LIST = "intList"
    FLOAT_LIST = "floatList"
    KEY_VALUE = "keyValue"

    @classmethod
    def parse(cls, value: Any) -> "ParameterType":
        """Resolve a type name from a definition file, accepting common aliases."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.STRING
        if not isinstance(value, str):
            raise ValueError(f"parameter type must be a string, got {type(value).__name__}")
        key = value.replace("-", "").replace("_", "").lower()
        resolved = _ALIASES.get(key)
        if resolved is None:
            raise ValueError(f"unknown parameter type '{value}'")
        return resolved


_ALIASES: Dict[str, ParameterType] = {t.value.lower(): t for t in ParameterType}
_ALIASES.update(
    {
        "str": ParameterType.STRING,
        "boolean": ParameterType.BOOL,
        "integer": ParameterType.INT,
        "number": ParameterType.FLOAT,
        "path": ParameterType.FILE,
        "strings": ParameterType.STRING_LIST,
        "list": ParameterType.STRING_LIST,
        "keyvalues": ParameterType.KEY_VALUE,
        "map": ParameterType.KEY_VALUE,
    }
)


def _type_name(value: Any) -> str:
    return type(value).__name__


def _render_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    raise ValueRenderError(f"expected a string, got {_type_name(value)} {value!r}")


def _render_file(value: Any) -> str:
    if isinstance(value, (str, os.PathLike)):
        return os.fspath(value)
    raise ValueRenderError(f"expected a file path, got {_type_name(value)} {value!r}")


def _render_bool(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower()
    raise ValueRenderError(f"expected a boolean, got {_type_name(value)} {value!r}")


def _render_int(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueRenderError(f"expected an integer, got bool {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        try:
            return str(int(value.strip(), 10))
        except ValueError:
            pass
    raise ValueRenderError(f"expected an integer, got {_type_name(value)} {value!r}")


def _format_float(number: float) -> str:
    if not math.isfinite(number):
        raise ValueRenderError(f"cannot render non-finite float {number!r}")
    if number.is_integer():
        return str(int(number))
    # repr is the shortest round-tripping form; Decimal drops the exponent.
    return format(Decimal(repr(number)), "f")


def _render_float(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueRenderError(f"expected a number, got bool {value!r}")
    if isinstance(value, (int, float)):
        return _format_float(float(value))
    if isinstance(value, str):
        try:
            return _format_float(float(value.strip()))
        except ValueError:
            pass
    raise ValueRenderError(f"expected a number, got {_type_name(value)} {value!r}")


def _render_date(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value.strip())
        except ValueError:
            pass
        else:
            return value.strip()
    raise ValueRenderError(f"expected an ISO-8601 date, got {_type_name(value)} {value!r}")


def _list_of(render_item: Callable[[Any], str]) -> Callable[[Any], str]:
    def _render(value: Any) -> str:
        if isinstance(value, (list, tuple)):
            items = value
        elif isinstance(value, (dict, set)):
            raise ValueRenderError(f"expected a list, got {_type_name(value)}")
        else:
            items = [value]
        return LIST_SEPARATOR.join(render_item(item) for item in items)

    return _render


def _render_key_value(value: Any) -> str:
    if not isinstance(value, dict):
        raise ValueRenderError(f"expected a mapping, got {_type_name(value)} {value!r}")
    pairs = []
    for key, item in value.items():
        item_text = "" if item is None else str(item)
        if isinstance(item, bool):
            item_text = _render_bool(item)
        pairs.append(f"{key}:{item_text}")
    return LIST_SEPARATOR.join(pairs)


_RENDERERS: Dict[ParameterType, Callable[[Any], str]] = {
    ParameterType.STRING: _render_string,
    ParameterType.CHOICE: _render_string,
    ParameterType.FILE: _render_file,
    ParameterType.BOOL: _render_bool,
    ParameterType.INT: _render_int,
    ParameterType.FLOAT: _render_float,
    ParameterType.DATE: _render_date,
    ParameterType.STRING_LIST: _list_of(_render_string),
    ParameterType.CHOICE_LIST: _list_of(_render_string),
    ParameterType.FILE_LIST: _list_of(_render_file),
    ParameterType.INT_LIST: _list_of(_render_int),
    ParameterType.FLOAT_LIST: _list_of(_render_float),
    ParameterType.KEY_VALUE: _render_key_value,
}

_missing = set(ParameterType) - set(_RENDERERS)
if _missing:
    raise RuntimeError(f"No renderer registered for {sorted(t.value for t in _missing)}")


def render_value(ptype: ParameterType, value: Any) -> str:
    """Render a value as CLI text according to its parameter type.

    Args:
        ptype: Declared type of the parameter
        value: Value to render; None always renders to ""

    Returns:
        Canonical text for the value

    Raises:
        ValueRenderError: If the value cannot be represented as ptype
    """
    if value is None:
        return ""
    return _RENDERERS[ptype](value)
