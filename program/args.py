"""Argument vector computation for programs."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from .errors import ParameterRenderError, ValueRenderError
from .types import Parameter, Program
from .values import render_value


def resolve_parameter(
    program: Program, param: Parameter, kind: str, values: Mapping[str, Any]
) -> str:
    """Resolve the text for one parameter.

    Precedence: a runtime value keyed by the parameter name, otherwise the
    raw override. If that yields an empty string the static value is
    rendered instead. A runtime value that renders to "" is therefore
    indistinguishable from an absent one and falls back to the default.
    """
    try:
        if param.name in values:
            text = render_value(param.type, values[param.name])
        else:
            text = param.raw
        if text == "":
            text = render_value(param.type, param.value)
    except ValueRenderError as e:
        raise ParameterRenderError(program.name, kind, param.name, e.message) from e
    return text


def compute_args(program: Program, values: Optional[Mapping[str, Any]] = None) -> List[str]:
    """Compute the argument vector for a program invocation.

    The vector is built as: verbs, raw flags, then each flag as its token
    (followed by its value unless it is a no-value switch), then each
    positional arg.

    Args:
        program: Program to compile
        values: Runtime values keyed by parameter name

    Returns:
        Argument list, excluding the executable itself

    Raises:
        ParameterRenderError: If a value cannot be rendered for its type
    """
    values = values or {}
    args: List[str] = []

    args.extend(program.verbs)
    args.extend(program.raw_flags)

    for flag in program.flags:
        if flag.no_value:
            args.append(flag.token)
            continue
        args.append(flag.token)
        args.append(resolve_parameter(program, flag, "flag", values))

    for arg in program.args:
        args.append(resolve_parameter(program, arg, "arg", values))

    return args


def unknown_values(program: Program, values: Mapping[str, Any]) -> List[str]:
    """Return runtime value names that match no flag or arg of the program."""
    known = set(program.parameter_names())
    return sorted(name for name in values if name not in known)
