"""Data models for program definitions."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from utils import get_logger

from .errors import ProgramDecodeError, UnknownParameterError
from .values import ParameterType

logger = get_logger(__name__)


@dataclass
class Parameter:
    """A single flag or positional argument of a program.

    Attributes:
        name: Identifier, unique within the owning flags or args list
        flag: Override for the CLI token (defaults to --<name>)
        short: Human description of the chosen value
        type: Parameter kind, governs how values are rendered
        value: Static default value
        raw: Literal text used instead of rendering, e.g. to pass invalid input
        no_value: The flag is a bare switch and never takes a value token
    """

    name: str
    flag: str = ""
    short: str = ""
    type: ParameterType = ParameterType.STRING
    value: Any = None
    raw: str = ""
    no_value: bool = False

    def clone(self) -> "Parameter":
        return Parameter(
            name=self.name,
            flag=self.flag,
            short=self.short,
            type=self.type,
            value=copy.deepcopy(self.value),
            raw=self.raw,
            no_value=self.no_value,
        )

    @property
    def token(self) -> str:
        """CLI token used when this parameter is passed as a flag."""
        return self.flag or f"--{self.name}"

    @classmethod
    def from_dict(cls, data: Any, source: Optional[str] = None) -> "Parameter":
        if not isinstance(data, dict):
            raise ProgramDecodeError(f"parameter must be a mapping, got {data!r}", source)
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ProgramDecodeError(f"parameter without a name: {data!r}", source)
        try:
            ptype = ParameterType.parse(data.get("type"))
        except ValueError as e:
            raise ProgramDecodeError(f"parameter '{name}': {e}", source) from e
        raw = data.get("raw")
        return cls(
            name=name.strip(),
            flag=str(data.get("flag") or ""),
            short=str(data.get("short") or ""),
            type=ptype,
            value=data.get("value"),
            raw="" if raw is None else str(raw),
            no_value=bool(data.get("noValue", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.flag:
            data["flag"] = self.flag
        if self.short:
            data["short"] = self.short
        data["type"] = self.type.value
        if self.value is not None:
            data["value"] = copy.deepcopy(self.value)
        if self.raw:
            data["raw"] = self.raw
        if self.no_value:
            data["noValue"] = True
        return data


# YAML key -> attribute name for the scalar and mapping fields of Program.
_PROGRAM_KEYS = {
    "name": "name",
    "path": "path",
    "verbs": "verbs",
    "description": "description",
    "env": "env",
    "rawFlags": "raw_flags",
    "flags": "flags",
    "args": "args",
    "stdin": "stdin",
    "expectedStdout": "expected_stdout",
    "expectedError": "expected_error",
    "expectedStatusCode": "expected_status_code",
    "expectedFiles": "expected_files",
}


@dataclass
class Program:
    """A declarative description of one external command invocation.

    Flags are rendered as ``--flag value`` pairs (or bare switches) in
    declaration order, followed by the positional args. Verbs and raw
    flags precede both. The expected_* fields are golden-test metadata
    and are not enforced when running.
    """

    name: str
    path: str = ""
    verbs: List[str] = field(default_factory=list)
    description: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    raw_flags: List[str] = field(default_factory=list)
    flags: List[Parameter] = field(default_factory=list)
    args: List[Parameter] = field(default_factory=list)
    stdin: str = ""
    expected_stdout: str = ""
    expected_error: str = ""
    expected_status_code: int = 0
    expected_files: Dict[str, str] = field(default_factory=dict)
    # Definition file the program was loaded from, if any
    source: Optional[str] = field(default=None, compare=False)

    def clone(self) -> "Program":
        return Program(
            name=self.name,
            path=self.path,
            verbs=list(self.verbs),
            description=self.description,
            env=dict(self.env),
            raw_flags=list(self.raw_flags),
            flags=[f.clone() for f in self.flags],
            args=[a.clone() for a in self.args],
            stdin=self.stdin,
            expected_stdout=self.expected_stdout,
            expected_error=self.expected_error,
            expected_status_code=self.expected_status_code,
            expected_files=dict(self.expected_files),
            source=self.source,
        )

    def get_flag(self, name: str) -> Parameter:
        for f in self.flags:
            if f.name == name:
                return f
        raise UnknownParameterError(self.name, "flag", name)

    def get_arg(self, name: str) -> Parameter:
        for a in self.args:
            if a.name == name:
                return a
        raise UnknownParameterError(self.name, "arg", name)

    def set_flag_value(self, name: str, value: Any) -> None:
        self.get_flag(name).value = value

    def set_flag_raw(self, name: str, raw: str) -> None:
        self.get_flag(name).raw = raw

    def set_arg_value(self, name: str, value: Any) -> None:
        self.get_arg(name).value = value

    def set_arg_raw(self, name: str, raw: str) -> None:
        self.get_arg(name).raw = raw

    def add_raw_flags(self, *raw: str) -> None:
        self.raw_flags.extend(raw)

    def parameter_names(self) -> List[str]:
        return [p.name for p in self.flags] + [p.name for p in self.args]

    @classmethod
    def from_dict(cls, data: Any, source: Optional[str] = None) -> "Program":
        """Build a program from a decoded definition document.

        Args:
            data: Mapping decoded from YAML
            source: Where the document came from, used in error messages

        Returns:
            The decoded Program

        Raises:
            ProgramDecodeError: If the document is not a valid program
        """
        if not isinstance(data, dict):
            raise ProgramDecodeError(
                f"program definition must be a mapping, got {type(data).__name__}", source
            )

        unknown = set(map(str, data)) - set(_PROGRAM_KEYS)
        if unknown:
            logger.debug(f"Ignoring unknown program keys {sorted(unknown)} in {source}")

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ProgramDecodeError("program definition has no name", source)
        name = name.strip()

        flags = _decode_parameters(data.get("flags"), "flags", name, source)
        args = _decode_parameters(data.get("args"), "args", name, source)

        status = data.get("expectedStatusCode") or 0
        if isinstance(status, bool) or not isinstance(status, int):
            raise ProgramDecodeError(
                f"program '{name}': expectedStatusCode must be an integer", source
            )

        return cls(
            name=name,
            path=str(data.get("path") or ""),
            verbs=_string_list(data.get("verbs"), "verbs", name, source),
            description=str(data.get("description") or ""),
            env=_string_map(data.get("env"), "env", name, source),
            raw_flags=_string_list(data.get("rawFlags"), "rawFlags", name, source),
            flags=flags,
            args=args,
            stdin=str(data.get("stdin") or ""),
            expected_stdout=str(data.get("expectedStdout") or ""),
            expected_error=str(data.get("expectedError") or ""),
            expected_status_code=status,
            expected_files=_string_map(data.get("expectedFiles"), "expectedFiles", name, source),
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the definition file layout, omitting empty fields."""
        data: Dict[str, Any] = {}
        for key, attr in _PROGRAM_KEYS.items():
            value = getattr(self, attr)
            if attr in ("flags", "args"):
                value = [p.to_dict() for p in value]
            elif isinstance(value, (list, dict)):
                value = copy.deepcopy(value)
            if value or key == "name":
                data[key] = value
        return data


def _decode_parameters(
    value: Any, key: str, program: str, source: Optional[str]
) -> List[Parameter]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProgramDecodeError(f"program '{program}': {key} must be a list", source)
    params = [Parameter.from_dict(item, source) for item in value]
    seen: set[str] = set()
    for p in params:
        if p.name in seen:
            raise ProgramDecodeError(
                f"program '{program}': duplicate name '{p.name}' in {key}", source
            )
        seen.add(p.name)
    return params


def _string_list(value: Any, key: str, program: str, source: Optional[str]) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProgramDecodeError(f"program '{program}': {key} must be a list", source)
    return [str(v) for v in value]


def _string_map(value: Any, key: str, program: str, source: Optional[str]) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProgramDecodeError(f"program '{program}': {key} must be a mapping", source)
    return {str(k): "" if v is None else str(v) for k, v in value.items()}

