"""Parsing of YAML-marker directives.

A YAML-marker directive is a fenced block tagged ``climark`` whose body
is a YAML mapping::

    ```climark
    program: ls
    values:
      long: true
    fence: console
    ```

The whole block, fences included, is replaced by the program output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import DirectiveSyntaxError

MARKER_TAG = "climark"

_MARKER_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})[ \t]*" + MARKER_TAG + r"[ \t]*\n"
    r"(?P<body>.*?)"
    r"^(?P=indent)(?P=fence)[ \t]*(?:\n|\Z)",
    re.MULTILINE | re.DOTALL,
)

_KNOWN_KEYS = {"program", "values", "stdin", "fence"}


@dataclass
class MarkerDirective:
    """One parsed YAML-marker directive and its location in the document."""

    start: int
    end: int
    line: int
    program: Union[str, Dict[str, Any]]
    values: Dict[str, Any] = field(default_factory=dict)
    stdin: Optional[str] = None
    fence: Optional[str] = None
    trailing_newline: bool = True

    @property
    def name(self) -> str:
        if isinstance(self.program, dict):
            return str(self.program.get("name") or "<inline>")
        return self.program

    def wrap(self, output: str) -> str:
        """Format captured output as the block's replacement text."""
        if self.fence is not None:
            body = output if output.endswith("\n") or not output else output + "\n"
            output = f"```{self.fence}\n{body}```"
            return output + "\n" if self.trailing_newline else output
        if self.trailing_newline and output and not output.endswith("\n"):
            output += "\n"
        return output


def line_of(text: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return text.count("\n", 0, offset) + 1


def _parse_payload(body: str, source: Optional[str], line: int) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(body)
    except yaml.YAMLError as e:
        raise DirectiveSyntaxError(f"invalid directive YAML: {e}", source, line) from e
    if not isinstance(data, dict):
        raise DirectiveSyntaxError("directive body must be a YAML mapping", source, line)
    unknown = set(map(str, data)) - _KNOWN_KEYS
    if unknown:
        raise DirectiveSyntaxError(f"unknown directive keys: {sorted(unknown)}", source, line)
    return data


def parse_markers(text: str, source: Optional[str] = None) -> List[MarkerDirective]:
    """Find all YAML-marker directives in a document.

    Raises:
        DirectiveSyntaxError: If a directive body is malformed
    """
    directives: List[MarkerDirective] = []
    for match in _MARKER_RE.finditer(text):
        line = line_of(text, match.start())
        data = _parse_payload(match.group("body"), source, line)

        program = data.get("program")
        if isinstance(program, str) and program.strip():
            program = program.strip()
        elif not isinstance(program, dict):
            raise DirectiveSyntaxError(
                "directive needs 'program': a program name or an inline definition",
                source,
                line,
            )

        values = data.get("values") or {}
        if not isinstance(values, dict):
            raise DirectiveSyntaxError("'values' must be a mapping", source, line)

        stdin = data.get("stdin")
        if stdin is not None and not isinstance(stdin, str):
            raise DirectiveSyntaxError("'stdin' must be a string", source, line)

        fence = data.get("fence")
        if fence is True:
            fence = ""
        elif fence is False:
            fence = None
        elif fence is not None:
            fence = str(fence)

        directives.append(
            MarkerDirective(
                start=match.start(),
                end=match.end(),
                line=line,
                program=program,
                values={str(k): v for k, v in values.items()},
                stdin=stdin,
                fence=fence,
                trailing_newline=match.group(0).endswith("\n"),
            )
        )
    return directives
