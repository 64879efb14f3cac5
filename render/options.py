"""Render configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from config import Config
from program import Program

from .errors import RenderValidationError

DEFAULT_DELIMITERS = ("{{", "}}")
DEFAULT_MASKS = ("**/*.tmpl.md",)


@dataclass
class RenderOptions:
    """Options controlling how documents are scanned and rendered.

    Attributes:
        programs: Registry of programs directives may reference
        with_go_template: Expand template directives ({{ run(...) }})
        with_yaml_markers: Expand ```climark fenced directives
        delimiters: Left and right template delimiters
        allow_program_creation: Let directives define inline programs
        verbose: Report each rendered file on the terminal
        masks: Doublestar globs selecting documents in directory mode
        jobs: Files rendered concurrently in directory mode
        timeout: Per-program time limit in seconds
    """

    programs: Dict[str, Program] = field(default_factory=dict)
    with_go_template: bool = True
    with_yaml_markers: bool = True
    delimiters: Sequence[str] = DEFAULT_DELIMITERS
    allow_program_creation: bool = False
    verbose: bool = True
    masks: Sequence[str] = DEFAULT_MASKS
    jobs: int = 1
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        self.delimiters = validate_delimiters(self.delimiters)
        self.masks = tuple(m for m in (self.masks or ()) if m)
        if not self.masks:
            raise RenderValidationError("at least one glob mask is required")
        if self.jobs < 1:
            raise RenderValidationError(f"jobs must be at least 1, got {self.jobs}")

    @classmethod
    def from_config(cls, programs: Optional[Dict[str, Program]] = None, **overrides) -> "RenderOptions":
        """Build options from Config defaults, with keyword overrides."""
        values = {
            "with_go_template": Config.WITH_GO_TEMPLATE,
            "with_yaml_markers": Config.WITH_YAML_MARKERS,
            "delimiters": Config.DELIMITERS,
            "allow_program_creation": Config.ALLOW_PROGRAM_CREATION,
            "masks": Config.GLOB or DEFAULT_MASKS,
            "jobs": Config.RENDER_JOBS,
            "timeout": Config.program_timeout(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(programs=programs or {}, **values)


def validate_delimiters(delimiters: Sequence[str]) -> Tuple[str, str]:
    """Check that delimiters form a left/right pair.

    Raises:
        RenderValidationError: Unless exactly two distinct non-empty strings are given
    """
    if isinstance(delimiters, str) or delimiters is None:
        raise RenderValidationError(
            f"delimiters must be a left and right pair, got {delimiters!r}"
        )
    pair = tuple(delimiters)
    if len(pair) != 2:
        raise RenderValidationError(f"delimiters must have 2 values, got {len(pair)}")
    left, right = pair
    if not isinstance(left, str) or not isinstance(right, str) or not left or not right:
        raise RenderValidationError("delimiters must be non-empty strings")
    if left == right:
        raise RenderValidationError(f"left and right delimiters must differ, got {left!r}")
    return left, right
