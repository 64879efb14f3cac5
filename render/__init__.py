"""Rendering of documents with embedded program directives."""

from .directives import MarkerDirective, parse_markers
from .errors import (
    DirectiveExecutionError,
    DirectiveSyntaxError,
    RenderError,
    RenderValidationError,
    UnresolvedDirectiveError,
)
from .options import RenderOptions, validate_delimiters
from .paths import match_mask, mirror_path, output_path_for
from .renderer import Renderer
from .watch import PollingWatcher, WatchCoordinator

__all__ = [
    "DirectiveExecutionError",
    "DirectiveSyntaxError",
    "MarkerDirective",
    "PollingWatcher",
    "RenderError",
    "RenderOptions",
    "RenderValidationError",
    "Renderer",
    "UnresolvedDirectiveError",
    "WatchCoordinator",
    "match_mask",
    "mirror_path",
    "output_path_for",
    "parse_markers",
    "validate_delimiters",
]
