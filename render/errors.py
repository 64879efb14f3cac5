"""Error types raised while rendering documents."""

from __future__ import annotations

from typing import Optional

from program.errors import ClimarkError


def _location(source: Optional[str], line: Optional[int]) -> str:
    if source and line:
        return f"{source}:{line}"
    return source or "<string>"


class RenderValidationError(ClimarkError):
    """Raised for invalid render configuration, before any file is touched."""

    pass


class RenderError(ClimarkError):
    """Raised when a document cannot be rendered."""

    def __init__(self, message: str, source: Optional[str] = None, line: Optional[int] = None):
        super().__init__(f"{_location(source, line)}: {message}", source=source, line=line)
        self.detail = message
        self.source = source
        self.line = line

    def locate(self, line: Optional[int]) -> "RenderError":
        """Attach a line number discovered after the error was raised."""
        if line is not None:
            self.line = line
            self.context["line"] = line
            self.message = f"{_location(self.source, line)}: {self.detail}"
            self.args = (self.message,)
        return self


class DirectiveSyntaxError(RenderError):
    """Raised for a directive or template that cannot be parsed."""

    pass


class UnresolvedDirectiveError(RenderError):
    """Raised when a directive names a program that is not registered."""

    def __init__(
        self,
        program: str,
        source: Optional[str] = None,
        line: Optional[int] = None,
        reason: str = "",
    ):
        message = f"directive references unknown program '{program}'"
        if reason:
            message += f" ({reason})"
        super().__init__(message, source, line)
        self.program = program


class DirectiveExecutionError(RenderError):
    """Raised when a directive's program fails or exits unexpectedly."""

    def __init__(
        self,
        program: str,
        message: str,
        source: Optional[str] = None,
        line: Optional[int] = None,
        output: str = "",
    ):
        super().__init__(f"program '{program}': {message}", source, line)
        self.program = program
        self.output = output
