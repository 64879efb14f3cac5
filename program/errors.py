"""Error types raised while loading, compiling and running programs."""

from __future__ import annotations

from typing import Any


class ClimarkError(Exception):
    """Base class for every error climark raises on purpose."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ProgramLookupError(ClimarkError):
    """Raised when a program name is not present in the registry."""

    def __init__(self, name: str, available: list[str] | None = None):
        message = f"Program '{name}' not found"
        if available:
            message += f". Available: {', '.join(sorted(available))}"
        super().__init__(message, program=name)
        self.name = name


class UnknownParameterError(ClimarkError):
    """Raised when setting a flag or arg that the program does not declare."""

    def __init__(self, program: str, kind: str, name: str):
        super().__init__(f"Program '{program}' has no {kind} '{name}'", program=program)
        self.program = program
        self.kind = kind
        self.name = name


class ProgramDecodeError(ClimarkError):
    """Raised when a definition file does not describe a valid program."""

    def __init__(self, message: str, source: str | None = None):
        if source:
            message = f"{source}: {message}"
        super().__init__(message, source=source)
        self.source = source


class RepositoryError(ClimarkError):
    """Raised when a repository root cannot be read."""

    def __init__(self, message: str, repository: str):
        super().__init__(message, repository=repository)
        self.repository = repository


class DuplicateProgramError(ClimarkError):
    """Raised when two definition files declare the same program name."""

    def __init__(self, name: str, first: str | None, second: str | None):
        super().__init__(
            f"Program '{name}' already exists (defined in {first}, redefined in {second})",
            program=name,
        )
        self.name = name
        self.first = first
        self.second = second


class ValueRenderError(ClimarkError):
    """Raised when a value cannot be rendered for its parameter type."""

    pass


class ParameterRenderError(ClimarkError):
    """A ValueRenderError wrapped with the parameter it happened on."""

    def __init__(self, program: str, kind: str, parameter: str, reason: str):
        super().__init__(
            f"Could not render {kind} '{parameter}' of program '{program}': {reason}",
            program=program,
            parameter=parameter,
        )
        self.program = program
        self.kind = kind
        self.parameter = parameter


class ExecutionError(ClimarkError):
    """Raised when a program could not be spawned or run."""

    def __init__(self, program: str, reason: str):
        super().__init__(f"Could not run {program}: {reason}", program=program)
        self.program = program


class ExecutableNotFoundError(ExecutionError):
    """Raised when the executable for a program cannot be located."""

    def __init__(self, program: str, executable: str):
        super().__init__(program, f"executable '{executable}' not found")
        self.executable = executable


class ExecutionTimeoutError(ExecutionError):
    """Raised when a program exceeds its time budget and is killed."""

    def __init__(self, program: str, timeout: float):
        super().__init__(program, f"timed out after {timeout}s")
        self.timeout = timeout
