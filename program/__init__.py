"""Program definitions: model, loading, argument compilation and execution."""

from .args import compute_args
from .errors import (
    ClimarkError,
    DuplicateProgramError,
    ExecutableNotFoundError,
    ExecutionError,
    ExecutionTimeoutError,
    ParameterRenderError,
    ProgramDecodeError,
    ProgramLookupError,
    RepositoryError,
    UnknownParameterError,
    ValueRenderError,
)
from .executor import ExecutionResult, ProcessEnvironment, run_program
from .golden import Mismatch, check_expectations
from .repository import load_programs_from_dir, load_repositories, program_from_yaml
from .types import Parameter, Program
from .values import ParameterType, render_value

__all__ = [
    "ClimarkError",
    "DuplicateProgramError",
    "ExecutableNotFoundError",
    "ExecutionError",
    "ExecutionResult",
    "ExecutionTimeoutError",
    "Mismatch",
    "Parameter",
    "ParameterRenderError",
    "ParameterType",
    "ProcessEnvironment",
    "Program",
    "ProgramDecodeError",
    "ProgramLookupError",
    "RepositoryError",
    "UnknownParameterError",
    "ValueRenderError",
    "check_expectations",
    "compute_args",
    "load_programs_from_dir",
    "load_repositories",
    "program_from_yaml",
    "render_value",
    "run_program",
]
