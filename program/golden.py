"""Golden expectation checks for program runs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .executor import ExecutionResult
from .types import Program


@dataclass(frozen=True)
class Mismatch:
    field: str
    expected: str
    actual: str

    def describe(self) -> str:
        return f"{self.field}: expected {self.expected!r}, got {self.actual!r}"


def check_expectations(
    program: Program, result: ExecutionResult, workdir: Optional[Path] = None
) -> List[Mismatch]:
    """Compare a run against the program's golden expectations.

    expectedStdout must match stdout exactly, expectedError must be
    contained in stderr, and expectedFiles are read relative to workdir.
    Empty expectations are skipped; the status code is always compared.

    Args:
        program: Program carrying the expectations
        result: Result of running the program
        workdir: Directory expected files are relative to (default: cwd)

    Returns:
        List of mismatches, empty when everything matches
    """
    mismatches: List[Mismatch] = []

    if result.returncode != program.expected_status_code:
        mismatches.append(
            Mismatch("status", str(program.expected_status_code), str(result.returncode))
        )

    if program.expected_stdout and result.stdout != program.expected_stdout:
        mismatches.append(Mismatch("stdout", program.expected_stdout, result.stdout))

    if program.expected_error and program.expected_error not in result.stderr:
        mismatches.append(Mismatch("stderr", program.expected_error, result.stderr))

    base = workdir or Path.cwd()
    for relative, expected in sorted(program.expected_files.items()):
        path = base / relative
        try:
            actual = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            mismatches.append(Mismatch(f"file {relative}", expected, "<missing>"))
            continue
        except (OSError, UnicodeDecodeError) as e:
            mismatches.append(Mismatch(f"file {relative}", expected, f"<unreadable: {e}>"))
            continue
        if actual != expected:
            mismatches.append(Mismatch(f"file {relative}", expected, actual))

    return mismatches
