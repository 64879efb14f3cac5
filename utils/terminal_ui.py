"""Terminal UI utilities using Rich library for output.

Status lines honour quiet mode; errors are always shown.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from config import Config


@dataclass(frozen=True)
class Colors:
    primary: str
    success: str
    warning: str
    error: str
    muted: str


DARK = Colors(
    primary="#00D9FF",  # Bright cyan
    success="#10B981",  # Emerald green
    warning="#F59E0B",  # Amber
    error="#EF4444",  # Red
    muted="#8B949E",  # Gray
)

LIGHT = Colors(
    primary="#0969DA",  # Blue
    success="#1A7F37",  # Green
    warning="#9A6700",  # Dark amber
    error="#CF222E",  # Red
    muted="#57606A",  # Gray
)

console = Console()
_quiet = False


def _get_colors() -> Colors:
    return LIGHT if Config.THEME == "light" else DARK


def set_quiet(quiet: bool) -> None:
    """Suppress informational output (errors are still printed)."""
    global _quiet
    _quiet = quiet


def is_quiet() -> bool:
    return _quiet


def print_error(message: str, title: str = "Error") -> None:
    """Print an error message.

    Args:
        message: Error message
        title: Error title (default: "Error")
    """
    colors = _get_colors()
    console.print(
        Panel(
            f"[{colors.error}]{message}[/{colors.error}]",
            title=f"[bold {colors.error}]{title}[/bold {colors.error}]",
            border_style=colors.error,
            box=box.ROUNDED,
        )
    )


def print_warning(message: str) -> None:
    if _quiet:
        return
    colors = _get_colors()
    console.print(f"[{colors.warning}]{message}[/{colors.warning}]")


def print_success(message: str) -> None:
    if _quiet:
        return
    colors = _get_colors()
    console.print(f"[{colors.success}]✓ {message}[/{colors.success}]")


def print_info(message: str) -> None:
    if _quiet:
        return
    colors = _get_colors()
    console.print(f"[{colors.muted}]{message}[/{colors.muted}]")


def print_yaml(text: str) -> None:
    console.print(Syntax(text, "yaml", theme="monokai", background_color="default"))


def print_programs(programs: Iterable) -> None:
    """Print a table of loaded programs.

    Args:
        programs: Program objects to list
    """
    colors = _get_colors()
    table = Table(box=box.SIMPLE, header_style=f"bold {colors.primary}")
    table.add_column("Name")
    table.add_column("Executable")
    table.add_column("Parameters")
    table.add_column("Description", style=colors.muted)
    for program in sorted(programs, key=lambda p: p.name):
        executable = " ".join([program.path or program.name, *program.verbs])
        table.add_row(
            program.name,
            executable,
            ", ".join(program.parameter_names()) or "-",
            program.description.strip().splitlines()[0] if program.description.strip() else "",
        )
    console.print(table)


def print_test_results(rows: Iterable[tuple], title: Optional[str] = None) -> None:
    """Print golden test results.

    Args:
        rows: (program name, list of mismatch descriptions) tuples
        title: Optional table title
    """
    colors = _get_colors()
    table = Table(title=title, box=box.SIMPLE, header_style=f"bold {colors.primary}")
    table.add_column("Program")
    table.add_column("Result")
    table.add_column("Details", overflow="fold")
    for name, problems in rows:
        if problems:
            result = f"[{colors.error}]FAIL[/{colors.error}]"
        else:
            result = f"[{colors.success}]ok[/{colors.success}]"
        table.add_row(name, result, "\n".join(problems))
    console.print(table)
