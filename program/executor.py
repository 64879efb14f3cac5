"""Process execution for programs."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import os
import shutil
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from utils import get_logger

from .args import compute_args
from .errors import ExecutableNotFoundError, ExecutionError, ExecutionTimeoutError
from .types import Program

logger = get_logger(__name__)

READ_CHUNK_SIZE = 4096


class TextSink(Protocol):
    """Anything output can be streamed into (files, StringIO, sys.stdout)."""

    def write(self, text: str) -> Any: ...


@dataclass(frozen=True)
class ProcessEnvironment:
    """Environment programs are executed in.

    Holds the variables (including PATH) and working directory handed to
    child processes, so executable lookup and the child environment never
    read process-wide state implicitly.
    """

    variables: Mapping[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None

    @classmethod
    def from_os(cls, cwd: Optional[str] = None) -> "ProcessEnvironment":
        return cls(variables=dict(os.environ), cwd=cwd or os.getcwd())

    @property
    def search_path(self) -> str:
        return self.variables.get("PATH", "")

    def which(self, name: str) -> Optional[str]:
        """Resolve an executable name through this environment's PATH."""
        if os.sep in name or (os.altsep and os.altsep in name):
            candidate = name
            if self.cwd and not os.path.isabs(candidate):
                candidate = os.path.join(self.cwd, candidate)
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate
            return None
        return shutil.which(name, path=self.search_path)

    def merged(self, overlay: Mapping[str, str]) -> Dict[str, str]:
        """Return the variables with overlay applied on top."""
        env = dict(self.variables)
        env.update(overlay)
        return env


@dataclass
class ExecutionResult:
    """Outcome of running a program."""

    program: str
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    output: str = ""  # stdout and stderr interleaved in arrival order
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def resolve_executable(program: Program, environment: ProcessEnvironment) -> str:
    """Find the executable for a program.

    Uses the explicit path when set, otherwise looks the program name up
    on the environment's PATH.

    Raises:
        ExecutableNotFoundError: If nothing executable is found
    """
    target = program.path or program.name
    resolved = environment.which(target)
    if resolved is None:
        raise ExecutableNotFoundError(program.name, target)
    return resolved


async def _pump(
    stream: asyncio.StreamReader,
    own: List[str],
    combined: List[str],
    sink: Optional[TextSink],
) -> None:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        text = decoder.decode(chunk, final=not chunk)
        if text:
            own.append(text)
            combined.append(text)
            if sink is not None:
                sink.write(text)
        if not chunk:
            break


async def _kill(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    with contextlib.suppress(Exception):
        await asyncio.wait_for(process.wait(), timeout=5.0)


async def run_program(
    program: Program,
    values: Optional[Mapping[str, Any]] = None,
    *,
    stdin: Optional[str] = None,
    sink: Optional[TextSink] = None,
    environment: Optional[ProcessEnvironment] = None,
    timeout: Optional[float] = None,
) -> ExecutionResult:
    """Run a program and capture its output.

    Args:
        program: Program to run
        values: Runtime parameter values
        stdin: Overrides program.stdin when not None
        sink: Receives stdout and stderr text as it arrives
        environment: Execution environment (default: current process)
        timeout: Seconds before the child is killed (default: no limit)

    Returns:
        ExecutionResult. A non-zero exit status is reported, not raised.

    Raises:
        ExecutableNotFoundError: If the executable cannot be located
        ExecutionError: If the process cannot be spawned
        ExecutionTimeoutError: If the timeout elapses
        ParameterRenderError: If the arguments cannot be computed
    """
    environment = environment or ProcessEnvironment.from_os()
    executable = resolve_executable(program, environment)
    argv = compute_args(program, values)
    payload = program.stdin if stdin is None else stdin

    logger.debug(f"Running {program.name}: {[executable, *argv]}")
    started = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *argv,
            stdin=asyncio.subprocess.PIPE if payload else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=environment.merged(program.env),
            cwd=environment.cwd,
        )
    except OSError as e:
        raise ExecutionError(program.name, str(e)) from e

    stdout: List[str] = []
    stderr: List[str] = []
    combined: List[str] = []

    async def _feed() -> None:
        if not payload or process.stdin is None:
            return
        with contextlib.suppress(BrokenPipeError, ConnectionResetError):
            process.stdin.write(payload.encode("utf-8"))
            await process.stdin.drain()
        process.stdin.close()

    async def _communicate() -> int:
        await asyncio.gather(
            _feed(),
            _pump(process.stdout, stdout, combined, sink),
            _pump(process.stderr, stderr, combined, sink),
        )
        return await process.wait()

    try:
        returncode = await asyncio.wait_for(_communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(process)
        raise ExecutionTimeoutError(program.name, timeout or 0.0) from None
    except asyncio.CancelledError:
        await _kill(process)
        raise

    duration = time.monotonic() - started
    logger.debug(f"{program.name} exited with {returncode} after {duration:.2f}s")
    return ExecutionResult(
        program=program.name,
        argv=[executable, *argv],
        returncode=returncode,
        stdout="".join(stdout),
        stderr="".join(stderr),
        output="".join(combined),
        duration=duration,
    )
