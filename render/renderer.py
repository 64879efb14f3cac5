"""Document rendering: expands program directives into captured output."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from types import TracebackType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import aiofiles
import aiofiles.os
import jinja2

from program import (
    ClimarkError,
    ProcessEnvironment,
    Program,
    ProgramDecodeError,
    UnknownParameterError,
    run_program,
)
from program.args import unknown_values
from utils import get_logger, terminal_ui

from .directives import MarkerDirective, parse_markers
from .errors import (
    DirectiveExecutionError,
    DirectiveSyntaxError,
    RenderError,
    RenderValidationError,
    UnresolvedDirectiveError,
)
from .options import RenderOptions
from .paths import is_nested_output, list_matching_files, mirror_path, same_path

logger = get_logger(__name__)

# Filename jinja2 reports in rewritten tracebacks for string templates
_TEMPLATE_FILENAME = "<template>"
_STDIN_KEYWORD = "_stdin"

ProgramReference = Union[str, Dict[str, Any]]


def _template_line(tb: Optional[TracebackType]) -> Optional[int]:
    """Innermost template line found in a traceback rewritten by jinja2."""
    line = None
    while tb is not None:
        if tb.tb_frame.f_code.co_filename == _TEMPLATE_FILENAME:
            line = tb.tb_lineno
        tb = tb.tb_next
    return line


def _check_not_source(source: Path, output: Path) -> None:
    if same_path(source, output):
        raise RenderValidationError(
            f"output {output} is the source document itself; choose another output path"
        )


def _placeholder(index: int, block: str) -> str:
    # Keeps the line count of the replaced block so template line numbers stay accurate.
    return f"\x00climark:{index}\x00" + "\n" * block.count("\n")


class Renderer:
    """Render documents containing program directives.

    Each directive resolves to a program (from the registry, or defined
    inline when allowed), runs it on a private clone, and is replaced by
    the program's combined stdout/stderr.
    """

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        environment: Optional[ProcessEnvironment] = None,
    ) -> None:
        self.options = options or RenderOptions()
        self.environment = environment or ProcessEnvironment.from_os()
        self._programs: Dict[str, Program] = dict(self.options.programs)
        left, right = self.options.delimiters
        self._jinja = jinja2.Environment(
            variable_start_string=left,
            variable_end_string=right,
            # Statements and comments live inside the delimiters too, so bare
            # "{%" and "{#" in the document stay plain text.
            block_start_string=left + "%",
            block_end_string="%" + right,
            comment_start_string=left + "#",
            comment_end_string="#" + right,
            enable_async=True,
            autoescape=False,
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
        )

    @property
    def programs(self) -> Dict[str, Program]:
        return self._programs

    def reload(self, programs: Mapping[str, Program]) -> None:
        """Swap in a new registry.

        Renders take a reference to the registry when they start, so a
        render in progress keeps using the registry it started with.
        """
        self._programs = dict(programs)
        logger.info(f"Registry reloaded with {len(self._programs)} programs")

    def resolve(
        self,
        reference: ProgramReference,
        programs: Mapping[str, Program],
        source: Optional[str] = None,
        line: Optional[int] = None,
    ) -> Program:
        """Turn a directive's program reference into a private Program copy.

        Raises:
            UnresolvedDirectiveError: Unknown name, or inline program while disabled
            DirectiveSyntaxError: Malformed inline program definition
        """
        if isinstance(reference, dict):
            name = str(reference.get("name") or reference.get("path") or "<inline>")
            if not self.options.allow_program_creation:
                raise UnresolvedDirectiveError(
                    name, source, line, reason="inline program creation is disabled"
                )
            data = dict(reference)
            if not data.get("name") and data.get("path"):
                data["name"] = os.path.basename(str(data["path"]))
            try:
                return Program.from_dict(data, source=source)
            except ProgramDecodeError as e:
                raise DirectiveSyntaxError(f"invalid inline program: {e.message}", source, line) from e

        if not isinstance(reference, str):
            raise DirectiveSyntaxError(
                f"program reference must be a name or a mapping, got {reference!r}", source, line
            )
        program = programs.get(reference)
        if program is None:
            raise UnresolvedDirectiveError(reference, source, line)
        return program.clone()

    async def execute(
        self,
        program: Program,
        values: Mapping[str, Any],
        stdin: Optional[str] = None,
        source: Optional[str] = None,
        line: Optional[int] = None,
    ) -> str:
        """Run a resolved program and return its combined output.

        An exit status different from the program's expectedStatusCode is a
        render failure.
        """
        unknown = unknown_values(program, values)
        if unknown:
            err = UnknownParameterError(program.name, "parameter", ", ".join(unknown))
            raise DirectiveExecutionError(program.name, err.message, source, line) from err

        try:
            result = await run_program(
                program,
                values,
                stdin=stdin,
                environment=self.environment,
                timeout=self.options.timeout,
            )
        except ClimarkError as e:
            raise DirectiveExecutionError(program.name, e.message, source, line) from e

        if result.returncode != program.expected_status_code:
            raise DirectiveExecutionError(
                program.name,
                f"exited with status {result.returncode} "
                f"(expected {program.expected_status_code})\n{result.output.rstrip()}",
                source,
                line,
                output=result.output,
            )
        logger.debug(f"{source}:{line}: {program.name} produced {len(result.output)} chars")
        return result.output

    async def _render_template(
        self, text: str, source: Optional[str], programs: Mapping[str, Program]
    ) -> str:
        async def run(reference: ProgramReference, **values: Any) -> str:
            stdin = values.pop(_STDIN_KEYWORD, None)
            program = self.resolve(reference, programs, source)
            return await self.execute(program, values, stdin, source)

        def program(name: str) -> Program:
            return self.resolve(name, programs, source)

        try:
            template = self._jinja.from_string(text, globals={"run": run, "program": program})
        except jinja2.TemplateSyntaxError as e:
            raise DirectiveSyntaxError(f"template syntax error: {e.message}", source, e.lineno) from e

        try:
            return await template.render_async()
        except RenderError as e:
            if e.line is None:
                e.locate(_template_line(e.__traceback__))
            raise
        except (jinja2.TemplateError, TypeError, ValueError) as e:
            raise RenderError(f"template error: {e}", source, _template_line(e.__traceback__)) from e

    async def render_string(self, text: str, source: Optional[str] = None) -> str:
        """Expand every directive in a document.

        YAML-marker blocks are located first and swapped for placeholders,
        template directives are then expanded, and finally each surviving
        marker block is executed and substituted.

        Args:
            text: Document text
            source: Name used in error messages (usually the file path)

        Returns:
            The rendered document

        Raises:
            RenderError: If any directive fails; nothing partial is returned
        """
        programs = self._programs
        markers: List[MarkerDirective] = []
        if self.options.with_yaml_markers:
            markers = parse_markers(text, source)

        placeholders: List[str] = []
        if markers:
            parts: List[str] = []
            pos = 0
            for i, marker in enumerate(markers):
                parts.append(text[pos : marker.start])
                placeholder = _placeholder(i, text[marker.start : marker.end])
                placeholders.append(placeholder)
                parts.append(placeholder)
                pos = marker.end
            parts.append(text[pos:])
            text = "".join(parts)

        if self.options.with_go_template:
            text = await self._render_template(text, source, programs)

        for marker, placeholder in zip(markers, placeholders):
            if placeholder not in text:
                # Dropped by template control flow
                continue
            program = self.resolve(marker.program, programs, source, marker.line)
            output = await self.execute(program, marker.values, marker.stdin, source, marker.line)
            text = text.replace(placeholder, marker.wrap(output), 1)

        return text

    async def render_file(self, source: Union[str, Path], output: Union[str, Path]) -> Path:
        """Render one document and write it to output.

        The output file is only written once the whole document rendered
        successfully. Missing parent directories are created.

        Raises:
            RenderValidationError: If output is the source file itself
        """
        source_path = Path(source)
        output_path = Path(output)
        _check_not_source(source_path, output_path)
        try:
            async with aiofiles.open(source_path, encoding="utf-8") as f:
                text = await f.read()
        except OSError as e:
            raise RenderError(f"could not read file: {e}", str(source_path)) from e

        rendered = await self.render_string(text, source=str(source_path))

        try:
            if str(output_path.parent):
                await aiofiles.os.makedirs(output_path.parent, exist_ok=True)
            async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
                await f.write(rendered)
        except OSError as e:
            raise RenderError(f"could not write {output_path}: {e}", str(source_path)) from e

        logger.info(f"Rendered {source_path} -> {output_path}")
        if self.options.verbose:
            terminal_ui.print_success(f"Rendered {source_path} → {output_path}")
        return output_path

    async def render_directory(
        self, source_dir: Union[str, Path], output_dir: Union[str, Path, None]
    ) -> List[Path]:
        """Render every matching document below source_dir into output_dir.

        Relative paths are mirrored below output_dir. Up to options.jobs
        files render concurrently; the first failure aborts the batch.

        Raises:
            RenderValidationError: If output_dir is empty or is source_dir
        """
        if not output_dir:
            raise RenderValidationError("an output directory is required when rendering a directory")
        source_root = Path(source_dir)
        output_root = Path(output_dir)
        if same_path(source_root, output_root):
            raise RenderValidationError(
                f"output directory {output_root} would overwrite the documents in {source_root}"
            )
        files = await asyncio.to_thread(list_matching_files, source_root, self.options.masks)
        # Earlier output nested below the source tree is not a document
        files = [p for p in files if not is_nested_output(p, source_root, output_root)]
        logger.info(f"Rendering {len(files)} files from {source_root} into {output_root}")

        if self.options.jobs == 1:
            return [
                await self.render_file(path, mirror_path(path, source_root, output_root))
                for path in files
            ]

        semaphore = asyncio.Semaphore(self.options.jobs)

        async def render_one(path: Path) -> Path:
            async with semaphore:
                return await self.render_file(path, mirror_path(path, source_root, output_root))

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(render_one(path)) for path in files]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
        return [task.result() for task in tasks]

    async def render_paths(
        self,
        paths: Sequence[Union[str, Path]],
        output_directory: Union[str, Path, None] = None,
        output_file: Union[str, Path, None] = None,
    ) -> List[Path]:
        """Render a mix of files and directories.

        Files go to output_file when given (single input only), otherwise
        to output_directory/<basename>. Directories require
        output_directory. All inputs are validated before anything renders.
        """
        if output_file and len(paths) > 1:
            raise RenderValidationError("an output file can only be used with a single input file")

        inputs = [Path(p) for p in paths]
        targets: List[Optional[Path]] = []
        for path in inputs:
            if not await aiofiles.os.path.exists(path):
                raise RenderValidationError(f"no such file or directory: {path}")
            if await aiofiles.os.path.isdir(path):
                if output_file:
                    raise RenderValidationError(
                        f"an output file cannot be used when rendering directory {path}"
                    )
                if not output_directory:
                    raise RenderValidationError(
                        f"an output directory is required when rendering directory {path}"
                    )
                if same_path(path, Path(output_directory)):
                    raise RenderValidationError(
                        f"output directory {output_directory} would overwrite the documents in {path}"
                    )
                targets.append(None)
                continue
            if output_file:
                target = Path(output_file)
            else:
                target = Path(output_directory or ".") / path.name
            _check_not_source(path, target)
            targets.append(target)

        written: List[Path] = []
        for path, target in zip(inputs, targets):
            if target is None:
                written.extend(await self.render_directory(path, output_directory))
            else:
                written.append(await self.render_file(path, target))
        return written
