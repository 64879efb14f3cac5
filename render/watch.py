"""Watch mode: re-render documents when they change on disk."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union

from program import ClimarkError, load_repositories
from program.repository import DEFINITION_SUFFIXES
from utils import get_logger, terminal_ui

from .errors import RenderValidationError
from .paths import find_base, is_nested_output, list_matching_files, output_path_for, same_path
from .renderer import Renderer

logger = get_logger(__name__)

DEFAULT_INTERVAL = 0.5
DEFINITION_MASKS = tuple(f"**/*{suffix}" for suffix in DEFINITION_SUFFIXES)

Stamp = Tuple[int, int]


class PollingWatcher:
    """Report created or modified files by periodically comparing stat snapshots.

    Directory roots are scanned recursively and filtered by the masks
    (hidden entries skipped); roots that are files are always watched.
    """

    def __init__(
        self,
        paths: Sequence[Union[str, Path]],
        masks: Sequence[str],
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.paths = [Path(p) for p in paths]
        self.masks = tuple(masks)
        self.interval = interval

    def snapshot(self) -> Dict[Path, Stamp]:
        stamps: Dict[Path, Stamp] = {}
        for root in self.paths:
            if root.is_dir():
                candidates = list_matching_files(root, self.masks)
            elif root.is_file():
                candidates = [root]
            else:
                continue
            for path in candidates:
                try:
                    st = os.stat(path)
                except FileNotFoundError:
                    continue
                stamps[path] = (st.st_mtime_ns, st.st_size)
        return stamps

    async def changes(self) -> AsyncIterator[Path]:
        """Yield paths that appeared or changed since the previous poll."""
        previous = await asyncio.to_thread(self.snapshot)
        while True:
            await asyncio.sleep(self.interval)
            current = await asyncio.to_thread(self.snapshot)
            for path in sorted(current):
                if previous.get(path) != current[path]:
                    yield path
            previous = current


class WatchCoordinator:
    """Keep an output directory in sync with a set of source documents.

    Every changed document is rendered to the output path computed from
    the first watched root containing it. Definition file changes under
    the repositories reload the renderer's registry. Runs until cancelled.
    """

    def __init__(
        self,
        renderer: Renderer,
        paths: Sequence[Union[str, Path]],
        output_directory: Union[str, Path, None],
        repositories: Sequence[Union[str, Path]] = (),
        interval: float = DEFAULT_INTERVAL,
        initial_render: bool = True,
    ) -> None:
        if not output_directory:
            raise RenderValidationError("an output directory is required in watch mode")
        self.renderer = renderer
        self.paths = [Path(p) for p in paths]
        self.output_directory = Path(output_directory)
        self.repositories = [Path(r) for r in repositories]
        self.interval = interval
        self.initial_render = initial_render
        for root in self.paths:
            target = self.output_directory if root.is_dir() else self.output_path(root)
            if same_path(root, target):
                raise RenderValidationError(f"watching {root} would overwrite it with its own output")

    def output_path(self, path: Union[str, Path]) -> Path:
        return output_path_for(Path(path), self.paths, self.output_directory)

    async def handle_change(self, path: Union[str, Path]) -> Optional[Path]:
        """Re-render one changed document.

        Render failures are reported and swallowed so the session keeps
        running; the file is left unwritten.

        Files below an output directory nested in the watched root are
        earlier results and are skipped.

        Returns:
            The written output path, or None if skipped or rendering failed
        """
        base = find_base(Path(path), self.paths)
        if base is not None and is_nested_output(Path(path), base, self.output_directory):
            logger.debug(f"Ignoring rendered output {path}")
            return None
        output = self.output_path(path)
        logger.info(f"File changed: {path} -> {output}")
        try:
            return await self.renderer.render_file(path, output)
        except ClimarkError as e:
            logger.warning(f"Render failed for {path}: {e}")
            terminal_ui.print_error(str(e), title="Render Error")
            return None

    async def reload_repositories(self) -> bool:
        """Reload program definitions, keeping the old registry on failure."""
        try:
            programs = await load_repositories(self.repositories)
        except ClimarkError as e:
            logger.warning(f"Repository reload failed: {e}")
            terminal_ui.print_error(str(e), title="Repository Error")
            return False
        self.renderer.reload(programs)
        terminal_ui.print_info(f"Reloaded {len(programs)} programs")
        return True

    async def _render_all(self) -> List[Path]:
        written: List[Path] = []
        for root in self.paths:
            if root.is_dir():
                files = await asyncio.to_thread(list_matching_files, root, self.renderer.options.masks)
            else:
                files = [root]
            for path in files:
                output = await self.handle_change(path)
                if output is not None:
                    written.append(output)
        return written

    async def _watch_documents(self) -> None:
        watcher = PollingWatcher(self.paths, self.renderer.options.masks, self.interval)
        async for path in watcher.changes():
            await self.handle_change(path)

    async def _watch_repositories(self) -> None:
        watcher = PollingWatcher(self.repositories, DEFINITION_MASKS, self.interval)
        async for path in watcher.changes():
            logger.info(f"Definition changed: {path}")
            await self.reload_repositories()

    async def run(self) -> None:
        """Watch until cancelled.

        Raises:
            asyncio.CancelledError: On cancellation, the normal way to stop
            Exception: Any watcher failure, which ends the session
        """
        if self.initial_render:
            await self._render_all()

        terminal_ui.print_info(
            f"Watching {', '.join(str(p) for p in self.paths)} → {self.output_directory}"
        )
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._watch_documents())
                if self.repositories:
                    tg.create_task(self._watch_repositories())
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
