"""Loading program definitions from repository directories."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import aiofiles
import yaml

from utils import get_logger

from .errors import DuplicateProgramError, ProgramDecodeError, RepositoryError
from .types import Program

logger = get_logger(__name__)

DEFINITION_SUFFIXES = (".yaml", ".yml")


def program_from_yaml(text: str, source: Optional[str] = None) -> Program:
    """Decode a single program from YAML text.

    Raises:
        ProgramDecodeError: If the text is not valid YAML or not a program
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ProgramDecodeError(f"could not decode program: {e}", source) from e
    return Program.from_dict(data, source)


def list_definition_files(root: Path) -> List[Path]:
    """Recursively collect definition files below root.

    Entries whose name starts with "." are skipped, directories included.
    Entries are visited in sorted order.
    """
    results: List[Path] = []
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.name.startswith("."):
            continue
        path = Path(entry.path)
        if entry.is_dir():
            results.extend(list_definition_files(path))
        elif entry.is_file() and entry.name.endswith(DEFINITION_SUFFIXES):
            results.append(path)
    return results


async def load_program_file(path: Path) -> Program:
    async with aiofiles.open(path, encoding="utf-8") as f:
        content = await f.read()
    return program_from_yaml(content, source=str(path))


async def load_programs_from_dir(root: Path) -> List[Program]:
    """Load every program definition found below a directory."""
    try:
        files = await asyncio.to_thread(list_definition_files, Path(root))
    except OSError as e:
        raise RepositoryError(f"could not read dir {root}: {e}", str(root)) from e

    programs: List[Program] = []
    for path in files:
        try:
            programs.append(await load_program_file(path))
        except OSError as e:
            raise RepositoryError(f"could not open file {path}: {e}", str(root)) from e
    return programs


async def load_repositories(repositories: Iterable[str | Path]) -> Dict[str, Program]:
    """Load and merge programs from several repository roots.

    Args:
        repositories: Directories containing program definition files

    Returns:
        Registry mapping program name to Program

    Raises:
        RepositoryError: If a repository does not exist or cannot be read
        ProgramDecodeError: If a definition file is malformed
        DuplicateProgramError: If a program name is defined more than once
    """
    programs: Dict[str, Program] = {}

    for repository in repositories:
        root = Path(repository)
        if not await asyncio.to_thread(root.exists):
            raise RepositoryError(f"could not stat repository {root}", str(root))
        if not await asyncio.to_thread(root.is_dir):
            raise RepositoryError(f"repository {root} is not a directory", str(root))

        for program in await load_programs_from_dir(root):
            existing = programs.get(program.name)
            if existing is not None:
                raise DuplicateProgramError(program.name, existing.source, program.source)
            programs[program.name] = program

        logger.info(f"Loaded repository {root} ({len(programs)} programs total)")

    return programs
