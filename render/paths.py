"""Glob matching and output path mapping."""

from __future__ import annotations

import functools
import os
import re
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence


@functools.lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a doublestar glob into a compiled regex.

    ``**`` matches across directory separators (``**/`` also matches no
    directory at all), ``*`` and ``?`` stay within one path segment,
    ``[...]`` is a character class and ``{a,b}`` an alternation.
    """
    i, n = 0, len(pattern)
    out: List[str] = []
    depth = 0
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
                i = end
        elif c == "{":
            depth += 1
            out.append("(?:")
        elif c == "}" and depth:
            depth -= 1
            out.append(")")
        elif c == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z", re.DOTALL)


def match_mask(relative: str | PurePosixPath, mask: str) -> bool:
    """Whether a relative path (with "/" separators) matches a glob mask."""
    return glob_to_regex(mask).match(str(relative)) is not None


def match_any(relative: str | PurePosixPath, masks: Iterable[str]) -> bool:
    return any(match_mask(relative, mask) for mask in masks)


def relative_posix(path: Path, base: Path) -> str:
    return Path(os.path.relpath(path, base)).as_posix()


def list_matching_files(root: Path, masks: Sequence[str]) -> List[Path]:
    """Recursively list files below root whose relative path matches a mask.

    Hidden entries (starting with ".") are skipped. Results are sorted.
    """
    results: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            path = Path(dirpath) / filename
            if match_any(relative_posix(path, root), masks):
                results.append(path)
    return results


def is_within(path: Path, base: Path) -> bool:
    """Path-component prefix test ("docs" does not contain "docs2/x")."""
    try:
        Path(os.path.abspath(path)).relative_to(os.path.abspath(base))
    except ValueError:
        return False
    return True


def same_path(a: Path, b: Path) -> bool:
    """Whether two paths name the same file (resolving links when both exist)."""
    try:
        return os.path.samefile(a, b)
    except OSError:
        return os.path.abspath(a) == os.path.abspath(b)


def is_nested_output(path: Path, root: Path, output_dir: Path) -> bool:
    """Whether path is earlier output, i.e. below an output_dir that lies inside root."""
    return is_within(output_dir, root) and is_within(path, output_dir)


def mirror_path(path: Path, base: Path, output_dir: Path) -> Path:
    """Map path below base to the same relative location below output_dir."""
    return Path(output_dir) / os.path.relpath(path, base)


def find_base(path: Path, roots: Sequence[Path]) -> Optional[Path]:
    """Return the first root that contains path (or is path itself)."""
    for root in roots:
        if is_within(path, root):
            return Path(root)
    return None


def output_path_for(path: Path, roots: Sequence[Path], output_dir: Path) -> Path:
    """Compute where a changed document is rendered to.

    The first root containing the path is stripped and the remainder is
    placed below output_dir. A root that is the file itself (or no
    matching root) maps to output_dir/<basename>.
    """
    base = find_base(path, roots)
    if base is None or os.path.abspath(base) == os.path.abspath(path):
        return Path(output_dir) / Path(path).name
    return mirror_path(path, base, output_dir)
