"""Presence-based comparison of a template tree against a repository tree.

Only the existence of a relative file path matters: a file present on both
sides is ``COMMON`` whatever its content. Symbolic links are listed as files and
never followed while walking. Directories are not represented on their own.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .constants import DEFAULT_EXCLUDE


class DiffKind(Enum):
    """Classification of a relative path across the two trees."""

    TEMPLATE_ONLY = "template-only"
    REPO_ONLY = "repo-only"
    COMMON = "common"


@dataclass(frozen=True)
class DiffEntry:
    """A relative file path and where it exists.

    Attributes:
        kind (DiffKind): Which side(s) the path exists on.
        path (Path): The path relative to both roots.
    """

    kind: DiffKind
    path: Path


def compile_exclude(exclude: str | re.Pattern[str] | None) -> re.Pattern[str] | None:
    """Normalizes an exclusion pattern into a compiled regex (or None).

    An empty pattern disables exclusion rather than matching everything.
    """
    if not exclude:
        return None
    if isinstance(exclude, re.Pattern):
        return exclude
    return re.compile(exclude)


def list_files(root: Path, exclude: str | re.Pattern[str] | None = None) -> set[Path]:
    """Recursively lists the files under ``root`` as relative paths.

    A directory entry whose name matches ``exclude`` is skipped, and excluded
    directories are not descended into, so no path with a matching component is
    ever returned.

    Args:
        root (Path): The directory to walk.
        exclude (str | re.Pattern | None): Regex searched against each name.

    Returns:
        set[Path]: Relative paths of all files (including symlinks).

    Raises:
        NotADirectoryError: If ``root`` is not a directory.
    """
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    pattern = compile_exclude(exclude)
    files: set[Path] = set()
    pending = [Path()]

    while pending:
        rel_dir = pending.pop()
        with os.scandir(root / rel_dir) as it:
            for entry in it:
                if pattern is not None and pattern.search(entry.name):
                    continue
                rel = rel_dir / entry.name
                if entry.is_dir(follow_symlinks=False):
                    pending.append(rel)
                else:
                    files.add(rel)

    return files


def diff_dirs(
    template_root: Path,
    workspace_root: Path,
    exclude: str | re.Pattern[str] | None = DEFAULT_EXCLUDE,
) -> list[DiffEntry]:
    """Classifies every file path of two trees by presence.

    Args:
        template_root (Path): The template directory.
        workspace_root (Path): The cloned repository directory.
        exclude (str | re.Pattern | None, optional): Regex searched against each
            path component; matching paths are omitted from both sides.
            Defaults to version-control metadata (``\\.git$``).

    Returns:
        list[DiffEntry]: One entry per path, sorted by path. Callers must not
                         depend on the ordering.
    """
    pattern = compile_exclude(exclude)
    template_files = list_files(template_root, pattern)
    workspace_files = list_files(workspace_root, pattern)

    entries = [
        DiffEntry(DiffKind.TEMPLATE_ONLY, p) for p in template_files - workspace_files
    ]
    entries += [
        DiffEntry(DiffKind.REPO_ONLY, p) for p in workspace_files - template_files
    ]
    entries += [
        DiffEntry(DiffKind.COMMON, p) for p in template_files & workspace_files
    ]
    return sorted(entries, key=lambda e: e.path.as_posix())


def summarize(entries: list[DiffEntry]) -> dict[DiffKind, int]:
    """Counts diff entries per kind (every kind present, possibly zero)."""
    counts = {kind: 0 for kind in DiffKind}
    for entry in entries:
        counts[entry.kind] += 1
    return counts
