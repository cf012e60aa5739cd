import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from .constants import APP_NAME
from .differ import DiffEntry, DiffKind
from .exceptions import PropagationError

logger = logging.getLogger(APP_NAME)


def copy_with_parents(rel_path: Path, source_root: Path, target_root: Path) -> Path:
    """Copies one file to the same relative location under another root.

    Missing ancestor directories of the destination are created. The file
    content and mode bits are copied. A symlinked source is recreated as a
    symlink with the same target, whatever that target is (file, directory, or
    nothing at all).

    Args:
        rel_path (Path): The path relative to both roots.
        source_root (Path): The root the file is read from.
        target_root (Path): The root the file is written under.

    Returns:
        Path: The absolute destination path.
    """
    destination = target_root / rel_path
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(source_root / rel_path, destination, follow_symlinks=False)
    return destination


def blocking_ancestor(rel_path: Path, root: Path) -> Path | None:
    """Finds the first ancestor of ``rel_path`` under ``root`` that is not a real directory.

    An ancestor that is a symlink (to anything) or an existing non-directory
    would send the copy outside ``root`` or make it fail.

    Returns:
        Path | None: The offending relative ancestor, or None if every existing
                     ancestor is a plain directory.
    """
    current = root
    for part in rel_path.parent.parts:
        current = current / part
        if current.is_symlink():
            return current.relative_to(root)
        if not current.exists():
            return None
        if not current.is_dir():
            return current.relative_to(root)
    return None


def propagate(
    entries: Iterable[DiffEntry], template_root: Path, workspace_root: Path
) -> list[Path]:
    """Copies every template-only file from the template into the workspace.

    Entries of any other kind are ignored. A destination that already exists
    is never overwritten, and nothing is written through a symlink or in place
    of a file the repository already has: such entries are skipped with a
    warning.

    Args:
        entries (Iterable[DiffEntry]): The diff of template against workspace.
        template_root (Path): The template directory.
        workspace_root (Path): The cloned repository directory.

    Returns:
        list[Path]: Workspace-relative paths of the copied files.

    Raises:
        PropagationError: On the first file that cannot be read or written.
                          ``copied`` lists the files copied before it.
    """
    copied: list[Path] = []

    for entry in entries:
        if entry.kind is not DiffKind.TEMPLATE_ONLY:
            continue

        blocker = blocking_ancestor(entry.path, workspace_root)
        if blocker is not None:
            logger.warning(
                f"Skipping {entry.path}: {blocker} is not a directory in the workspace"
            )
            continue

        destination = workspace_root / entry.path
        if destination.exists() or destination.is_symlink():
            logger.warning(f"Skipping {entry.path}: already present in workspace")
            continue

        try:
            copy_with_parents(entry.path, template_root, workspace_root)
        except OSError as e:
            raise PropagationError(
                f"Failed to copy {entry.path}: {e}", copied=copied
            ) from e

        logger.info(f"Added file: {entry.path}")
        copied.append(entry.path)

    return copied
