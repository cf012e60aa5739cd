import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .constants import APP_NAME, WORKSPACE_PREFIX
from .credentials import mask_url
from .exceptions import CloneError
from .git_wrapper import GitClient, GitRepo

logger = logging.getLogger(APP_NAME)


@dataclass
class Workspace:
    """An ephemeral working copy of one target repository.

    Attributes:
        root (Path): The temporary directory the repository is cloned into.
        repo (GitRepo | None): The repository handle, set once cloned.
    """

    root: Path
    repo: GitRepo | None = None


@contextmanager
def acquire(prefix: str = WORKSPACE_PREFIX) -> Iterator[Workspace]:
    """Context manager allocating a uniquely named, empty temporary directory.

    The directory and everything cloned into it is deleted when the block
    exits, whether it returns normally or raises.

    Args:
        prefix (str, optional): Name prefix of the temporary directory.

    Yields:
        Workspace: A workspace with no repository attached yet.
    """
    root = Path(tempfile.mkdtemp(prefix=prefix))
    logger.debug(f"Allocated workspace {root}")
    try:
        yield Workspace(root)
    finally:
        try:
            shutil.rmtree(root)
        except OSError as e:
            logger.warning(f"Could not remove workspace {root}: {e}")


def clone(workspace: Workspace, url: str, client: GitClient) -> GitRepo:
    """Populates a workspace with a clone of ``url``.

    Args:
        workspace (Workspace): The (empty) workspace to clone into.
        url (str): The repository URL, possibly carrying a token.
        client (GitClient): The git capability performing the clone.

    Returns:
        GitRepo: The cloned repository, also stored on ``workspace.repo``.

    Raises:
        CloneError: If the remote is unreachable, authentication is rejected,
                    the clone times out, or the workspace is not empty.
    """
    logger.info(f"Cloning {mask_url(url)} into {workspace.root}")
    try:
        repo = client.clone(url, workspace.root)
    except (RuntimeError, ValueError, OSError) as e:
        raise CloneError(f"Failed to clone {mask_url(url)}: {e}") from e

    workspace.repo = repo
    return repo
