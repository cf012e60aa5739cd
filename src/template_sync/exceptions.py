"""Exception hierarchy for the sync pipeline.

``ConfigError`` aborts a whole run. Every other error is scoped to the single
repository being processed and carries the name of the failing stage so the
driver can report it.
"""

from pathlib import Path


class SyncError(RuntimeError):
    """Base class for all template-sync failures."""

    stage = "sync"


class ConfigError(SyncError):
    """The repo list or a template directory cannot be used."""

    stage = "config"


class CloneError(SyncError):
    """Cloning a repository into its workspace failed."""

    stage = "clone"


class PropagationError(SyncError):
    """Copying a template file into the workspace failed.

    Attributes:
        copied (list[Path]): Workspace-relative paths copied before the failure.
    """

    stage = "propagate"

    def __init__(self, message: str, copied: list[Path] | None = None):
        super().__init__(message)
        self.copied = list(copied or [])


class CommitError(SyncError):
    """Staging or committing the propagated files failed."""

    stage = "commit"


class PushError(SyncError):
    """Pushing the sync branch to the remote failed."""

    stage = "push"
