"""Template Sync: propagate a canonical template tree into many git repositories.

This package provides the command-line interface, the per-repository sync
driver, and the core logic (presence-based directory diff, selective file
propagation, commit and push) for adding missing boilerplate files to a fleet
of repositories without ever overwriting files they already have.
"""

from . import (
    cli,
    config,
    constants,
    credentials,
    differ,
    driver,
    exceptions,
    git_wrapper,
    ops,
    propagate,
    workspace,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "credentials",
    "differ",
    "driver",
    "exceptions",
    "git_wrapper",
    "ops",
    "propagate",
    "workspace",
]
