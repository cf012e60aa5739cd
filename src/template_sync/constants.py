import os
from pathlib import Path

"""Global constants and default values for template-sync.

This module defines application identifiers, the default configuration file
location, and the defaults used by the sync pipeline when the repo list does
not override them.
"""

# --- Identity ---
APP_NAME = "template-sync"
"""str: The human-readable application name (also the logger name)."""

TOKEN_ENV_VAR = "TEMPLATE_SYNC_TOKEN"
"""str: Environment variable consulted for the access token when --pat is absent."""

# --- Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
CONFIG_DIR: Path = (
    Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"
) / "template-sync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "repos.toml"
"""Path: The repo list used when --repo-list is not given."""

# --- Sync defaults ---
DEFAULT_BRANCH = "my_branch"
"""str: The branch (refs/heads/<branch>) that receives the sync commit."""

DEFAULT_MESSAGE = "Add missing template files"
"""str: The commit message used for sync commits."""

DEFAULT_EXCLUDE = r"\.git$"
"""str: Regex searched against each path component; matches are never diffed."""

DEFAULT_REMOTE = "origin"
"""str: The remote that sync branches are pushed to."""

DEFAULT_TOKEN_HOSTS = ["github.com"]
"""list[str]: Hosts whose https URLs receive the access token."""

DEFAULT_GIT_TIMEOUT = 300
"""int: Seconds a single git subprocess may run before it is abandoned."""

WORKSPACE_PREFIX = "repo_"
"""str: Prefix of the temporary directories repositories are cloned into."""

# --- Commit identity ---
AUTHOR_NAME = "template-sync"
"""str: Default author/committer name of sync commits."""

AUTHOR_EMAIL = "template-sync@localhost"
"""str: Default author/committer email of sync commits."""
