import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    AUTHOR_EMAIL,
    AUTHOR_NAME,
    DEFAULT_BRANCH,
    DEFAULT_EXCLUDE,
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_MESSAGE,
    DEFAULT_REMOTE,
    DEFAULT_TOKEN_HOSTS,
)
from .exceptions import ConfigError

logger = logging.getLogger(APP_NAME)


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def parse_pattern(value: str) -> str:
    """Validates an exclusion regex, returning it unchanged."""
    try:
        re.compile(value)
    except (re.error, TypeError) as e:
        raise ValueError(f"Invalid exclude pattern '{value}': {e}") from e
    return value


def parse_jobs(value: int) -> int:
    """Validates the worker count (a positive integer)."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Invalid job count '{value}'")
    return value


def parse_text(value: str) -> str:
    """Validates a string setting (a non-empty string)."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected a non-empty string, got {value!r}")
    return value


def parse_flag(value: bool) -> bool:
    """Validates a boolean setting; strings such as 'no' are rejected."""
    if not isinstance(value, bool):
        raise ValueError(f"Expected true or false, got {value!r}")
    return value


@dataclass
class SyncConfig:
    """Pipeline settings.

    Attributes:
        branch (str): Branch that receives the sync commit.
        message (str): Commit message of the sync commit.
        exclude (str | None): Regex of path components never diffed or copied.
        remote (str): Remote the branch is pushed to.
        fail_fast (bool): Stop the run at the first failing repository.
        jobs (int): Number of repositories processed concurrently.
        git_timeout (int): Seconds before a git command is abandoned.
        dry_run (bool): Clone and diff only; copy, commit and push nothing.
    """

    branch: str = DEFAULT_BRANCH
    message: str = DEFAULT_MESSAGE
    exclude: str | None = DEFAULT_EXCLUDE
    remote: str = DEFAULT_REMOTE
    fail_fast: bool = False
    jobs: int = 1
    git_timeout: int = DEFAULT_GIT_TIMEOUT
    dry_run: bool = False


@dataclass
class IdentityConfig:
    """Author/committer identity of sync commits.

    Attributes:
        name (str): Author and committer name.
        email (str): Author and committer email.
    """

    name: str = AUTHOR_NAME
    email: str = AUTHOR_EMAIL


@dataclass
class CredentialsConfig:
    """Token injection settings.

    Attributes:
        hosts (list[str]): Hosts whose https URLs receive the access token.
    """

    hosts: list[str] = field(default_factory=lambda: list(DEFAULT_TOKEN_HOSTS))


@dataclass
class SyncEntry:
    """One template directory and the repositories it is propagated into.

    Attributes:
        template (Path): The template directory.
        repos (list[str]): Repository URLs, in processing order.
    """

    template: Path
    repos: list[str] = field(default_factory=list)


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        sync (SyncConfig): Pipeline settings.
        identity (IdentityConfig): Commit identity.
        credentials (CredentialsConfig): Token injection settings.
        entries (list[SyncEntry]): Templates and their target repositories.
    """

    sync: SyncConfig = field(default_factory=SyncConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    entries: list[SyncEntry] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Loads the repo list and settings from a TOML file.

        Relative template paths are resolved against the file's directory.

        Args:
            path (Path): The TOML file.

        Returns:
            Config: The populated configuration object.

        Raises:
            ConfigError: If the file is unreadable, not valid TOML, or its
                         entries are malformed.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Config syntax error in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read repo list {path}: {e}") from e

        instance = cls()
        instance._merge(data)
        instance.entries = _parse_entries(data.get("entries"), path.parent)
        return instance

    def _merge(self, data: dict[str, Any]) -> None:
        """Merges the settings sections of a parsed TOML document."""
        unknown = set(data.keys()) - {"sync", "identity", "credentials", "entries"}
        if unknown:
            logger.warning(
                f"Unknown config sections: {', '.join(sorted(unknown))}. Ignoring."
            )

        if "sync" in data:
            self.sync = self._update_dataclass("sync", self.sync, data["sync"])
        if "identity" in data:
            self.identity = self._update_dataclass(
                "identity", self.identity, data["identity"]
            )
        if "credentials" in data:
            self.credentials = self._update_dataclass(
                "credentials", self.credentials, data["credentials"]
            )

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: Any) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        if not isinstance(updates, dict):
            logger.warning(f"Config section [{section_name}] is not a table. Ignoring.")
            return instance

        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                # Route specific keys through our parsers
                if k == "git_timeout":
                    filtered_updates[k] = parse_time(v)
                elif k == "exclude":
                    filtered_updates[k] = parse_pattern(v) if v else None
                elif k == "jobs":
                    filtered_updates[k] = parse_jobs(v)
                elif k in ("fail_fast", "dry_run"):
                    filtered_updates[k] = parse_flag(v)
                elif k in ("branch", "message", "remote", "name", "email"):
                    filtered_updates[k] = parse_text(v)
                elif k == "hosts":
                    if not isinstance(v, list) or not all(
                        isinstance(h, str) for h in v
                    ):
                        raise ValueError(f"Expected a list of host names, got {v!r}")
                    filtered_updates[k] = [h.lower() for h in v]
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)


def _parse_entries(raw: Any, base_dir: Path) -> list[SyncEntry]:
    """Validates the ``[[entries]]`` array of tables.

    Raises:
        ConfigError: If the array is missing or any entry is malformed.
    """
    if not isinstance(raw, list) or not raw:
        raise ConfigError("Repo list must define at least one [[entries]] table")

    entries = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"entries[{index}] is not a table")

        template = item.get("template")
        if not isinstance(template, str) or not template:
            raise ConfigError(f"entries[{index}].template must be a non-empty string")

        repos = item.get("repos", [])
        if not isinstance(repos, list) or not all(
            isinstance(r, str) and r for r in repos
        ):
            raise ConfigError(f"entries[{index}].repos must be a list of URLs")

        template_path = Path(template).expanduser()
        if not template_path.is_absolute():
            template_path = base_dir / template_path
        entries.append(SyncEntry(template=template_path, repos=list(repos)))

    return entries
