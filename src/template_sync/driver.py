import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import ops, workspace
from .config import Config, SyncEntry
from .constants import APP_NAME
from .credentials import inject_token, mask_url
from .differ import DiffKind, diff_dirs, summarize
from .exceptions import ConfigError, PropagationError, SyncError
from .git_wrapper import GitClient
from .propagate import propagate

logger = logging.getLogger(APP_NAME)

MAX_LOG_SIZE = 5 * 1024 * 1024

SYNCED = "synced"
UNCHANGED = "unchanged"
DRY_RUN = "dry-run"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class RepoResult:
    """Outcome of processing one repository.

    Attributes:
        url (str): The repository URL with any user-info masked.
        status (str): One of synced, unchanged, dry-run, failed, skipped.
        stage (str | None): The failing stage when status is failed.
        copied (list[Path]): Files added (or, in a dry run, that would be).
        commit (str | None): The pushed commit SHA-1, if any.
        error (str | None): The failure message, if any.
    """

    url: str
    status: str
    stage: str | None = None
    copied: list[Path] = field(default_factory=list)
    commit: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SYNCED, UNCHANGED, DRY_RUN)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, log DEBUG messages, otherwise INFO and above.
        log_file (Path | None): Optional file receiving the same records, with
                                rotation enabled.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_SIZE,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def validate_templates(entries: list[SyncEntry]) -> None:
    """Checks every template directory before any repository is touched.

    Raises:
        ConfigError: If a template is missing, not a directory, or unreadable.
    """
    for entry in entries:
        template = entry.template
        if not template.is_dir():
            raise ConfigError(f"Template directory not found: {template}")
        if not os.access(template, os.R_OK | os.X_OK):
            raise ConfigError(f"Template directory is not readable: {template}")


def process_repo(
    url: str,
    template: Path,
    config: Config,
    client: GitClient,
    token: str | None = None,
) -> RepoResult:
    """Runs clone, diff, propagate and commit/push for a single repository.

    The repository is cloned into its own temporary workspace, which is removed
    when this function returns or raises.

    Args:
        url (str): The repository URL as configured.
        template (Path): The template directory.
        config (Config): The run configuration.
        client (GitClient): The git capability used to clone.
        token (str | None, optional): Access token injected into matching URLs.

    Returns:
        RepoResult: The outcome (never a failure; failures raise).

    Raises:
        SyncError: Any stage error (CloneError, PropagationError, CommitError,
                   PushError).
    """
    settings = config.sync
    display_url = mask_url(url)
    clone_url = inject_token(url, token, config.credentials.hosts) if token else url

    logger.debug(f"template: {template}")

    with workspace.acquire() as ws:
        repo = workspace.clone(ws, clone_url, client)

        try:
            entries = diff_dirs(template, ws.root, settings.exclude)
        except OSError as e:
            raise PropagationError(f"Failed to compare directories: {e}") from e

        counts = summarize(entries)
        logger.info(
            f"{display_url}: {counts[DiffKind.TEMPLATE_ONLY]} missing, "
            f"{counts[DiffKind.COMMON]} present, "
            f"{counts[DiffKind.REPO_ONLY]} repo-only"
        )

        if settings.dry_run:
            missing = [e.path for e in entries if e.kind is DiffKind.TEMPLATE_ONLY]
            for path in missing:
                logger.info(f"Would add file: {path}")
            return RepoResult(url=display_url, status=DRY_RUN, copied=missing)

        copied = propagate(entries, template, ws.root)
        if not copied:
            logger.info(f"UP TO DATE {display_url}")
            return RepoResult(url=display_url, status=UNCHANGED)

        result = ops.commit_and_push(
            repo,
            settings.branch,
            settings.message,
            identity=config.identity,
            remote=settings.remote,
        )

    if result is None:
        return RepoResult(url=display_url, status=UNCHANGED, copied=copied)

    logger.info(f"SUCCESS {display_url}: {len(copied)} file(s) on {result.branch}")
    return RepoResult(
        url=display_url, status=SYNCED, copied=copied, commit=result.commit
    )


def _process_isolated(
    url: str,
    template: Path,
    config: Config,
    client: GitClient,
    token: str | None,
) -> RepoResult:
    """Runs ``process_repo`` and turns any failure into a failed result."""
    display_url = mask_url(url)
    try:
        return process_repo(url, template, config, client, token)
    except SyncError as e:
        logger.error(f"FAILED {display_url} [{e.stage}]: {e}")
        return RepoResult(url=display_url, status=FAILED, stage=e.stage, error=str(e))
    except Exception as e:
        logger.exception(f"LOOP ERROR {display_url}")
        return RepoResult(
            url=display_url, status=FAILED, stage="internal", error=str(e)
        )


def run_sync(
    config: Config, token: str | None = None, client: GitClient | None = None
) -> list[RepoResult]:
    """Propagates every template into every configured repository.

    Failures are isolated per repository unless ``fail_fast`` is set, in which
    case the first failure stops the run and the remaining repositories are
    reported as skipped. With ``jobs > 1`` repositories run concurrently, each
    in its own workspace.

    Args:
        config (Config): The run configuration, including the entries.
        token (str | None, optional): Access token for https URLs.
        client (GitClient | None, optional): The git capability to use.

    Returns:
        list[RepoResult]: One result per repository, in configuration order.

    Raises:
        ConfigError: If a template directory cannot be used.
    """
    validate_templates(config.entries)

    settings = config.sync
    if client is None:
        client = GitClient(
            secrets=(token,) if token else (), timeout=settings.git_timeout
        )

    work = [(url, entry.template) for entry in config.entries for url in entry.repos]
    results: list[RepoResult | None] = [None] * len(work)

    if settings.jobs <= 1:
        for index, (url, template) in enumerate(work):
            results[index] = _process_isolated(url, template, config, client, token)
            if settings.fail_fast and not results[index].ok:
                logger.error("Fail-fast enabled: stopping after first failure.")
                break
    else:
        with ThreadPoolExecutor(max_workers=settings.jobs) as pool:
            futures = {
                pool.submit(
                    _process_isolated, url, template, config, client, token
                ): index
                for index, (url, template) in enumerate(work)
            }
            for future in as_completed(futures):
                if settings.fail_fast and not future.result().ok:
                    logger.error("Fail-fast enabled: cancelling pending repositories.")
                    for pending in futures:
                        pending.cancel()
                    break

        # Repositories already running when fail-fast triggered still finish.
        for future, index in futures.items():
            if not future.cancelled():
                results[index] = future.result()

    final = [
        result
        if result is not None
        else RepoResult(url=mask_url(url), status=SKIPPED)
        for result, (url, _) in zip(results, work)
    ]

    failed = sum(1 for r in final if r.status == FAILED)
    skipped = sum(1 for r in final if r.status == SKIPPED)
    logger.info(
        f"Sync finished: {len(final) - failed - skipped} ok, "
        f"{failed} failed, {skipped} skipped"
    )
    return final
