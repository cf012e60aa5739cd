import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import driver
from .config import Config, parse_pattern, parse_time
from .constants import APP_NAME, CONFIG_FILE, DEFAULT_EXCLUDE, TOKEN_ENV_VAR
from .differ import DiffKind, diff_dirs, summarize
from .exceptions import ConfigError

logger = logging.getLogger(APP_NAME)
console = Console()

STATUS_STYLES = {
    driver.SYNCED: "bold green",
    driver.UNCHANGED: "dim",
    driver.DRY_RUN: "cyan",
    driver.FAILED: "bold red",
    driver.SKIPPED: "yellow",
}

KIND_STYLES = {
    DiffKind.TEMPLATE_ONLY: "green",
    DiffKind.REPO_ONLY: "dim",
    DiffKind.COMMON: "blue",
}


def _positive_int(value: str) -> int:
    """argparse type for worker counts."""
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got '{value}'")
    return number


def _timeout(value: str) -> int:
    """argparse type accepting seconds or human-readable durations."""
    try:
        return parse_time(int(value) if value.isdigit() else value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _pattern(value: str) -> str:
    """argparse type validating an exclusion regex."""
    try:
        return parse_pattern(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Layers command-line flags over the settings read from the repo list."""
    overrides = {
        key: getattr(args, key)
        for key in (
            "branch",
            "message",
            "exclude",
            "jobs",
            "fail_fast",
            "dry_run",
            "git_timeout",
        )
        if getattr(args, key, None) is not None
    }
    if overrides.get("exclude") == "":
        overrides["exclude"] = None
    if overrides:
        config.sync = replace(config.sync, **overrides)
    return config


def print_summary(results: list[driver.RepoResult]) -> None:
    """Renders one row per repository with its outcome."""
    table = Table(title="Template Sync", show_header=True, header_style="bold")
    table.add_column("Repository", overflow="fold")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Details", overflow="fold")

    for result in results:
        style = STATUS_STYLES.get(result.status, "")
        if result.error:
            details = f"[{result.stage}] {result.error}"
        elif result.commit:
            details = result.commit[:12]
        else:
            details = ""
        table.add_row(
            result.url,
            f"[{style}]{result.status}[/{style}]" if style else result.status,
            str(len(result.copied)),
            details,
        )

    console.print(table)


def run_command(args: argparse.Namespace) -> int:
    """Executes `template-sync run`.

    Returns:
        int: The process exit status.
    """
    driver.setup_logging(verbose=args.verbose, log_file=args.log_file)
    token = args.pat or os.environ.get(TOKEN_ENV_VAR) or None

    try:
        config = apply_overrides(Config.load(args.repo_list), args)
        results = driver.run_sync(config, token=token)
    except ConfigError as e:
        logger.error(f"CONFIG ERROR: {e}")
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        return 1

    print_summary(results)

    failed = [r for r in results if not r.ok]
    if failed:
        console.print(
            f"[bold red]FAILED:[/bold red] {len(failed)} of {len(results)} "
            "repositories did not sync."
        )
        return 1

    console.print(f"[bold green]SUCCESS:[/bold green] {len(results)} repositories.")
    return 0


def diff_command(args: argparse.Namespace) -> int:
    """Executes `template-sync diff`, a local preview of the propagation plan.

    Returns:
        int: The process exit status.
    """
    try:
        entries = diff_dirs(args.template, args.target, args.exclude)
    except OSError as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        return 1

    table = Table(show_header=True, header_style="bold")
    table.add_column("Path", overflow="fold")
    table.add_column("Status")
    for entry in entries:
        style = KIND_STYLES[entry.kind]
        table.add_row(entry.path.as_posix(), f"[{style}]{entry.kind.value}[/{style}]")
    console.print(table)

    counts = summarize(entries)
    console.print(
        f"{counts[DiffKind.TEMPLATE_ONLY]} file(s) would be added, "
        f"{counts[DiffKind.COMMON]} already present."
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Copy missing template files into a fleet of git repositories.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Run Command
    run_parser = subparsers.add_parser(
        "run", help="Sync every repository of the repo list"
    )
    run_parser.add_argument(
        "--repo-list",
        type=Path,
        default=CONFIG_FILE,
        help=f"TOML file with templates and repositories (default: {CONFIG_FILE})",
    )
    run_parser.add_argument(
        "--pat",
        default=None,
        help=f"Access token for https URLs (default: ${TOKEN_ENV_VAR})",
    )
    run_parser.add_argument("--branch", help="Branch that receives the sync commit")
    run_parser.add_argument("--message", help="Commit message of the sync commit")
    run_parser.add_argument(
        "--exclude",
        type=_pattern,
        help="Regex of path components to ignore (default: \\.git$, '' disables)",
    )
    run_parser.add_argument(
        "--jobs", "-j", type=_positive_int, help="Repositories processed in parallel"
    )
    run_parser.add_argument(
        "--git-timeout",
        type=_timeout,
        help="Timeout per git command, e.g. 90 or 5m",
    )
    run_parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Stop at the first repository that fails",
    )
    run_parser.add_argument(
        "--dry-run",
        "-n",
        action="store_true",
        default=None,
        help="Clone and diff only; change nothing",
    )
    run_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    run_parser.add_argument(
        "--log-file", type=Path, default=None, help="Also write logs to this file"
    )

    # Diff Command
    diff_parser = subparsers.add_parser(
        "diff", help="Show which template files a local directory is missing"
    )
    diff_parser.add_argument("template", type=Path, help="Template directory")
    diff_parser.add_argument("target", type=Path, help="Target directory")
    diff_parser.add_argument(
        "--exclude",
        type=_pattern,
        default=DEFAULT_EXCLUDE,
        help="Regex of path components to ignore ('' disables)",
    )

    return parser


def main() -> None:
    """Main entry point for the template-sync CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "run":
        sys.exit(run_command(args))
    elif args.command == "diff":
        sys.exit(diff_command(args))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
