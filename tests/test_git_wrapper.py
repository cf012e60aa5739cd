import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from template_sync.credentials import Credentials
from template_sync.git_wrapper import GitClient, GitRepo


def test_git_repo_requires_git_directory(tmp_path: Path) -> None:
    """Verifies that a plain directory is rejected."""
    with pytest.raises(ValueError, match="Not a git repository"):
        GitRepo(tmp_path)


def test_run_disables_prompts_and_layers_env(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that git never prompts and extra variables reach the subprocess."""
    (tmp_path / ".git").mkdir()
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.stdout = " abc \n"

    repo = GitRepo(tmp_path, timeout=42)
    out = repo._run(["rev-parse", "HEAD"], env={"GIT_AUTHOR_NAME": "bot"})

    assert out == "abc"
    args, kwargs = mock_run.call_args
    assert args[0] == ["git", "rev-parse", "HEAD"]
    assert kwargs["cwd"] == tmp_path
    assert kwargs["timeout"] == 42
    assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"
    assert kwargs["env"]["GIT_AUTHOR_NAME"] == "bot"


def test_run_redacts_secrets_from_errors(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that tokens echoed by git never reach the raised error."""
    (tmp_path / ".git").mkdir()
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(
            128,
            ["git", "push"],
            stderr="fatal: Authentication failed for 'https://SECRET:@github.com/o/r'",
        ),
    )
    repo = GitRepo(tmp_path, secrets=["SECRET"])

    with pytest.raises(RuntimeError) as excinfo:
        repo._run(["push", "origin", "main"])

    assert "SECRET" not in str(excinfo.value)
    assert "Authentication failed" in str(excinfo.value)


def test_run_error_without_stderr_omits_command(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that the command line (which may carry a URL) is not echoed."""
    (tmp_path / ".git").mkdir()
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(1, ["git", "clone", "https://T:@h"]),
    )
    repo = GitRepo(tmp_path)

    with pytest.raises(RuntimeError, match="exit status 1") as excinfo:
        repo._run(["clone", "https://T:@h"])

    assert "T:@h" not in str(excinfo.value)


def test_run_timeout_raises_runtime_error(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that a hung git command surfaces as a RuntimeError."""
    (tmp_path / ".git").mkdir()
    mocker.patch(
        "subprocess.run", side_effect=subprocess.TimeoutExpired(["git", "push"], 5)
    )
    repo = GitRepo(tmp_path, timeout=5)

    with pytest.raises(RuntimeError, match="timed out after 5s"):
        repo._run(["push", "origin", "main"])


def test_rev_parse_returns_none_on_failure(
    mocker: MagicMock, caplog: MagicMock, tmp_path: Path
) -> None:
    """Verifies that unresolvable revisions yield None and are logged at debug."""
    import logging

    caplog.set_level(logging.DEBUG, logger="template-sync")
    (tmp_path / ".git").mkdir()
    repo = GitRepo(tmp_path)
    mocker.patch.object(repo, "_run", side_effect=RuntimeError("Git error: bad rev"))

    assert repo.rev_parse("HEAD") is None
    assert "rev-parse failed for 'HEAD'" in caplog.text


def test_commit_tree_passes_parents_and_env(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies the commit-tree command line."""
    (tmp_path / ".git").mkdir()
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run", return_value="c0ffee")

    oid = repo.commit_tree("tree1", ["p1"], "msg", env={"X": "1"})

    assert oid == "c0ffee"
    mock_run.assert_called_with(
        ["commit-tree", "tree1", "-m", "msg", "-p", "p1"], env={"X": "1"}
    )


def test_push_sends_basic_auth_header_via_env(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that credentials travel as a per-connection header, not argv."""
    (tmp_path / ".git").mkdir()
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run")

    repo.push("origin", "refs/heads/b:refs/heads/b", Credentials("TOK", ""))

    args, kwargs = mock_run.call_args
    assert args[0] == ["push", "origin", "refs/heads/b:refs/heads/b"]
    assert kwargs["env"] == {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": "Authorization: Basic VE9LOg==",
    }


def test_push_without_credentials(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that no auth header is configured when no credentials exist."""
    (tmp_path / ".git").mkdir()
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run")

    repo.push("origin", "refs/heads/b:refs/heads/b")

    mock_run.assert_called_once_with(
        ["push", "origin", "refs/heads/b:refs/heads/b"], env={}
    )


def test_client_clone_returns_repo(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that clone targets the destination and wraps it in a GitRepo."""
    dest = tmp_path / "ws"
    dest.mkdir()

    def fake_run(cmd: list[str], **kwargs: object) -> MagicMock:
        (dest / ".git").mkdir()
        return MagicMock(stdout="")

    mock_run = mocker.patch("subprocess.run", side_effect=fake_run)

    client = GitClient(secrets=["TOK"], timeout=9)
    repo = client.clone("https://TOK:@github.com/o/r", dest)

    assert repo.path == dest
    assert repo.timeout == 9
    args, kwargs = mock_run.call_args
    assert args[0] == [
        "git",
        "clone",
        "--quiet",
        "--",
        "https://TOK:@github.com/o/r",
        str(dest),
    ]
    assert kwargs["cwd"] == tmp_path


def test_client_clone_rejects_non_empty_destination(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that an occupied destination is refused before git runs."""
    (tmp_path / "leftover.txt").write_text("x")
    mock_run = mocker.patch("subprocess.run")

    with pytest.raises(RuntimeError, match="not empty"):
        GitClient().clone("https://github.com/o/r", tmp_path)

    mock_run.assert_not_called()
