"""Tests for workspace allocation, cleanup and cloning."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from template_sync import workspace
from template_sync.exceptions import CloneError


def test_acquire_yields_empty_directory_and_removes_it() -> None:
    """Verifies the scoped lifetime of a workspace on the success path."""
    with workspace.acquire() as ws:
        root = ws.root
        assert root.is_dir()
        assert list(root.iterdir()) == []
        assert root.name.startswith("repo_")
        (root / "nested").mkdir()
        (root / "nested" / "file.txt").write_text("data")

    assert not root.exists()


def test_acquire_removes_directory_on_exception() -> None:
    """Verifies that a failure inside the scope still releases the workspace."""
    captured: list[Path] = []

    with pytest.raises(RuntimeError, match="boom"):
        with workspace.acquire() as ws:
            captured.append(ws.root)
            (ws.root / "file.txt").write_text("data")
            raise RuntimeError("boom")

    assert not captured[0].exists()


def test_acquire_allocates_unique_directories() -> None:
    """Verifies that concurrent workspaces never share a directory."""
    with workspace.acquire() as first, workspace.acquire() as second:
        assert first.root != second.root


def test_clone_attaches_repo(tmp_path: Path) -> None:
    """Verifies that a successful clone is recorded on the workspace."""
    client = MagicMock()
    ws = workspace.Workspace(tmp_path)

    repo = workspace.clone(ws, "https://github.com/o/r", client)

    client.clone.assert_called_once_with("https://github.com/o/r", tmp_path)
    assert repo is client.clone.return_value
    assert ws.repo is repo


def test_clone_failure_raises_clone_error_without_token(tmp_path: Path) -> None:
    """Verifies that clone failures are typed and never leak the token."""
    client = MagicMock()
    client.clone.side_effect = RuntimeError("Git error: Authentication failed")
    ws = workspace.Workspace(tmp_path)

    with pytest.raises(CloneError) as excinfo:
        workspace.clone(ws, "https://TOK:@github.com/o/r", client)

    assert "TOK" not in str(excinfo.value)
    assert "https://***@github.com/o/r" in str(excinfo.value)
    assert excinfo.value.stage == "clone"
    assert ws.repo is None
