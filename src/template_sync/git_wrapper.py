import base64
import logging
import os
import subprocess
from collections.abc import Iterable
from pathlib import Path

from .constants import APP_NAME, DEFAULT_GIT_TIMEOUT
from .credentials import Credentials, redact

logger = logging.getLogger(APP_NAME)


def _execute(
    args: list[str],
    cwd: Path,
    capture: bool = True,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    secrets: Iterable[str] = (),
) -> str:
    """Runs a git command and normalizes its failures into ``RuntimeError``.

    Args:
        args (list[str]): Arguments passed to the git executable.
        cwd (Path): Working directory of the subprocess.
        capture (bool, optional): Whether to capture and return stdout.
        env (dict[str, str] | None, optional): Variables layered on top of the
                                               current environment.
        timeout (float | None, optional): Seconds before the command is killed.
        secrets (Iterable[str], optional): Values masked out of error messages.

    Returns:
        str: The stripped stdout if ``capture`` is True, otherwise "".

    Raises:
        RuntimeError: If git exits non-zero or exceeds the timeout.
    """
    full_env = os.environ.copy()
    full_env["GIT_TERMINAL_PROMPT"] = "0"
    if env:
        full_env.update(env)

    try:
        res = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=capture,
            text=True,
            check=True,
            env=full_env,
            timeout=timeout,
        )
        return res.stdout.strip() if capture else ""
    except subprocess.TimeoutExpired as e:
        raise RuntimeError(f"Git {args[0]} timed out after {timeout}s") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
        raise RuntimeError(f"Git error: {redact(detail, secrets)}") from e


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    This class provides the plumbing the sync workflow needs (staging, tree and
    commit creation, ref updates, pushing) using `subprocess`. Error messages
    never contain the configured secrets.

    Attributes:
        path (Path): The file system path to the repository root.
        timeout (float | None): Per-command timeout in seconds.
    """

    def __init__(
        self,
        path: Path,
        secrets: Iterable[str] = (),
        timeout: float | None = DEFAULT_GIT_TIMEOUT,
    ):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            secrets (Iterable[str], optional): Values to redact from errors.
            timeout (float | None, optional): Per-command timeout in seconds.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        self.timeout = timeout
        self._secrets = tuple(secrets)
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(
        self, args: list[str], capture: bool = True, env: dict | None = None
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.
            env (Optional[dict], optional): Extra environment variables for the
                                            subprocess. Defaults to None.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            RuntimeError: If the git command fails or times out.
        """
        return _execute(
            args,
            cwd=self.path,
            capture=capture,
            env=env,
            timeout=self.timeout,
            secrets=self._secrets,
        )

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "."], capture=False)

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'HEAD^{tree}').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", rev])
        except Exception as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def write_tree(self) -> str:
        """Creates a tree object from the current index.

        Returns:
            str: The SHA-1 hash of the created tree object.
        """
        return self._run(["write-tree"])

    def commit_tree(
        self, tree: str, parents: list[str], message: str, env: dict | None = None
    ) -> str:
        """Creates a commit object from a tree object.

        Args:
            tree (str): The tree SHA-1 to commit.
            parents (list[str]): A list of parent commit SHA-1s.
            message (str): The commit message.
            env (Optional[dict], optional): Environment variables to
                                            pass to the subprocess, typically
                                            the author/committer identity.

        Returns:
            str: The SHA-1 hash of the new commit.
        """
        cmd = ["commit-tree", tree, "-m", message]
        for p in parents:
            cmd.extend(["-p", p])
        try:
            return self._run(cmd, env=env)
        except Exception as e:
            logger.warning(f"Failed to commit tree {tree}: {e}")
            raise

    def update_ref(self, ref: str, new_oid: str) -> None:
        """Points a reference at a new object ID, recording a reflog entry.

        Args:
            ref (str): The reference to update (e.g., 'refs/heads/my_branch').
            new_oid (str): The new SHA-1 hash.
        """
        cmd = ["update-ref", "-m", "template-sync", ref, new_oid]
        try:
            self._run(cmd)
        except Exception as e:
            logger.warning(f"Failed to update ref {ref}: {e}")
            raise

    def remote_url(self, name: str) -> str:
        """Returns the configured URL of a remote.

        Args:
            name (str): The remote name (e.g., 'origin').

        Returns:
            str: The remote URL, possibly carrying embedded user-info.
        """
        return self._run(["remote", "get-url", name])

    def push(
        self, remote: str, refspec: str, credentials: Credentials | None = None
    ) -> None:
        """Pushes a refspec to a remote, optionally with explicit credentials.

        Credentials are sent as an HTTP basic authorization header for this
        single connection. They are passed through the environment
        (``GIT_CONFIG_COUNT``) so they never appear on the command line.

        Args:
            remote (str): The remote name.
            refspec (str): The refspec to push (e.g., 'refs/heads/b:refs/heads/b').
            credentials (Credentials | None, optional): Per-connection credentials.
        """
        env: dict[str, str] = {}
        if credentials is not None:
            raw = f"{credentials.username}:{credentials.password}".encode()
            header = base64.b64encode(raw).decode("ascii")
            env = {
                "GIT_CONFIG_COUNT": "1",
                "GIT_CONFIG_KEY_0": "http.extraHeader",
                "GIT_CONFIG_VALUE_0": f"Authorization: Basic {header}",
            }
        self._run(["push", remote, refspec], env=env)


class GitClient:
    """Clone capability shared (read-only) by every repository worker.

    Attributes:
        timeout (float | None): Timeout in seconds applied to every git command,
                                including those of the repositories it clones.
    """

    def __init__(
        self, secrets: Iterable[str] = (), timeout: float | None = DEFAULT_GIT_TIMEOUT
    ):
        self.timeout = timeout
        self._secrets = tuple(s for s in secrets if s)

    def clone(self, url: str, destination: Path) -> GitRepo:
        """Clones the default branch of ``url`` into ``destination``.

        Args:
            url (str): The repository URL (may carry an embedded token).
            destination (Path): An existing, empty directory.

        Returns:
            GitRepo: A handle on the populated working tree.

        Raises:
            RuntimeError: If the destination is not empty or git fails.
        """
        if destination.exists() and any(destination.iterdir()):
            raise RuntimeError(f"Clone destination is not empty: {destination}")

        _execute(
            ["clone", "--quiet", "--", url, str(destination)],
            cwd=destination.parent,
            timeout=self.timeout,
            secrets=self._secrets,
        )
        return GitRepo(destination, secrets=self._secrets, timeout=self.timeout)
