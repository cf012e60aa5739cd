import logging
from dataclasses import dataclass

from .config import IdentityConfig
from .constants import APP_NAME, DEFAULT_REMOTE
from .credentials import Credentials, credentials_from_url
from .exceptions import CommitError, PushError
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a successful sync commit.

    Attributes:
        branch (str): The branch the commit was pushed to.
        message (str): The commit message.
        commit (str): The SHA-1 of the new commit.
    """

    branch: str
    message: str
    commit: str


def identity_env(identity: IdentityConfig) -> dict[str, str]:
    """Builds the environment that pins author and committer of a commit."""
    return {
        "GIT_AUTHOR_NAME": identity.name,
        "GIT_AUTHOR_EMAIL": identity.email,
        "GIT_COMMITTER_NAME": identity.name,
        "GIT_COMMITTER_EMAIL": identity.email,
    }


def push_branch(
    repo: GitRepo,
    ref: str,
    remote: str = DEFAULT_REMOTE,
    credentials: Credentials | None = None,
) -> None:
    """Pushes a local ref to the identically named ref on a remote.

    When no credentials are given they are resolved from the user-info of the
    remote's URL (empty password when only a user name is embedded).

    Args:
        repo (GitRepo): The repository to push from.
        ref (str): The fully qualified ref (e.g., 'refs/heads/my_branch').
        remote (str, optional): The remote name. Defaults to 'origin'.
        credentials (Credentials | None, optional): Explicit credentials.

    Raises:
        PushError: On authentication rejection, non-fast-forward rejection,
                   network failure or timeout.
    """
    if credentials is None:
        try:
            credentials = credentials_from_url(repo.remote_url(remote))
        except RuntimeError as e:
            raise PushError(f"Cannot resolve remote '{remote}': {e}") from e

    try:
        repo.push(remote, f"{ref}:{ref}", credentials)
    except RuntimeError as e:
        raise PushError(f"Failed to push {ref} to {remote}: {e}") from e

    logger.info(f"Pushed {ref} to {remote}")


def commit_and_push(
    repo: GitRepo,
    branch: str,
    message: str,
    *,
    identity: IdentityConfig | None = None,
    remote: str = DEFAULT_REMOTE,
    credentials: Credentials | None = None,
) -> CommitResult | None:
    """Stages the workspace, commits it on top of HEAD and pushes the branch.

    Steps:
    1. Stages every change in the working tree.
    2. Writes a tree and commits it with HEAD as the sole parent, then points
       ``refs/heads/<branch>`` at the new commit.
    3. Pushes the branch to the identically named remote ref.

    A staged tree identical to HEAD's tree is a successful no-op: nothing is
    committed or pushed.

    Args:
        repo (GitRepo): The cloned repository.
        branch (str): The branch that receives the commit.
        message (str): The commit message.
        identity (IdentityConfig | None, optional): Author/committer identity.
        remote (str, optional): The remote to push to. Defaults to 'origin'.
        credentials (Credentials | None, optional): Explicit push credentials.

    Returns:
        CommitResult | None: The pushed commit, or None if nothing changed.

    Raises:
        CommitError: If staging fails, HEAD cannot be resolved, or the commit
                     cannot be created.
        PushError: If the push fails.
    """
    identity = identity or IdentityConfig()
    ref = f"refs/heads/{branch}"

    # 1. Stage.
    try:
        repo.add_all()
        tree_oid = repo.write_tree()
    except RuntimeError as e:
        raise CommitError(f"Failed to stage changes: {e}") from e

    # 2. Commit on top of the current tip.
    parent = repo.rev_parse("HEAD")
    if not parent:
        raise CommitError("No branch tip to commit on top of (empty repository?)")

    if repo.rev_parse(f"{parent}^{{tree}}") == tree_oid:
        logger.info("Nothing staged: repository already has every template file.")
        return None

    try:
        commit_oid = repo.commit_tree(
            tree_oid, [parent], message, env=identity_env(identity)
        )
        repo.update_ref(ref, commit_oid)
    except RuntimeError as e:
        raise CommitError(f"Failed to commit to {ref}: {e}") from e

    logger.info(f"Committed {commit_oid[:12]} to {ref}")

    # 3. Push.
    push_branch(repo, ref, remote, credentials)

    return CommitResult(branch=branch, message=message, commit=commit_oid)
