"""
Git client infrastructure for gitjanitor.

Provides the repository operations the lifecycle engine needs on top of
the git command line:
- Easy to mock for testing
- Every call retried through RetryExecutor
- Failures surface as one typed GitJanitorError per operation

A GitClient owns one working copy at a time (bound by ``setup``) and must
not be shared between threads.
"""

import base64
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple

from ..domain.git import Branch, Commit, Tag
from ..domain.errors import (
    GitCommandError,
    GitNotSetupError,
    CloneFailure,
    SetupFailure,
    UpdateFailure,
    BranchFetchFailure,
    TagFetchFailure,
    TagCreationFailure,
    BranchDeletionFailure,
    TagDeletionFailure,
    PushBranchDeletionFailure,
    PushNewTagsFailure,
    PushTagDeletionFailure,
)
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

_LOG_FORMAT = "--format=%H%x09%at%x09%ae"


@dataclass(frozen=True)
class GitCredentials:
    """Username/password (or token) used for HTTPS remotes."""
    username: str
    password: str

    def auth_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return f"Authorization: Basic {token}"

    def __repr__(self) -> str:
        return f"GitCredentials(username={self.username!r}, password='***')"


class GitClient:
    """
    Repository gateway backed by the git CLI.

    Example:
        client = GitClient(credentials=creds, retries=3)
        if not client.is_git_repo(repo_dir):
            client.clone(repo_dir, remote_uri)
        client.setup(repo_dir)
        client.update(repo_dir)
        for branch in client.list_branches():
            print(branch.name, branch.latest.timestamp)
    """

    def __init__(
        self,
        credentials: Optional[GitCredentials] = None,
        retries: int = 3,
        retry_delay: float = 0.0,
        timeout: int = 120,
        remote: str = "origin",
        retry: Optional[RetryExecutor] = None,
    ):
        """
        Initialize GitClient.

        Args:
            credentials: HTTPS credentials for network commands (optional)
            retries: Attempts per operation before giving up
            retry_delay: Base backoff delay between attempts in seconds
            timeout: Timeout for a single git command in seconds
            remote: Name of the remote to sync with
            retry: RetryExecutor to use instead of building one
        """
        self.credentials = credentials
        self.timeout = timeout
        self.remote = remote
        self.retry = retry or RetryExecutor(retries=retries, base_delay=retry_delay)
        self.repo_dir: Optional[str] = None

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def _run(self, args: Sequence[str], cwd: Optional[str] = None, network: bool = False) -> str:
        """
        Run a git command and return its stdout.

        Args:
            args: Arguments after ``git``
            cwd: Working directory (defaults to the bound repository)
            network: Command talks to the remote and needs credentials

        Raises:
            GitCommandError: On non-zero exit
        """
        cmd = ['git']
        if network and self.credentials:
            cmd += ['-c', f'http.extraHeader={self.credentials.auth_header()}']
        cmd += list(args)

        env = dict(os.environ)
        env['GIT_TERMINAL_PROMPT'] = '0'

        logger.debug(f"Running git {' '.join(args)}")
        result = subprocess.run(
            cmd,
            cwd=cwd or self._require_repo(),
            capture_output=True,
            text=True,
            timeout=self.timeout,
            env=env,
        )
        if result.returncode != 0:
            # Report args only, the credential header stays out of messages
            raise GitCommandError(['git', *args], result.returncode, result.stderr)
        return result.stdout

    def _require_repo(self) -> str:
        if self.repo_dir is None:
            raise GitNotSetupError("Git not set up, call setup() first")
        return self.repo_dir

    # ------------------------------------------------------------------
    # Working copy lifecycle
    # ------------------------------------------------------------------

    def is_git_repo(self, path: str) -> bool:
        """Check if path is a git repository."""
        git_dir = Path(path) / ".git"
        return git_dir.exists()

    def clone(self, repo_dir: str, remote_uri: str) -> None:
        """
        Clone ``remote_uri`` into ``repo_dir``.

        Raises:
            CloneFailure: If the directory already has contents or the
                clone keeps failing
        """
        path = Path(repo_dir).expanduser()
        try:
            occupied = path.exists() and any(path.iterdir())
        except OSError as e:
            raise CloneFailure(f"Cannot clone repo to directory '{repo_dir}': {e}") from e
        if occupied:
            raise CloneFailure(
                f"Cannot clone repo to directory '{repo_dir}' as it already exists with contents"
            )

        def attempt():
            path.parent.mkdir(parents=True, exist_ok=True)
            self._run(
                ['clone', '--quiet', '--origin', self.remote, remote_uri, str(path)],
                cwd=str(path.parent),
                network=True,
            )

        self.retry.run(attempt, CloneFailure, f"clone {remote_uri} into {repo_dir}")

    def setup(self, repo_dir: str) -> None:
        """
        Bind this client to an existing working copy.

        Raises:
            SetupFailure: If ``repo_dir`` is not a usable git repository
        """
        path = str(Path(repo_dir).expanduser())
        if not self.is_git_repo(path):
            raise SetupFailure(f"'{repo_dir}' is not a git repository")

        self.retry.run(
            lambda: self._run(['rev-parse', '--git-dir'], cwd=path),
            SetupFailure,
            f"open repository at {repo_dir}",
        )
        self.repo_dir = path

    def update(self, repo_dir: str) -> None:
        """
        Bring local branches in line with the remote.

        Local branches missing on the remote are deleted, remote branches
        missing locally are created, and the rest are moved to the remote
        position. Each attempt starts over from freshly fetched state, so a
        retry never builds on a half-applied previous attempt.

        Raises:
            UpdateFailure: If fetching or reconciling keeps failing
        """
        path = str(Path(repo_dir).expanduser())
        if self.repo_dir != path:
            self.setup(path)

        self.retry.run(self._reconcile, UpdateFailure, f"update local repo {repo_dir}")

    def _reconcile(self) -> None:
        self._run(['fetch', '--quiet', '--prune', '--tags', self.remote], network=True)

        remote_branches = self._remote_branch_names()
        local_branches = set(self._local_branch_names())
        if not remote_branches and not local_branches:
            return

        # Detach so every local branch can be moved or deleted
        if self._has_head():
            self._run(['checkout', '--quiet', '--detach'])

        for name in sorted(local_branches - set(remote_branches)):
            logger.debug(f"Deleting local-only branch {name}")
            self._run(['branch', '--quiet', '-D', name])

        for name in remote_branches:
            remote_ref = f'refs/remotes/{self.remote}/{name}'
            if name not in local_branches:
                logger.debug(f"Creating local branch {name} from {remote_ref}")
                self._run(['branch', '--quiet', '--track', name, remote_ref])
                continue

            local_sha = self._rev_parse(f'refs/heads/{name}')
            remote_sha = self._rev_parse(remote_ref)
            if local_sha == remote_sha:
                continue
            if not self._is_ancestor(local_sha, remote_sha):
                logger.warning(f"Local branch {name} diverged from {remote_ref}, resetting to remote")
            self._run(['branch', '--quiet', '-f', name, remote_ref])

        trunk = self._trunk_branch(remote_branches)
        if trunk:
            self._run(['checkout', '--quiet', '--force', trunk])

    # ------------------------------------------------------------------
    # Ref listing
    # ------------------------------------------------------------------

    def list_branches(self) -> List[Branch]:
        """
        List local branches with their full history.

        Raises:
            BranchFetchFailure: If listing keeps failing
        """
        def attempt():
            return [
                Branch(name=name, history=self._history(f'refs/heads/{name}'))
                for name in self._local_branch_names()
            ]

        return self.retry.run(attempt, BranchFetchFailure, "get branch list")

    def list_tags(self) -> List[Tag]:
        """
        List tags that point (directly or via an annotated tag) at commits.

        Raises:
            TagFetchFailure: If listing keeps failing
        """
        def attempt():
            output = self._run([
                'for-each-ref',
                '--format=%(refname:strip=2)%09%(objecttype)%09%(*objecttype)',
                'refs/tags',
            ])
            tags = []
            for line in output.splitlines():
                if not line.strip():
                    continue
                name, object_type, peeled_type = (line.split('\t') + ['', ''])[:3]
                if 'commit' not in (object_type, peeled_type):
                    logger.debug(f"Tag {name} does not point at a commit, ignoring")
                    continue
                tags.append(Tag(name=name, history=self._history(f'refs/tags/{name}')))
            return tags

        return self.retry.run(attempt, TagFetchFailure, "get tag list")

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def create_tag(self, tag: Tag) -> None:
        """
        Create a lightweight tag at ``tag.history[0]``.

        The tag's history must be exactly the repository's ancestry of that
        commit.

        Raises:
            TagCreationFailure: On history mismatch or repeated git failure
        """
        if not tag.history:
            raise ValueError("Tag must have commits with contents")

        target = tag.history[0].id

        def attempt():
            existing = self._resolve(f'refs/tags/{tag.name}^{{commit}}')
            if existing is not None:
                if existing == target:
                    return
                raise TagCreationFailure(
                    f"Tag {tag.name} already exists at {existing[:12]}", ref_name=tag.name
                )

            actual = self._history(target)
            if tuple(actual) != tuple(tag.history):
                raise TagCreationFailure(
                    f"Tag {tag.name} commits must match the full commit history of {target[:12]}",
                    ref_name=tag.name,
                )
            self._run(['tag', tag.name, target])

        self.retry.run(attempt, TagCreationFailure, f"set tag {tag.name}", ref_name=tag.name)

    def delete_branch(self, branch: Branch) -> None:
        """
        Force-delete a local branch, detaching HEAD first if it is checked out.

        Raises:
            BranchDeletionFailure: If deletion keeps failing
        """
        def attempt():
            if self._current_branch() == branch.name:
                self._run(['checkout', '--quiet', '--detach'])
            self._run(['branch', '--quiet', '-D', branch.name])

        self.retry.run(attempt, BranchDeletionFailure, f"delete branch {branch.name}",
                       ref_name=branch.name)

    def delete_tag(self, tag: Tag) -> None:
        """
        Delete a local tag.

        Raises:
            TagDeletionFailure: If deletion keeps failing
        """
        self.retry.run(
            lambda: self._run(['tag', '-d', tag.name]),
            TagDeletionFailure,
            f"delete tag {tag.name}",
            ref_name=tag.name,
        )

    # ------------------------------------------------------------------
    # Remote sync
    # ------------------------------------------------------------------

    def push_delete_branch(self, branch: Branch) -> None:
        """
        Delete ``branch`` on the remote.

        Raises:
            PushBranchDeletionFailure: If the push keeps failing
        """
        self.retry.run(
            lambda: self._run(
                ['push', '--quiet', self.remote, f':refs/heads/{branch.name}'], network=True
            ),
            PushBranchDeletionFailure,
            f"push deletion of branch {branch.name}",
            ref_name=branch.name,
        )

    def push_new_tags(self) -> None:
        """
        Push all local tags to the remote.

        Raises:
            PushNewTagsFailure: If the push keeps failing
        """
        def attempt():
            if not self._run(['tag', '--list']).strip():
                return
            self._run(['push', '--quiet', self.remote, '--tags'], network=True)

        self.retry.run(attempt, PushNewTagsFailure, "push new tags to remote")

    def push_delete_tag(self, tag: Tag) -> None:
        """
        Delete ``tag`` on the remote.

        Raises:
            PushTagDeletionFailure: If the push keeps failing
        """
        self.retry.run(
            lambda: self._run(
                ['push', '--quiet', self.remote, f':refs/tags/{tag.name}'], network=True
            ),
            PushTagDeletionFailure,
            f"push deletion of tag {tag.name} to remote",
            ref_name=tag.name,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _history(self, rev: str) -> Tuple[Commit, ...]:
        """Full ancestry of ``rev``, most recent first."""
        output = self._run(['log', '--no-color', _LOG_FORMAT, rev, '--'])
        commits = []
        for line in output.splitlines():
            parts = line.split('\t', 2)
            if len(parts) < 3:
                continue
            commit_id, timestamp, email = parts
            commits.append(Commit(id=commit_id, timestamp=int(timestamp), author_email=email))
        return tuple(commits)

    def _local_branch_names(self) -> List[str]:
        output = self._run(['for-each-ref', '--format=%(refname:strip=2)', 'refs/heads'])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def _remote_branch_names(self) -> List[str]:
        output = self._run([
            'for-each-ref', '--format=%(refname:strip=3)', f'refs/remotes/{self.remote}'
        ])
        return [
            line.strip() for line in output.splitlines()
            if line.strip() and line.strip() != 'HEAD'
        ]

    def _resolve(self, rev: str) -> Optional[str]:
        """Object id of ``rev`` or None if it does not resolve."""
        try:
            output = self._run(['rev-parse', '--verify', '--quiet', rev])
        except GitCommandError:
            return None
        return output.strip() or None

    def _rev_parse(self, rev: str) -> str:
        return self._run(['rev-parse', rev]).strip()

    def _has_head(self) -> bool:
        return self._resolve('HEAD') is not None

    def _is_ancestor(self, ancestor: str, descendant: str) -> bool:
        try:
            self._run(['merge-base', '--is-ancestor', ancestor, descendant])
        except GitCommandError:
            return False
        return True

    def _current_branch(self) -> Optional[str]:
        """Checked-out branch name, or None when HEAD is detached."""
        try:
            output = self._run(['symbolic-ref', '--quiet', '--short', 'HEAD'])
        except GitCommandError:
            return None
        return output.strip() or None

    def _trunk_branch(self, remote_branches: List[str]) -> Optional[str]:
        """The remote's default branch, falling back to main/master."""
        try:
            output = self._run([
                'symbolic-ref', '--quiet', '--short', f'refs/remotes/{self.remote}/HEAD'
            ])
            head = output.strip()
            prefix = f'{self.remote}/'
            if head.startswith(prefix) and head[len(prefix):] in remote_branches:
                return head[len(prefix):]
        except GitCommandError:
            pass

        available: Set[str] = set(remote_branches)
        for candidate in ('main', 'master'):
            if candidate in available:
                return candidate
        return sorted(available)[0] if available else None
