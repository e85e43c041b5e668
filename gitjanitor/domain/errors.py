"""
Failure taxonomy for gitjanitor.

Every repository gateway operation raises exactly one failure class once
its retries are exhausted. The classes are grouped by kind, and the kind
decides how far a failure reaches:

- StartupFailure: the working copy could not be prepared; the repository
  is skipped for this run.
- FetchFailure: branches or tags could not be listed; the repository's
  pass ends.
- MutationFailure: one branch's or tag's transition is abandoned.
- PushFailure: one entity's remote sync is abandoned.
- NotificationFailure: logged, nothing else.
"""

from typing import Optional


class GitJanitorError(Exception):
    """Base class for gateway failures."""

    def __init__(self, message: str, ref_name: Optional[str] = None):
        super().__init__(message)
        self.ref_name = ref_name


class GitCommandError(Exception):
    """A git command exited with a non-zero status. Retried by RetryExecutor."""

    def __init__(self, args, returncode: int, stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(
            f"'{' '.join(self.command)}' exited with {returncode}: {self.stderr}"
        )


class GitNotSetupError(RuntimeError):
    """A repository operation was called before setup()."""


# Startup

class StartupFailure(GitJanitorError):
    pass


class CloneFailure(StartupFailure):
    pass


class SetupFailure(StartupFailure):
    pass


class UpdateFailure(StartupFailure):
    pass


# Fetch

class FetchFailure(GitJanitorError):
    pass


class BranchFetchFailure(FetchFailure):
    pass


class TagFetchFailure(FetchFailure):
    pass


# Mutation

class MutationFailure(GitJanitorError):
    pass


class TagCreationFailure(MutationFailure):
    pass


class BranchDeletionFailure(MutationFailure):
    pass


class TagDeletionFailure(MutationFailure):
    pass


# Push

class PushFailure(GitJanitorError):
    pass


class PushBranchDeletionFailure(PushFailure):
    pass


class PushNewTagsFailure(PushFailure):
    pass


class PushTagDeletionFailure(PushFailure):
    pass


# Notification

class NotificationFailure(GitJanitorError):
    """The notification transport failed. Never escalated."""
