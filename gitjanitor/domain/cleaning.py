"""
Per-repository cleaning settings for gitjanitor.

Built from configuration by ``gitjanitor.config.build_repo_infos`` and
consumed by the cleaning services as already-validated values.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple


@dataclass(frozen=True)
class ActionThresholds:
    """
    Day counts that drive the branch and tag lifecycles.

    A branch is archived ``stale_branch_days`` after its last commit. Its
    archive tag is deleted ``stale_tag_days`` after the archival. Owners
    are warned ``warn_before_days`` before either action.
    """
    stale_branch_days: int
    stale_tag_days: int
    warn_before_days: int

    @property
    def branch_warn_day(self) -> int:
        return self.stale_branch_days - self.warn_before_days

    @property
    def tag_delete_day(self) -> int:
        """Days after archival at which an archive tag is deleted."""
        return self.stale_branch_days + self.stale_tag_days

    @property
    def tag_warn_day(self) -> int:
        return self.tag_delete_day - self.warn_before_days

    def problems(self) -> List[str]:
        """
        Describe configurations where a warning can never be sent.

        Such settings are legal: the entity is acted on without a prior
        warning.

        Returns:
            List of human-readable problems (empty if none)
        """
        problems = []
        if self.warn_before_days >= self.stale_branch_days:
            problems.append(
                f"warn_before_days ({self.warn_before_days}) >= stale_branch_days "
                f"({self.stale_branch_days}): branches are archived without warning"
            )
        if self.warn_before_days >= self.stale_tag_days:
            problems.append(
                f"warn_before_days ({self.warn_before_days}) >= stale_tag_days "
                f"({self.stale_tag_days}): archive tags are deleted without warning"
            )
        return problems

    def to_dict(self):
        return {
            'stale_branch_inactivity_days': self.stale_branch_days,
            'stale_tag_days': self.stale_tag_days,
            'notification_before_action_days': self.warn_before_days,
        }


@dataclass(frozen=True)
class RepoCleaningInfo:
    """Everything needed to clean one repository."""
    repo_id: str
    repo_dir: str
    remote_uri: str
    thresholds: ActionThresholds
    excluded_branches: FrozenSet[str] = field(default_factory=frozenset)
    recipients: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        """Short display name derived from the remote URI."""
        tail = self.remote_uri.rstrip('/').rsplit('/', 1)[-1]
        if tail.endswith('.git'):
            tail = tail[:-4]
        return tail or self.repo_id

    def to_dict(self):
        return {
            'id': self.repo_id,
            'directory': self.repo_dir,
            'remote_uri': self.remote_uri,
            'excluded_branches': sorted(self.excluded_branches),
            'recipients': list(self.recipients),
            **self.thresholds.to_dict(),
        }
