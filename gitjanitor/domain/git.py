"""
Git reference domain objects for gitjanitor.

Snapshots of branches and tags as the git client reports them. A ref's
history is its full ancestry ordered from the most recent commit to the
oldest, which is what staleness is computed from and what an archive tag
must point through.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Commit:
    """A commit as seen by the lifecycle engine."""
    id: str
    timestamp: int  # author time, seconds since epoch
    author_email: str

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'author_email': self.author_email,
        }


@dataclass(frozen=True)
class Ref:
    name: str
    history: Tuple[Commit, ...] = ()

    @property
    def latest(self) -> Optional[Commit]:
        """Most recent commit reachable from the ref."""
        return self.history[0] if self.history else None

    @property
    def latest_author(self) -> Optional[str]:
        """Author email of the most recent commit."""
        latest = self.latest
        return latest.author_email if latest else None


@dataclass(frozen=True)
class Branch(Ref):
    """A local branch and its full commit ancestry."""


@dataclass(frozen=True)
class Tag(Ref):
    """A tag and the full commit ancestry of the commit it points to."""
