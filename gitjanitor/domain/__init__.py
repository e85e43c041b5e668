"""
Domain layer for gitjanitor.

Contains pure domain objects with no I/O or side effects:
- Commit, Branch, Tag: snapshots of git refs and their history
- ArchiveTagName: the decoded archive tag naming grammar
- ActionThresholds, RepoCleaningInfo: per-repository cleaning settings
- RefOutcome, RepoCleaningResult: what a cleaning pass did

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .git import Commit, Branch, Tag
from .archive_tag import ArchiveTagName, encode, try_decode, is_archive_tag
from .cleaning import ActionThresholds, RepoCleaningInfo
from .operation import OperationStatus, LifecycleAction, RefOutcome, RepoCleaningResult

__all__ = [
    'Commit',
    'Branch',
    'Tag',
    'ArchiveTagName',
    'encode',
    'try_decode',
    'is_archive_tag',
    'ActionThresholds',
    'RepoCleaningInfo',
    'OperationStatus',
    'LifecycleAction',
    'RefOutcome',
    'RepoCleaningResult',
]
