"""
Operation result domain objects for gitjanitor.

Records what the lifecycle engine decided and did for every branch and
tag of a repository, for logging summaries and JSONL output.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    DRY_RUN = "dry_run"


class LifecycleAction(Enum):
    """What the lifecycle policy decided for one ref."""
    NONE = "none"                    # Not old enough for anything
    EXCLUDED = "excluded"            # Branch listed in excluded_branches
    NOT_MANAGED = "not_managed"      # Tag name is not an archive tag
    WARN_ARCHIVAL = "warn_archival"
    ARCHIVE = "archive"
    WARN_DELETION = "warn_deletion"
    DELETE = "delete"


@dataclass
class RefOutcome:
    """
    What happened to a single branch or tag during a cleaning pass.
    """
    ref_name: str
    kind: str  # "branch" or "tag"
    action: LifecycleAction
    status: OperationStatus
    age_days: Optional[int] = None
    archive_tag: Optional[str] = None
    notified: Optional[bool] = None  # None when no notification was due
    pushed: Optional[bool] = None    # None when nothing needed pushing
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'kind': self.kind,
            'name': self.ref_name,
            'action': self.action.value,
            'status': self.status.value,
        }
        if self.age_days is not None:
            result['age_days'] = self.age_days
        if self.archive_tag:
            result['archive_tag'] = self.archive_tag
        if self.notified is not None:
            result['notified'] = self.notified
        if self.pushed is not None:
            result['pushed'] = self.pushed
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        return result


@dataclass
class RepoCleaningResult:
    """
    Summary of one repository's cleaning pass.

    ``fatal_error`` is set when the pass could not run at all (working copy
    preparation or ref listing failed); per-ref failures only bump
    ``failed``.
    """
    repo_id: str
    repo_dir: str = ""
    execution_time: int = 0
    dry_run: bool = False
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    push_failures: int = 0
    fatal_error: Optional[str] = None
    details: List[RefOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if the pass ran and nothing failed."""
        return self.fatal_error is None and self.failed == 0 and self.push_failures == 0

    @property
    def archived_branches(self) -> List[str]:
        return [
            d.ref_name for d in self.details
            if d.action == LifecycleAction.ARCHIVE and d.status == OperationStatus.SUCCESS
        ]

    @property
    def deleted_tags(self) -> List[str]:
        return [
            d.ref_name for d in self.details
            if d.action == LifecycleAction.DELETE and d.status == OperationStatus.SUCCESS
        ]

    def add_detail(self, detail: RefOutcome) -> None:
        """Add a ref outcome and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.ref_name}: {detail.error}")
        elif detail.status == OperationStatus.DRY_RUN:
            self.successful += 1  # Count dry-run as successful

    def record_push_failure(self, detail: RefOutcome, error: str) -> None:
        """Mark a ref whose local change could not be pushed."""
        detail.pushed = False
        detail.error = error
        self.push_failures += 1
        self.errors.append(f"{detail.ref_name}: {error}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'type': 'summary',
            'repo': self.repo_id,
            'directory': self.repo_dir,
            'execution_time': self.execution_time,
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'push_failures': self.push_failures,
            'archived_branches': self.archived_branches,
            'deleted_tags': self.deleted_tags,
            'dry_run': self.dry_run,
            'errors': self.errors,
        }
        if self.fatal_error:
            result['fatal_error'] = self.fatal_error
        return result
