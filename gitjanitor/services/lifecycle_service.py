"""
Lifecycle policy service for gitjanitor.

Drives one repository through a cleaning pass:

    branch:      active -> (pending archival notified) -> archived
    archive tag: archived -> (pending deletion notified) -> deleted

Every branch and tag is evaluated independently against a single
execution time fixed at construction. Local mutations for all refs happen
first; remote pushes follow, one per mutated ref, so nothing is pushed
before its local sequence fully succeeded.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ..domain.archive_tag import ArchiveTagName, try_decode, ARCHIVE_TAG_PATTERN
from ..domain.cleaning import ActionThresholds, RepoCleaningInfo
from ..domain.errors import (
    GitJanitorError,
    BranchFetchFailure,
    TagFetchFailure,
    TagCreationFailure,
    BranchDeletionFailure,
    TagDeletionFailure,
    PushBranchDeletionFailure,
    PushNewTagsFailure,
    PushTagDeletionFailure,
    NotificationFailure,
)
from ..domain.git import Branch, Tag
from ..domain.operation import (
    LifecycleAction,
    OperationStatus,
    RefOutcome,
    RepoCleaningResult,
)
from ..infra.git_client import GitClient
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


def days_since(execution_time: int, timestamp: int) -> int:
    """Whole days between ``timestamp`` and ``execution_time`` (floored)."""
    return (execution_time - timestamp) // SECONDS_PER_DAY


def classify_branch(age_days: int, thresholds: ActionThresholds) -> LifecycleAction:
    """
    Decide what to do with a branch whose last commit is ``age_days`` old.

    The warning day is checked first, so a warn day at or past the stale
    threshold means the branch is archived without a warning.
    """
    if age_days == thresholds.branch_warn_day:
        return LifecycleAction.WARN_ARCHIVAL
    if age_days >= thresholds.stale_branch_days:
        return LifecycleAction.ARCHIVE
    return LifecycleAction.NONE


def classify_tag(age_days: int, thresholds: ActionThresholds) -> LifecycleAction:
    """Decide what to do with an archive tag created ``age_days`` ago."""
    if age_days == thresholds.tag_warn_day:
        return LifecycleAction.WARN_DELETION
    if age_days >= thresholds.tag_delete_day:
        return LifecycleAction.DELETE
    return LifecycleAction.NONE


class LifecycleService:
    """
    Applies the branch and archive-tag lifecycle to one repository.

    The git client must already be set up on the repository's working
    copy. Nothing here retries: the client retries internally and raises a
    typed failure, and each failure is contained to the ref it concerns.

    Example:
        service = LifecycleService(git, notifications, execution_time=1685602801)
        result = service.clean_repo(info)
        print(f"Archived {result.archived_branches}")
    """

    def __init__(
        self,
        git: GitClient,
        notifications: NotificationService,
        execution_time: int,
        dry_run: bool = False,
    ):
        """
        Initialize LifecycleService.

        Args:
            git: Repository gateway bound to the working copy
            notifications: Notification service for owner messages
            execution_time: "Now" in epoch seconds, shared by every ref
            dry_run: Classify and log only, without mutating or notifying
        """
        if execution_time < 0:
            raise ValueError("execution_time must be >= 0")
        self.git = git
        self.notifications = notifications
        self.execution_time = execution_time
        self.dry_run = dry_run
        self.last_result: Optional[RepoCleaningResult] = None

    def clean_repo(self, info: RepoCleaningInfo) -> RepoCleaningResult:
        """
        Run one cleaning pass over a repository.

        Failing to list branches or tags ends the pass; every other failure
        is confined to a single ref.

        Args:
            info: Repository settings

        Returns:
            RepoCleaningResult describing every ref
        """
        result = RepoCleaningResult(
            repo_id=info.repo_id,
            repo_dir=info.repo_dir,
            execution_time=self.execution_time,
            dry_run=self.dry_run,
        )
        self.last_result = result

        try:
            logger.info("Getting branch list")
            branches = self.git.list_branches()
            logger.info("Getting tag list")
            tags = self.git.list_tags()
        except (BranchFetchFailure, TagFetchFailure) as e:
            logger.error(str(e))
            logger.error(f"Halting cleaning of {info.repo_id} due to failure to fetch refs")
            result.fatal_error = str(e)
            return result

        logger.info(f"Cleaning {len(branches)} branch(es)")
        archived: List[Tuple[Branch, RefOutcome]] = []
        for branch in branches:
            outcome = self._isolate(branch.name, 'branch', lambda: self._clean_branch(branch, info))
            result.add_detail(outcome)
            if outcome.action == LifecycleAction.ARCHIVE and outcome.status == OperationStatus.SUCCESS:
                archived.append((branch, outcome))

        logger.info(f"Cleaning {len(tags)} tag(s)")
        deleted: List[Tuple[Tag, RefOutcome]] = []
        for tag in tags:
            outcome = self._isolate(tag.name, 'tag', lambda: self._clean_tag(tag, info))
            result.add_detail(outcome)
            if outcome.action == LifecycleAction.DELETE and outcome.status == OperationStatus.SUCCESS:
                deleted.append((tag, outcome))

        logger.info("Finished cleaning")
        if not self.dry_run:
            self._push(archived, deleted, result)

        return result

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _clean_branch(self, branch: Branch, info: RepoCleaningInfo) -> RefOutcome:
        logger.info(f"Checking branch {branch.name}")

        if branch.name in info.excluded_branches:
            logger.info(f"Branch {branch.name} is one of excluded branches, skipping")
            return RefOutcome(branch.name, 'branch', LifecycleAction.EXCLUDED, OperationStatus.SKIPPED)

        if branch.latest is None:
            logger.warning(f"Branch {branch.name} has no commits, skipping")
            return RefOutcome(branch.name, 'branch', LifecycleAction.NONE, OperationStatus.SKIPPED)

        age = days_since(self.execution_time, branch.latest.timestamp)
        action = classify_branch(age, info.thresholds)
        outcome = RefOutcome(branch.name, 'branch', action, self._done_status(), age_days=age)

        if action == LifecycleAction.WARN_ARCHIVAL:
            logger.info(
                f"Has been {age} days since last commit to branch {branch.name}. "
                f"Notifying developer of pending archival"
            )
            if not self.dry_run:
                outcome.notified = self._notify(
                    lambda: self.notifications.notify_pending_archival(branch, info),
                    f"pending archival of branch {branch.name}",
                )

        elif action == LifecycleAction.ARCHIVE:
            logger.info(
                f"Has been {age} days since last commit to branch {branch.name}. Archiving branch"
            )
            self._archive_branch(branch, info, outcome)

        else:
            logger.info(f"Branch {branch.name} is {age} days old, nothing to do")
            outcome.status = OperationStatus.SKIPPED

        return outcome

    def _archive_branch(self, branch: Branch, info: RepoCleaningInfo, outcome: RefOutcome) -> None:
        """Create the archive tag, then delete the branch, undoing the tag if that fails."""
        archive_name = ArchiveTagName.for_branch(self.execution_time, branch.name)
        tag = Tag(name=archive_name.name, history=branch.history)
        outcome.archive_tag = tag.name

        if not ARCHIVE_TAG_PATTERN.fullmatch(tag.name):
            logger.warning(
                f"Archive tag {tag.name} does not follow the archive naming scheme "
                f"and will not be deleted automatically"
            )

        if self.dry_run:
            logger.info(f"Would archive branch {branch.name} as {tag.name}")
            return

        try:
            logger.info(f"Creating new archive tag {tag.name}")
            self.git.create_tag(tag)
        except TagCreationFailure as e:
            logger.warning(
                f"Failed to create archive tag {tag.name}, branch {branch.name} not archived: {e}"
            )
            outcome.status = OperationStatus.FAILED
            outcome.error = str(e)
            return

        try:
            logger.info(f"Deleting stale branch {branch.name}")
            self.git.delete_branch(branch)
        except BranchDeletionFailure as e:
            logger.warning(
                f"Failed to delete stale branch {branch.name}, branch not archived, "
                f"removing archive tag {tag.name}: {e}"
            )
            outcome.status = OperationStatus.FAILED
            outcome.error = str(e)
            self._remove_orphan_tag(tag)
            return

        outcome.notified = self._notify(
            lambda: self.notifications.notify_archival(branch, tag.name, info),
            f"archival of branch {branch.name}",
        )
        logger.info(f"Stale branch {branch.name} successfully archived as {tag.name}")

    def _remove_orphan_tag(self, tag: Tag) -> None:
        try:
            self.git.delete_tag(tag)
            logger.info(f"Archive tag {tag.name} successfully removed")
        except TagDeletionFailure as e:
            logger.warning(f"Failed to delete archive tag {tag.name}, tag is extraneous: {e}")

    # ------------------------------------------------------------------
    # Archive tags
    # ------------------------------------------------------------------

    def _clean_tag(self, tag: Tag, info: RepoCleaningInfo) -> RefOutcome:
        logger.info(f"Checking tag {tag.name}")

        decoded = try_decode(tag.name)
        if decoded is None:
            logger.info(f"Tag {tag.name} is not an archive tag, skipping")
            return RefOutcome(tag.name, 'tag', LifecycleAction.NOT_MANAGED, OperationStatus.SKIPPED)

        age = days_since(self.execution_time, decoded.epoch_seconds)
        action = classify_tag(age, info.thresholds)
        outcome = RefOutcome(tag.name, 'tag', action, self._done_status(), age_days=age)

        if action == LifecycleAction.WARN_DELETION:
            logger.info(
                f"Archive tag {tag.name} was created {age} days ago. "
                f"Notifying developer of pending deletion"
            )
            if not self.dry_run:
                outcome.notified = self._notify(
                    lambda: self.notifications.notify_pending_tag_deletion(tag, info),
                    f"pending deletion of archive tag {tag.name}",
                )

        elif action == LifecycleAction.DELETE:
            logger.info(f"Archive tag {tag.name} was created {age} days ago. Removing archive tag")
            self._delete_archive_tag(tag, info, outcome)

        else:
            logger.info(f"Tag {tag.name} is {age} days old, nothing to do")
            outcome.status = OperationStatus.SKIPPED

        return outcome

    def _delete_archive_tag(self, tag: Tag, info: RepoCleaningInfo, outcome: RefOutcome) -> None:
        if self.dry_run:
            logger.info(f"Would delete archive tag {tag.name}")
            return

        try:
            logger.info(f"Deleting archive tag {tag.name}")
            self.git.delete_tag(tag)
        except TagDeletionFailure as e:
            logger.warning(f"Unable to delete archive tag {tag.name} because {e}")
            outcome.status = OperationStatus.FAILED
            outcome.error = str(e)
            return

        outcome.notified = self._notify(
            lambda: self.notifications.notify_tag_deletion(tag, info),
            f"deletion of archive tag {tag.name}",
        )
        logger.info(f"Archive tag {tag.name} successfully deleted")

    # ------------------------------------------------------------------
    # Remote sync
    # ------------------------------------------------------------------

    def _push(
        self,
        archived: List[Tuple[Branch, RefOutcome]],
        deleted: List[Tuple[Tag, RefOutcome]],
        result: RepoCleaningResult,
    ) -> None:
        """Push every confirmed local change; one failed push never stops the others."""
        if not archived and not deleted:
            logger.info("Nothing to push to remote")
            return

        logger.info("Beginning updating remote")

        if archived:
            # Archive tags go up before the branches they replace disappear
            try:
                logger.info("Pushing newly created tags to remote")
                self.git.push_new_tags()
                for _, outcome in archived:
                    outcome.pushed = True
            except PushNewTagsFailure as e:
                tag_names = ', '.join(outcome.archive_tag for _, outcome in archived)
                logger.warning(
                    f"{e}. Archive tag(s) {tag_names} exist only locally while the archived "
                    f"branches are still removed from the remote; push them again with "
                    "'git push --tags'"
                )
                for _, outcome in archived:
                    result.record_push_failure(outcome, str(e))

        for branch, outcome in archived:
            try:
                logger.info(f"Removing stale branch {branch.name} from remote")
                self.git.push_delete_branch(branch)
                if outcome.pushed is None:
                    outcome.pushed = True
            except PushBranchDeletionFailure as e:
                logger.warning(str(e))
                result.record_push_failure(outcome, str(e))

        for tag, outcome in deleted:
            try:
                logger.info(f"Removing archive tag {tag.name} from remote")
                self.git.push_delete_tag(tag)
                outcome.pushed = True
            except PushTagDeletionFailure as e:
                logger.warning(str(e))
                result.record_push_failure(outcome, str(e))

        logger.info("Finished updating remote")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _done_status(self) -> OperationStatus:
        return OperationStatus.DRY_RUN if self.dry_run else OperationStatus.SUCCESS

    def _notify(self, send: Callable[[], List[str]], description: str) -> bool:
        """Best-effort notification. Returns whether it was sent."""
        try:
            recipients = send()
        except NotificationFailure as e:
            logger.warning(f"Failed to notify of {description} because {e}")
            return False
        if not recipients:
            logger.info(f"Email disabled, nobody notified of {description}")
            return False
        logger.info(f"Notified {', '.join(recipients)} of {description}")
        return True

    def _isolate(self, name: str, kind: str, clean: Callable[[], RefOutcome]) -> RefOutcome:
        """Run one ref's evaluation, containing any unhandled gateway failure to that ref."""
        try:
            return clean()
        except GitJanitorError as e:
            logger.warning(f"Failed to process {kind} {name}: {e}")
            return RefOutcome(
                name, kind, LifecycleAction.NONE, OperationStatus.FAILED, error=str(e)
            )
