"""
Tests for the branch/tag lifecycle engine.

Tests cover:
- classify_branch / classify_tag threshold rules
- Branch pass: warning day, archival, exclusion, compensation, isolation
- Tag pass: archive tag selection, warning day, deletion
- Remote synchronization after local changes
- Dry run
"""

import logging
from unittest.mock import MagicMock, call

import pytest

from gitjanitor.domain.archive_tag import encode
from gitjanitor.domain.cleaning import ActionThresholds, RepoCleaningInfo
from gitjanitor.domain.errors import (
    BranchDeletionFailure,
    BranchFetchFailure,
    NotificationFailure,
    PushBranchDeletionFailure,
    PushNewTagsFailure,
    PushTagDeletionFailure,
    TagCreationFailure,
    TagDeletionFailure,
    TagFetchFailure,
)
from gitjanitor.domain.git import Branch, Commit, Tag
from gitjanitor.domain.operation import LifecycleAction, OperationStatus
from gitjanitor.infra.email_client import EmailClient
from gitjanitor.infra.git_client import GitClient
from gitjanitor.services.lifecycle_service import (
    LifecycleService,
    classify_branch,
    classify_tag,
    days_since,
)
from gitjanitor.services.notification_service import NotificationService

DAY = 86400
NOW = 1685602801  # 2023-06-01T07:00:01Z
JUNE_FIRST = 1685577601  # 2023-06-01T00:00:01Z
THRESHOLDS = ActionThresholds(stale_branch_days=60, stale_tag_days=30, warn_before_days=7)
LOGGER = "gitjanitor.services.lifecycle_service"


def make_branch(name, age_days, author="dev@example.com", now=NOW):
    history = (
        Commit(id=f"{name}-head", timestamp=now - age_days * DAY, author_email=author),
        Commit(id=f"{name}-root", timestamp=now - (age_days + 10) * DAY, author_email="old@example.com"),
    )
    return Branch(name=name, history=history)


def make_archive_tag(branch_name, age_days, author="dev@example.com"):
    name = encode(JUNE_FIRST - age_days * DAY, branch_name)
    history = (Commit(id=f"{branch_name}-head", timestamp=NOW - 400 * DAY, author_email=author),)
    return Tag(name=name, history=history)


def warnings(caplog):
    return [r for r in caplog.records if r.name == LOGGER and r.levelno == logging.WARNING]


@pytest.fixture
def info():
    return RepoCleaningInfo(
        repo_id="https://example.com/org/repo.git",
        repo_dir="/tmp/repo",
        remote_uri="https://example.com/org/repo.git",
        thresholds=THRESHOLDS,
        excluded_branches=frozenset({"main"}),
    )


@pytest.fixture
def git():
    """Create a mock git client with an empty repository."""
    client = MagicMock(spec=GitClient)
    client.list_branches.return_value = []
    client.list_tags.return_value = []
    return client


@pytest.fixture
def email():
    client = MagicMock(spec=EmailClient)
    client.notify.return_value = True
    return client


@pytest.fixture
def service(git, email):
    return LifecycleService(git, NotificationService(email), execution_time=NOW)


class TestClassification:
    """Tests for the pure threshold rules."""

    def test_days_since_floors(self):
        assert days_since(NOW, NOW) == 0
        assert days_since(NOW, NOW - DAY + 1) == 0
        assert days_since(NOW, NOW - DAY) == 1
        assert days_since(NOW, NOW - 60 * DAY - 5) == 60

    @pytest.mark.parametrize("age,expected", [
        (0, LifecycleAction.NONE),
        (52, LifecycleAction.NONE),
        (53, LifecycleAction.WARN_ARCHIVAL),
        (54, LifecycleAction.NONE),
        (59, LifecycleAction.NONE),
        (60, LifecycleAction.ARCHIVE),
        (365, LifecycleAction.ARCHIVE),
    ])
    def test_classify_branch(self, age, expected):
        assert classify_branch(age, THRESHOLDS) == expected

    @pytest.mark.parametrize("age,expected", [
        (0, LifecycleAction.NONE),
        (82, LifecycleAction.NONE),
        (83, LifecycleAction.WARN_DELETION),
        (89, LifecycleAction.NONE),
        (90, LifecycleAction.DELETE),
        (400, LifecycleAction.DELETE),
    ])
    def test_classify_tag(self, age, expected):
        assert classify_tag(age, THRESHOLDS) == expected

    def test_warn_at_or_past_stale_skips_to_archive(self):
        thresholds = ActionThresholds(stale_branch_days=7, stale_tag_days=30, warn_before_days=10)

        assert classify_branch(6, thresholds) == LifecycleAction.NONE
        assert classify_branch(7, thresholds) == LifecycleAction.ARCHIVE
        assert LifecycleAction.WARN_ARCHIVAL not in {
            classify_branch(age, thresholds) for age in range(0, 100)
        }


class TestBranchPass:
    """Tests for the branch lifecycle."""

    def test_warning_day_notifies_only(self, service, git, email, info):
        branch = make_branch("branch", 53)
        git.list_branches.return_value = [branch]

        result = service.clean_repo(info)

        email.notify.assert_called_once()
        recipients, subject, body = email.notify.call_args.args
        assert recipients == ["dev@example.com"]
        assert subject == "Pending archival of branch branch"
        assert "7 days" in body
        git.create_tag.assert_not_called()
        git.delete_branch.assert_not_called()
        git.delete_tag.assert_not_called()
        git.push_new_tags.assert_not_called()
        assert result.details[0].action == LifecycleAction.WARN_ARCHIVAL
        assert result.details[0].notified is True

    def test_stale_branch_archived(self, service, git, email, info):
        branch = make_branch("branch", 60)
        git.list_branches.return_value = [branch]

        result = service.clean_repo(info)

        git.create_tag.assert_called_once_with(
            Tag(name="zArchiveBranch_20230601_branch", history=branch.history)
        )
        git.delete_branch.assert_called_once_with(branch)
        email.notify.assert_called_once()
        assert email.notify.call_args.args[1] == "Archival of branch branch"
        assert result.archived_branches == ["branch"]
        assert result.details[0].archive_tag == "zArchiveBranch_20230601_branch"

    def test_young_branch_left_alone(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("branch", 59)]

        with caplog.at_level(logging.INFO, logger=LOGGER):
            result = service.clean_repo(info)

        git.create_tag.assert_not_called()
        email.notify.assert_not_called()
        assert result.details[0].status == OperationStatus.SKIPPED
        assert "Branch branch is 59 days old, nothing to do" in caplog.text

    def test_very_old_branch_archived_without_warning(self, service, git, email, info):
        git.list_branches.return_value = [make_branch("ancient", 400)]

        service.clean_repo(info)

        git.create_tag.assert_called_once()
        subjects = [c.args[1] for c in email.notify.call_args_list]
        assert subjects == ["Archival of branch ancient"]

    def test_excluded_branch_never_mutated(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("main", 1000), make_branch("main", 53)]

        with caplog.at_level(logging.INFO, logger=LOGGER):
            result = service.clean_repo(info)

        git.create_tag.assert_not_called()
        git.delete_branch.assert_not_called()
        email.notify.assert_not_called()
        assert all(d.action == LifecycleAction.EXCLUDED for d in result.details)
        assert all(d.age_days is None for d in result.details)
        assert "Branch main is one of excluded branches, skipping" in caplog.text
        assert "days old" not in caplog.text

    def test_tag_creation_failure_aborts_archival(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("branch", 60)]
        git.create_tag.side_effect = TagCreationFailure("tag exists elsewhere")

        result = service.clean_repo(info)

        git.delete_branch.assert_not_called()
        git.delete_tag.assert_not_called()
        git.push_new_tags.assert_not_called()
        email.notify.assert_not_called()
        assert result.failed == 1
        assert len(warnings(caplog)) == 1

    def test_branch_deletion_failure_removes_orphan_tag(self, service, git, email, info, caplog):
        branch = make_branch("branch", 60)
        git.list_branches.return_value = [branch]
        git.delete_branch.side_effect = BranchDeletionFailure("locked")

        result = service.clean_repo(info)

        expected_tag = Tag(name="zArchiveBranch_20230601_branch", history=branch.history)
        git.delete_tag.assert_called_once_with(expected_tag)
        git.push_new_tags.assert_not_called()
        git.push_delete_branch.assert_not_called()
        email.notify.assert_not_called()
        assert result.details[0].status == OperationStatus.FAILED
        assert result.archived_branches == []
        assert len(warnings(caplog)) == 1

    def test_failed_compensation_logs_two_warnings(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("branch", 60)]
        git.delete_branch.side_effect = BranchDeletionFailure("locked")
        git.delete_tag.side_effect = TagDeletionFailure("also locked")

        result = service.clean_repo(info)

        git.delete_tag.assert_called_once()
        assert result.archived_branches == []
        assert result.details[0].status == OperationStatus.FAILED
        logged = warnings(caplog)
        assert len(logged) == 2
        assert "extraneous" in logged[1].getMessage()

    def test_failure_on_one_branch_does_not_stop_the_next(self, service, git, email, info):
        first = make_branch("first", 60)
        second = make_branch("second", 60)
        git.list_branches.return_value = [first, second]
        git.create_tag.side_effect = [TagCreationFailure("boom"), None]

        result = service.clean_repo(info)

        assert git.create_tag.call_count == 2
        git.delete_branch.assert_called_once_with(second)
        git.push_delete_branch.assert_called_once_with(second)
        assert result.archived_branches == ["second"]
        assert result.failed == 1

    def test_unexpected_gateway_failure_is_contained(self, service, git, email, info):
        first = make_branch("first", 60)
        second = make_branch("second", 60)
        git.list_branches.return_value = [first, second]
        git.delete_branch.side_effect = [PushBranchDeletionFailure("odd"), None]

        result = service.clean_repo(info)

        assert result.details[0].status == OperationStatus.FAILED
        assert result.archived_branches == ["second"]

    def test_notification_failure_does_not_block_archival(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("branch", 60)]
        email.notify.side_effect = NotificationFailure("smtp down")

        result = service.clean_repo(info)

        git.delete_branch.assert_called_once()
        git.push_delete_branch.assert_called_once()
        assert result.archived_branches == ["branch"]
        assert result.details[0].notified is False
        assert result.success
        assert len(warnings(caplog)) == 1

    def test_disabled_email_is_not_counted_as_notified(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("warn", 53), make_branch("stale", 60)]
        email.notify.return_value = False

        with caplog.at_level(logging.INFO, logger=LOGGER):
            result = service.clean_repo(info)

        assert [d.notified for d in result.details] == [False, False]
        assert result.archived_branches == ["stale"]
        assert "Email disabled, nobody notified of pending archival of branch warn" in caplog.text
        assert "Notified" not in caplog.text
        assert warnings(caplog) == []

    def test_pending_notification_failure_is_only_logged(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("branch", 53)]
        email.notify.side_effect = NotificationFailure("smtp down")

        result = service.clean_repo(info)

        assert result.details[0].status == OperationStatus.SUCCESS
        assert result.details[0].notified is False
        assert len(warnings(caplog)) == 1

    def test_configured_recipients_follow_author(self, git, email, info):
        info = RepoCleaningInfo(
            repo_id=info.repo_id,
            repo_dir=info.repo_dir,
            remote_uri=info.remote_uri,
            thresholds=THRESHOLDS,
            recipients=("lead@example.com", "dev@example.com"),
        )
        git.list_branches.return_value = [make_branch("branch", 53)]
        service = LifecycleService(git, NotificationService(email), execution_time=NOW)

        service.clean_repo(info)

        assert email.notify.call_args.args[0] == ["dev@example.com", "lead@example.com"]

    def test_branch_with_slash_archived_with_warning(self, service, git, email, info, caplog):
        git.list_branches.return_value = [make_branch("feature/login", 60)]

        result = service.clean_repo(info)

        assert git.create_tag.call_args.args[0].name == "zArchiveBranch_20230601_feature/login"
        assert result.archived_branches == ["feature/login"]
        assert "will not be deleted automatically" in warnings(caplog)[0].getMessage()

    def test_branch_without_commits_skipped(self, service, git, info):
        git.list_branches.return_value = [Branch(name="empty")]

        result = service.clean_repo(info)

        git.create_tag.assert_not_called()
        assert result.details[0].status == OperationStatus.SKIPPED


class TestTagPass:
    """Tests for the archive tag lifecycle."""

    def test_non_archive_tag_ignored(self, service, git, email, info):
        git.list_tags.return_value = [Tag(name="v1.0.0"), Tag(name="zArchiveBranch_1_x")]

        result = service.clean_repo(info)

        git.delete_tag.assert_not_called()
        email.notify.assert_not_called()
        assert [d.action for d in result.details] == [LifecycleAction.NOT_MANAGED] * 2

    def test_warning_day_notifies_only(self, service, git, email, info):
        tag = make_archive_tag("old", 83)
        git.list_tags.return_value = [tag]

        result = service.clean_repo(info)

        git.delete_tag.assert_not_called()
        email.notify.assert_called_once()
        assert email.notify.call_args.args[1] == f"Pending deletion of archive tag {tag.name}"
        assert result.details[0].age_days == 83

    def test_expired_tag_deleted(self, service, git, email, info):
        tag = make_archive_tag("old", 90)
        git.list_tags.return_value = [tag]

        result = service.clean_repo(info)

        git.delete_tag.assert_called_once_with(tag)
        git.push_delete_tag.assert_called_once_with(tag)
        assert email.notify.call_args.args[1] == f"Deletion of archive tag {tag.name}"
        assert email.notify.call_args.args[0] == ["dev@example.com"]
        assert result.deleted_tags == [tag.name]

    def test_age_measured_from_tag_name(self, service, git, info):
        # Commit is 400 days old but the tag was created yesterday
        tag = make_archive_tag("recent", 1)
        git.list_tags.return_value = [tag]

        result = service.clean_repo(info)

        git.delete_tag.assert_not_called()
        assert result.details[0].age_days == 1

    def test_tag_deletion_failure(self, service, git, email, info, caplog):
        tag = make_archive_tag("old", 120)
        git.list_tags.return_value = [tag]
        git.delete_tag.side_effect = TagDeletionFailure("nope")

        result = service.clean_repo(info)

        git.push_delete_tag.assert_not_called()
        email.notify.assert_not_called()
        assert result.failed == 1
        assert len(warnings(caplog)) == 1

    def test_tag_failure_does_not_stop_the_next(self, service, git, info):
        first = make_archive_tag("a", 90)
        second = make_archive_tag("b", 95)
        git.list_tags.return_value = [first, second]
        git.delete_tag.side_effect = [TagDeletionFailure("nope"), None]

        result = service.clean_repo(info)

        git.push_delete_tag.assert_called_once_with(second)
        assert result.deleted_tags == [second.name]


class TestFetchFailures:
    """Listing failures end the repository's pass."""

    def test_branch_fetch_failure(self, service, git, info, caplog):
        git.list_branches.side_effect = BranchFetchFailure("network down")

        result = service.clean_repo(info)

        assert result.fatal_error == "network down"
        assert not result.success
        git.list_tags.assert_not_called()
        git.create_tag.assert_not_called()
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_tag_fetch_failure(self, service, git, info):
        git.list_branches.return_value = [make_branch("branch", 60)]
        git.list_tags.side_effect = TagFetchFailure("network down")

        result = service.clean_repo(info)

        assert result.fatal_error == "network down"
        git.create_tag.assert_not_called()


class TestRemoteSync:
    """Pushes happen after local changes, one entity at a time."""

    def test_nothing_pushed_without_changes(self, service, git, info):
        git.list_branches.return_value = [make_branch("branch", 10)]

        service.clean_repo(info)

        git.push_new_tags.assert_not_called()
        git.push_delete_branch.assert_not_called()
        git.push_delete_tag.assert_not_called()

    def test_push_new_tags_failure_does_not_stop_other_pushes(self, service, git, info, caplog):
        branch = make_branch("branch", 60)
        tag = make_archive_tag("old", 90)
        git.list_branches.return_value = [branch]
        git.list_tags.return_value = [tag]
        git.push_new_tags.side_effect = PushNewTagsFailure("rejected")

        result = service.clean_repo(info)

        git.push_delete_branch.assert_called_once_with(branch)
        git.push_delete_tag.assert_called_once_with(tag)
        assert result.push_failures == 1
        assert result.details[0].pushed is False
        assert not result.success
        [warning] = warnings(caplog)
        assert "zArchiveBranch_20230601_branch" in warning.getMessage()
        assert "exist only locally" in warning.getMessage()
        assert "git push --tags" in warning.getMessage()

    def test_push_branch_failure_does_not_stop_other_branches(self, service, git, info):
        first = make_branch("first", 60)
        second = make_branch("second", 61)
        git.list_branches.return_value = [first, second]
        git.push_delete_branch.side_effect = [PushBranchDeletionFailure("rejected"), None]

        result = service.clean_repo(info)

        assert git.push_delete_branch.call_args_list == [call(first), call(second)]
        assert [d.pushed for d in result.details] == [False, True]
        assert result.push_failures == 1

    def test_push_tag_deletion_failure(self, service, git, info):
        tag = make_archive_tag("old", 90)
        git.list_tags.return_value = [tag]
        git.push_delete_tag.side_effect = PushTagDeletionFailure("rejected")

        result = service.clean_repo(info)

        assert result.details[0].pushed is False
        assert result.deleted_tags == [tag.name]
        assert result.push_failures == 1


class TestDryRun:
    """Dry run classifies without side effects."""

    def test_dry_run_makes_no_changes(self, git, email, info):
        git.list_branches.return_value = [make_branch("warn", 53), make_branch("stale", 60)]
        git.list_tags.return_value = [make_archive_tag("old", 83), make_archive_tag("older", 90)]
        service = LifecycleService(git, NotificationService(email), execution_time=NOW, dry_run=True)

        result = service.clean_repo(info)

        git.create_tag.assert_not_called()
        git.delete_branch.assert_not_called()
        git.delete_tag.assert_not_called()
        git.push_new_tags.assert_not_called()
        email.notify.assert_not_called()
        assert result.dry_run is True
        assert [d.status for d in result.details] == [OperationStatus.DRY_RUN] * 4
        assert result.details[1].archive_tag == "zArchiveBranch_20230601_stale"


class TestEndToEnd:
    """The archival example: now = 1685602801, branch 60 days stale."""

    def test_archival_sequence(self, git, email, info):
        branch = make_branch("branch", 60, author="author@example.com")
        git.list_branches.return_value = [branch]
        service = LifecycleService(git, NotificationService(email), execution_time=1685602801)

        result = service.clean_repo(info)

        expected_tag = Tag(name="zArchiveBranch_20230601_branch", history=branch.history)
        assert git.method_calls == [
            call.list_branches(),
            call.list_tags(),
            call.create_tag(expected_tag),
            call.delete_branch(branch),
            call.push_new_tags(),
            call.push_delete_branch(branch),
        ]
        email.notify.assert_called_once()
        assert email.notify.call_args.args[0] == ["author@example.com"]
        assert email.notify.call_args.args[1] == "Archival of branch branch"
        assert result.success
        assert result.details[0].pushed is True

    def test_last_result_kept(self, service, info):
        result = service.clean_repo(info)
        assert service.last_result is result

    def test_negative_execution_time_rejected(self, git, email):
        with pytest.raises(ValueError):
            LifecycleService(git, NotificationService(email), execution_time=-1)
