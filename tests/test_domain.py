"""
Tests for gitjanitor domain objects.
"""

import pytest

from gitjanitor.domain import (
    ActionThresholds,
    Branch,
    Commit,
    LifecycleAction,
    OperationStatus,
    RefOutcome,
    RepoCleaningInfo,
    RepoCleaningResult,
    Tag,
)


class TestRefs:
    """Tests for Commit, Branch and Tag."""

    def test_latest_commit(self):
        branch = Branch(name="b", history=(
            Commit("new", 200, "new@example.com"),
            Commit("old", 100, "old@example.com"),
        ))

        assert branch.latest.id == "new"
        assert branch.latest_author == "new@example.com"

    def test_empty_history(self):
        tag = Tag(name="t")
        assert tag.latest is None
        assert tag.latest_author is None

    def test_branch_and_tag_not_equal(self):
        history = (Commit("c", 1, "a@example.com"),)
        assert Branch("x", history) != Tag("x", history)
        assert Tag("x", history) == Tag("x", history)

    def test_commit_to_dict(self):
        assert Commit("c", 1, "a@example.com").to_dict() == {
            'id': 'c', 'timestamp': 1, 'author_email': 'a@example.com',
        }


class TestActionThresholds:
    """Tests for ActionThresholds."""

    def test_derived_days(self):
        thresholds = ActionThresholds(60, 30, 7)

        assert thresholds.branch_warn_day == 53
        assert thresholds.tag_delete_day == 90
        assert thresholds.tag_warn_day == 83
        assert thresholds.problems() == []

    def test_problems(self):
        problems = ActionThresholds(5, 5, 5).problems()
        assert len(problems) == 2

    def test_to_dict_uses_config_keys(self):
        assert ActionThresholds(60, 30, 7).to_dict() == {
            'stale_branch_inactivity_days': 60,
            'stale_tag_days': 30,
            'notification_before_action_days': 7,
        }


class TestRepoCleaningInfo:
    """Tests for RepoCleaningInfo."""

    @pytest.mark.parametrize("uri,name", [
        ("https://example.com/org/repo.git", "repo"),
        ("git@example.com:org/other.git", "other"),
        ("https://example.com/org/plain/", "plain"),
    ])
    def test_name(self, uri, name):
        info = RepoCleaningInfo("id", "/tmp/x", uri, ActionThresholds(60, 30, 7))
        assert info.name == name

    def test_to_dict(self):
        info = RepoCleaningInfo(
            "id", "/tmp/x", "https://example.com/r.git", ActionThresholds(60, 30, 7),
            excluded_branches=frozenset({"main", "develop"}),
        )
        d = info.to_dict()
        assert d['excluded_branches'] == ["develop", "main"]
        assert d['stale_tag_days'] == 30


class TestRefOutcome:
    """Tests for RefOutcome."""

    def test_minimal_to_dict(self):
        outcome = RefOutcome("b", "branch", LifecycleAction.NONE, OperationStatus.SKIPPED)
        assert outcome.to_dict() == {
            'kind': 'branch', 'name': 'b', 'action': 'none', 'status': 'skipped',
        }

    def test_full_to_dict(self):
        outcome = RefOutcome(
            "b", "branch", LifecycleAction.ARCHIVE, OperationStatus.SUCCESS,
            age_days=60, archive_tag="zArchiveBranch_20230601_b", notified=False, pushed=True,
        )
        d = outcome.to_dict()
        assert d['age_days'] == 60
        assert d['archive_tag'] == "zArchiveBranch_20230601_b"
        assert d['notified'] is False
        assert d['pushed'] is True


class TestRepoCleaningResult:
    """Tests for RepoCleaningResult counters."""

    def test_counts(self):
        result = RepoCleaningResult(repo_id="r")
        result.add_detail(RefOutcome("a", "branch", LifecycleAction.ARCHIVE, OperationStatus.SUCCESS))
        result.add_detail(RefOutcome("b", "branch", LifecycleAction.NONE, OperationStatus.SKIPPED))
        result.add_detail(RefOutcome("c", "branch", LifecycleAction.ARCHIVE, OperationStatus.FAILED,
                                     error="boom"))
        result.add_detail(RefOutcome("t", "tag", LifecycleAction.DELETE, OperationStatus.SUCCESS))

        assert (result.total, result.successful, result.skipped, result.failed) == (4, 2, 1, 1)
        assert result.archived_branches == ["a"]
        assert result.deleted_tags == ["t"]
        assert result.errors == ["c: boom"]
        assert not result.success

    def test_push_failure(self):
        result = RepoCleaningResult(repo_id="r")
        outcome = RefOutcome("a", "branch", LifecycleAction.ARCHIVE, OperationStatus.SUCCESS)
        result.add_detail(outcome)

        result.record_push_failure(outcome, "rejected")

        assert outcome.pushed is False
        assert result.push_failures == 1
        assert not result.success
        assert result.archived_branches == ["a"]

    def test_fatal_error(self):
        result = RepoCleaningResult(repo_id="r", fatal_error="cannot fetch")
        d = result.to_dict()
        assert d['fatal_error'] == "cannot fetch"
        assert d['type'] == 'summary'
        assert not result.success

    def test_dry_run_counts_as_successful(self):
        result = RepoCleaningResult(repo_id="r", dry_run=True)
        result.add_detail(RefOutcome("a", "branch", LifecycleAction.ARCHIVE, OperationStatus.DRY_RUN))
        assert result.successful == 1
        assert result.archived_branches == []
