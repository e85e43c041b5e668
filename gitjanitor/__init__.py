"""
gitjanitor - Lifecycle housekeeping for git branches and tags.

gitjanitor warns owners about inactive branches, archives stale branches
as tags, and deletes those archive tags once they age out too.

Quick Start:
    import time
    import gitjanitor

    config = gitjanitor.load_config("~/.gitjanitor/config.yaml")
    infos = gitjanitor.build_repo_infos(config)

    service = gitjanitor.CleaningService(
        lambda: gitjanitor.GitClient(retries=3),
        gitjanitor.NotificationService(gitjanitor.EmailClient(gitjanitor.EmailSettings())),
    )
    options = gitjanitor.CleaningOptions(execution_time=int(time.time()))
    for result in service.clean_repos(infos, options):
        print(result.repo_id, result.archived_branches, result.deleted_tags)

    # Archive tag names
    gitjanitor.encode(1685602801, "feature-x")   # 'zArchiveBranch_20230601_feature-x'
    gitjanitor.try_decode("zArchiveBranch_20230601_feature-x").branch_name

Domain Objects:
    Commit, Branch, Tag - git refs and their history
    ArchiveTagName - decoded archive tag name
    RepoCleaningInfo, ActionThresholds - per-repository settings
    RefOutcome, RepoCleaningResult - what a cleaning pass did

Services:
    LifecycleService - one repository's cleaning pass
    CleaningService - a run over many repositories
    NotificationService - owner notifications
"""

__version__ = "0.1.0"

# Domain objects
from .domain import (
    Commit,
    Branch,
    Tag,
    ArchiveTagName,
    encode,
    try_decode,
    ActionThresholds,
    RepoCleaningInfo,
    RefOutcome,
    RepoCleaningResult,
)

# Infrastructure
from .infra import GitClient, GitCredentials, EmailClient, EmailSettings

# Services
from .services import (
    LifecycleService,
    CleaningService,
    CleaningOptions,
    NotificationService,
)

# Configuration
from .config import load_config, save_config, build_repo_infos

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "Commit",
    "Branch",
    "Tag",
    "ArchiveTagName",
    "encode",
    "try_decode",
    "ActionThresholds",
    "RepoCleaningInfo",
    "RefOutcome",
    "RepoCleaningResult",
    # Infrastructure
    "GitClient",
    "GitCredentials",
    "EmailClient",
    "EmailSettings",
    # Services
    "LifecycleService",
    "CleaningService",
    "CleaningOptions",
    "NotificationService",
    # Configuration
    "load_config",
    "save_config",
    "build_repo_infos",
]
