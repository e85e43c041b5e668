"""
Multi-repository cleaning service for gitjanitor.

Prepares each configured repository's working copy (clone if missing, then
setup and update) and runs a LifecycleService pass over it. One
repository's failure never stops the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional

from ..domain.cleaning import RepoCleaningInfo
from ..domain.errors import StartupFailure
from ..domain.operation import RepoCleaningResult
from ..infra.git_client import GitClient
from .lifecycle_service import LifecycleService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class CleaningOptions:
    """Options for a cleaning run."""
    execution_time: int
    dry_run: bool = False
    parallel: int = 1  # Number of repositories cleaned concurrently (1 = sequential)


class CleaningService:
    """
    Cleans a batch of repositories against one fixed execution time.

    Each repository gets its own GitClient from ``git_factory`` so that
    parallel workers never share a working copy.

    Example:
        service = CleaningService(lambda: GitClient(retries=3), notifications)
        options = CleaningOptions(execution_time=int(time.time()))

        for result in service.clean_repos(infos, options):
            print(result.repo_id, result.success)

        print(f"Cleaned {len(service.last_results)} repos")
    """

    def __init__(
        self,
        git_factory: Callable[[], GitClient],
        notifications: NotificationService,
    ):
        """
        Initialize CleaningService.

        Args:
            git_factory: Builds a fresh GitClient for one repository
            notifications: Shared notification service
        """
        self.git_factory = git_factory
        self.notifications = notifications
        self.last_results: List[RepoCleaningResult] = []

    def clean_repos(
        self,
        infos: List[RepoCleaningInfo],
        options: CleaningOptions,
    ) -> Generator[RepoCleaningResult, None, List[RepoCleaningResult]]:
        """
        Clean every repository, yielding each result as it completes.

        Args:
            infos: Repositories to clean
            options: Run options

        Yields:
            RepoCleaningResult per repository

        Returns:
            All results
        """
        if options.execution_time < 0:
            raise ValueError("execution_time must be >= 0")

        results: List[RepoCleaningResult] = []
        self.last_results = results

        if not infos:
            logger.info("No repositories to clean")
            return results

        logger.info(
            f"Cleaning {len(infos)} repositories at execution time {options.execution_time}"
        )

        if options.parallel > 1 and len(infos) > 1:
            with ThreadPoolExecutor(max_workers=options.parallel) as executor:
                futures = {
                    executor.submit(self.clean_repo, info, options): info for info in infos
                }
                for future in as_completed(futures):
                    result = future.result()
                    results.append(result)
                    yield result
        else:
            for info in infos:
                result = self.clean_repo(info, options)
                results.append(result)
                yield result

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Finished cleaning {len(results)} repositories ({failed} with failures)")
        return results

    def clean_repo(self, info: RepoCleaningInfo, options: CleaningOptions) -> RepoCleaningResult:
        """
        Prepare one working copy and run a lifecycle pass over it.

        Never raises: any failure ends up in the result's ``fatal_error``.
        """
        logger.info(f"Cleaning repo {info.repo_id}")
        try:
            git = self.git_factory()

            error = self._prepare(git, info)
            if error is not None:
                logger.error(f"Skipping repo {info.repo_id}: {error}")
                return self._failed(info, options, error)

            lifecycle = LifecycleService(
                git,
                self.notifications,
                execution_time=options.execution_time,
                dry_run=options.dry_run,
            )
            result = lifecycle.clean_repo(info)
        except Exception as e:
            logger.exception(f"Unexpected error cleaning repo {info.repo_id}: {e}")
            return self._failed(info, options, f"{type(e).__name__}: {e}")

        logger.info(f"Finished cleaning repo {info.repo_id}")
        return result

    @staticmethod
    def _failed(info: RepoCleaningInfo, options: CleaningOptions, error: str) -> RepoCleaningResult:
        return RepoCleaningResult(
            repo_id=info.repo_id,
            repo_dir=info.repo_dir,
            execution_time=options.execution_time,
            dry_run=options.dry_run,
            fatal_error=error,
        )

    @staticmethod
    def _prepare(git: GitClient, info: RepoCleaningInfo) -> Optional[str]:
        """Clone if needed, then set up and update. Returns an error message on failure."""
        try:
            if not git.is_git_repo(info.repo_dir):
                logger.info(f"Cloning {info.remote_uri} into {info.repo_dir}")
                git.clone(info.repo_dir, info.remote_uri)
            git.setup(info.repo_dir)
            logger.info(f"Updating repo {info.repo_id}")
            git.update(info.repo_dir)
        except StartupFailure as e:
            return str(e)
        return None
