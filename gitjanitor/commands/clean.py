"""
Clean command for gitjanitor.

Runs the branch/tag lifecycle over every configured repository:
warn owners, archive stale branches as tags, delete old archive tags.
"""

import logging
import time
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from ..cli_utils import add_common_options, handle_errors, print_jsonl
from ..config import configure_logging, load_config, load_credentials, validate_config
from ..domain.operation import OperationStatus, RepoCleaningResult
from ..exit_codes import USAGE_ERROR, CommandError
from ..infra.email_client import EmailClient, EmailSettings
from ..infra.git_client import GitClient
from ..services.cleaning_service import CleaningOptions, CleaningService
from ..services.notification_service import NotificationService

logger = logging.getLogger(__name__)

_STATUS_STYLES = {
    OperationStatus.SUCCESS: "green",
    OperationStatus.SKIPPED: "dim",
    OperationStatus.FAILED: "red",
    OperationStatus.DRY_RUN: "yellow",
}


@click.command('clean')
@add_common_options('config')
@click.option('--execution-time', '-t', type=int, default=0, show_default=True,
              help='"Now" in epoch seconds (0 = current time)')
@click.option('--repo', '-r', 'repo_ids', multiple=True,
              help='Only clean repositories with this id (repeatable)')
@click.option('--parallel', '-p', type=int, default=None,
              help='Number of repositories cleaned concurrently (default: from config)')
@click.option('--dry-run', is_flag=True, help='Show what would happen without changing anything')
@add_common_options('json', 'verbose')
@handle_errors
def clean_handler(
    config_path: Optional[str],
    execution_time: int,
    repo_ids: tuple,
    parallel: Optional[int],
    dry_run: bool,
    output_json: bool,
    verbose: bool,
):
    """
    Archive stale branches and delete expired archive tags.

    Every branch is archived as a zArchiveBranch_<YYYYMMDD>_<branch> tag
    once its last commit is older than the repository's
    stale_branch_inactivity_days; the tag is deleted stale_tag_days later.
    Owners are notified notification_before_action_days before each action.

    \b
    Examples:
        # Preview the next run
        gitjanitor clean --dry-run
        # Clean one repository as if it were 2023-06-01
        gitjanitor clean --repo my-repo --execution-time 1685602801
        # Machine-readable output, four repositories at a time
        gitjanitor clean --json --parallel 4
    """
    if execution_time < 0:
        raise CommandError("--execution-time must be >= 0", USAGE_ERROR)
    if parallel is not None and parallel < 1:
        raise CommandError("--parallel must be >= 1", USAGE_ERROR)

    config = load_config(config_path)
    configure_logging(config, verbose=verbose)
    infos = validate_config(config)

    if repo_ids:
        unknown = set(repo_ids) - {info.repo_id for info in infos}
        if unknown:
            raise CommandError(f"Unknown repository id(s): {', '.join(sorted(unknown))}", USAGE_ERROR)
        infos = [info for info in infos if info.repo_id in repo_ids]

    options = CleaningOptions(
        execution_time=execution_time or int(time.time()),
        dry_run=dry_run,
        parallel=parallel or config.get('parallel', 1),
    )

    service = build_cleaning_service(config)
    results = service.clean_repos(infos, options)

    if output_json:
        for result in results:
            for detail in result.details:
                print_jsonl({'type': 'ref', 'repo': result.repo_id, **detail.to_dict()})
            print_jsonl(result.to_dict())
    else:
        _print_pretty(list(results), options)


def build_cleaning_service(config) -> CleaningService:
    """Wire a CleaningService from loaded configuration."""
    credentials = load_credentials(config)
    retries = config.get('retries', 3)
    retry_delay = config.get('retry_delay_seconds', 0)
    timeout = config.get('git_timeout_seconds', 300)

    def git_factory() -> GitClient:
        return GitClient(
            credentials=credentials,
            retries=retries,
            retry_delay=retry_delay,
            timeout=timeout,
        )

    email = EmailClient(EmailSettings.from_config(config.get('email', {})))
    return CleaningService(git_factory, NotificationService(email))


def _print_pretty(results: List[RepoCleaningResult], options: CleaningOptions):
    console = Console()
    mode = "[DRY RUN] " if options.dry_run else ""

    if not results:
        console.print("[yellow]No repositories configured.[/yellow]")
        return

    for result in results:
        table = Table(
            title=f"{mode}{result.repo_id}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Ref")
        table.add_column("Kind")
        table.add_column("Age", justify="right")
        table.add_column("Action")
        table.add_column("Status")
        table.add_column("Details")

        for detail in result.details:
            if detail.action.value == "none" and detail.status == OperationStatus.SKIPPED:
                continue
            style = _STATUS_STYLES.get(detail.status, "")
            table.add_row(
                detail.ref_name,
                detail.kind,
                "" if detail.age_days is None else str(detail.age_days),
                detail.action.value,
                f"[{style}]{detail.status.value}[/{style}]",
                detail.error or detail.archive_tag or "",
            )

        console.print(table)

        if result.fatal_error:
            console.print(f"[red]✗ {result.repo_id}: {result.fatal_error}[/red]")
        else:
            console.print(
                f"  {len(result.archived_branches)} branch(es) archived, "
                f"{len(result.deleted_tags)} tag(s) deleted, "
                f"{result.failed} failure(s), {result.push_failures} push failure(s)"
            )
