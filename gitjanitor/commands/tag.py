"""
Archive tag name commands for gitjanitor.

Exposes the archive tag naming scheme:
zArchiveBranch_<YYYYMMDD>_<branch>
"""

import json
import time
from typing import Optional

import click

from ..cli_utils import handle_errors
from ..domain.archive_tag import ARCHIVE_TAG_PATTERN, ArchiveTagName, try_decode
from ..exit_codes import GENERAL_ERROR, USAGE_ERROR, CommandError


@click.group("tag")
def tag_cmd():
    """Archive tag name utilities.

    \b
    Examples:
        gitjanitor tag encode feature-x --at 1685602801
        gitjanitor tag decode zArchiveBranch_20230601_feature-x
    """
    pass


@tag_cmd.command("decode")
@click.argument("name")
@handle_errors
def decode_tag(name: str):
    """Decode an archive tag NAME into its creation date and branch."""
    decoded = try_decode(name)
    if decoded is None:
        raise CommandError(f"{name} is not an archive tag", GENERAL_ERROR)
    print(json.dumps({
        'name': decoded.name,
        'branch': decoded.branch_name,
        'create_date': decoded.create_date.isoformat(),
        'epoch_seconds': decoded.epoch_seconds,
    }))


@tag_cmd.command("encode")
@click.argument("branch")
@click.option("--at", "at", type=int, default=None,
              help="Archival time in epoch seconds (default: now)")
@handle_errors
def encode_tag(branch: str, at: Optional[int]):
    """Print the archive tag name BRANCH would get."""
    if at is not None and at < 0:
        raise CommandError("--at must be >= 0", USAGE_ERROR)
    tag = ArchiveTagName.for_branch(int(time.time()) if at is None else at, branch)
    if not ARCHIVE_TAG_PATTERN.fullmatch(tag.name):
        click.echo(
            f"Warning: {tag.name} does not follow the archive naming scheme "
            f"and would never be deleted automatically",
            err=True,
        )
    print(tag.name)
