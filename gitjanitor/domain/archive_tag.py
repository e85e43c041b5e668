"""
Archive tag naming for gitjanitor.

A stale branch is archived as a tag named

    zArchiveBranch_<YYYYMMDD>_<branch name>

where the date is the UTC calendar day the branch was archived. The name is
the only state gitjanitor persists: the tag pass recovers the archival date
and the archived branch from it, so the grammar must stay stable.

Branch names may contain underscores. The date field is fixed width, so the
branch name is everything after the second separator.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ARCHIVE_TAG_PREFIX = "zArchiveBranch_"
ARCHIVE_TAG_PATTERN = re.compile(r"zArchiveBranch_\d{8}_[\w-]+", re.ASCII)

_DATE_FORMAT = "%Y%m%d"
_DATE_START = len(ARCHIVE_TAG_PREFIX)
_DATE_END = _DATE_START + 8
_BRANCH_START = _DATE_END + 1


def _archive_day(epoch_seconds: int) -> datetime:
    """UTC day of ``epoch_seconds`` at 00:00:01."""
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.replace(hour=0, minute=0, second=1, microsecond=0)


@dataclass(frozen=True)
class ArchiveTagName:
    """
    Decoded archive tag name.

    Attributes:
        name: Full tag name
        create_date: UTC archival day at 00:00:01
        branch_name: Name of the archived branch
    """

    name: str
    create_date: datetime
    branch_name: str

    @classmethod
    def for_branch(cls, epoch_seconds: int, branch_name: str) -> 'ArchiveTagName':
        """Build the archive tag name for a branch archived at ``epoch_seconds``."""
        return cls(
            name=encode(epoch_seconds, branch_name),
            create_date=_archive_day(epoch_seconds),
            branch_name=branch_name,
        )

    @property
    def epoch_seconds(self) -> int:
        """Archival date as seconds since epoch."""
        return int(self.create_date.timestamp())


def encode(epoch_seconds: int, branch_name: str) -> str:
    """
    Encode an archival time and branch name into a tag name.

    Time of day is discarded; only the UTC date is kept.

    Args:
        epoch_seconds: Archival time in seconds since epoch
        branch_name: Branch being archived

    Returns:
        Archive tag name
    """
    day = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime(_DATE_FORMAT)
    return f"{ARCHIVE_TAG_PREFIX}{day}_{branch_name}"


def try_decode(name: str) -> Optional[ArchiveTagName]:
    """
    Decode an archive tag name.

    Args:
        name: Tag name

    Returns:
        ArchiveTagName, or None if ``name`` is not an archive tag
    """
    if not ARCHIVE_TAG_PATTERN.fullmatch(name):
        return None

    try:
        day = datetime.strptime(name[_DATE_START:_DATE_END], _DATE_FORMAT)
    except ValueError:
        # Eight digits that are not a calendar date
        return None

    return ArchiveTagName(
        name=name,
        create_date=day.replace(second=1, tzinfo=timezone.utc),
        branch_name=name[_BRANCH_START:],
    )


def is_archive_tag(name: str) -> bool:
    """Check if a tag name is managed by gitjanitor."""
    return try_decode(name) is not None
