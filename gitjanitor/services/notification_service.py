"""
Notification service for gitjanitor.

Turns lifecycle events into messages for the people who last worked on a
branch. The most recent commit author is always the first recipient; a
repository's configured recipients are added after them.
"""

import logging
from typing import List

from ..domain.cleaning import RepoCleaningInfo
from ..domain.git import Branch, Tag, Ref
from ..infra.email_client import EmailClient

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Composes and sends lifecycle notifications.

    Every method raises NotificationFailure when the gateway fails; the
    caller decides what that means (the lifecycle engine only logs it).
    """

    def __init__(self, gateway: EmailClient):
        self.gateway = gateway

    @staticmethod
    def recipients_for(ref: Ref, info: RepoCleaningInfo) -> List[str]:
        recipients: List[str] = []
        if ref.latest_author:
            recipients.append(ref.latest_author)
        for recipient in info.recipients:
            if recipient not in recipients:
                recipients.append(recipient)
        return recipients

    def notify_pending_archival(self, branch: Branch, info: RepoCleaningInfo) -> List[str]:
        """Warn that ``branch`` will be archived. Returns the recipients reached."""
        days = info.thresholds.warn_before_days
        subject = f"Pending archival of branch {branch.name}"
        body = (
            f"Branch {branch.name} in {info.remote_uri} will be archived in {days} days. "
            f"Commit to it again to prevent archival."
        )
        return self._send(branch, info, subject, body)

    def notify_archival(self, branch: Branch, tag_name: str, info: RepoCleaningInfo) -> List[str]:
        """Report that ``branch`` was archived as ``tag_name``."""
        days = info.thresholds.stale_branch_days
        subject = f"Archival of branch {branch.name}"
        body = (
            f"Branch {branch.name} in {info.remote_uri} has been inactive for {days} days. "
            f"Branch archived as tag {tag_name}. "
            f"Checkout the tag and recreate the branch to revive it."
        )
        return self._send(branch, info, subject, body)

    def notify_pending_tag_deletion(self, tag: Tag, info: RepoCleaningInfo) -> List[str]:
        """Warn that archive tag ``tag`` will be deleted."""
        days = info.thresholds.warn_before_days
        subject = f"Pending deletion of archive tag {tag.name}"
        body = (
            f"Archive tag {tag.name} in {info.remote_uri} will be deleted in {days} days. "
            f"Create a new tag or branch on the archive tag or its commits will be lost."
        )
        return self._send(tag, info, subject, body)

    def notify_tag_deletion(self, tag: Tag, info: RepoCleaningInfo) -> List[str]:
        """Report that archive tag ``tag`` was deleted."""
        days = info.thresholds.stale_tag_days
        subject = f"Deletion of archive tag {tag.name}"
        body = (
            f"Archive tag {tag.name} in {info.remote_uri} is {days} days old and has been deleted. "
            f"Its commits are no longer guaranteed to be accessible."
        )
        return self._send(tag, info, subject, body)

    def _send(self, ref: Ref, info: RepoCleaningInfo, subject: str, body: str) -> List[str]:
        """Send and return who it went to; empty when the gateway is switched off."""
        recipients = self.recipients_for(ref, info)
        if not self.gateway.notify(recipients, subject, body):
            return []
        return recipients
