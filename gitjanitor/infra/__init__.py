"""
Infrastructure layer for gitjanitor.

Contains abstractions for external systems:
- GitClient: Git command execution (the repository gateway)
- EmailClient: SMTP notifications (the notification gateway)
- RetryExecutor: Bounded retry shared by every git call

These provide clean interfaces that can be mocked for testing.
"""

from .retry import RetryExecutor
from .git_client import GitClient, GitCredentials
from .email_client import EmailClient, EmailSettings

__all__ = [
    'RetryExecutor',
    'GitClient',
    'GitCredentials',
    'EmailClient',
    'EmailSettings',
]
