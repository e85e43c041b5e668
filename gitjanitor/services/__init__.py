"""
Service layer for gitjanitor.

Contains business logic that orchestrates domain objects and infrastructure:
- LifecycleService: Branch archival and archive tag deletion for one repo
- CleaningService: Working copy preparation and batch runs over many repos
- NotificationService: Owner notifications for lifecycle events

Services are the primary API for commands to use.
They handle coordination between infrastructure and domain layers.
"""

from .notification_service import NotificationService
from .lifecycle_service import LifecycleService, classify_branch, classify_tag, days_since
from .cleaning_service import CleaningService, CleaningOptions

__all__ = [
    'NotificationService',
    'LifecycleService',
    'classify_branch',
    'classify_tag',
    'days_since',
    'CleaningService',
    'CleaningOptions',
]
