"""
Bounded retry for gitjanitor infrastructure calls.

Every git operation goes through a RetryExecutor. Transient errors are
retried with exponential backoff; once the attempts run out the last error
is wrapped in the operation's typed failure so callers only ever see
success or a GitJanitorError.
"""

import logging
import subprocess
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..domain.errors import GitCommandError, GitJanitorError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RETRY_ON: Tuple[Type[BaseException], ...] = (
    GitCommandError,
    OSError,
    subprocess.TimeoutExpired,
)


class RetryExecutor:
    """
    Run a fallible operation up to ``retries`` times.

    Example:
        retry = RetryExecutor(retries=3, base_delay=1.0)
        branches = retry.run(
            lambda: client.list_branches(),
            BranchFetchFailure,
            "list branches",
        )
    """

    def __init__(
        self,
        retries: int = 3,
        base_delay: float = 0.0,
        max_delay: float = 60.0,
        retry_on: Tuple[Type[BaseException], ...] = DEFAULT_RETRY_ON,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize RetryExecutor.

        Args:
            retries: Maximum attempts per operation (at least one is made)
            base_delay: Delay before the second attempt, doubled each time
            max_delay: Maximum delay between attempts
            retry_on: Exception types that are worth another attempt
            sleep: Sleep function (replaced in tests)
        """
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.retries = max(1, retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given zero-based attempt."""
        if self.base_delay <= 0:
            return 0.0
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def run(
        self,
        operation: Callable[[], T],
        failure: Type[GitJanitorError],
        description: str,
        ref_name: Optional[str] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or attempts run out.

        Typed GitJanitorErrors raised by the operation are final and are
        not retried.

        Args:
            operation: Zero-argument callable to run
            failure: Failure class raised once retries are exhausted
            description: What the operation does, for messages
            ref_name: Branch or tag the operation concerns, if any

        Returns:
            Whatever ``operation`` returns

        Raises:
            failure: After ``retries`` failed attempts
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.retries):
            try:
                return operation()
            except GitJanitorError:
                raise
            except self.retry_on as e:
                last_error = e
                remaining = self.retries - attempt - 1
                if remaining:
                    delay = self.delay_for(attempt)
                    logger.debug(
                        f"Failed to {description} (attempt {attempt + 1}/{self.retries}): {e}; "
                        f"retrying in {delay}s"
                    )
                    if delay:
                        self._sleep(delay)

        raise failure(
            f"Failed to {description} after {self.retries} attempt(s) due to: '{last_error}'",
            ref_name=ref_name,
        ) from last_error
