"""Retrying, rate-limited delivery of single events."""
import logging
import time
from typing import Callable, Optional

from delivery.client import DeliveryClient
from processor.exceptions import DeliveryError, SyncCancelled
from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)


class RetryingDelivery:
    """Wraps a DeliveryClient with attempts, exponential backoff and rate limiting."""

    def __init__(
        self,
        client: DeliveryClient,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        rate_limit_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
        should_stop: Optional[Callable[[], bool]] = None
    ):
        """
        Initialize the retry policy.

        Args:
            client: Client performing a single send
            max_attempts: Attempts per event (default: 3)
            backoff_base: Backoff after failed attempt n is backoff_base ** n seconds
            rate_limit_delay: Pause after every attempt in seconds
            sleep: Function used to wait
            should_stop: Predicate checked before every attempt
        """
        self.client = client
        self.max_attempts = max(max_attempts, 1)
        self.backoff_base = backoff_base
        self.rate_limit_delay = rate_limit_delay
        self._sleep = sleep
        self.should_stop = should_stop
        self.last_attempts = 0

    def deliver_with_retry(self, event: CanonicalEvent) -> bool:
        """
        Deliver one event, retrying failed attempts.

        Args:
            event: Canonical event to deliver

        Returns:
            True once an attempt succeeds, False after all attempts fail

        Raises:
            SyncCancelled: If should_stop() turns true between attempts
        """
        self.last_attempts = 0

        for attempt in range(1, self.max_attempts + 1):
            if self.should_stop and self.should_stop():
                raise SyncCancelled(f"Cancelled before delivering '{event.name}'")

            self.last_attempts = attempt
            try:
                success = self.client.send(event)
            except DeliveryError as e:
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed for '{event.name}': {e}"
                )
                success = False

            # Rate limiting to client
            self._sleep(self.rate_limit_delay)

            if success:
                return True

            if attempt < self.max_attempts:
                # Exponential backoff
                delay = self.backoff_base ** attempt
                logger.info(
                    f"Retrying '{event.name}' in {delay} seconds "
                    f"(attempt {attempt}/{self.max_attempts} failed)"
                )
                self._sleep(delay)

        logger.error(
            f"Failed to deliver event after {self.max_attempts} attempts: "
            f"{event.name} ({event.fingerprint})"
        )
        return False
