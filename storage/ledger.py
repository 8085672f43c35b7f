"""Ledger of fingerprints already delivered downstream."""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, Optional, Set

from processor.exceptions import LedgerUnavailable
from processor.models import ProcessedRecord

logger = logging.getLogger(__name__)

MIN_RETENTION_DAYS = 90


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_retention(older_than: timedelta) -> None:
    """
    Reject retention windows too short to be safe.

    A pruned fingerprint whose source still lists the event would be
    delivered again on the next incremental sync.

    Raises:
        ValueError: If the window is shorter than MIN_RETENTION_DAYS
    """
    if older_than < timedelta(days=MIN_RETENTION_DAYS):
        raise ValueError(
            f"Retention window must be at least {MIN_RETENTION_DAYS} days, "
            f"got {older_than.days}"
        )


class Ledger(ABC):
    """
    Abstract store of delivered fingerprints.

    Writes are idempotent: recording a fingerprint that is already present
    is a no-op and keeps the original processed_at timestamp. Backing store
    failures raise LedgerUnavailable.
    """

    def __init__(self):
        # Held by a running sync; only one sync per ledger at a time
        self.sync_lock = threading.Lock()

    @abstractmethod
    def contains(self, fingerprint: str) -> bool:
        """Return True if the fingerprint was already delivered."""

    @abstractmethod
    def load_all(self) -> Set[str]:
        """Return every fingerprint in the ledger."""

    @abstractmethod
    def record(self, fingerprint: str) -> bool:
        """
        Append a fingerprint.

        Returns:
            True if newly written, False if it was already present
        """

    def record_many(self, fingerprints: Iterable[str]) -> int:
        """
        Append several fingerprints.

        Returns:
            Count of newly written fingerprints
        """
        return sum(1 for fingerprint in fingerprints if self.record(fingerprint))

    @abstractmethod
    def clear(self) -> int:
        """Remove every entry; returns the count removed."""

    @abstractmethod
    def prune(self, older_than: timedelta) -> int:
        """Remove entries processed more than older_than ago."""

    def count(self) -> int:
        return len(self.load_all())


class InMemoryLedger(Ledger):
    """Process-local ledger used for tests and dry runs."""

    def __init__(
        self,
        records: Optional[Dict[str, ProcessedRecord]] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        super().__init__()
        self._records: Dict[str, ProcessedRecord] = dict(records or {})
        self._clock = clock
        self._guard = threading.Lock()
        # Simulates an unreachable backing store when set
        self.available = True

    def _check_available(self) -> None:
        if not self.available:
            raise LedgerUnavailable("In-memory ledger marked unavailable")

    def contains(self, fingerprint: str) -> bool:
        self._check_available()
        return fingerprint in self._records

    def load_all(self) -> Set[str]:
        self._check_available()
        with self._guard:
            return set(self._records)

    def get(self, fingerprint: str) -> Optional[ProcessedRecord]:
        return self._records.get(fingerprint)

    def record(self, fingerprint: str) -> bool:
        self._check_available()
        with self._guard:
            if fingerprint in self._records:
                return False
            self._records[fingerprint] = ProcessedRecord(
                fingerprint=fingerprint,
                processed_at=self._clock()
            )
            return True

    def clear(self) -> int:
        self._check_available()
        with self._guard:
            removed = len(self._records)
            self._records.clear()
        logger.info(f"Cleared {removed} fingerprints from in-memory ledger")
        return removed

    def prune(self, older_than: timedelta) -> int:
        check_retention(older_than)
        self._check_available()
        cutoff = self._clock() - older_than
        with self._guard:
            expired = [
                fingerprint for fingerprint, record in self._records.items()
                if record.processed_at < cutoff
            ]
            for fingerprint in expired:
                del self._records[fingerprint]
        logger.info(f"Pruned {len(expired)} fingerprints older than {older_than.days} days")
        return len(expired)
