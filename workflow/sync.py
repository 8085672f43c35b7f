"""Full and incremental sync workflows."""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from enum import Enum
from typing import Dict, List, Optional, Sequence

from delivery.retry import RetryingDelivery
from processor.canonicalizer import EventCanonicalizer
from processor.deduplicator import EventDeduplicator
from processor.exceptions import FetchError, SyncCancelled, SyncInProgress
from processor.models import CanonicalEvent, SourceResult, SyncResult
from scraper.base import SourceAdapter
from storage.ledger import MIN_RETENTION_DAYS, Ledger

logger = logging.getLogger(__name__)

FULL = 'full'
INCREMENTAL = 'incremental'


class SyncState(Enum):
    IDLE = 'idle'
    COLLECTING = 'collecting'
    DEDUPLICATING = 'deduplicating'
    FILTERING_AGAINST_LEDGER = 'filtering_against_ledger'
    DELIVERING = 'delivering'
    RECONCILING = 'reconciling'


class SyncWorkflow:
    """
    Collects, deduplicates and delivers events, recording them in the ledger.

    A full sync clears the ledger and delivers everything collected; an
    incremental sync delivers only fingerprints absent from the ledger.
    Only one sync may run against a ledger at a time. A fingerprint is
    recorded only after its delivery was confirmed, so a failed delivery
    is retried by the next incremental sync.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        ledger: Ledger,
        delivery: Optional[RetryingDelivery],
        canonicalizer: Optional[EventCanonicalizer] = None,
        deduplicator: Optional[EventDeduplicator] = None,
        max_workers: Optional[int] = None
    ):
        self.adapters = list(adapters)
        self.ledger = ledger
        self.delivery = delivery
        self.canonicalizer = canonicalizer or EventCanonicalizer()
        self.deduplicator = deduplicator or EventDeduplicator()
        self.max_workers = max_workers
        self._cancelled = threading.Event()
        self._state = SyncState.IDLE

        if self.delivery is not None and self.delivery.should_stop is None:
            self.delivery.should_stop = self._cancelled.is_set

    @property
    def state(self) -> SyncState:
        return self._state

    def _set_state(self, state: SyncState) -> None:
        logger.debug(f"Sync state {self._state.value} -> {state.value}")
        self._state = state

    def cancel(self) -> None:
        """Request the running sync to stop at the next adapter or delivery boundary."""
        logger.warning("Sync cancellation requested")
        self._cancelled.set()

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise SyncCancelled("Sync cancelled")

    def run_full_sync(self) -> SyncResult:
        """
        Clear the ledger and deliver every collected event.

        Destructive: meant for seeding or a deliberate re-seed, never for
        scheduled runs.
        """
        return self._run(FULL)

    def run_incremental_sync(self) -> SyncResult:
        """Deliver only events whose fingerprint is not yet in the ledger."""
        return self._run(INCREMENTAL)

    def prune_ledger(self, retention_days: int = MIN_RETENTION_DAYS) -> int:
        """
        Remove ledger entries older than the retention window.

        Args:
            retention_days: Retention window, at least MIN_RETENTION_DAYS

        Returns:
            Count of removed fingerprints
        """
        if not self.ledger.sync_lock.acquire(blocking=False):
            raise SyncInProgress("Cannot prune the ledger while a sync is running")
        try:
            return self.ledger.prune(timedelta(days=retention_days))
        finally:
            self.ledger.sync_lock.release()

    def _run(self, mode: str) -> SyncResult:
        if self.delivery is None:
            raise ValueError(f"Cannot run a {mode} sync without a delivery client")
        if not self.ledger.sync_lock.acquire(blocking=False):
            raise SyncInProgress(f"Rejected {mode} sync: another sync is running")

        self._cancelled.clear()
        start_time = time.time()
        result = SyncResult(mode=mode)
        logger.info(f"Starting {mode} sync with {len(self.adapters)} sources")

        try:
            if mode == FULL:
                logger.warning("Full sync: clearing ledger")
                cleared = self.ledger.clear()
                logger.info(f"Cleared {cleared} fingerprints")

            self._set_state(SyncState.COLLECTING)
            events = self._collect(result)
            result.collected = len(events)

            self._set_state(SyncState.DEDUPLICATING)
            unique_events = self.deduplicator.dedupe(events)
            result.unique = len(unique_events)

            self._set_state(SyncState.FILTERING_AGAINST_LEDGER)
            new_events = self._filter_new(unique_events, mode)
            result.new = len(new_events)
            logger.info(f"Found {result.new} new events out of {result.unique} unique")

            self._set_state(SyncState.DELIVERING)
            self._deliver(new_events, result)

            self._set_state(SyncState.RECONCILING)
            result.duration_seconds = round(time.time() - start_time, 2)
            logger.info(
                f"{mode.capitalize()} sync complete: "
                f"{result.delivered}/{result.new} events delivered",
                extra={
                    'collected': result.collected,
                    'unique': result.unique,
                    'new': result.new,
                    'delivered': result.delivered,
                    'errors': result.errors,
                    'duration_seconds': result.duration_seconds
                }
            )
            return result

        except SyncCancelled as e:
            result.duration_seconds = round(time.time() - start_time, 2)
            e.result = result
            logger.warning(
                f"{mode.capitalize()} sync cancelled during {self._state.value}: "
                f"{result.delivered} events delivered"
            )
            raise
        finally:
            self._set_state(SyncState.IDLE)
            self.ledger.sync_lock.release()

    def _collect(self, result: SyncResult) -> List[CanonicalEvent]:
        """
        Run all adapters concurrently and canonicalize their output.

        Results are merged in adapter order once every adapter finished,
        so the first-wins deduplication does not depend on timing.
        """
        if not self.adapters:
            logger.warning("No source adapters configured")
            return []

        source_results: Dict[int, SourceResult] = {}
        max_workers = self.max_workers or len(self.adapters)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(self._run_adapter, adapter): index
                for index, adapter in enumerate(self.adapters)
            }
            for future in as_completed(future_to_index):
                source_results[future_to_index[future]] = future.result()
                if self._cancelled.is_set():
                    for pending in future_to_index:
                        pending.cancel()
                    self._check_cancelled()

        events = []
        for index, adapter in enumerate(self.adapters):
            source_result = source_results[index]
            if not source_result.success:
                result.source_errors[source_result.source] = source_result.error
                result.add_error(f"{source_result.source}: {source_result.error}")
                continue

            canonical, failures = self.canonicalizer.canonicalize_batch(
                source_result.candidates,
                source_url_hint=adapter.url
            )
            events.extend(canonical)
            for failure in failures:
                result.add_error(failure)

        return events

    def _run_adapter(self, adapter: SourceAdapter) -> SourceResult:
        start_time = time.time()
        try:
            candidates = adapter.fetch()
            logger.info(f"{adapter.name}: found {len(candidates)} candidates")
            return SourceResult(
                source=adapter.name,
                candidates=candidates,
                duration_seconds=round(time.time() - start_time, 2)
            )
        except FetchError as e:
            logger.warning(f"Source {adapter.name} failed: {e}")
            error = str(e)
        except Exception as e:
            logger.error(
                f"Unexpected error in source {adapter.name}: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            error = f"{type(e).__name__}: {e}"

        return SourceResult(
            source=adapter.name,
            error=error,
            duration_seconds=round(time.time() - start_time, 2)
        )

    def _filter_new(self, events: List[CanonicalEvent], mode: str) -> List[CanonicalEvent]:
        if mode == FULL:
            return list(events)

        processed = self.ledger.load_all()
        logger.info(f"Loaded {len(processed)} processed fingerprints")
        return [event for event in events if event.fingerprint not in processed]

    def _deliver(self, events: List[CanonicalEvent], result: SyncResult) -> None:
        """Deliver events one at a time, ledgering each confirmed delivery."""
        if not events:
            logger.info("No new events to deliver")
            return

        for event in events:
            self._check_cancelled()
            try:
                delivered = self.delivery.deliver_with_retry(event)
            except SyncCancelled:
                raise
            except Exception as e:
                logger.error(
                    f"Unexpected error delivering '{event.name}': {e}",
                    extra={'error_type': type(e).__name__},
                    exc_info=True
                )
                delivered = False

            if delivered:
                result.delivered += 1
                self._reconcile(event)
            else:
                result.add_error(f"Delivery failed for '{event.name}' ({event.fingerprint})")

    def _reconcile(self, event: CanonicalEvent) -> None:
        # LedgerUnavailable propagates and aborts the remaining deliveries
        if not self.ledger.record(event.fingerprint):
            logger.debug(f"Fingerprint {event.fingerprint} was already ledgered")
