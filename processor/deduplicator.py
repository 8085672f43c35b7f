"""Within-batch deduplication of canonical events."""
import logging
from typing import Iterable, List

from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)


def dedupe(events: Iterable[CanonicalEvent]) -> List[CanonicalEvent]:
    """
    Keep the first event of every fingerprint, preserving order.

    Args:
        events: Canonical events, possibly from several sources

    Returns:
        Events with unique fingerprints in original relative order
    """
    seen = set()
    unique = []
    for event in events:
        if event.fingerprint in seen:
            continue
        seen.add(event.fingerprint)
        unique.append(event)
    return unique


class EventDeduplicator:
    """Logging wrapper around dedupe() used by the sync workflow."""

    def dedupe(self, events: List[CanonicalEvent]) -> List[CanonicalEvent]:
        unique = dedupe(events)
        dropped = len(events) - len(unique)
        if dropped:
            logger.info(f"Dropped {dropped} duplicate events, {len(unique)} unique")
        return unique
