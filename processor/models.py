"""Data models for event collection and sync."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class RawCandidate:
    """Loosely structured event record produced by a source adapter."""
    name: str
    date: str
    source: str = ''
    location: Optional[str] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    organizer: Optional[str] = None
    contact: Optional[str] = None
    duration: Optional[str] = None
    end_date: Optional[str] = None
    url: Optional[str] = None


@dataclass
class CanonicalEvent:
    """Normalized, deduplication-ready event."""
    name: str
    date: str
    location: str
    organizer: str
    contact: str
    source: str
    duration_days: int
    fingerprint: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProcessedRecord:
    """Ledger entry for a delivered event."""
    fingerprint: str
    processed_at: datetime


@dataclass
class SourceResult:
    """Outcome of running one source adapter."""
    source: str
    candidates: List[RawCandidate] = field(default_factory=list)
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class SyncResult:
    """Result of sync operation."""
    mode: str
    collected: int = 0
    unique: int = 0
    new: int = 0
    delivered: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)
    source_errors: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def add_error(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message)

    def to_dict(self) -> dict:
        return asdict(self)
