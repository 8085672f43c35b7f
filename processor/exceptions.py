"""Error taxonomy for the collection and sync pipeline."""


class FetchError(Exception):
    """A source could not be reached or produced nothing parseable."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class CanonicalizationError(ValueError):
    """A raw candidate could not be turned into a canonical event."""


class MalformedDate(CanonicalizationError):
    """A candidate's date text could not be normalized to a calendar date."""

    def __init__(self, date_text: str):
        super().__init__(f"Unparseable date: {date_text!r}")
        self.date_text = date_text


class InvalidCandidate(CanonicalizationError):
    """A candidate is missing a required field."""


class DeliveryError(Exception):
    """Sending an event to the downstream consumer failed."""


class LedgerUnavailable(Exception):
    """The ledger backing store cannot be read or written."""


class SyncInProgress(Exception):
    """A sync was triggered while another one holds the ledger."""


class SyncCancelled(Exception):
    """A running sync was cancelled cooperatively."""
