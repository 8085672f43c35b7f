"""Source adapter interface and HTTP fetching base."""
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, List

import requests

from processor.exceptions import FetchError
from processor.models import RawCandidate

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """Produces raw candidates for one upstream listing source."""

    name: str = ''
    url: str = ''

    @abstractmethod
    def fetch(self) -> List[RawCandidate]:
        """
        Fetch and parse the source.

        Returns:
            List of RawCandidate objects

        Raises:
            FetchError: If the source is unreachable or yields nothing
        """


class HttpSourceAdapter(SourceAdapter):
    """Adapter fetching a single HTML page through a shared session."""

    def __init__(
        self,
        session: requests.Session,
        timeout: int = 30,
        retries: int = 3,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the adapter.

        Args:
            session: HTTP session owned by the caller
            timeout: HTTP request timeout in seconds (default: 30)
            retries: Attempts per page fetch (default: 3)
            sleep: Function used to wait between attempts
        """
        self.session = session
        self.timeout = timeout
        self.retries = max(retries, 1)
        self._sleep = sleep

    def fetch(self) -> List[RawCandidate]:
        logger.info(f"Fetching events from {self.name}")

        try:
            html_content = self._fetch_html(self.url)
        except requests.RequestException as e:
            raise FetchError(self.name, f"unreachable after {self.retries} attempts: {e}") from e

        candidates = self.parse(html_content)
        if not candidates:
            raise FetchError(self.name, "page parsed to zero events")

        logger.info(f"{self.name}: parsed {len(candidates)} candidates")
        return candidates

    @abstractmethod
    def parse(self, html_content: str) -> List[RawCandidate]:
        """Parse raw candidates out of the page HTML."""

    def _fetch_html(self, url: str) -> str:
        """
        Fetch page HTML with retry logic.

        Args:
            url: Page to fetch

        Returns:
            HTML content as string

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        base_delay = 1  # seconds

        for attempt in range(self.retries):
            try:
                logger.debug(f"Fetching {url} (attempt {attempt + 1}/{self.retries})")
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.retries - 1:
                    # Calculate exponential backoff delay
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request to {url} failed (attempt {attempt + 1}/{self.retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    self._sleep(delay)
                else:
                    logger.error(
                        f"All {self.retries} attempts to fetch {url} failed. Last error: {e}"
                    )
                    raise
