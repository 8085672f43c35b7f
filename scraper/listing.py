"""Configurable adapter for static event listing pages."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from processor.models import RawCandidate
from processor.text import extract_contact, normalize_text
from scraper.base import HttpSourceAdapter

logger = logging.getLogger(__name__)

Selectors = Tuple[str, ...]


@dataclass(frozen=True)
class SelectorConfig:
    """
    Ordered CSS selectors per field.

    For every field the selectors are tried in order against the event
    element and the first one yielding non-empty text wins. `<time>`
    elements contribute their `datetime` attribute when present.
    """

    item: Selectors
    name: Selectors = ('h2', 'h3', '.title', '.event-title')
    date: Selectors = ('time', '.date', '.event-date', '[class*="date"]')
    location: Selectors = ('.location', '[class*="location"]')
    venue: Selectors = ('.venue', '[class*="venue"]')
    city: Selectors = ('.city', '[class*="plaats"]')
    organizer: Selectors = ('.organizer', '[class*="organi"]')
    contact: Selectors = ('[class*="contact"]', '[class*="email"]')
    duration: Selectors = ('.duration', '[class*="duur"]')
    end_date: Selectors = ('.end-date', '[class*="einddatum"]')
    link: Selectors = ('a[href]',)


class ListingPageAdapter(HttpSourceAdapter):
    """Parses every event element of one listing page."""

    MIN_NAME_LENGTH = 3

    def __init__(
        self,
        name: str,
        url: str,
        selectors: SelectorConfig,
        session: requests.Session,
        timeout: int = 30,
        retries: int = 3,
        sleep: Callable[[float], None] = time.sleep
    ):
        super().__init__(session, timeout=timeout, retries=retries, sleep=sleep)
        self.name = name
        self.url = url
        self.selectors = selectors

    def parse(self, html_content: str) -> List[RawCandidate]:
        """
        Parse events from listing HTML.

        Args:
            html_content: HTML content of the listing page

        Returns:
            List of RawCandidate objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        elements = []
        for selector in self.selectors.item:
            elements = soup.select(selector)
            if elements:
                break

        candidates = []
        for element in elements:
            try:
                candidate = self._parse_element(element)
                if candidate:
                    candidates.append(candidate)
            except Exception as e:
                logger.warning(f"{self.name}: failed to parse event element: {e}")
                continue

        return candidates

    def _parse_element(self, element) -> Optional[RawCandidate]:
        """
        Parse a single event element.

        Returns:
            RawCandidate or None if the element has no usable name or date
        """
        config = self.selectors
        name = self._first_text(element, config.name)
        date_text = self._first_text(element, config.date)

        if len(name) < self.MIN_NAME_LENGTH or not date_text:
            return None

        contact = self._first_text(element, config.contact)
        contact = extract_contact(contact) or extract_contact(element.get_text(' '))

        link = None
        for selector in config.link:
            node = element.select_one(selector)
            if node is not None and node.get('href'):
                link = urljoin(self.url, node['href'])
                break

        return RawCandidate(
            name=name,
            date=date_text,
            source=self.name,
            location=self._first_text(element, config.location),
            venue=self._first_text(element, config.venue),
            city=self._first_text(element, config.city),
            organizer=self._first_text(element, config.organizer),
            contact=contact,
            duration=self._first_text(element, config.duration),
            end_date=self._first_text(element, config.end_date),
            url=link
        )

    @staticmethod
    def _first_text(element, selectors: Selectors) -> str:
        for selector in selectors:
            node = element.select_one(selector)
            if node is None:
                continue
            if node.name == 'time' and node.get('datetime'):
                text = node['datetime'][:10]
            else:
                text = normalize_text(node.get_text(' ', strip=True))
            if text:
                return text
        return ''
