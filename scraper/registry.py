"""Registry of known event sources."""
import logging
from typing import Callable, Dict, Iterable, List

import requests

from scraper.base import SourceAdapter
from scraper.listing import ListingPageAdapter, SelectorConfig

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., SourceAdapter]


def _listing(name: str, url: str, selectors: SelectorConfig) -> AdapterFactory:
    def factory(session: requests.Session, timeout: int = 30, retries: int = 3) -> SourceAdapter:
        return ListingPageAdapter(
            name=name,
            url=url,
            selectors=selectors,
            session=session,
            timeout=timeout,
            retries=retries
        )
    return factory


SOURCE_REGISTRY: Dict[str, AdapterFactory] = {
    'festivalinfo': _listing(
        'FestivalInfo.nl',
        'https://www.festivalinfo.nl/festivals/',
        SelectorConfig(
            item=('.festival_rows_info', '[class*="festival"]'),
            name=('h1', 'strong', '[class*="title"]', 'a[href*="/festival/"]'),
            location=('[class*="location"]', '[class*="plaats"]'),
        ),
    ),
    'partyflock': _listing(
        'Partyflock.nl',
        'https://partyflock.nl/agenda',
        SelectorConfig(
            item=('div[class*="event"]', 'article[class*="event"]', 'li[class*="event"]'),
            name=('a[href*="/party/"]', 'a[href*="/event/"]', 'h2', 'h3', '.event-title'),
            date=('.date', '.event-date', 'time', '[datetime]'),
            location=('.location', '[class*="location"]'),
        ),
    ),
    'uitagenda': _listing(
        'UitAgenda.nl',
        'https://www.uitagenda.nl/agenda/',
        SelectorConfig(
            item=('[class*="event"]', '[class*="article"]', '.item'),
            name=('h2', 'h3', '.title', 'a[href*="event"]'),
            location=('[class*="location"]',),
        ),
    ),
    'ticketmaster': _listing(
        'Ticketmaster.nl',
        'https://www.ticketmaster.nl/events',
        SelectorConfig(
            item=('[data-event-id]', '[class*="event"]'),
            name=('h3', 'h2', '[class*="title"]'),
            date=('time', '[class*="date"]', '[data-date]'),
        ),
    ),
}


def build_adapters(
    names: Iterable[str],
    session: requests.Session,
    timeout: int = 30,
    retries: int = 3
) -> List[SourceAdapter]:
    """
    Build adapters for the enabled source names.

    Args:
        names: Source names (case-insensitive keys of SOURCE_REGISTRY)
        session: HTTP session shared by all adapters, owned by the caller
        timeout: Per-request timeout in seconds
        retries: Attempts per page fetch

    Returns:
        Adapters in the order the names were given; unknown names are skipped
    """
    adapters = []
    for name in names:
        key = name.strip().lower()
        if not key:
            continue
        factory = SOURCE_REGISTRY.get(key)
        if factory is None:
            logger.warning(f"Unknown source: {name}")
            continue
        adapters.append(factory(session, timeout=timeout, retries=retries))

    logger.info(f"Built {len(adapters)} source adapters")
    return adapters
