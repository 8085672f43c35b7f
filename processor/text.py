"""Text helpers shared by the canonicalizer and the source adapters."""
import html
import re
from typing import Optional
from urllib.parse import urlparse

UNKNOWN = 'unknown'

_WHITESPACE_RE = re.compile(r'\s+')
_EMAIL_RE = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
_PHONE_RE = re.compile(r'(?:\+31|0031|0)\s?[1-9](?:[\s-]?\d){8}')


def normalize_text(text: Optional[str]) -> str:
    """
    Decode HTML entities and collapse whitespace.

    Args:
        text: Free text, possibly None

    Returns:
        Trimmed text with every whitespace run replaced by a single space
    """
    if not text:
        return ''
    decoded = html.unescape(text)
    return _WHITESPACE_RE.sub(' ', decoded).strip()


def first_non_empty(*values: Optional[str], default: str = UNKNOWN) -> str:
    """Return the first value that is non-empty after normalization."""
    for value in values:
        normalized = normalize_text(value)
        if normalized:
            return normalized
    return default


def extract_domain(url: Optional[str]) -> str:
    """
    Derive a source label from a URL.

    Args:
        url: Source URL, with or without scheme

    Returns:
        Host name without scheme and leading 'www.', or '' if none
    """
    if not url or not url.strip():
        return ''
    url = url.strip()
    parsed = urlparse(url if '//' in url else f'//{url}')
    host = (parsed.hostname or '').lower()
    if host.startswith('www.'):
        host = host[len('www.'):]
    return host


def extract_contact(text: Optional[str]) -> str:
    """Find an email address, else a Dutch phone number, in free text."""
    if not text:
        return ''
    email = _EMAIL_RE.search(text)
    if email:
        return email.group(0)
    phone = _PHONE_RE.search(text)
    if phone:
        return re.sub(r'[\s-]', '', phone.group(0))
    return ''
