"""
Document-content source — plain text behind a job-description URL.

Google Docs links are fetched through their plain-text export; other HTML
pages are reduced to visible text with BeautifulSoup.
"""
import logging
import re
from typing import Optional

import requests
from bs4 import BeautifulSoup

from enricher.errors import DocumentFetchError

logger = logging.getLogger('services.documents')

_GDOC_ID = re.compile(r'docs\.google\.com/document/d/([a-zA-Z0-9_-]+)')


def is_url(value: str) -> bool:
    return bool(value) and value.strip().lower().startswith(('http://', 'https://'))


def export_url(url: str) -> str:
    """Rewrite a Google Docs link to its text export; other URLs are unchanged."""
    match = _GDOC_ID.search(url)
    if match:
        return f'https://docs.google.com/document/d/{match.group(1)}/export?format=txt'
    return url


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(['script', 'style', 'noscript']):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text('\n').splitlines())
    return '\n'.join(line for line in lines if line)


class DocumentSource:
    """fetch_text(url) → str, raising DocumentFetchError for anything unreadable."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30):
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_text(self, url: str) -> str:
        if not is_url(url):
            raise DocumentFetchError(url, 'not an http(s) URL')

        target = export_url(url.strip())
        try:
            resp = self.session.get(target, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Document fetch failed for %s: %s", target, e)
            raise DocumentFetchError(url, str(e))

        content_type = resp.headers.get('Content-Type', '')
        text = html_to_text(resp.text) if 'html' in content_type else resp.text.strip()
        if not text:
            raise DocumentFetchError(url, 'empty document')
        logger.info("Fetched %d chars from %s", len(text), target)
        return text

    def resolve(self, value: str) -> str:
        """Job description config value: fetched when it is a URL, verbatim otherwise."""
        value = (value or '').strip()
        if is_url(value):
            return self.fetch_text(value)
        return value
