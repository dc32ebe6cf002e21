"""Pluggable content processors applied to page bodies before they are exported."""

import logging
import re
from typing import Callable, Iterable, List, Optional, Set
from urllib.parse import ParseResult, urljoin

from bs4 import BeautifulSoup

from models import ContentType

logger = logging.getLogger('crawl_markdown_exporter.converters.content_processors')

META_REFRESH_URL_PATTERN = re.compile(r'(url\s*=\s*)([^"\'>\s;]+)', re.IGNORECASE)

# Tag -> attributes holding a single URL
URL_ATTRIBUTES = {
    'a': ['href'],
    'area': ['href'],
    'img': ['src'],
    'source': ['src'],
    'audio': ['src'],
    'video': ['src', 'poster'],
    'link': ['href'],
    'script': ['src'],
    'iframe': ['src'],
}

RelativeUrlFunc = Callable[[str, str, str], str]


class ContentProcessor:
    """
    Base class for content processors.

    Subclasses declare the content types they handle and return the changed
    body from apply_content_changes_for_offline_version().
    """

    content_types: Set[ContentType] = {ContentType.HTML}

    def is_content_type_relevant(self, content_type: ContentType) -> bool:
        return content_type in self.content_types

    def apply_content_changes_for_offline_version(
        self,
        body: str,
        content_type: ContentType,
        parsed_url: ParseResult,
        is_offline: bool = True
    ) -> str:
        raise NotImplementedError


class OfflineLinkProcessor(ContentProcessor):
    """
    Rewrites URLs in HTML (and meta-refresh redirects) to paths relative to the page.

    The rewrite itself is delegated to a callable ``(base_url, target_url,
    attribute) -> relative_url`` so the exporter and this processor share one
    path layout.
    """

    content_types = {ContentType.HTML, ContentType.REDIRECT}

    def __init__(self, convert_url: RelativeUrlFunc, logger: Optional[logging.Logger] = None):
        self.convert_url = convert_url
        self.logger = logger or logging.getLogger('crawl_markdown_exporter.converters.content_processors')

    def apply_content_changes_for_offline_version(
        self,
        body: str,
        content_type: ContentType,
        parsed_url: ParseResult,
        is_offline: bool = True
    ) -> str:
        if not body or not is_offline:
            return body

        page_url = parsed_url.geturl()
        base_url = page_url
        soup = BeautifulSoup(body, 'lxml')

        # References resolve against <base href>, but are rewritten relative to the page itself
        for base_tag in soup.find_all('base'):
            if base_tag.get('href'):
                base_url = urljoin(page_url, base_tag['href'])
            base_tag.decompose()

        rewritten = 0
        for tag_name, attributes in URL_ATTRIBUTES.items():
            for element in soup.find_all(tag_name):
                for attribute in attributes:
                    value = element.get(attribute)
                    if not value or not isinstance(value, str) or value.startswith('#'):
                        continue
                    kind = 'href' if attribute == 'href' else 'src'
                    new_value = self.convert_url(page_url, urljoin(base_url, value.strip()), kind)
                    if new_value != value:
                        element[attribute] = new_value
                        rewritten += 1

        for element in soup.find_all(['img', 'source']):
            if element.get('srcset'):
                element['srcset'] = self._rewrite_srcset(page_url, base_url, element['srcset'])

        for meta in soup.find_all('meta', attrs={'http-equiv': re.compile('^refresh$', re.IGNORECASE)}):
            content = meta.get('content', '')
            meta['content'] = META_REFRESH_URL_PATTERN.sub(
                lambda match: match.group(1) + self.convert_url(page_url, urljoin(base_url, match.group(2)), 'href'),
                content
            )

        self.logger.debug(f"Rewrote {rewritten} URLs in {page_url}")
        return str(soup)

    def _rewrite_srcset(self, page_url: str, base_url: str, srcset: str) -> str:
        candidates = []
        for candidate in srcset.split(','):
            parts = candidate.strip().split(None, 1)
            if not parts:
                continue
            parts[0] = self.convert_url(page_url, urljoin(base_url, parts[0]), 'src')
            candidates.append(' '.join(parts))
        return ', '.join(candidates)


class ContentProcessorManager:
    """Runs registered processors in registration order."""

    def __init__(self, processors: Optional[Iterable[ContentProcessor]] = None):
        self.processors: List[ContentProcessor] = list(processors or [])

    def register(self, processor: ContentProcessor) -> None:
        self.processors.append(processor)

    def apply_content_changes_for_offline_version(
        self,
        body: Optional[str],
        content_type: ContentType,
        parsed_url: ParseResult,
        is_offline: bool = True
    ) -> Optional[str]:
        if body is None:
            return None
        for processor in self.processors:
            if processor.is_content_type_relevant(content_type):
                body = processor.apply_content_changes_for_offline_version(
                    body, content_type, parsed_url, is_offline
                )
        return body


__all__ = [
    'ContentProcessor',
    'OfflineLinkProcessor',
    'ContentProcessorManager'
]
