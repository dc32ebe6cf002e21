"""Crawl policy: which hosts may be crawled or mirrored and which URLs are ignored."""

import fnmatch
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from config_loader import compile_user_regex, get_nested


class CrawlPolicy:
    """
    Read-only view of the crawl options the exporter depends on.

    Domain lists hold fnmatch patterns (``*.example.com``) matched
    case-insensitively against the bare host name.
    """

    def __init__(
        self,
        initial_url: str,
        allowed_domains_for_crawling: Optional[List[str]] = None,
        allowed_domains_for_static_files: Optional[List[str]] = None,
        ignore_regexes: Optional[List[str]] = None
    ):
        self.initial_url = initial_url
        self.initial_host = (urlparse(initial_url).hostname or '').lower()
        self.allowed_domains_for_crawling = [d.lower() for d in (allowed_domains_for_crawling or [])]
        self.allowed_domains_for_static_files = [d.lower() for d in (allowed_domains_for_static_files or [])]
        self.ignore_regexes: List[re.Pattern] = [compile_user_regex(r) for r in (ignore_regexes or [])]

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'CrawlPolicy':
        return cls(
            initial_url=get_nested(config, 'crawl.url'),
            allowed_domains_for_crawling=get_nested(config, 'crawl.allowed_domains_for_crawling', []),
            allowed_domains_for_static_files=get_nested(config, 'crawl.allowed_domains_for_static_files', []),
            ignore_regexes=get_nested(config, 'crawl.ignore_regex', [])
        )

    def is_external_domain_allowed_for_crawling(self, host: Optional[str]) -> bool:
        return self._matches_any(host, self.allowed_domains_for_crawling)

    def is_domain_allowed_for_static_files(self, host: Optional[str]) -> bool:
        return self._matches_any(host, self.allowed_domains_for_static_files)

    def is_ignored(self, url: str) -> bool:
        """Check if a URL matches any of the ignore regexes."""
        return any(regex.search(url) for regex in self.ignore_regexes)

    @staticmethod
    def _matches_any(host: Optional[str], patterns: List[str]) -> bool:
        if not host:
            return False
        host = host.lower()
        return any(fnmatch.fnmatchcase(host, pattern) for pattern in patterns)


__all__ = ['CrawlPolicy']
