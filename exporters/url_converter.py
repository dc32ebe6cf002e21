"""Offline URL conversion: maps crawled URLs to paths inside the export directory."""

import hashlib
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import quote, unquote, urljoin, urlparse

from config_loader import apply_replace_rules
from models import STATIC_FILE_EXTENSIONS, PathRelation, ReplaceRule, is_static_file_path

logger = logging.getLogger('crawl_markdown_exporter.exporters.url_converter')

UNSAFE_PATH_CHARS = re.compile(r'[\\:*?"<>|\x00-\x1f\x7f]')
REPEATED_SLASHES = re.compile(r'/{2,}')
EXTENSION_PATTERN = re.compile(r'\.([a-z0-9]{1,10})$', re.IGNORECASE)
QUERY_HASH_LENGTH = 10

# Extensions that are stored as-is when referenced from <a href>
KEEP_EXTENSIONS_FOR_HREF = STATIC_FILE_EXTENSIONS | {'html', 'md'}

HostCheck = Callable[[str], bool]


@dataclass(frozen=True)
class TargetUrlParts:
    """Host, export-relative path and query of a converted target URL."""
    host: str
    path: str
    query: str = ''
    fragment: str = ''


@dataclass(frozen=True)
class ResolvedUrl:
    """Result of resolving one reference."""
    relative_url: str
    target: TargetUrlParts
    relation: PathRelation


def _host_of(url: Optional[str]) -> Optional[str]:
    try:
        host = urlparse(url or '').hostname
    except ValueError:
        return None
    return host.lower() if host else None


def classify(initial_url: str, base_url: str, target_url: str) -> PathRelation:
    """
    Classify how the target's host relates to the initial URL and the base document.

    Hosts are compared case-insensitively; scheme and port are ignored. A
    missing or unparsable host never counts as "same".
    """
    initial_host = _host_of(initial_url)
    base_host = _host_of(base_url)
    target_host = _host_of(target_url)

    initial_same = target_host is not None and target_host == initial_host
    base_same = target_host is not None and target_host == base_host

    if initial_same:
        return PathRelation.INITIAL_SAME__BASE_SAME if base_same else PathRelation.INITIAL_SAME__BASE_DIFFERENT
    return PathRelation.INITIAL_DIFFERENT__BASE_SAME if base_same else PathRelation.INITIAL_DIFFERENT__BASE_DIFFERENT


def sanitize_file_path(path: str, keep_query: bool = False) -> str:
    """
    Replace characters that are not allowed in file names on common filesystems.

    Args:
        path: Export-relative file path
        keep_query: Keep a trailing ``?query`` part untouched instead of dropping it

    Returns:
        Sanitized path with repeated slashes collapsed
    """
    query = ''
    if '?' in path:
        path, query = path.split('?', 1)
        query = '?' + query if keep_query else ''

    path = UNSAFE_PATH_CHARS.sub('_', path)
    path = REPEATED_SLASHES.sub('/', path)
    return path + query


def get_query_string_suffix(query: str, replace_rules: Optional[List[ReplaceRule]] = None) -> str:
    """
    Turn a query string into a file-name-safe suffix.

    Without rules the suffix is the first characters of the query's MD5 hash,
    so the same query always maps to the same file name.
    """
    if replace_rules:
        replaced = apply_replace_rules(query, replace_rules)
        return UNSAFE_PATH_CHARS.sub('_', replaced).replace('/', '_')

    return hashlib.md5(query.encode('utf-8')).hexdigest()[:QUERY_HASH_LENGTH]


class OfflineUrlConverter:
    """
    Converts a reference found in a base document to a URL relative to that document
    inside the offline export.

    Every URL maps to one export path:
    - pages on the initial host live at their URL path (``/`` becomes ``index.html``)
    - pages on other hosts live under ``_<host>/``
    - query strings are folded into the file name
    """

    def __init__(
        self,
        initial_url: str,
        base_url: str,
        target_url: str,
        is_static_file_allowed_for_host: Optional[HostCheck] = None,
        is_external_host_allowed_for_crawl: Optional[HostCheck] = None,
        attribute: str = 'href',
        replace_query_string: Optional[List[ReplaceRule]] = None
    ):
        """
        Initialize the converter.

        Args:
            initial_url: URL the crawl started from
            base_url: URL of the document containing the reference
            target_url: Referenced URL, absolute or relative to base_url
            is_static_file_allowed_for_host: Policy check for static files on external hosts
            is_external_host_allowed_for_crawl: Policy check for crawling external hosts
            attribute: 'href' or 'src'; extensionless 'href' targets are stored as .html
            replace_query_string: Rules used instead of hashing query strings
        """
        self.initial_url = initial_url
        self.base_url = base_url
        self.target_url = target_url
        self.absolute_target_url = urljoin(base_url, target_url)
        self.attribute = attribute
        self.replace_query_string = replace_query_string or []
        self._is_static_file_allowed_for_host = is_static_file_allowed_for_host or (lambda host: False)
        self._is_external_host_allowed_for_crawl = is_external_host_allowed_for_crawl or (lambda host: False)
        self._parsed_target = urlparse(self.absolute_target_url)
        self._relation: Optional[PathRelation] = None

    def get_target_domain_relation(self) -> PathRelation:
        if self._relation is None:
            self._relation = classify(self.initial_url, self.base_url, self.absolute_target_url)
        return self._relation

    def get_relative_target_url(self) -> TargetUrlParts:
        """Target host, export path, query and fragment."""
        return TargetUrlParts(
            host=(self._parsed_target.hostname or '').lower(),
            path=self.get_target_export_path(),
            query=self._parsed_target.query,
            fragment=self._parsed_target.fragment
        )

    def is_convertible(self) -> bool:
        """Check if the target can be linked offline (http(s) and allowed by policy)."""
        if self._parsed_target.scheme not in ('http', 'https') or not self._parsed_target.hostname:
            return False

        if self.get_target_domain_relation().is_initial_same:
            return True

        host = self._parsed_target.hostname.lower()
        if self._is_external_host_allowed_for_crawl(host):
            return True

        is_static = self.attribute == 'src' or is_static_file_path(self._parsed_target.path)
        return is_static and self._is_static_file_allowed_for_host(host)

    def convert_url_to_relative(self, keep_fragment: bool = True) -> str:
        """
        Convert the target to a URL relative to the base document.

        Targets that cannot be stored offline (other schemes, hosts not allowed
        by policy) are returned as absolute URLs.
        """
        if not self.is_convertible():
            if self._parsed_target.scheme in ('http', 'https'):
                return self.absolute_target_url if keep_fragment else self.absolute_target_url.split('#', 1)[0]
            return self.target_url

        relative = posixpath.relpath(self.get_target_export_path(), self.get_base_export_dir() or '.')
        relative = quote(relative, safe="/._-~+=,;!@$&'")

        if keep_fragment and self._parsed_target.fragment:
            relative += '#' + self._parsed_target.fragment

        return relative

    def get_target_export_path(self) -> str:
        return self._export_path_for(self._parsed_target, self.attribute)

    def get_base_export_dir(self) -> str:
        """Directory of the base document inside the export, '' for the export root."""
        return posixpath.dirname(self._export_path_for(urlparse(self.base_url), 'href'))

    def _export_path_for(self, parsed, attribute: str) -> str:
        """Export-root-relative file path of a parsed URL."""
        path = unquote(parsed.path or '')

        if path == '' or path.endswith('/'):
            path += 'index.html'
        else:
            match = EXTENSION_PATTERN.search(path.rsplit('/', 1)[-1])
            extension = match.group(1).lower() if match else None
            if attribute != 'src' and extension not in KEEP_EXTENSIONS_FOR_HREF:
                path += '.html'

        if parsed.query:
            suffix = get_query_string_suffix(parsed.query, self.replace_query_string)
            directory, _, file_name = path.rpartition('/')
            match = EXTENSION_PATTERN.search(file_name)
            if match:
                file_name = f"{file_name[:match.start()]}.{suffix}{match.group(0)}"
            else:
                file_name = f"{file_name}.{suffix}"
            path = f"{directory}/{file_name}" if directory else file_name

        path = path.lstrip('/')

        host = (parsed.hostname or '').lower()
        if host and host != _host_of(self.initial_url):
            path = f"_{host}/{path}"

        return sanitize_file_path(path)


def resolve(
    initial_url: str,
    base_url: str,
    target_url: str,
    is_static_file_allowed_for_host: Optional[HostCheck] = None,
    is_external_host_allowed_for_crawl: Optional[HostCheck] = None,
    attribute: str = 'href',
    replace_query_string: Optional[List[ReplaceRule]] = None,
    keep_fragment: bool = True
) -> ResolvedUrl:
    """Resolve a reference to its relative URL, target parts and path relation."""
    converter = OfflineUrlConverter(
        initial_url,
        base_url,
        target_url,
        is_static_file_allowed_for_host,
        is_external_host_allowed_for_crawl,
        attribute,
        replace_query_string
    )
    return ResolvedUrl(
        relative_url=converter.convert_url_to_relative(keep_fragment),
        target=converter.get_relative_target_url(),
        relation=converter.get_target_domain_relation()
    )


def ensure_host_prefix(path: str, host: str) -> str:
    """Prefix an export path with ``_<host>/`` unless it already carries it."""
    prefix = f"_{host}/"
    if not host or path.startswith(prefix):
        return path
    return prefix + path


__all__ = [
    'TargetUrlParts',
    'ResolvedUrl',
    'OfflineUrlConverter',
    'classify',
    'resolve',
    'sanitize_file_path',
    'get_query_string_suffix',
    'ensure_host_prefix'
]
