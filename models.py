"""Data models for the crawl-to-markdown export pipeline."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

logger = logging.getLogger('crawl_markdown_exporter')

STATIC_FILE_EXTENSIONS = {
    'css', 'js', 'mjs', 'map', 'json', 'xml', 'txt',
    'jpg', 'jpeg', 'png', 'gif', 'webp', 'avif', 'svg', 'ico', 'bmp', 'tif', 'tiff',
    'woff', 'woff2', 'ttf', 'otf', 'eot',
    'pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx', 'odt', 'ods', 'csv', 'rtf',
    'zip', 'gz', 'tgz', 'rar', '7z', 'tar',
    'mp3', 'mp4', 'webm', 'ogg', 'wav', 'avi', 'mov',
}


class ContentType(Enum):
    """Content-type classification of a visited URL."""
    HTML = 1
    SCRIPT = 2
    STYLESHEET = 3
    IMAGE = 4
    FONT = 5
    DOCUMENT = 6
    JSON = 7
    REDIRECT = 8
    XML = 9
    OTHER = 10


class SourceAttr(Enum):
    """Where in the referencing document a URL was found."""
    INIT_URL = 'init'
    A_HREF = 'a-href'
    IMG_SRC = 'img-src'
    IMG_SRCSET = 'img-srcset'
    PICTURE_SOURCE = 'picture-source'
    CSS_URL = 'css-url'
    INLINE_SCRIPT = 'inline-script'
    LINK_HREF = 'link-href'
    SCRIPT_SRC = 'script-src'
    OTHER = 'other'


class PathRelation(Enum):
    """How a target URL's host relates to the initial URL and to the base document."""
    INITIAL_SAME__BASE_SAME = 'initial-same-base-same'
    INITIAL_SAME__BASE_DIFFERENT = 'initial-same-base-different'
    INITIAL_DIFFERENT__BASE_SAME = 'initial-different-base-same'
    INITIAL_DIFFERENT__BASE_DIFFERENT = 'initial-different-base-different'

    @property
    def is_initial_same(self) -> bool:
        return self in (PathRelation.INITIAL_SAME__BASE_SAME, PathRelation.INITIAL_SAME__BASE_DIFFERENT)


def is_static_file_path(path: str) -> bool:
    """Check whether a URL path points to a static (non-HTML) file by its extension."""
    match = re.search(r'\.([a-z0-9]{1,5})$', (path or '').lower())
    return bool(match) and match.group(1) in STATIC_FILE_EXTENSIONS


@dataclass(frozen=True)
class VisitedResource:
    """One crawled URL and its recorded outcome. Read-only to the exporter."""

    uq_id: str
    url: str
    status_code: int
    content_type: ContentType
    is_external: bool = False
    source_uq_id: Optional[str] = None
    source_attr: SourceAttr = SourceAttr.A_HREF
    size: Optional[int] = None
    elapsed_time: Optional[float] = None

    def is_https(self) -> bool:
        return self.url.lower().startswith('https://')

    def is_image(self) -> bool:
        return self.content_type == ContentType.IMAGE

    def is_static_file(self) -> bool:
        """Static files are everything that is not a page, a redirect or an unknown payload."""
        if self.content_type in (
            ContentType.IMAGE, ContentType.SCRIPT, ContentType.STYLESHEET,
            ContentType.FONT, ContentType.DOCUMENT, ContentType.JSON, ContentType.XML
        ):
            return True
        return is_static_file_path(urlparse(self.url).path)

    @property
    def host(self) -> str:
        return (urlparse(self.url).hostname or '').lower()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize resource to dictionary."""
        return {
            'uq_id': self.uq_id,
            'url': self.url,
            'status_code': self.status_code,
            'content_type': self.content_type.name,
            'is_external': self.is_external,
            'source_uq_id': self.source_uq_id,
            'source_attr': self.source_attr.value,
            'size': self.size,
            'elapsed_time': self.elapsed_time
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VisitedResource':
        """Deserialize from dictionary."""
        return cls(
            uq_id=str(data['uq_id']),
            url=data['url'],
            status_code=int(data['status_code']),
            content_type=ContentType[str(data.get('content_type', 'OTHER')).upper()],
            is_external=bool(data.get('is_external', False)),
            source_uq_id=data.get('source_uq_id'),
            source_attr=SourceAttr(data.get('source_attr', SourceAttr.A_HREF.value)),
            size=data.get('size'),
            elapsed_time=data.get('elapsed_time')
        )


@dataclass(frozen=True)
class LiteralReplaceRule:
    """Plain substring replacement."""
    search: str
    replacement: str = ''

    def apply(self, text: str) -> str:
        if not self.search:
            return text
        return text.replace(self.search, self.replacement)


@dataclass(frozen=True)
class PatternReplaceRule:
    """Regular-expression replacement (all occurrences)."""
    pattern: re.Pattern
    replacement: str = ''

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


ReplaceRule = Union[LiteralReplaceRule, PatternReplaceRule]


@dataclass
class HttpResponse:
    """HTTP response as recorded by the crawler, with redirects turned into meta-refresh pages."""

    url: str
    status_code: int
    body: Optional[Union[str, bytes]]
    headers: Dict[str, str] = field(default_factory=dict)
    exec_time: float = 0.0

    def __post_init__(self) -> None:
        """Rewrite redirects to text/html bodies so they can be stored offline."""
        self.headers = {key.lower(): value for key, value in self.headers.items()}
        location = self.headers.get('location')
        if 300 < self.status_code < 320 and location:
            self.body = (
                f'<meta http-equiv="refresh" content="0; url={location}"> '
                f'Redirecting to {location} ...'
            )
            self.headers['content-type'] = 'text/html'

    @property
    def content_length(self) -> int:
        if not self.body:
            return 0
        return len(self.body) if isinstance(self.body, bytes) else len(self.body.encode('utf-8'))


__all__ = [
    'ContentType',
    'SourceAttr',
    'PathRelation',
    'VisitedResource',
    'LiteralReplaceRule',
    'PatternReplaceRule',
    'ReplaceRule',
    'HttpResponse',
    'STATIC_FILE_EXTENSIONS',
    'is_static_file_path'
]
