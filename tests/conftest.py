"""Shared fixtures for exporter tests."""

import pytest

from crawl_policy import CrawlPolicy
from crawl_status import CrawlStatus
from models import ContentType, SourceAttr, VisitedResource

INITIAL_URL = 'https://example.com/'


class StubConverter:
    """Converter double returning canned Markdown and recording its calls."""

    def __init__(self, markdown='# Page\n\nContent\n'):
        self.markdown = markdown
        self.calls = []

    def convert(self, html, exclude_selectors=None):
        self.calls.append((html, exclude_selectors))
        return self.markdown


@pytest.fixture
def make_resource():
    def factory(uq_id, url, content_type=ContentType.HTML, status_code=200, **kwargs):
        kwargs.setdefault('source_attr', SourceAttr.IMG_SRC if content_type == ContentType.IMAGE else SourceAttr.A_HREF)
        return VisitedResource(uq_id=uq_id, url=url, status_code=status_code, content_type=content_type, **kwargs)
    return factory


@pytest.fixture
def status():
    return CrawlStatus(INITIAL_URL)


@pytest.fixture
def policy():
    return CrawlPolicy(
        INITIAL_URL,
        allowed_domains_for_crawling=['*.partner.com'],
        allowed_domains_for_static_files=['cdn.example.net']
    )


@pytest.fixture
def stub_converter():
    return StubConverter()
