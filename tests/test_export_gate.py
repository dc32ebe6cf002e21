"""Tests for the export admission rules."""

import re

import pytest

from exporters.export_gate import ExportGate
from models import ContentType, SourceAttr


class TestCandidates:
    """Pre-filter on status, content type and image source."""

    def test_html_200_is_candidate(self, policy, make_resource):
        gate = ExportGate(policy)
        assert gate.is_exportable_candidate(make_resource('1', 'https://example.com/a'))

    def test_non_200_is_not_candidate(self, policy, make_resource):
        gate = ExportGate(policy)
        assert not gate.is_exportable_candidate(make_resource('1', 'https://example.com/a', status_code=404))
        assert not gate.is_exportable_candidate(make_resource('2', 'https://example.com/b', status_code=301))

    @pytest.mark.parametrize('content_type', [
        ContentType.SCRIPT, ContentType.STYLESHEET, ContentType.FONT, ContentType.JSON, ContentType.OTHER
    ])
    def test_unsupported_content_types(self, policy, make_resource, content_type):
        gate = ExportGate(policy)
        assert not gate.is_exportable_candidate(make_resource('1', 'https://example.com/a', content_type))

    def test_images_only_from_img_src_or_a_href(self, policy, make_resource):
        gate = ExportGate(policy)
        url = 'https://example.com/a.png'
        assert gate.is_exportable_candidate(make_resource('1', url, ContentType.IMAGE, source_attr=SourceAttr.IMG_SRC))
        assert gate.is_exportable_candidate(make_resource('2', url, ContentType.IMAGE, source_attr=SourceAttr.A_HREF))
        assert not gate.is_exportable_candidate(
            make_resource('3', url, ContentType.IMAGE, source_attr=SourceAttr.CSS_URL)
        )
        assert not gate.is_exportable_candidate(
            make_resource('4', url, ContentType.IMAGE, source_attr=SourceAttr.IMG_SRCSET)
        )

    def test_disabled_images_and_files(self, policy, make_resource):
        gate = ExportGate(policy, disable_images=True, disable_files=True)
        assert not gate.is_exportable_candidate(make_resource('1', 'https://example.com/a.png', ContentType.IMAGE))
        assert not gate.is_exportable_candidate(make_resource('2', 'https://example.com/a.pdf', ContentType.DOCUMENT))
        assert ContentType.REDIRECT in gate.valid_content_types


class TestShouldExport:
    """Allow-list, external domain policy and robots.txt."""

    @pytest.mark.parametrize('store_only', [[], [re.compile('.*')], [re.compile('robots')]])
    def test_robots_txt_is_always_rejected(self, policy, make_resource, store_only):
        gate = ExportGate(policy, store_only_url_regexes=store_only)
        for resource in (
            make_resource('1', 'https://example.com/robots.txt'),
            make_resource('2', 'https://docs.partner.com/robots.txt', is_external=True),
            make_resource('3', 'https://example.com/robots.txt', ContentType.DOCUMENT),
        ):
            assert not gate.should_export(resource)

    def test_external_page_from_unknown_domain_is_rejected(self, policy, make_resource):
        gate = ExportGate(policy)
        resource = make_resource('1', 'https://other.org/page', is_external=True)
        assert gate.is_exportable_candidate(resource)
        assert not gate.should_export(resource)

    def test_external_page_from_crawl_allowed_domain(self, policy, make_resource):
        gate = ExportGate(policy)
        assert gate.should_export(make_resource('1', 'https://docs.partner.com/page', is_external=True))

    def test_static_file_from_static_allowed_domain(self, policy, make_resource):
        gate = ExportGate(policy)
        image = make_resource('1', 'https://cdn.example.net/logo.png', ContentType.IMAGE, is_external=True)
        page = make_resource('2', 'https://cdn.example.net/page', is_external=True)
        assert gate.should_export(image)
        assert not gate.should_export(page)

    def test_store_only_allow_list(self, policy, make_resource):
        gate = ExportGate(policy, store_only_url_regexes=[re.compile('/docs/')])
        assert gate.should_export(make_resource('1', 'https://example.com/docs/a'))
        assert not gate.should_export(make_resource('2', 'https://example.com/blog/a'))

    def test_is_valid_url(self):
        assert ExportGate.is_valid_url('https://example.com/a')
        assert not ExportGate.is_valid_url('/relative/path')
        assert not ExportGate.is_valid_url('')

    def test_filter(self, policy, make_resource):
        gate = ExportGate(policy)
        resources = [
            make_resource('1', 'https://example.com/a'),
            make_resource('2', 'https://example.com/robots.txt'),
            make_resource('3', 'https://other.org/b', is_external=True),
            make_resource('4', 'https://example.com/c', status_code=500),
        ]
        assert [r.uq_id for r in gate.filter(resources)] == ['1']
