"""Tests for HTML to Markdown converters and offline content processors."""

from urllib.parse import urlparse

import pytest

from converters import convert_html
from converters.content_processors import ContentProcessorManager, OfflineLinkProcessor
from converters.html_to_markdown import (
    CommandHtmlConverter,
    MarkdownifyHtmlConverter,
    create_converter,
)
from models import ContentType


class TestMarkdownifyHtmlConverter:
    """In-process conversion with markdownify."""

    def test_headings_and_emphasis(self):
        html = '<html><body><h1>Title</h1><p>Hello <strong>world</strong></p></body></html>'
        result = MarkdownifyHtmlConverter().convert(html)
        assert '# Title' in result
        assert '**world**' in result

    def test_non_content_elements_are_dropped(self):
        html = '<p>Visible</p><script>alert(1)</script><style>p {color: red}</style><noscript>JS off</noscript>'
        result = MarkdownifyHtmlConverter().convert(html)
        assert 'Visible' in result
        assert 'alert' not in result
        assert 'color' not in result
        assert 'JS off' not in result

    def test_exclude_selectors(self):
        html = '<nav class="menu">Menu</nav><div id="cookie">Cookies</div><p>Body</p>'
        result = MarkdownifyHtmlConverter().convert(html, ['.menu', '#cookie'])
        assert 'Menu' not in result
        assert 'Cookies' not in result
        assert 'Body' in result

    def test_invalid_selector_is_skipped(self):
        result = MarkdownifyHtmlConverter().convert('<p>Body</p>', ['[[invalid'])
        assert 'Body' in result

    def test_code_block_language_from_class(self):
        html = '<pre><code class="language-python">print(1)</code></pre>'
        result = MarkdownifyHtmlConverter().convert(html)
        assert '```python' in result
        assert 'print(1)' in result

    def test_images_and_links(self):
        html = '<p><img src="../img/a.png" title="Logo"> <a href="../about.html">About</a> <a>plain</a></p>'
        result = MarkdownifyHtmlConverter().convert(html)
        assert '![Logo](../img/a.png)' in result
        assert '[About](../about.html)' in result
        assert 'plain' in result
        assert '[plain]' not in result

    def test_pre_converted_table_rows(self):
        html = '<p>| A | B |<br/>\n| --- | --- |<br/>\n| 1 | 2 |<br/>\n</p>'
        result = MarkdownifyHtmlConverter().convert(html)
        assert '| A | B |' in result
        assert '| 1 | 2 |' in result

    @pytest.mark.parametrize('html', ['', '   ', '<html><body></body></html>', '<script>x()</script>'])
    def test_empty_documents_give_none(self, html):
        assert MarkdownifyHtmlConverter().convert(html) is None


class TestCommandHtmlConverter:
    """External command conversion."""

    def test_build_args(self):
        converter = CommandHtmlConverter('html2markdown --plugin-table')
        assert converter.build_args(['.a', '#b']) == [
            'html2markdown', '--plugin-table', '--exclude-selector', '.a', '--exclude-selector', '#b'
        ]

    def test_missing_command_gives_none(self):
        converter = CommandHtmlConverter('crawl-markdown-exporter-missing-command')
        assert converter.convert('<p>x</p>') is None

    def test_create_converter(self):
        assert isinstance(create_converter({}), MarkdownifyHtmlConverter)
        command = create_converter({'export': {'markdown': {'converter': 'command', 'converter_command': 'h2m -x'}}})
        assert isinstance(command, CommandHtmlConverter)
        assert command.command == ['h2m', '-x']


class TestOfflineLinkProcessor:
    """URL rewriting in HTML bodies."""

    @staticmethod
    def record(base_url, target_url, attribute):
        return f'{attribute}:{target_url}'

    def apply(self, body, url='https://example.com/docs/page', content_type=ContentType.HTML):
        processor = OfflineLinkProcessor(self.record)
        return processor.apply_content_changes_for_offline_version(body, content_type, urlparse(url), True)

    def test_href_and_src_are_rewritten(self):
        result = self.apply('<a href="/a">A</a><img src="b.png"><link href="s.css" rel="stylesheet">')
        assert 'href="href:https://example.com/a"' in result
        assert 'src="src:https://example.com/docs/b.png"' in result
        assert 'href="href:https://example.com/docs/s.css"' in result

    def test_fragment_only_links_are_kept(self):
        result = self.apply('<a href="#top">Top</a>')
        assert 'href="#top"' in result

    def test_base_tag_changes_resolution_and_is_removed(self):
        result = self.apply('<head><base href="/other/"></head><body><a href="x">X</a></body>')
        assert 'href="href:https://example.com/other/x"' in result
        assert '<base' not in result

    def test_srcset_and_meta_refresh(self):
        result = self.apply(
            '<head><meta http-equiv="refresh" content="0; url=/new"></head>'
            '<body><img src="a.png" srcset="a-2x.png 2x, a-3x.png 3x"></body>'
        )
        assert 'url=href:https://example.com/new' in result
        assert 'src:https://example.com/docs/a-2x.png 2x, src:https://example.com/docs/a-3x.png 3x' in result

    def test_not_offline_keeps_body(self):
        processor = OfflineLinkProcessor(self.record)
        body = '<a href="/a">A</a>'
        assert processor.apply_content_changes_for_offline_version(
            body, ContentType.HTML, urlparse('https://example.com/'), False
        ) == body

    def test_manager_applies_relevant_processors(self):
        manager = ContentProcessorManager()
        manager.register(OfflineLinkProcessor(self.record))
        parsed = urlparse('https://example.com/')

        assert manager.apply_content_changes_for_offline_version(None, ContentType.HTML, parsed) is None
        assert manager.apply_content_changes_for_offline_version('body', ContentType.IMAGE, parsed) == 'body'
        redirect = manager.apply_content_changes_for_offline_version(
            '<meta http-equiv="refresh" content="0; url=https://example.com/x">', ContentType.REDIRECT, parsed
        )
        assert 'url=href:https://example.com/x' in redirect


class TestConvertHtml:
    """Single-page pipeline: tables, conversion, normalization."""

    def test_page_with_table_and_links(self):
        html = (
            '<body><p>Intro</p><h1>Guide</h1><p>See <a href="next.html#top">next</a>.</p>'
            '<table><tr><th>Name</th><th>Value</th></tr><tr><td>a</td></tr></table></body>'
        )
        result = convert_html(html)
        assert result.startswith('# Guide')
        assert '[next](next.md#top)' in result
        assert '| Name | Value |' in result
        assert '| a |' in result
        assert result.rstrip().endswith('Intro')

    def test_empty_document(self):
        assert convert_html('   ') is None
