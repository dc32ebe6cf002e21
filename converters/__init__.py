"""Converters package for turning crawled HTML pages into clean Markdown."""

import logging

from .code_language import detect_language, set_code_languages
from .content_processors import ContentProcessor, ContentProcessorManager, OfflineLinkProcessor
from .html_to_markdown import CommandHtmlConverter, MarkdownifyHtmlConverter, create_converter
from .markdown_normalizer import MarkdownNormalizer
from .table_converter import TableConverter


def convert_html(html, exclude_selectors=None, config=None, logger=None):
    """
    Convenience function to convert one HTML document to normalized Markdown.

    This runs the same pipeline the exporter uses for a single page:
    1. HTML tables are converted to Markdown tables
    2. The document is converted with the configured converter
    3. The Markdown is normalized (links, lists, headings, code languages)

    Args:
        html: HTML document
        exclude_selectors: Optional CSS selectors of elements to drop
        config: Optional configuration dictionary for converter behavior
        logger: Optional logger instance (uses module logger if not provided)

    Returns:
        Markdown text, or None if the document produced no content

    Example:
        >>> from converters import convert_html
        >>> markdown = convert_html('<h1>Title</h1><p>Text</p>')
    """
    if logger is None:
        logger = logging.getLogger('crawl_markdown_exporter.converters')

    converter = create_converter(config or {}, logger)
    markdown = converter.convert(TableConverter().replace_html_tables(html), exclude_selectors)
    if markdown is None:
        return None
    return MarkdownNormalizer(logger=logger).normalize(markdown)


__all__ = [
    'convert_html',
    'CommandHtmlConverter',
    'ContentProcessor',
    'ContentProcessorManager',
    'MarkdownifyHtmlConverter',
    'MarkdownNormalizer',
    'OfflineLinkProcessor',
    'TableConverter',
    'create_converter',
    'detect_language',
    'set_code_languages'
]
