"""Markdown export package for writing an offline Markdown copy of a crawl.

This package exports the visited URLs recorded by a crawl to a local directory
of Markdown files, with images and documents stored next to them and every
link rewritten to a relative path.

Package Structure:
- markdown_exporter: Main orchestrator for exporting visited URLs to the filesystem
- export_gate: Decides which visited resources are exported at all
- url_converter: Classifies URLs and maps them to relative offline paths

Configuration Referenced:
- export.markdown.output_directory: Base output path (activates the exporter)
- export.markdown.disable_images / disable_files: Drop images or documents
- export.markdown.store_only_url_regex: Allow-list of exported URLs
- export.markdown.replace_content / replace_query_string: Rewrite rules
"""

from .export_gate import ExportGate
from .markdown_exporter import ExportError, MarkdownExporter
from .url_converter import OfflineUrlConverter, classify

__all__ = [
    'ExportError',
    'ExportGate',
    'MarkdownExporter',
    'OfflineUrlConverter',
    'classify'
]
