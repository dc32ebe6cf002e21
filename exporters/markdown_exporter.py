"""Markdown exporter: writes an offline Markdown mirror of the visited URLs of a crawl."""

import logging
import os
import posixpath
import re
import time
from typing import Any, Dict, Optional, Union
from urllib.parse import unquote, urlparse

from config_loader import apply_replace_rules, compile_user_regex, get_nested, parse_replace_rules
from converters.content_processors import ContentProcessorManager, OfflineLinkProcessor
from converters.html_to_markdown import create_converter
from converters.markdown_normalizer import MarkdownNormalizer
from converters.table_converter import TableConverter
from logger import ProgressTracker, format_duration
from models import ContentType, VisitedResource
from .export_gate import ExportGate
from .url_converter import OfflineUrlConverter, ensure_host_prefix, sanitize_file_path

# Paths with a recognizable extension make write failures fatal
FILE_EXTENSION_PATTERN = re.compile(r'\.[a-z0-9\-]{1,15}$', re.IGNORECASE)

NOTICE_STORE_FILE_IGNORED = 'markdown-exporter-store-file-ignored'
NOTICE_STORE_FILE_ERROR = 'markdown-exporter-store-file-error'
SUMMARY_MARKDOWN_GENERATED = 'markdown-generated'

STORED = 'stored'
SKIPPED = 'skipped'
FAILED = 'failed'


class ExportError(Exception):
    """Fatal error that aborts the whole export run."""


class MarkdownExporter:
    """
    Exports visited URLs of a crawl to a directory of Markdown files.

    For every visited resource this exporter:
    1. Checks it against the export gate
    2. Applies content processors and replace rules to HTML and redirects
    3. Resolves its path inside the export directory
    4. Converts HTML tables, writes the file and converts HTML to Markdown
    5. Normalizes the generated Markdown
    """

    CONTENT_TYPES_REQUIRING_CHANGES = {ContentType.HTML, ContentType.REDIRECT}

    def __init__(
        self,
        config: Dict[str, Any],
        status,
        policy,
        converter=None,
        content_processors: Optional[ContentProcessorManager] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the markdown exporter.

        Args:
            config: Configuration dictionary with export.markdown settings
            status: CrawlStatus holding visited resources and their bodies
            policy: CrawlPolicy with initial URL, domain rules and ignore regexes
            converter: HTML to Markdown converter; built from config when omitted
            content_processors: Processors applied to HTML bodies; offline link rewriting by default
            logger: Logger instance
        """
        self.config = config
        self.status = status
        self.policy = policy
        self.logger = logger or logging.getLogger('crawl_markdown_exporter.exporters.markdown_exporter')

        markdown_config = get_nested(config, 'export.markdown', {}) or {}
        output_directory = markdown_config.get('output_directory')
        self.output_directory = (output_directory.rstrip('/') or '/') if output_directory else None
        self.disable_images = bool(markdown_config.get('disable_images', False))
        self.disable_files = bool(markdown_config.get('disable_files', False))
        self.ignore_store_file_error = bool(markdown_config.get('ignore_store_file_error', False))
        self.exclude_selectors = list(markdown_config.get('exclude_selectors') or [])
        self.replace_content = parse_replace_rules(markdown_config.get('replace_content'))
        self.replace_query_string = parse_replace_rules(markdown_config.get('replace_query_string'))
        store_only_url_regexes = [
            compile_user_regex(regex) for regex in markdown_config.get('store_only_url_regex') or []
        ]

        self.converter = converter or create_converter(config, self.logger)
        self.gate = ExportGate(policy, store_only_url_regexes, self.disable_images, self.disable_files)
        self.table_converter = TableConverter()
        self.normalizer = MarkdownNormalizer(
            ignore_regexes=policy.ignore_regexes,
            disable_images=self.disable_images,
            disable_files=self.disable_files,
            logger=self.logger
        )
        if content_processors is None:
            content_processors = ContentProcessorManager([OfflineLinkProcessor(self.convert_url_to_relative)])
        self.content_processors = content_processors

        self.stats = {
            'total_candidates': 0,
            'total_stored': 0,
            'total_markdown_files': 0,
            'total_rejected': 0,
            'total_skipped': 0,
            'total_errors': 0
        }

    def should_be_activated(self) -> bool:
        """The exporter only runs when an output directory is configured."""
        return self.output_directory is not None

    def export(self) -> Dict[str, Any]:
        """
        Export all eligible visited URLs to the output directory.

        Returns:
            Statistics dictionary with export results

        Raises:
            ExportError: On directory creation or write failures that are not ignored
        """
        start_time = time.time()
        self.logger.info(f"Starting markdown export to {self.output_directory}")

        candidates = [r for r in self.status.get_visited_urls() if self.gate.is_exportable_candidate(r)]
        self.stats['total_candidates'] = len(candidates)

        try:
            with ProgressTracker(total_items=len(candidates), item_type='resources') as tracker:
                for resource in candidates:
                    if not (self.gate.is_valid_url(resource.url) and self.gate.should_export(resource)):
                        self.stats['total_rejected'] += 1
                        tracker.increment(success=True, skipped=True)
                        continue

                    result = self.store_file(resource)
                    tracker.increment(success=result != FAILED, skipped=result == SKIPPED)
        except (ExportError, OSError) as e:
            raise ExportError(f"MarkdownExporter.export: {e}") from e

        self.status.add_info_to_summary(
            SUMMARY_MARKDOWN_GENERATED,
            "Markdown content generated to '%s' and took %s" % (
                self.output_directory, format_duration(time.time() - start_time)
            )
        )

        self.logger.info(
            f"Markdown export complete: {self.stats['total_markdown_files']} Markdown files, "
            f"{self.stats['total_stored']} files stored, {self.stats['total_skipped']} skipped, "
            f"{self.stats['total_errors']} errors"
        )
        return self.stats.copy()

    def store_file(self, resource: VisitedResource) -> str:
        """
        Store one resource in the export directory, converting HTML to Markdown.

        Args:
            resource: Visited resource admitted by the gate

        Returns:
            'stored', 'skipped' (conflict) or 'failed' (recoverable error)

        Raises:
            ExportError: If a directory cannot be created or a typed file cannot be written
        """
        content = self.status.get_url_body(resource.uq_id)

        if resource.content_type in self.CONTENT_TYPES_REQUIRING_CHANGES:
            content = self.content_processors.apply_content_changes_for_offline_version(
                content, resource.content_type, urlparse(resource.url), True
            )
            if isinstance(content, str) and content and self.replace_content:
                content = apply_replace_rules(content, self.replace_content)

        store_file_path = os.path.join(self.output_directory, self.get_relative_file_path(resource))

        directory = os.path.dirname(store_file_path)
        if not os.path.isdir(directory):
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                raise ExportError(f"Cannot create directory '{directory}': {e}") from e

        # An HTTP duplicate must not overwrite the page stored for the HTTPS initial URL
        if os.path.isfile(self._get_final_path(store_file_path)):
            if not resource.is_https() and self.policy.initial_url.lower().startswith('https://'):
                self._add_notice(
                    NOTICE_STORE_FILE_IGNORED,
                    f"File '{store_file_path}' already exists and will not be overwritten because initial "
                    f"request was HTTPS and this request is HTTP: {resource.url}"
                )
                self.stats['total_skipped'] += 1
                return SKIPPED

        if resource.content_type in self.CONTENT_TYPES_REQUIRING_CHANGES and isinstance(content, str):
            content = self.table_converter.replace_html_tables(content)

        try:
            self._write_file(store_file_path, content)
        except OSError as e:
            # Extensionless paths (e.g. <img src="/icon/hash/"> answered with SVG) are never fatal
            has_extension = FILE_EXTENSION_PATTERN.search(store_file_path) is not None
            if has_extension and not self.ignore_store_file_error:
                raise ExportError(f"Cannot store file '{store_file_path}': {e}") from e
            reason = f'ignored error: {e}' if has_extension else 'undefined extension'
            self._add_notice(
                NOTICE_STORE_FILE_ERROR,
                f"Cannot store file '{store_file_path}' ({reason}). Original URL: {resource.url}"
            )
            self.stats['total_errors'] += 1
            return FAILED

        self.stats['total_stored'] += 1

        if store_file_path.endswith('.html'):
            return self._convert_to_markdown(store_file_path, content, resource)

        return STORED

    def normalize_markdown_file(self, md_file_path: str) -> None:
        """Run the normalizer passes over a Markdown file in place."""
        with open(md_file_path, 'r', encoding='utf-8') as f:
            md_content = f.read()

        md_content = self.normalizer.normalize(md_content)

        with open(md_file_path, 'w', encoding='utf-8') as f:
            f.write(md_content)

    def get_relative_file_path(self, resource: VisitedResource) -> str:
        """
        Path of a resource inside the export directory.

        The path is resolved from the document that referenced the resource
        (or the initial URL), then anchored at the export root.
        """
        base_url = None
        if resource.source_uq_id:
            base_url = self.status.get_url_by_uq_id(resource.source_uq_id)

        # Images get the 'src' hint so extensionless image URLs keep their name
        converter = self._create_url_converter(
            base_url or self.policy.initial_url,
            resource.url,
            'src' if resource.content_type == ContentType.IMAGE else 'href'
        )

        relative_url = converter.convert_url_to_relative(keep_fragment=False)
        target = converter.get_relative_target_url()

        if urlparse(relative_url).scheme:
            # Not linkable offline from its referrer; store it at its canonical path
            relative_path = target.path
        else:
            relative_path = posixpath.normpath(
                posixpath.join(converter.get_base_export_dir(), unquote(relative_url))
            )
            while relative_path.startswith('../'):
                relative_path = relative_path[3:]
            relative_path = relative_path.lstrip('/ ')

        if not converter.get_target_domain_relation().is_initial_same:
            relative_path = ensure_host_prefix(relative_path, target.host)

        return sanitize_file_path(relative_path)

    def convert_url_to_relative(self, base_url: str, target_url: str, attribute: str = 'href') -> str:
        """Relative URL of a reference inside a page, using the export's path layout."""
        return self._create_url_converter(base_url, target_url, attribute).convert_url_to_relative()

    def _create_url_converter(self, base_url: str, target_url: str, attribute: str) -> OfflineUrlConverter:
        return OfflineUrlConverter(
            initial_url=self.policy.initial_url,
            base_url=base_url,
            target_url=target_url,
            is_static_file_allowed_for_host=self.policy.is_domain_allowed_for_static_files,
            is_external_host_allowed_for_crawl=self.policy.is_external_domain_allowed_for_crawling,
            attribute=attribute,
            replace_query_string=self.replace_query_string
        )

    def _convert_to_markdown(self, html_file_path: str, content: Optional[str], resource: VisitedResource) -> str:
        """Convert a stored .html file to its .md sibling; the .html file is always removed."""
        md_file_path = html_file_path[:-5] + '.md'

        try:
            markdown = self.converter.convert(content or '', self.exclude_selectors)
        finally:
            os.remove(html_file_path)

        if markdown:
            with open(md_file_path, 'w', encoding='utf-8') as f:
                f.write(markdown)

        if not os.path.isfile(md_file_path):
            self._add_notice(
                NOTICE_STORE_FILE_ERROR,
                f"Cannot convert HTML file to Markdown file '{md_file_path}'. Original URL: {resource.url}"
            )
            self.stats['total_errors'] += 1
            return FAILED

        self.normalize_markdown_file(md_file_path)
        self.stats['total_markdown_files'] += 1
        return STORED

    @staticmethod
    def _get_final_path(store_file_path: str) -> str:
        """HTML files end up as .md, so that is where an earlier write would be."""
        if store_file_path.endswith('.html'):
            return store_file_path[:-5] + '.md'
        return store_file_path

    @staticmethod
    def _write_file(path: str, content: Union[str, bytes, None]) -> None:
        if isinstance(content, bytes):
            with open(path, 'wb') as f:
                f.write(content)
        else:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content or '')

    def _add_notice(self, code: str, message: str) -> None:
        self.logger.warning(f"[{code}] {message}")
        self.status.add_notice_to_summary(code, message)


__all__ = [
    'MarkdownExporter',
    'ExportError',
    'NOTICE_STORE_FILE_IGNORED',
    'NOTICE_STORE_FILE_ERROR',
    'SUMMARY_MARKDOWN_GENERATED'
]
