#!/usr/bin/env python3
"""
Crawl Markdown Exporter - Main CLI Entry Point

This script loads a recorded crawl, reports URLs that returned 404 and exports
the visited pages to an offline directory of Markdown files with images and
documents stored next to them.
"""

import argparse
import html
import json
import logging
import os
import shutil
import sys
from typing import Any, Dict, Optional

import yaml

from config_loader import ConfigLoader, get_nested
from crawl_policy import CrawlPolicy
from crawl_status import CrawlStatus
from exporters import ExportError, MarkdownExporter
from logger import LOGGER_NAME, log_config, log_section, setup_logging
from orchestrator import Page404Analyzer

# Version
__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export a recorded website crawl to offline Markdown files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export with settings from a config file
  crawl-markdown-export --config config.yaml --crawl-result crawl.json

  # Export without images into a given directory
  crawl-markdown-export --crawl-result crawl.json --markdown-export-dir ./md --markdown-disable-images

  # Only store documentation pages and drop the page footer
  crawl-markdown-export --crawl-result crawl.json --markdown-export-dir ./md \\
      --markdown-export-store-only-url-regex '/docs/' --markdown-exclude-selector 'footer'

  # Rewrite content and write reports
  crawl-markdown-export --crawl-result crawl.json --markdown-export-dir ./md \\
      --markdown-replace-content '/Copyright \\d+/i -> ' --report-html report.html

  # Verbose logging
  crawl-markdown-export --crawl-result crawl.json -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file (defaults are used when omitted)'
    )

    parser.add_argument(
        '--crawl-result',
        type=str,
        required=True,
        help='Path to the recorded crawl (JSON with initial_url and visited_urls)'
    )

    parser.add_argument(
        '--url',
        type=str,
        help='Initial URL of the crawl (default: initial_url of the crawl result)'
    )

    parser.add_argument(
        '--markdown-export-dir',
        type=str,
        help='Directory to export Markdown files to (activates the export)'
    )

    parser.add_argument(
        '--markdown-disable-images',
        action='store_true',
        help='Do not export images and remove them from the Markdown'
    )

    parser.add_argument(
        '--markdown-disable-files',
        action='store_true',
        help='Do not export documents and remove links to them from the Markdown'
    )

    parser.add_argument(
        '--markdown-export-store-only-url-regex',
        action='append',
        metavar='REGEX',
        help='Only export URLs matching this regex (repeatable)'
    )

    parser.add_argument(
        '--markdown-exclude-selector',
        action='append',
        metavar='SELECTOR',
        help='CSS selector of elements to drop before conversion (repeatable)'
    )

    parser.add_argument(
        '--markdown-replace-content',
        action='append',
        metavar='RULE',
        help="Replace content before conversion, e.g. 'foo -> bar' or '/fo+/i -> bar' (repeatable)"
    )

    parser.add_argument(
        '--markdown-replace-query-string',
        action='append',
        metavar='RULE',
        help="Replace query strings in file names, e.g. '/[a-z]+=/ -> ' (repeatable)"
    )

    parser.add_argument(
        '--markdown-ignore-store-file-error',
        action='store_true',
        help='Record write failures as notices instead of aborting the export'
    )

    parser.add_argument(
        '--report-json',
        type=str,
        help='Write the report tables and summary to this JSON file'
    )

    parser.add_argument(
        '--report-html',
        type=str,
        help='Write the report tables and summary to this HTML file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def run_export(config: dict, status: CrawlStatus, logger: logging.Logger) -> int:
    """
    Run analyzers and the Markdown export, then print and write reports.

    Returns:
        Exit code (0 on success, 1 on a fatal export error)
    """
    policy = CrawlPolicy.from_config(config)

    analyzer = Page404Analyzer(status, console_width=shutil.get_terminal_size().columns)
    if analyzer.should_be_activated():
        analyzer.analyze()

    stats: Optional[Dict[str, Any]] = None
    exporter = MarkdownExporter(config, status, policy, logger=logging.getLogger(f'{LOGGER_NAME}.exporters'))
    if exporter.should_be_activated():
        log_section("Markdown Export")
        try:
            stats = exporter.export()
        except ExportError as e:
            status.add_error_to_summary('markdown-export-failed', str(e))
            logger.error(str(e))
            print_report(status)
            return 1
    else:
        logger.info("No Markdown output directory configured, skipping export")

    print_report(status)

    json_path = get_nested(config, 'report.json_path')
    if json_path:
        write_json_report(status, json_path, stats)
        logger.info(f"JSON report written to {json_path}")

    html_path = get_nested(config, 'report.html_path')
    if html_path:
        write_html_report(status, html_path)
        logger.info(f"HTML report written to {html_path}")

    return 0


def print_report(status: CrawlStatus) -> None:
    """Print report tables and the summary to stdout."""
    for super_table in status.get_super_tables_at_beginning():
        print(super_table.get_console_output())
    for super_table in status.get_super_tables_at_end():
        print(super_table.get_console_output())
    print(status.get_summary().get_as_console_text())


def build_json_report(status: CrawlStatus, stats: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    tables = status.get_super_tables_at_beginning() + status.get_super_tables_at_end()
    report = {
        'initialUrl': status.initial_url,
        'tables': [super_table.get_json_output() for super_table in tables],
        'summary': status.get_summary().to_list()
    }
    if stats is not None:
        report['markdownExport'] = stats
    return report


def write_json_report(status: CrawlStatus, path: str, stats: Optional[Dict[str, Any]] = None) -> None:
    _ensure_parent_dir(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(build_json_report(status, stats), f, indent=2, ensure_ascii=False)


def build_html_report(status: CrawlStatus) -> str:
    parts = [
        '<!DOCTYPE html>',
        '<html><head><meta charset="utf-8">',
        f'<title>Crawl report - {html.escape(status.initial_url)}</title>',
        '</head><body>',
        f'<h1>Crawl report for {html.escape(status.initial_url)}</h1>',
    ]
    parts.extend(super_table.get_html_output() for super_table in status.get_super_tables_at_beginning())

    parts.append('<section class="mb-5"><h2>Summary</h2><ul>')
    for item in status.get_summary().get_items():
        parts.append(f'<li class="{item.status.name.lower()}">'
                     f'<strong>{item.status.name}</strong> {html.escape(item.text)}</li>')
    parts.append('</ul></section>')

    parts.extend(super_table.get_html_output() for super_table in status.get_super_tables_at_end())
    parts.append('</body></html>')
    return '\n'.join(parts)


def write_html_report(status: CrawlStatus, path: str) -> None:
    _ensure_parent_dir(path)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(build_html_report(status))


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        # Setup minimal logging for config loading
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger(LOGGER_NAME)

        log_section("Crawl Markdown Exporter")
        logger.info(f"Version: {__version__}")

        # Load configuration
        if args.config:
            logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)

        # Merge with CLI arguments (CLI takes precedence)
        config = ConfigLoader.merge_with_args(config, args)

        logger.info(f"Loading crawl result from {args.crawl_result}")
        status = CrawlStatus.load_json(args.crawl_result)

        if not get_nested(config, 'crawl.url'):
            config['crawl']['url'] = status.initial_url

        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )

        # Log sanitized configuration
        log_config(config)

        return run_export(config, status, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
