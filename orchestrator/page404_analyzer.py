"""Analyzer reporting crawled URLs that returned 404."""

import logging
from typing import List, Optional

from colorlog.escape_codes import escape_codes

from crawl_status import CrawlStatus
from models import VisitedResource
from .super_table import SuperTable, SuperTableColumn

logger = logging.getLogger('crawl_markdown_exporter.orchestrator.page404_analyzer')

SUPER_TABLE_404 = '404'

SUMMARY_RANGES = [[0, 0], [1, 5], [6, float('inf')]]
SUMMARY_TEXTS = [
    '404 OK - all pages exists, no non-existent pages found',
    '404 WARNING - %s non-existent page(s) found',
    '404 CRITICAL - %s non-existent pages found',
]


def get_colored_status_code(status_code: int) -> str:
    """Color an HTTP status code for the console by its class."""
    if 200 <= status_code < 300:
        color = 'green'
    elif 300 <= status_code < 400:
        color = 'yellow'
    elif 400 <= status_code < 500:
        color = 'purple'
    else:
        color = 'red'
    return f"{escape_codes[color]}{status_code}{escape_codes['reset']}"


class Page404Analyzer:
    """Collects 404 responses into a report table and a range-based summary item."""

    def __init__(self, status: CrawlStatus, console_width: int = 120):
        self.status = status
        self.console_width = console_width

    def should_be_activated(self) -> bool:
        return True

    def get_order(self) -> int:
        return 20

    def analyze(self) -> SuperTable:
        url_column_width = max(20, (self.console_width - 16) // 2)

        columns = [
            SuperTableColumn(
                apl_code='status_code',
                name='Status',
                width=6,
                formatter=get_colored_status_code
            ),
            SuperTableColumn(
                apl_code='url',
                name='URL 404',
                width=url_column_width,
                truncate_if_longer=True
            ),
            SuperTableColumn(
                apl_code='source_uq_id',
                name='Found at URL',
                width=url_column_width,
                formatter=self._format_source_url,
                truncate_if_longer=True
            ),
        ]

        super_table = SuperTable(
            apl_code=SUPER_TABLE_404,
            title='404 URLs',
            empty_table_message='No 404 URLs found.',
            columns=columns,
            position_before_url_table=True,
            current_order_column='url',
            current_order_direction='ASC'
        )

        rows = self.get_404_urls()
        super_table.set_data(rows)
        self.status.add_super_table_at_beginning(super_table)

        self.status.add_summary_item_by_ranges(SUPER_TABLE_404, len(rows), SUMMARY_RANGES, SUMMARY_TEXTS)
        logger.debug(f"Found {len(rows)} URLs with status 404")

        return super_table

    def get_404_urls(self) -> List[VisitedResource]:
        return [resource for resource in self.status.get_visited_urls() if resource.status_code == 404]

    def _format_source_url(self, source_uq_id: Optional[str]) -> str:
        if not source_uq_id:
            return ''
        return self.status.get_url_by_uq_id(source_uq_id) or ''


__all__ = [
    'Page404Analyzer',
    'get_colored_status_code',
    'SUPER_TABLE_404'
]
