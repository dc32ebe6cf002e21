"""Converts HTML tables to pipe-delimited Markdown tables ahead of HTML-to-Markdown conversion."""

import logging
import re
from typing import List

from bs4 import BeautifulSoup

logger = logging.getLogger('crawl_markdown_exporter.converters.table_converter')

# Rows end with <br/> so the table text keeps its line breaks through HTML conversion
ROW_END = '<br/>\n'

TABLE_PATTERN = re.compile(r'<table\b[^>]*>(.*?)</table>', re.IGNORECASE | re.DOTALL)
WHITESPACE_PATTERN = re.compile(r'\s+')

SCRIPT_ESCAPES = [
    (re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL), '&lt;script&gt;&lt;/script&gt;'),
    (re.compile(r'<style[^>]*>.*?</style>', re.IGNORECASE | re.DOTALL), '&lt;style&gt;&lt;/style&gt;'),
    (re.compile(r'<script[^>]*>', re.IGNORECASE), '&lt;script&gt;'),
    (re.compile(r'<style[^>]*>', re.IGNORECASE), '&lt;style&gt;'),
]


class TableConverter:
    """
    Replaces every <table>...</table> block in an HTML document with a Markdown table.

    The first row becomes the header. Rows shorter than the widest row are
    padded with empty cells, and cell whitespace is collapsed.
    """

    def replace_html_tables(self, html: str) -> str:
        """
        Replace all HTML tables in a document.

        Args:
            html: HTML document

        Returns:
            HTML with each table replaced by Markdown table text
        """
        if not html or '<table' not in html.lower():
            return html

        return TABLE_PATTERN.sub(lambda match: self.convert_table(match.group(0)), html)

    def convert_table(self, table_html: str) -> str:
        """
        Convert a single HTML table to Markdown.

        Returns the fragment unchanged if it does not parse into a table.
        """
        soup = BeautifulSoup(table_html, 'lxml')
        table = soup.find('table')
        if table is None:
            return table_html

        rows: List[List[str]] = []
        max_cols = 0
        for row in table.find_all('tr'):
            # Header cells first, data cells if the row has none
            cells = row.find_all('th') or row.find_all('td')
            row_data = [WHITESPACE_PATTERN.sub(' ', cell.get_text().strip()) for cell in cells]
            max_cols = max(max_cols, len(row_data))
            rows.append(row_data)

        md_table = ''
        if rows:
            md_table += self._format_row(rows[0])
            md_table += self._format_row(['---'] * max_cols)
            for row_data in rows[1:]:
                md_table += self._format_row(row_data + [''] * (max_cols - len(row_data)))

        for pattern, replacement in SCRIPT_ESCAPES:
            md_table = pattern.sub(replacement, md_table)

        logger.debug(f"Converted HTML table with {len(rows)} rows and {max_cols} columns")
        return md_table

    @staticmethod
    def _format_row(cells: List[str]) -> str:
        return '| ' + ' | '.join(cells) + ' |' + ROW_END


__all__ = ['TableConverter', 'ROW_END']
