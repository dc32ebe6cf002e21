"""Sortable report tables rendered for the console, HTML reports and JSON output."""

import functools
import hashlib
import html
import random
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from colorlog.escape_codes import escape_codes

POSITION_BEFORE_URL_TABLE = 'before-url-table'
POSITION_AFTER_URL_TABLE = 'after-url-table'

ANSI_ESCAPE_PATTERN = re.compile(r'\x1b\[[0-9;]*m')
ELLIPSIS = '…'


@dataclass
class SuperTableColumn:
    """
    Column definition.

    formatter receives the raw cell value and returns plain text, renderer
    receives the whole row and may return HTML; the formatter wins when both
    are set.
    """
    apl_code: str
    name: str
    width: int
    formatter: Optional[Callable[[Any], str]] = None
    renderer: Optional[Callable[[Any], str]] = None
    truncate_if_longer: bool = False

    def get_width_px(self) -> int:
        return self.width * 8

    def to_dict(self) -> Dict[str, Any]:
        return {'aplCode': self.apl_code, 'name': self.name, 'width': self.width}


def truncate_in_two_thirds(value: str, max_length: int) -> str:
    """Shorten a string to max_length, keeping its first two thirds and last third around an ellipsis."""
    if len(value) <= max_length or max_length < 2:
        return value
    first_part = int(round((max_length - 1) * 2 / 3))
    last_part = max_length - 1 - first_part
    return value[:first_part] + ELLIPSIS + (value[-last_part:] if last_part > 0 else '')


def _visible_length(value: str) -> int:
    return len(ANSI_ESCAPE_PATTERN.sub('', value))


def _compare(a: Any, b: Any) -> int:
    """Three-way comparison; values of incomparable types are compared as strings."""
    try:
        return (a > b) - (a < b)
    except TypeError:
        a, b = str(a), str(b)
        return (a > b) - (a < b)


class SuperTable:
    """
    Table with a title, typed columns and rows sorted by one column.

    Rows may be mappings or objects exposing the column codes as attributes.
    """

    def __init__(
        self,
        apl_code: str,
        title: str,
        empty_table_message: str,
        columns: Sequence[SuperTableColumn],
        position_before_url_table: bool,
        current_order_column: str,
        current_order_direction: str = 'ASC'
    ):
        """
        Initialize the table.

        Raises:
            TypeError: If any column is not a SuperTableColumn
        """
        for column in columns:
            if not isinstance(column, SuperTableColumn):
                raise TypeError('All columns must be instances of SuperTableColumn')

        self.apl_code = apl_code
        self.title = title
        self.empty_table_message = empty_table_message
        self.columns: Dict[str, SuperTableColumn] = {column.apl_code: column for column in columns}
        self.position_before_url_table = position_before_url_table
        self.current_order_column = current_order_column
        self.current_order_direction = current_order_direction.upper()
        self.unique_id = hashlib.md5(str(random.randint(1000000, 9999999)).encode()).hexdigest()[:6]
        self.data: List[Any] = []

    def set_data(self, rows: Sequence[Any]) -> None:
        """Replace all rows and sort them by the current column and direction."""
        self.data = list(rows)
        self._sort_data(self.current_order_column, self.current_order_direction)

    def is_position_before_url_table(self) -> bool:
        return self.position_before_url_table

    def get_html_output(self) -> str:
        output = '<section class="mb-5">'
        output += f"<h2>{html.escape(self.title)}</h2>"
        if not self.data:
            output += f"<p>{html.escape(self.empty_table_message)}</p>"
            output += '</section>'
            return output

        table_id = html.escape(self.unique_id)
        output += f"<table id='{table_id}' border='1' class='table table-bordered table-hover'>"
        output += "<thead>"
        for key, column in self.columns.items():
            is_current = self.current_order_column == key
            direction = 'DESC' if is_current and self.current_order_direction == 'ASC' else 'ASC'
            arrow = ('🔼' if self.current_order_direction == 'ASC' else '🔽') if is_current else ''
            output += (
                f"<th style='width:{column.get_width_px()}px' "
                f"onclick='sortTable_{table_id}(\"{html.escape(key)}\", \"{direction}\")'>"
                f"{html.escape(column.name)} {arrow}</th>"
            )
        output += "</thead>"
        output += "<tbody>"
        for row in self.data:
            output += "<tr>"
            for key, column in self.columns.items():
                value = self._get_value(row, key)
                if column.formatter:
                    formatted = html.escape(ANSI_ESCAPE_PATTERN.sub('', str(column.formatter(value))))
                elif column.renderer:
                    formatted = ANSI_ESCAPE_PATTERN.sub('', str(column.renderer(row)))
                else:
                    formatted = html.escape(str(value))
                output += f"<td data-value='{html.escape(str(value))}'>{formatted}</td>"
            output += "</tr>"
        output += "</tbody>"
        output += "</table>"
        output += self._get_sort_script(table_id)
        output += '</section>'

        return output

    def get_console_output(self) -> str:
        title_output = f"{self.title}\n{'-' * len(self.title)}\n\n"
        output = escape_codes['yellow'] + title_output + escape_codes['reset']

        if not self.data:
            output += escape_codes['bold_black'] + self.empty_table_message + escape_codes['reset'] + '\n\n'
            return output

        headers = [column.name.ljust(column.width) for column in self.columns.values()]
        output += ' | '.join(headers) + '\n'

        repeat = sum(column.width for column in self.columns.values()) + len(self.columns) * 3 - 1
        output += '-' * repeat + '\n'

        for row in self.data:
            row_data = []
            for key, column in self.columns.items():
                value = self._get_value(row, key)
                if column.formatter:
                    value = column.formatter(value)
                elif column.renderer:
                    value = column.renderer(row)
                value = '' if value is None else str(value)

                if column.truncate_if_longer and len(value) > column.width and not ANSI_ESCAPE_PATTERN.search(value):
                    value = truncate_in_two_thirds(value, column.width)

                row_data.append(value + ' ' * max(0, column.width - _visible_length(value)))
            output += ' | '.join(row_data) + '\n'
        output += '\n'

        return output

    def get_json_output(self) -> Dict[str, Any]:
        return {
            'aplCode': self.apl_code,
            'title': self.title,
            'columns': {key: column.to_dict() for key, column in self.columns.items()},
            'rows': [self._row_to_dict(row) for row in self.data],
            'position': POSITION_BEFORE_URL_TABLE if self.position_before_url_table else POSITION_AFTER_URL_TABLE,
        }

    def _row_to_dict(self, row: Any) -> Dict[str, Any]:
        if isinstance(row, Mapping):
            return dict(row)
        if hasattr(row, 'to_dict'):
            return row.to_dict()
        return {key: self._get_value(row, key) for key in self.columns}

    @staticmethod
    def _get_value(row: Any, key: str) -> Any:
        if isinstance(row, Mapping):
            value = row.get(key, '')
        else:
            value = getattr(row, key, '')
        return '' if value is None else value

    def _sort_data(self, column_key: str, direction: str) -> None:
        def compare(a, b):
            result = _compare(self._get_value(a, column_key), self._get_value(b, column_key))
            return result if direction == 'ASC' else -result

        # sorted() is stable, so equal keys keep their input order
        self.data = sorted(self.data, key=functools.cmp_to_key(compare))

    @staticmethod
    def _get_sort_script(table_id: str) -> str:
        return f"""
            <script>
            function sortTable_{table_id}(columnKey, direction) {{
                const table = document.querySelector('#{table_id}');
                const tbody = table.querySelector('tbody');
                const rows = Array.from(tbody.querySelectorAll('tr'));
                const headerCells = Array.from(table.querySelectorAll('thead th'));
                const columnIndex = headerCells.findIndex(th => th.getAttribute('onclick').indexOf('"' + columnKey + '"') !== -1);

                rows.sort((a, b) => {{
                    const aValue = a.children[columnIndex].getAttribute('data-value');
                    const bValue = b.children[columnIndex].getAttribute('data-value');
                    const aNum = parseFloat(aValue);
                    const bNum = parseFloat(bValue);
                    const numeric = !isNaN(aNum) && !isNaN(bNum);
                    const x = numeric ? aNum : aValue;
                    const y = numeric ? bNum : bValue;
                    if (direction === 'ASC') {{
                        return x > y ? 1 : x < y ? -1 : 0;
                    }}
                    return x < y ? 1 : x > y ? -1 : 0;
                }});

                rows.forEach(row => tbody.appendChild(row));

                headerCells.forEach((th, index) => {{
                    const text = th.textContent.replace(' 🔼', '').replace(' 🔽', '').trim();
                    const next = direction === 'ASC' ? 'DESC' : 'ASC';
                    if (index === columnIndex) {{
                        th.textContent = text + (direction === 'ASC' ? ' 🔼' : ' 🔽');
                        th.setAttribute('onclick', "sortTable_{table_id}(\\"" + columnKey + "\\", \\"" + next + "\\")");
                    }} else {{
                        th.textContent = text;
                    }}
                }});
            }}
            </script>
"""


__all__ = [
    'SuperTable',
    'SuperTableColumn',
    'truncate_in_two_thirds',
    'POSITION_BEFORE_URL_TABLE',
    'POSITION_AFTER_URL_TABLE'
]
