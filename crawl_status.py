"""Crawl status: visited resources, stored bodies, run summary and registered report tables."""

import base64
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from colorlog.escape_codes import escape_codes

from models import ContentType, HttpResponse, VisitedResource

logger = logging.getLogger('crawl_markdown_exporter.crawl_status')


class ItemStatus(Enum):
    """Severity of a summary item; the value is its sort priority."""
    CRITICAL = 1
    ERROR = 2
    WARNING = 3
    NOTICE = 4
    OK = 5
    INFO = 6

    @classmethod
    def from_range_id(cls, range_id: int) -> 'ItemStatus':
        """Map the index of a matched range (0, 1, 2) to OK, WARNING, CRITICAL."""
        mapping = {0: cls.OK, 1: cls.WARNING, 2: cls.CRITICAL}
        if range_id not in mapping:
            raise ValueError(f"Unsupported range id: {range_id}")
        return mapping[range_id]


STATUS_COLORS = {
    ItemStatus.CRITICAL: 'bold_red',
    ItemStatus.ERROR: 'red',
    ItemStatus.WARNING: 'yellow',
    ItemStatus.NOTICE: 'blue',
    ItemStatus.OK: 'green',
    ItemStatus.INFO: 'cyan',
}


@dataclass
class SummaryItem:
    """One line of the run summary."""
    apl_code: str
    text: str
    status: ItemStatus

    def to_dict(self) -> Dict[str, str]:
        return {'aplCode': self.apl_code, 'status': self.status.name, 'text': self.text}

    def get_as_console_text(self) -> str:
        color = escape_codes[STATUS_COLORS[self.status]]
        return f"{color}[{self.status.name}]{escape_codes['reset']} {self.text}"


class Summary:
    """Ordered collection of summary items."""

    def __init__(self):
        self.items: List[SummaryItem] = []

    def add_item(self, item: SummaryItem) -> None:
        self.items.append(item)

    def get_items(self) -> List[SummaryItem]:
        """Items sorted by severity, most severe first; insertion order within a severity."""
        return sorted(self.items, key=lambda item: item.status.value)

    def get_item(self, apl_code: str) -> Optional[SummaryItem]:
        """First item recorded with the given code."""
        return next((item for item in self.items if item.apl_code == apl_code), None)

    def get_items_by_code(self, apl_code: str) -> List[SummaryItem]:
        return [item for item in self.items if item.apl_code == apl_code]

    def get_count_by_status(self, status: ItemStatus) -> int:
        return sum(1 for item in self.items if item.status == status)

    def get_as_console_text(self) -> str:
        lines = ['Summary', '-' * 7]
        lines.extend(item.get_as_console_text() for item in self.get_items())
        return '\n'.join(lines) + '\n'

    def to_list(self) -> List[Dict[str, str]]:
        return [item.to_dict() for item in self.get_items()]


class MemoryStorage:
    """In-memory key/value store for response bodies."""

    def __init__(self):
        self._data: Dict[str, Union[str, bytes]] = {}

    def save(self, uq_id: str, content: Union[str, bytes]) -> None:
        self._data[uq_id] = content

    def load(self, uq_id: str) -> Optional[Union[str, bytes]]:
        return self._data.get(uq_id)

    def delete(self, uq_id: str) -> None:
        self._data.pop(uq_id, None)

    def __len__(self) -> int:
        return len(self._data)


class CrawlStatus:
    """
    Owns everything recorded during a crawl.

    Visited resources are keyed by uq_id and returned in visit order. Bodies
    live in a pluggable storage; SuperTables are registered by reference so
    the renderer can place them before or after the URL table.
    """

    def __init__(self, initial_url: str, storage=None, save_content: bool = True,
                 start_time: Optional[float] = None):
        self.initial_url = initial_url
        self.storage = storage if storage is not None else MemoryStorage()
        self.save_content = save_content
        self.start_time = start_time if start_time is not None else time.time()
        self.summary = Summary()
        self._visited_urls: Dict[str, VisitedResource] = {}
        self._super_tables_at_beginning: Dict[str, Any] = {}
        self._super_tables_at_end: Dict[str, Any] = {}

    def add_visited_url(self, resource: VisitedResource, body: Optional[Union[str, bytes]]) -> None:
        self._visited_urls[resource.uq_id] = resource
        if self.save_content and body is not None:
            if resource.content_type == ContentType.HTML and isinstance(body, str):
                body = body.strip()
            self.storage.save(resource.uq_id, body)

    def add_response(self, resource: VisitedResource, response: HttpResponse) -> None:
        """Record a resource together with its HTTP response (redirects get a meta-refresh body)."""
        self.add_visited_url(resource, response.body)

    def get_visited_urls(self) -> List[VisitedResource]:
        return list(self._visited_urls.values())

    def get_url_body(self, uq_id: str) -> Optional[Union[str, bytes]]:
        return self.storage.load(uq_id) if self.save_content else None

    def get_url_by_uq_id(self, uq_id: str) -> Optional[str]:
        resource = self._visited_urls.get(uq_id)
        return resource.url if resource else None

    def get_visited_url(self, uq_id: str) -> Optional[VisitedResource]:
        return self._visited_urls.get(uq_id)

    # Summary

    def add_info_to_summary(self, apl_code: str, text: str) -> None:
        self.summary.add_item(SummaryItem(apl_code, text, ItemStatus.INFO))

    def add_notice_to_summary(self, apl_code: str, text: str) -> None:
        self.summary.add_item(SummaryItem(apl_code, text, ItemStatus.NOTICE))

    def add_error_to_summary(self, apl_code: str, text: str) -> None:
        self.summary.add_item(SummaryItem(apl_code, text, ItemStatus.ERROR))

    def add_summary_item_by_ranges(self, apl_code: str, value: float,
                                   ranges: Sequence[Sequence[float]], texts: Sequence[str]) -> None:
        """
        Add a summary item whose status depends on which range the value falls in.

        Args:
            apl_code: Summary item code
            value: Measured value
            ranges: Inclusive [min, max] pairs; the first matching range wins
            texts: One %-format text per range, formatted with the value
        """
        status = ItemStatus.INFO
        text = f"{apl_code} out of range ({value})"
        for range_id, (low, high) in enumerate(ranges):
            if low <= value <= high:
                status = ItemStatus.from_range_id(range_id)
                if range_id < len(texts):
                    text = texts[range_id] % value if '%' in texts[range_id] else texts[range_id]
                break
        self.summary.add_item(SummaryItem(apl_code, text, status))

    def get_summary(self) -> Summary:
        return self.summary

    # Report tables

    def add_super_table_at_beginning(self, super_table) -> None:
        self._super_tables_at_beginning[super_table.apl_code] = super_table

    def add_super_table_at_end(self, super_table) -> None:
        self._super_tables_at_end[super_table.apl_code] = super_table

    def get_super_tables_at_beginning(self) -> List[Any]:
        return list(self._super_tables_at_beginning.values())

    def get_super_tables_at_end(self) -> List[Any]:
        return list(self._super_tables_at_end.values())

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the recorded crawl, bodies included."""
        visited = []
        for resource in self._visited_urls.values():
            data = resource.to_dict()
            body = self.get_url_body(resource.uq_id)
            if isinstance(body, bytes):
                data['body_base64'] = base64.b64encode(body).decode('ascii')
            else:
                data['body'] = body
            visited.append(data)

        return {
            'initial_url': self.initial_url,
            'start_time': self.start_time,
            'visited_urls': visited,
            'summary': self.summary.to_list()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], storage=None) -> 'CrawlStatus':
        """
        Rebuild a crawl status from its serialized form.

        Entries may carry ``body`` (text), ``body_base64`` (binary, e.g. images)
        and ``headers``; redirect entries with a ``location`` header are turned
        into meta-refresh pages.
        """
        if 'initial_url' not in data:
            raise ValueError("Crawl result is missing 'initial_url'")

        status = cls(data['initial_url'], storage=storage, start_time=data.get('start_time'))

        for entry in data.get('visited_urls', []):
            resource = VisitedResource.from_dict(entry)
            body = entry.get('body')
            if body is None and entry.get('body_base64'):
                body = base64.b64decode(entry['body_base64'])
            headers = entry.get('headers') or {}
            if headers:
                response = HttpResponse(
                    url=resource.url,
                    status_code=resource.status_code,
                    body=body,
                    headers=headers,
                    exec_time=resource.elapsed_time or 0.0
                )
                status.add_response(resource, response)
            else:
                status.add_visited_url(resource, body)

        logger.debug(f"Loaded {len(status._visited_urls)} visited URLs for {status.initial_url}")
        return status

    @classmethod
    def load_json(cls, path: str) -> 'CrawlStatus':
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))


__all__ = [
    'ItemStatus',
    'SummaryItem',
    'Summary',
    'MemoryStorage',
    'CrawlStatus'
]
