"""Tests for crawl status storage, summary and serialization."""

import base64
import json
import os
import tempfile
import unittest

from crawl_status import CrawlStatus, ItemStatus, MemoryStorage, Summary, SummaryItem
from models import ContentType, HttpResponse, SourceAttr, VisitedResource

INITIAL_URL = 'https://example.com/'


class TestCrawlStatus(unittest.TestCase):
    def setUp(self):
        self.status = CrawlStatus(INITIAL_URL)

    def test_visited_urls_keep_order_and_bodies(self):
        self.status.add_visited_url(VisitedResource('b', 'https://example.com/b', 200, ContentType.HTML), '  <p>b</p>\n')
        self.status.add_visited_url(VisitedResource('a', 'https://example.com/a.png', 200, ContentType.IMAGE), b'\x89PNG')

        self.assertEqual([r.uq_id for r in self.status.get_visited_urls()], ['b', 'a'])
        self.assertEqual(self.status.get_url_body('b'), '<p>b</p>')
        self.assertEqual(self.status.get_url_body('a'), b'\x89PNG')
        self.assertEqual(self.status.get_url_by_uq_id('a'), 'https://example.com/a.png')
        self.assertIsNone(self.status.get_url_by_uq_id('missing'))

    def test_bodies_are_not_kept_when_content_saving_is_off(self):
        status = CrawlStatus(INITIAL_URL, save_content=False)
        status.add_visited_url(VisitedResource('a', INITIAL_URL, 200, ContentType.HTML), '<p>a</p>')
        self.assertIsNone(status.get_url_body('a'))
        self.assertEqual(len(status.storage), 0)

    def test_redirect_response_becomes_meta_refresh(self):
        resource = VisitedResource('r', 'https://example.com/old', 301, ContentType.REDIRECT)
        response = HttpResponse(resource.url, 301, None, headers={'Location': 'https://example.com/new'})
        self.status.add_response(resource, response)

        body = self.status.get_url_body('r')
        self.assertIn('http-equiv="refresh"', body)
        self.assertIn('url=https://example.com/new', body)
        self.assertEqual(response.headers['content-type'], 'text/html')

    def test_summary_item_by_ranges(self):
        ranges = [[0, 0], [1, 5], [6, float('inf')]]
        texts = ['none', '%s some', '%s many']
        self.status.add_summary_item_by_ranges('count', 3, ranges, texts)
        item = self.status.get_summary().get_item('count')
        self.assertEqual(item.status, ItemStatus.WARNING)
        self.assertEqual(item.text, '3 some')

    def test_summary_is_sorted_by_severity(self):
        self.status.add_info_to_summary('info', 'info text')
        self.status.add_notice_to_summary('notice', 'first notice')
        self.status.add_error_to_summary('error', 'error text')
        self.status.add_notice_to_summary('notice', 'second notice')

        summary = self.status.get_summary()
        self.assertEqual([item.apl_code for item in summary.get_items()], ['error', 'notice', 'notice', 'info'])
        self.assertEqual(len(summary.get_items_by_code('notice')), 2)
        self.assertEqual(summary.get_count_by_status(ItemStatus.NOTICE), 2)
        self.assertIn('error text', summary.get_as_console_text())

    def test_range_id_mapping(self):
        self.assertEqual(ItemStatus.from_range_id(0), ItemStatus.OK)
        self.assertEqual(ItemStatus.from_range_id(2), ItemStatus.CRITICAL)
        with self.assertRaises(ValueError):
            ItemStatus.from_range_id(3)

    def test_super_tables_are_registered_by_code(self):
        class Table:
            def __init__(self, apl_code):
                self.apl_code = apl_code

        first, replacement, last = Table('404'), Table('404'), Table('other')
        self.status.add_super_table_at_beginning(first)
        self.status.add_super_table_at_beginning(replacement)
        self.status.add_super_table_at_end(last)

        self.assertEqual(self.status.get_super_tables_at_beginning(), [replacement])
        self.assertEqual(self.status.get_super_tables_at_end(), [last])


class TestCrawlStatusSerialization(unittest.TestCase):
    def crawl_data(self):
        return {
            'initial_url': INITIAL_URL,
            'visited_urls': [
                {'uq_id': 'home', 'url': INITIAL_URL, 'status_code': 200, 'content_type': 'html',
                 'body': '<h1>Home</h1>'},
                {'uq_id': 'logo', 'url': 'https://example.com/logo.png', 'status_code': 200,
                 'content_type': 'IMAGE', 'source_uq_id': 'home', 'source_attr': 'img-src',
                 'body_base64': base64.b64encode(b'\x89PNG').decode('ascii')},
                {'uq_id': 'old', 'url': 'https://example.com/old', 'status_code': 302,
                 'content_type': 'REDIRECT', 'headers': {'Location': '/new'}},
            ]
        }

    def test_from_dict(self):
        status = CrawlStatus.from_dict(self.crawl_data())

        self.assertEqual(status.initial_url, INITIAL_URL)
        self.assertEqual(status.get_url_body('home'), '<h1>Home</h1>')
        self.assertEqual(status.get_url_body('logo'), b'\x89PNG')
        self.assertIn('url=/new', status.get_url_body('old'))

        logo = status.get_visited_url('logo')
        self.assertEqual(logo.content_type, ContentType.IMAGE)
        self.assertEqual(logo.source_attr, SourceAttr.IMG_SRC)
        self.assertEqual(logo.source_uq_id, 'home')

    def test_missing_initial_url(self):
        with self.assertRaises(ValueError):
            CrawlStatus.from_dict({'visited_urls': []})

    def test_to_dict_and_back(self):
        status = CrawlStatus.from_dict(self.crawl_data())
        data = json.loads(json.dumps(status.to_dict()))

        self.assertIn('body_base64', data['visited_urls'][1])
        restored = CrawlStatus.from_dict(data)
        self.assertEqual(restored.get_url_body('logo'), b'\x89PNG')
        self.assertEqual([r.uq_id for r in restored.get_visited_urls()], ['home', 'logo', 'old'])

    def test_load_json(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'crawl.json')
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.crawl_data(), f)
            status = CrawlStatus.load_json(path)

        self.assertEqual(len(status.get_visited_urls()), 3)


class TestSummaryItem(unittest.TestCase):
    def test_to_dict_and_console_text(self):
        item = SummaryItem('code', 'Some text', ItemStatus.CRITICAL)
        self.assertEqual(item.to_dict(), {'aplCode': 'code', 'status': 'CRITICAL', 'text': 'Some text'})
        self.assertIn('[CRITICAL]', item.get_as_console_text())

    def test_memory_storage(self):
        storage = MemoryStorage()
        storage.save('a', 'x')
        self.assertEqual(storage.load('a'), 'x')
        storage.delete('a')
        self.assertIsNone(storage.load('a'))

    def test_empty_summary(self):
        self.assertEqual(Summary().to_list(), [])
