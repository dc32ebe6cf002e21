"""Tests for the command-line entry point."""

import json

import pytest

from export_markdown import create_argument_parser, main


@pytest.fixture
def crawl_result(tmp_path):
    path = tmp_path / 'crawl.json'
    path.write_text(json.dumps({
        'initial_url': 'https://example.com/',
        'visited_urls': [
            {'uq_id': 'home', 'url': 'https://example.com/', 'status_code': 200, 'content_type': 'HTML',
             'body': '<html><body><h1>Home</h1><p><a href="/missing">Missing</a></p></body></html>'},
            {'uq_id': 'missing', 'url': 'https://example.com/missing', 'status_code': 404,
             'content_type': 'HTML', 'source_uq_id': 'home'},
        ]
    }), encoding='utf-8')
    return path


class TestArgumentParser:
    """Argument parsing."""

    def test_repeatable_options(self):
        args = create_argument_parser().parse_args([
            '--crawl-result', 'crawl.json',
            '--markdown-exclude-selector', '.nav',
            '--markdown-exclude-selector', 'footer',
            '--markdown-replace-content', 'a -> b',
            '-vv'
        ])
        assert args.markdown_exclude_selector == ['.nav', 'footer']
        assert args.markdown_replace_content == ['a -> b']
        assert args.markdown_export_store_only_url_regex is None
        assert args.verbose == 2

    def test_crawl_result_is_required(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args([])


class TestMain:
    """Full CLI runs."""

    def test_export_with_reports(self, tmp_path, crawl_result):
        out = tmp_path / 'out'
        report_json = tmp_path / 'reports' / 'report.json'
        report_html = tmp_path / 'reports' / 'report.html'

        exit_code = main([
            '--crawl-result', str(crawl_result),
            '--markdown-export-dir', str(out),
            '--report-json', str(report_json),
            '--report-html', str(report_html),
        ])

        assert exit_code == 0
        assert '# Home' in (out / 'index.md').read_text(encoding='utf-8')

        report = json.loads(report_json.read_text(encoding='utf-8'))
        assert report['initialUrl'] == 'https://example.com/'
        assert report['tables'][0]['aplCode'] == '404'
        assert len(report['tables'][0]['rows']) == 1
        codes = [item['aplCode'] for item in report['summary']]
        assert '404' in codes
        assert 'markdown-generated' in codes
        assert report['markdownExport']['total_markdown_files'] == 1

        html_report = report_html.read_text(encoding='utf-8')
        assert '404 URLs' in html_report
        assert 'https://example.com/missing' in html_report

    def test_report_only_without_export_dir(self, tmp_path, crawl_result, capsys):
        assert main(['--crawl-result', str(crawl_result)]) == 0

        printed = capsys.readouterr().out
        assert '404 URLs' in printed
        assert '404 WARNING - 1 non-existent page(s) found' in printed
        assert not (tmp_path / 'out').exists()

    def test_missing_crawl_result(self, tmp_path):
        assert main(['--crawl-result', str(tmp_path / 'missing.json')]) == 2

    def test_invalid_url(self, crawl_result):
        assert main(['--crawl-result', str(crawl_result), '--url', 'ftp://example.com/']) == 2

    def test_fatal_export_error(self, tmp_path, crawl_result):
        out = tmp_path / 'out'
        out.mkdir()
        (out / 'index.html').mkdir()

        assert main(['--crawl-result', str(crawl_result), '--markdown-export-dir', str(out)]) == 1
