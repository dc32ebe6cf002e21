"""Tests for configuration loading, validation and replace rules."""

import argparse
import re

import pytest
import yaml

from config_loader import (
    ConfigLoader,
    apply_replace_rules,
    compile_user_regex,
    get_nested,
    is_delimited_regex,
    parse_replace_rule,
    parse_replace_rules,
)
from models import LiteralReplaceRule, PatternReplaceRule


def valid_config(**markdown):
    config = ConfigLoader.load(None)
    config['crawl']['url'] = 'https://example.com/'
    config['export']['markdown'].update(markdown)
    return config


class TestReplaceRules:
    """Literal and pattern replace rules."""

    def test_literal_rule(self):
        rule = parse_replace_rule('foo -> bar')
        assert rule == LiteralReplaceRule('foo', 'bar')
        assert rule.apply('foo food') == 'bar bard'

    def test_pattern_rule_with_flags(self):
        rule = parse_replace_rule('/fo+/i -> x')
        assert isinstance(rule, PatternReplaceRule)
        assert rule.apply('FOO fo f') == 'x x f'

    def test_pattern_rule_group_reference(self):
        rule = parse_replace_rule(r'/(\d+)px/ -> $1em')
        assert rule.apply('width: 12px') == 'width: 12em'

    def test_missing_replacement_removes(self):
        assert parse_replace_rule('Copyright').apply('Copyright 2024') == ' 2024'

    def test_rules_apply_in_order(self):
        rules = parse_replace_rules(['a -> b', 'b -> c', '  '])
        assert len(rules) == 2
        assert apply_replace_rules('a', rules) == 'c'

    def test_invalid_pattern_raises(self):
        with pytest.raises(re.error):
            parse_replace_rule('/(unclosed/ -> x')

    def test_delimiter_detection(self):
        assert is_delimited_regex('/foo/i')
        assert is_delimited_regex('#foo#')
        assert is_delimited_regex('~a|b~')
        assert not is_delimited_regex('foo')
        assert not is_delimited_regex('/foo')

    def test_path_like_literal_is_taken_as_pattern(self):
        # Known limitation: values starting and ending with a delimiter are always regexes
        assert is_delimited_regex('/path/to')
        assert isinstance(parse_replace_rule('/path/to -> x'), PatternReplaceRule)

    def test_compile_user_regex(self):
        assert compile_user_regex('/ABC/i').search('xabcx')
        assert compile_user_regex('/a.b/s').search('a\nb')
        assert compile_user_regex('^/docs/').search('/docs/page')
        assert not compile_user_regex('abc').search('ABC')


class TestConfigLoader:
    """Loading, merging and validation."""

    def test_defaults_without_file(self):
        config = ConfigLoader.load(None)
        assert config['export']['markdown']['converter'] == 'markdownify'
        assert config['export']['markdown']['output_directory'] is None

    def test_file_is_merged_with_defaults(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({
            'crawl': {'url': 'https://example.com/'},
            'export': {'markdown': {'disable_images': True}}
        }))
        config = ConfigLoader.load(str(path))
        assert config['crawl']['url'] == 'https://example.com/'
        assert config['export']['markdown']['disable_images'] is True
        assert config['export']['markdown']['disable_files'] is False

    def test_environment_variables_are_substituted(self, tmp_path, monkeypatch):
        monkeypatch.setenv('EXPORT_DIR', '/srv/export')
        path = tmp_path / 'config.yaml'
        path.write_text("export:\n  markdown:\n    output_directory: ${EXPORT_DIR}/md\n")
        config = ConfigLoader.load(str(path))
        assert config['export']['markdown']['output_directory'] == '/srv/export/md'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / 'missing.yaml'))

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('- a\n- b\n')
        with pytest.raises(ValueError):
            ConfigLoader.load(str(path))

    def test_valid_config(self):
        ConfigLoader.validate(valid_config(replace_content=['/a/ -> b'], store_only_url_regex=['/docs/']))

    @pytest.mark.parametrize('url', [None, '', 'ftp://example.com/', 'https://', '${SITE_URL}'])
    def test_invalid_url(self, url):
        config = valid_config()
        config['crawl']['url'] = url
        with pytest.raises(ValueError):
            ConfigLoader.validate(config)

    @pytest.mark.parametrize('markdown', [
        {'disable_images': 'yes'},
        {'exclude_selectors': '.nav'},
        {'store_only_url_regex': ['/(broken/']},
        {'replace_content': ['/(broken/ -> x']},
        {'converter': 'pandoc'},
    ])
    def test_invalid_markdown_options(self, markdown):
        with pytest.raises(ValueError):
            ConfigLoader.validate(valid_config(**markdown))

    def test_output_directory_must_not_be_a_file(self, tmp_path):
        path = tmp_path / 'file.txt'
        path.write_text('x')
        with pytest.raises(ValueError):
            ConfigLoader.validate(valid_config(output_directory=str(path)))

    def test_merge_with_args(self):
        config = valid_config(exclude_selectors=['.nav'])
        args = argparse.Namespace(
            url='https://docs.example.com/',
            markdown_export_dir='./out',
            markdown_disable_images=True,
            markdown_disable_files=False,
            markdown_ignore_store_file_error=False,
            markdown_export_store_only_url_regex=None,
            markdown_exclude_selector=['.footer'],
            markdown_replace_content=['a -> b'],
            markdown_replace_query_string=None,
            report_json='report.json',
            report_html=None,
            verbose=2
        )
        merged = ConfigLoader.merge_with_args(config, args)

        assert merged['crawl']['url'] == 'https://docs.example.com/'
        assert merged['export']['markdown']['output_directory'] == './out'
        assert merged['export']['markdown']['disable_images'] is True
        assert merged['export']['markdown']['exclude_selectors'] == ['.nav', '.footer']
        assert merged['export']['markdown']['replace_content'] == ['a -> b']
        assert merged['report']['json_path'] == 'report.json'
        assert merged['logging']['level'] == 'DEBUG'
        assert config['export']['markdown']['exclude_selectors'] == ['.nav']

    def test_get_nested(self):
        config = {'export': {'markdown': {'output_directory': 'out'}}}
        assert get_nested(config, 'export.markdown.output_directory') == 'out'
        assert get_nested(config, 'export.html.output_directory', 'x') == 'x'
        assert get_nested(config, 'export.markdown.output_directory.deeper') is None
