"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from models import LiteralReplaceRule, PatternReplaceRule, ReplaceRule

# PCRE-style delimited regex, e.g. "/card[0-9]/i" or "#foo#"
DELIMITED_REGEX_PATTERN = re.compile(r'^([/#~%]).*\1[a-z]*$', re.IGNORECASE | re.DOTALL)

REGEX_FLAGS = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
    'x': re.VERBOSE,
    'u': 0,
}

DEFAULT_CONFIG: Dict[str, Any] = {
    'crawl': {
        'url': None,
        'allowed_domains_for_crawling': [],
        'allowed_domains_for_static_files': [],
        'ignore_regex': [],
    },
    'export': {
        'markdown': {
            'output_directory': None,
            'disable_images': False,
            'disable_files': False,
            'store_only_url_regex': [],
            'exclude_selectors': [],
            'replace_content': [],
            'replace_query_string': [],
            'ignore_store_file_error': False,
            'converter': 'markdownify',
            'converter_command': 'html2markdown',
        }
    },
    'logging': {
        'level': None,
        'file': None,
    },
    'report': {
        'json_path': None,
        'html_path': None,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str]) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file fall back to DEFAULT_CONFIG.

        Args:
            config_path: Path to YAML configuration file, or None for defaults only

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if config_path is None:
            return copy.deepcopy(DEFAULT_CONFIG)

        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        # Substitute environment variables recursively
        config_data = cls._substitute_env_vars_recursive(config_data)

        return _deep_merge(copy.deepcopy(DEFAULT_CONFIG), config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'crawl.url')
        cls._validate_url(get_nested(config, 'crawl.url'), 'crawl.url')

        for path in ('crawl.allowed_domains_for_crawling', 'crawl.allowed_domains_for_static_files',
                     'crawl.ignore_regex', 'export.markdown.store_only_url_regex',
                     'export.markdown.exclude_selectors', 'export.markdown.replace_content',
                     'export.markdown.replace_query_string'):
            value = get_nested(config, path, [])
            if not isinstance(value, list):
                raise ValueError(f"{path} must be a list")

        for path in ('export.markdown.disable_images', 'export.markdown.disable_files',
                     'export.markdown.ignore_store_file_error'):
            if not isinstance(get_nested(config, path, False), bool):
                raise ValueError(f"{path} must be a boolean")

        # Regexes must compile now rather than halfway through an export
        for path in ('crawl.ignore_regex', 'export.markdown.store_only_url_regex'):
            for value in get_nested(config, path, []):
                try:
                    compile_user_regex(value)
                except re.error as e:
                    raise ValueError(f"Invalid regex in {path}: {value!r} ({e})")

        for path in ('export.markdown.replace_content', 'export.markdown.replace_query_string'):
            try:
                parse_replace_rules(get_nested(config, path, []))
            except re.error as e:
                raise ValueError(f"Invalid replace rule in {path}: {e}")

        converter = get_nested(config, 'export.markdown.converter', 'markdownify')
        if converter not in ['markdownify', 'command']:
            raise ValueError("export.markdown.converter must be 'markdownify' or 'command'")

        output_dir = get_nested(config, 'export.markdown.output_directory')
        if output_dir and os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.markdown.output_directory '{output_dir}' is not a directory")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        # Ensure nested dictionaries exist
        merged.setdefault('crawl', {})
        merged.setdefault('export', {}).setdefault('markdown', {})
        merged.setdefault('logging', {})
        merged.setdefault('report', {})
        markdown = merged['export']['markdown']

        if getattr(args, 'url', None):
            merged['crawl']['url'] = args.url

        if getattr(args, 'markdown_export_dir', None):
            markdown['output_directory'] = args.markdown_export_dir

        # Boolean switches only ever turn a feature on from the command line
        if getattr(args, 'markdown_disable_images', False):
            markdown['disable_images'] = True

        if getattr(args, 'markdown_disable_files', False):
            markdown['disable_files'] = True

        if getattr(args, 'markdown_ignore_store_file_error', False):
            markdown['ignore_store_file_error'] = True

        # Repeatable options extend the lists from the config file
        for arg_name, key in (
            ('markdown_export_store_only_url_regex', 'store_only_url_regex'),
            ('markdown_exclude_selector', 'exclude_selectors'),
            ('markdown_replace_content', 'replace_content'),
            ('markdown_replace_query_string', 'replace_query_string'),
        ):
            values = getattr(args, arg_name, None)
            if values:
                markdown[key] = list(markdown.get(key) or []) + list(values)

        if getattr(args, 'report_json', None):
            merged['report']['json_path'] = args.report_json

        if getattr(args, 'report_html', None):
            merged['report']['html_path'] = args.report_html

        verbose = getattr(args, 'verbose', 0)
        if verbose:
            merged['logging']['level'] = 'DEBUG' if verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        # Check for unsubstituted environment variables
        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "export.markdown.output_directory")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def is_delimited_regex(value: str) -> bool:
    """Check if value looks like a PCRE-style delimited regex (``/foo/i``)."""
    return bool(DELIMITED_REGEX_PATTERN.match(value))


def compile_user_regex(value: str) -> re.Pattern:
    """
    Compile a user-supplied regex.

    Delimited values (``/foo/i``, ``#bar#``) have their delimiters stripped and
    trailing flag letters applied; anything else is compiled as-is.

    Raises:
        re.error: If the pattern does not compile
    """
    if not is_delimited_regex(value):
        return re.compile(value)

    delimiter = value[0]
    end = value.rindex(delimiter)
    body, modifiers = value[1:end], value[end + 1:]

    flags = 0
    for modifier in modifiers.lower():
        flags |= REGEX_FLAGS.get(modifier, 0)

    return re.compile(body, flags)


def _translate_replacement(replacement: str) -> str:
    """Translate PCRE-style $1 / ${1} group references to Python's \\g<1>."""
    replacement = replacement.replace('\\', '\\\\')
    return re.sub(r'\$\{?(\d+)\}?', r'\\g<\1>', replacement)


def parse_replace_rule(rule: str) -> ReplaceRule:
    """
    Parse a single ``"from -> to"`` rule into its literal or pattern variant.

    Args:
        rule: Rule string; a missing ``-> to`` part replaces with empty string

    Returns:
        LiteralReplaceRule or PatternReplaceRule
    """
    parts = rule.split('->', 1)
    replace_from = parts[0].strip()
    replace_to = parts[1].strip() if len(parts) > 1 else ''

    if is_delimited_regex(replace_from):
        return PatternReplaceRule(compile_user_regex(replace_from), _translate_replacement(replace_to))

    return LiteralReplaceRule(replace_from, replace_to)


def parse_replace_rules(rules: Optional[List[str]]) -> List[ReplaceRule]:
    """Parse rule strings once, preserving declaration order."""
    return [parse_replace_rule(rule) for rule in (rules or []) if rule and rule.strip()]


def apply_replace_rules(text: str, rules: List[ReplaceRule]) -> str:
    """Apply rules to text in declaration order."""
    for rule in rules:
        text = rule.apply(text)
    return text


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into base recursively; override values win."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


__all__ = [
    'ConfigLoader',
    'DEFAULT_CONFIG',
    'get_nested',
    'is_delimited_regex',
    'compile_user_regex',
    'parse_replace_rule',
    'parse_replace_rules',
    'apply_replace_rules'
]
