"""Logging setup for the exporter: colored console output, rotating log file and progress summaries."""

import copy
import logging
import logging.handlers
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import colorlog

LOGGER_NAME = 'crawl_markdown_exporter'

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 5

# Progress is reported every this many resources
PROGRESS_LOG_INTERVAL = 50

SENSITIVE_KEYS = ('password', 'secret', 'api_key', 'token', 'auth')
URL_CREDENTIALS_PATTERN = re.compile(r'(?<=://)[^/@\s]+@')


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the exporter's logger tree.

    Calling it again replaces the handlers, so the CLI can start with a
    console-only setup and reconfigure once the config file is loaded.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to a rotating log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit level name; wins over verbosity

    Returns:
        The ``crawl_markdown_exporter`` logger

    Raises:
        ValueError: If level is not a known level name
    """
    log_level = _resolve_level(verbosity, level)
    log_format = log_format or DEFAULT_LOG_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors=LOG_COLORS
    ))
    logger.addHandler(console_handler)

    if not log_file:
        logger.debug(f"Console logging only. Level: {logging.getLevelName(log_level)}")
        return logger

    try:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding='utf-8'
        )
    except OSError as e:
        logger.warning(f"Failed to set up file logging to {log_file}: {e}")
        return logger

    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
    logger.addHandler(file_handler)
    logger.info(f"Logging to file {log_file} at level {logging.getLevelName(log_level)}")

    return logger


def _resolve_level(verbosity: int, level: Optional[str]) -> int:
    if level:
        level_name = level.upper()
        if level_name not in LOG_COLORS:
            raise ValueError(f"Invalid log level '{level}'. Must be one of: {sorted(LOG_COLORS)}")
        return getattr(logging, level_name)

    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


class ProgressTracker:
    """
    Context manager counting stored, skipped and failed resources of one run.

    Progress is logged periodically and on every failure; leaving the context
    logs a one-line summary whose level reflects the outcome.
    """

    def __init__(self, total_items: int, item_type: str = "items"):
        self.total_items = total_items
        self.item_type = item_type
        self.counts = {'stored': 0, 'skipped': 0, 'failed': 0}
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(f'{LOGGER_NAME}.progress')

    @property
    def processed_items(self) -> int:
        return sum(self.counts.values())

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Processing {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        failed = self.counts['failed']
        if exc_type is not None or (failed and failed == self.total_items):
            log_method = self.logger.error
        elif failed:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        state = 'aborted' if exc_type is not None else 'done'
        log_method(
            f"{self.item_type.capitalize()} {state}: {self.processed_items}/{self.total_items} processed, "
            f"{self.counts['stored']} stored, {self.counts['skipped']} skipped, {failed} failed "
            f"in {format_duration(time.time() - self.start_time)}"
        )

    def increment(self, success: bool = True, skipped: bool = False) -> None:
        """
        Count one processed item.

        Args:
            success: Whether the item was handled without error
            skipped: Whether the item was deliberately left out
        """
        if skipped:
            self.counts['skipped'] += 1
        elif success:
            self.counts['stored'] += 1
        else:
            self.counts['failed'] += 1

        if not success or self.processed_items % PROGRESS_LOG_INTERVAL == 0:
            self.logger.info(
                f"{self.processed_items}/{self.total_items} {self.item_type} processed"
                + ('' if success else ' (last one failed)')
            )

    def get_stats(self) -> Dict[str, Any]:
        elapsed = 0.0 if self.start_time is None else time.time() - self.start_time
        stats: Dict[str, Any] = dict(self.counts)
        stats.update({
            'total': self.total_items,
            'processed': self.processed_items,
            'elapsed_time': elapsed,
            'elapsed_time_formatted': format_duration(elapsed),
        })
        return stats


def format_duration(seconds: float) -> str:
    """Format a duration as ``N ms``, ``x.y s``, ``m min s s`` or ``h h m min s s``."""
    if seconds < 1:
        return f"{int(seconds * 1000)} ms"
    if seconds < 60:
        return f"{seconds:.1f} s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes} min {secs} s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours} h {minutes} min {secs} s"


def log_section(title: str) -> None:
    """Log a banner line around a section title."""
    logger = logging.getLogger(LOGGER_NAME)
    separator = "=" * 60
    for line in (separator, f"  {title.upper()}", separator):
        logger.info(line)


# (label, dotted config path, show count instead of value)
CONFIG_LOG_FIELDS: List[Tuple[str, str, bool]] = [
    ('Initial URL', 'crawl.url', False),
    ('Allowed Domains (crawl)', 'crawl.allowed_domains_for_crawling', False),
    ('Allowed Domains (static files)', 'crawl.allowed_domains_for_static_files', False),
    ('Ignore Regexes', 'crawl.ignore_regex', False),
    ('Output Directory', 'export.markdown.output_directory', False),
    ('Disable Images', 'export.markdown.disable_images', False),
    ('Disable Files', 'export.markdown.disable_files', False),
    ('Store Only URL Regexes', 'export.markdown.store_only_url_regex', False),
    ('Exclude Selectors', 'export.markdown.exclude_selectors', False),
    ('Replace Content Rules', 'export.markdown.replace_content', True),
    ('Replace Query String Rules', 'export.markdown.replace_query_string', True),
    ('Ignore Store File Errors', 'export.markdown.ignore_store_file_error', False),
    ('Converter', 'export.markdown.converter', False),
]


def log_config(config: Dict[str, Any]) -> None:
    """Log the effective configuration with credentials masked."""
    logger = logging.getLogger(LOGGER_NAME)
    sanitized = _sanitize_config(config)

    log_section("Configuration")
    for label, path, as_count in CONFIG_LOG_FIELDS:
        value: Any = sanitized
        for key in path.split('.'):
            value = value.get(key) if isinstance(value, dict) else None

        if as_count:
            value = len(value or [])
        elif value in (None, [], ''):
            value = 'Not Set'
        logger.info(f"{label}: {value}")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy of the configuration safe for logging.

    Values under sensitive keys are replaced and ``user:password@`` parts of
    URLs are removed.
    """
    def mask(data: Any, key: str = '') -> Any:
        if isinstance(data, dict):
            return {k: mask(v, str(k)) for k, v in data.items()}
        if isinstance(data, list):
            return [mask(item, key) for item in data]
        if isinstance(data, str):
            if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                return "***REDACTED***"
            return URL_CREDENTIALS_PATTERN.sub('***@', data)
        return data

    return mask(copy.deepcopy(config))


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'format_duration',
    'log_section',
    'log_config'
]
