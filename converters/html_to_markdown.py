"""HTML to Markdown conversion: in-process markdownify converter and external command converter."""

import logging
import re
import shlex
import subprocess
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from markdownify import MarkdownConverter as MarkdownifyConverter
from soupsieve import SelectorSyntaxError

logger = logging.getLogger('crawl_markdown_exporter.converters.html_to_markdown')

# Elements that never carry page content
NON_CONTENT_TAGS = ['script', 'style', 'noscript', 'template', 'iframe', 'svg']

LEADING_SPACE_BEFORE_PIPE = re.compile(r'^ +(?=\|)', re.MULTILINE)
TRAILING_SPACE_AFTER_PIPE = re.compile(r'(?<=\|)[ \t]+$', re.MULTILINE)


class PageMarkdownConverter(MarkdownifyConverter):
    """
    markdownify converter tuned for crawled pages.

    This class extends markdownify.MarkdownConverter to provide:
    - Fenced code blocks with the language taken from class hints
    - Images using the title when alt text is missing
    - Links without a target rendered as plain text
    """

    def __init__(self, **kwargs):
        markdownify_options = {
            'heading_style': 'ATX',
            'bullets': '-',
            'escape_asterisks': False,
            'escape_underscores': False,
            'code_language_callback': self._extract_code_language,
        }
        markdownify_options.update(kwargs)
        super().__init__(**markdownify_options)

    def convert_img(self, el, text, parent_tags=None, **kwargs):
        src = el.get('src', '')
        alt = el.get('alt', '') or el.get('title', '')
        if not src:
            return alt
        return f'![{alt}]({src})'

    def convert_a(self, el, text, parent_tags=None, **kwargs):
        href = el.get('href')
        if not href or href.startswith('javascript:'):
            return text
        return super().convert_a(el, text, parent_tags=parent_tags, **kwargs)

    @staticmethod
    def _extract_code_language(el) -> Optional[str]:
        """Extract programming language from class hints on <pre> or its <code> child."""
        candidates = [el] + list(el.find_all('code', limit=1))
        for element in candidates:
            for cls in element.get('class', []) or []:
                for prefix in ('language-', 'lang-', 'brush-'):
                    if cls.startswith(prefix) and len(cls) > len(prefix):
                        return cls[len(prefix):].lower()
        return None


def remove_excluded_elements(soup: BeautifulSoup, exclude_selectors: Optional[List[str]]) -> int:
    """
    Remove elements matching CSS selectors from the document.

    Returns:
        Number of removed elements
    """
    removed = 0
    for selector in exclude_selectors or []:
        try:
            elements = soup.select(selector)
        except SelectorSyntaxError as e:
            logger.warning(f"Invalid exclude selector '{selector}': {e}")
            continue
        for element in elements:
            element.decompose()
            removed += 1
    return removed


class MarkdownifyHtmlConverter:
    """Converts HTML documents to Markdown in-process with markdownify."""

    def __init__(self, logger: Optional[logging.Logger] = None, options: Optional[Dict[str, Any]] = None):
        self.logger = logger or logging.getLogger('crawl_markdown_exporter.converters.html_to_markdown')
        self.options = options or {}

    def convert(self, html: str, exclude_selectors: Optional[List[str]] = None) -> Optional[str]:
        """
        Convert an HTML document to Markdown.

        Args:
            html: HTML document
            exclude_selectors: CSS selectors of elements to drop before conversion

        Returns:
            Markdown text, or None if the document produced no content
        """
        if not html or not html.strip():
            return None

        soup = BeautifulSoup(html, 'lxml')

        for tag in soup.find_all(NON_CONTENT_TAGS):
            tag.decompose()

        removed = remove_excluded_elements(soup, exclude_selectors)
        if removed:
            self.logger.debug(f"Removed {removed} excluded elements")

        root = soup.body or soup
        markdown = PageMarkdownConverter(**self.options).convert_soup(root)
        markdown = self._clean_markdown(markdown)

        return markdown if markdown.strip() else None

    @staticmethod
    def _clean_markdown(markdown: str) -> str:
        """Remove whitespace artifacts around pre-converted table rows."""
        markdown = LEADING_SPACE_BEFORE_PIPE.sub('', markdown)
        markdown = TRAILING_SPACE_AFTER_PIPE.sub('', markdown)
        return markdown.strip() + '\n'


class CommandHtmlConverter:
    """
    Converts HTML by piping it through an external command (e.g. ``html2markdown``).

    Exclude selectors are passed as repeated ``--exclude-selector`` arguments.
    A failing command or empty output yields None.
    """

    def __init__(self, command: str = 'html2markdown', timeout: Optional[float] = None,
                 logger: Optional[logging.Logger] = None):
        self.command = shlex.split(command)
        self.timeout = timeout
        self.logger = logger or logging.getLogger('crawl_markdown_exporter.converters.html_to_markdown')

    def build_args(self, exclude_selectors: Optional[List[str]] = None) -> List[str]:
        args = list(self.command)
        for selector in exclude_selectors or []:
            args.extend(['--exclude-selector', selector])
        return args

    def convert(self, html: str, exclude_selectors: Optional[List[str]] = None) -> Optional[str]:
        args = self.build_args(exclude_selectors)
        try:
            result = subprocess.run(
                args,
                input=html,
                capture_output=True,
                text=True,
                encoding='utf-8',
                timeout=self.timeout,
                check=False
            )
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.warning(f"Converter command '{args[0]}' failed: {e}")
            return None

        if result.returncode != 0:
            self.logger.warning(
                f"Converter command '{args[0]}' exited with code {result.returncode}: {result.stderr.strip()}"
            )

        return result.stdout if result.stdout and result.stdout.strip() else None


def create_converter(config: Dict[str, Any], logger: Optional[logging.Logger] = None):
    """Build the converter selected by ``export.markdown.converter``."""
    markdown_config = config.get('export', {}).get('markdown', {})
    if markdown_config.get('converter', 'markdownify') == 'command':
        return CommandHtmlConverter(markdown_config.get('converter_command', 'html2markdown'), logger=logger)
    return MarkdownifyHtmlConverter(logger=logger)


__all__ = [
    'PageMarkdownConverter',
    'MarkdownifyHtmlConverter',
    'CommandHtmlConverter',
    'create_converter',
    'remove_excluded_elements'
]
