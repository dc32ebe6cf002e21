"""Post-conversion cleanup of Markdown produced from crawled HTML pages."""

import logging
import re
from typing import Iterable, List, Optional

from .code_language import set_code_languages

logger = logging.getLogger('crawl_markdown_exporter.converters.markdown_normalizer')

LINK_PATTERN = re.compile(r'\[([^\]]*)\]\(([^)]+)\)')
HTML_EXTENSION_PATTERN = re.compile(r'\.html(?=#|\s|$)')
IMAGE_IN_LINK_PATTERN = re.compile(r'\[!\[[^\]]*\]\([^\)]*\)\]\([^\)]*\)')
IMAGE_PATTERN = re.compile(r'!\[.*\]\(.*\)')
FILE_LINK_PATTERN = re.compile(r'( ?)\[([^\]]+)\]\((?!https?://)([^)]+)\.([a-z0-9]{1,5})\)', re.IGNORECASE)
EMPTY_LINK_PATTERN = re.compile(r'\[[^\]]*\]\(\)')
FENCE_BLANK_LINES_PATTERN = re.compile(r'```\n{2,}')
LIST_ITEM_PATTERN = re.compile(r'^[ ]{0,3}[-*+][ ]|^[ ]{0,3}\d+\.[ ]|^[ ]{2,}[-*+][ ]')
INDENT_PATTERN = re.compile(r'^[ ]*')
HEADING_PATTERN = re.compile(r'^(?:# |## |### )', re.MULTILINE)
CLI_FLAG_CELL_PATTERN = re.compile(r'\| (-{1,2}[a-z0-9][a-z0-9-]*) \|', re.IGNORECASE)
MULTIPLE_NEWLINES_PATTERN = re.compile(r'\n{3,}')

# File links with these extensions survive when files are disabled
ALLOWED_FILE_EXTENSIONS = {'md', 'jpg', 'png', 'gif', 'webp', 'avif'}


class MarkdownNormalizer:
    """
    Ordered cleanup passes over converted Markdown.

    Each pass is a public method taking and returning the whole document, so
    it can be run and tested on its own; normalize() runs them in order.
    """

    def __init__(
        self,
        ignore_regexes: Optional[Iterable[re.Pattern]] = None,
        disable_images: bool = False,
        disable_files: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the normalizer.

        Args:
            ignore_regexes: Link targets matching any of these are left untouched
            disable_images: Remove images from the output
            disable_files: Remove links to non-page files from the output
            logger: Logger instance
        """
        self.ignore_regexes: List[re.Pattern] = list(ignore_regexes or [])
        self.disable_images = disable_images
        self.disable_files = disable_files
        self.logger = logger or logging.getLogger('crawl_markdown_exporter.converters.markdown_normalizer')

    def normalize(self, markdown: str) -> str:
        """Run all passes in order."""
        markdown = self.rewrite_html_links(markdown)
        if self.disable_images:
            markdown = self.remove_images(markdown)
        if self.disable_files:
            markdown = self.remove_file_links(markdown)
        markdown = self.remove_empty_links(markdown)
        markdown = self.join_continued_list_lines(markdown)
        markdown = self.remove_blank_lines_after_fence(markdown)
        markdown = self.remove_empty_lines_in_lists(markdown)
        markdown = self.move_content_before_main_heading_to_end(markdown)
        markdown = self.fix_multiline_images(markdown)
        markdown = self.detect_code_languages(markdown)
        markdown = self.wrap_cli_flags_in_tables(markdown)
        markdown = self.collapse_blank_lines(markdown)
        return markdown

    def _is_ignored(self, url: str) -> bool:
        return any(regex.search(url) for regex in self.ignore_regexes)

    def rewrite_html_links(self, markdown: str) -> str:
        """Point links at the exported .md files instead of .html, keeping fragments."""
        def replace_link(match):
            text, url = match.group(1), match.group(2)
            if self._is_ignored(url):
                return match.group(0)
            return f"[{text}]({HTML_EXTENSION_PATTERN.sub('.md', url)})"

        return LINK_PATTERN.sub(replace_link, markdown)

    def remove_images(self, markdown: str) -> str:
        """Remove images, including images wrapped in links."""
        markdown = IMAGE_IN_LINK_PATTERN.sub('', markdown)
        return IMAGE_PATTERN.sub('', markdown)

    def remove_file_links(self, markdown: str) -> str:
        """
        Remove links to local files unless their extension is allowed or the target is ignored.

        A removed link takes the space before it along, so no double space is left behind.
        """
        def replace_link(match):
            extension = match.group(4)
            full_url = f"{match.group(3)}.{extension}"
            if self._is_ignored(full_url):
                return match.group(0)
            if extension.lower() in ALLOWED_FILE_EXTENSIONS:
                return match.group(0)
            return ''

        return FILE_LINK_PATTERN.sub(replace_link, markdown)

    def remove_empty_links(self, markdown: str) -> str:
        return EMPTY_LINK_PATTERN.sub('', markdown)

    def join_continued_list_lines(self, markdown: str) -> str:
        """Drop the blank line between a backslash line continuation and the next list option."""
        return markdown.replace('\\\n\n  -', '\\\n  -')

    def remove_blank_lines_after_fence(self, markdown: str) -> str:
        return FENCE_BLANK_LINES_PATTERN.sub('```\n', markdown)

    def remove_empty_lines_in_lists(self, markdown: str) -> str:
        """
        Remove blank lines between list items of any kind and nesting level.

        Blank lines that end a list or sit outside lists are kept.
        """
        result: List[str] = []
        in_list = False
        last_line_empty = False
        last_indent_level = 0

        for line in markdown.split('\n'):
            if LIST_ITEM_PATTERN.match(line):
                if in_list and last_line_empty:
                    while result and result[-1].strip() == '':
                        result.pop()
                in_list = True
                result.append(line)
                last_line_empty = False
                last_indent_level = len(INDENT_PATTERN.match(line).group(0))
            elif line.strip() == '':
                result.append(line)
                last_line_empty = True
            else:
                current_indent = len(INDENT_PATTERN.match(line).group(0))
                # Unindented text after a blank line ends the list
                if current_indent < last_indent_level or (last_line_empty and current_indent <= last_indent_level):
                    in_list = False
                result.append(line)
                last_line_empty = False

        return '\n'.join(result)

    def move_content_before_main_heading_to_end(self, markdown: str) -> str:
        """
        Move everything before the first main heading to the end, below a horizontal rule.

        The main heading is the highest level (h1, else h2, else h3) present.
        """
        levels = [len(match.group(0).strip(' ')) for match in HEADING_PATTERN.finditer(markdown)]
        if not levels:
            return markdown

        main_heading = re.search('^' + '#' * min(levels) + ' ', markdown, re.MULTILINE)
        if not main_heading:
            return markdown

        content_before = markdown[:main_heading.start()]
        content_after = markdown[main_heading.start():]

        if content_before.strip() == '':
            return markdown

        return content_after.strip() + '\n\n---\n\n' + content_before.strip()

    def fix_multiline_images(self, markdown: str) -> str:
        """Rejoin image links split across lines by the converter."""
        return markdown.replace('[\n![', '[![').replace(')\n](', ')](')

    def detect_code_languages(self, markdown: str) -> str:
        return set_code_languages(markdown)

    def wrap_cli_flags_in_tables(self, markdown: str) -> str:
        """Wrap table cells holding a bare command-line flag (``| --foo |``, ``| -f |``) in inline code."""
        return CLI_FLAG_CELL_PATTERN.sub(r'| `\1` |', markdown)

    def collapse_blank_lines(self, markdown: str) -> str:
        return MULTIPLE_NEWLINES_PATTERN.sub('\n\n', markdown)


__all__ = ['MarkdownNormalizer', 'ALLOWED_FILE_EXTENSIONS']
