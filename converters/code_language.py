"""Guesses the language of untagged fenced code blocks from characteristic syntax patterns."""

import re
from typing import Dict, List, Tuple

# Declaration order matters: on equal scores the first language wins.
# Patterns are single-line on purpose: ^ and $ anchor to the whole block.
LANGUAGE_PATTERNS: List[Tuple[str, List[str]]] = [
    ('php', [
        r'^<\?php',
        r'\$[a-zA-Z_]',
        r'\b(?:public|private|protected)\s+function\b',
        r'\bnamespace\s+[a-zA-Z\\]+;',
    ]),
    ('javascript', [
        r'\bconst\s+[a-zA-Z_][a-zA-Z0-9_]*\s*=',
        r'\bfunction\s*\([^)]*\)\s*{',
        r'\blet\s+[a-zA-Z_][a-zA-Z0-9_]*\s*=',
        r'\bconsole\.log\(',
        r'=>\s*{',
    ]),
    ('jsx', [
        r'return\s+\(',
        r'import\s+[a-zA-Z0-9_,\{\} ]+\s+from',
        r'export\s+(default|const)',
    ]),
    ('typescript', [
        r':\s*(?:string|number|boolean|any)\b',
        r'interface\s+[A-Z][a-zA-Z0-9_]*\s*{',
        r'type\s+[A-Z][a-zA-Z0-9_]*\s*=',
    ]),
    ('python', [
        r'def\s+[a-zA-Z_][a-zA-Z0-9_]*\s*\([^)]*\):\s*$',
        r'^from\s+[a-zA-Z_.]+\s+import\b',
        r'^if\s+__name__\s*==\s*[\'"]__main__[\'"]:\s*$',
    ]),
    ('java', [
        r'public\s+class\s+[A-Z][a-zA-Z0-9_]*',
        r'System\.out\.println\(',
        r'private\s+final\s+',
    ]),
    ('rust', [
        r'fn\s+[a-z_][a-z0-9_]*\s*\([^)]*\)\s*(?:->\s*[a-zA-Z<>]+\s*)?\{',
        r'let\s+mut\s+',
        r'impl\s+[A-Z][a-zA-Z0-9_]*',
    ]),
    ('ruby', [
        r'^require\s+[\'"][a-zA-Z0-9_/]+[\'"]',
        r'def\s+[a-z_][a-z0-9_]*\b',
        r'\battr_accessor\b',
    ]),
    ('css', [
        r'^[.#][a-zA-Z\-_][^{]*\{',
        r'\b(?:margin|padding|border|color|background):\s*[^;]+;',
        r'@media\s+',
    ]),
    ('bash', [
        r'^#!/bin/(?:bash|sh)',
        r'\$\([^)]+\)',
        r'(?:^|\s)(?:-{1,2}[a-zA-Z0-9]+)',
        r'\becho\s+',
        r'\|\s*grep\b',
    ]),
    ('go', [
        r'\bfunc\s+[a-zA-Z_][a-zA-Z0-9_]*\s*\([^)]*\)',
        r'\btype\s+[A-Z][a-zA-Z0-9_]*\s+struct\b',
        r'\bpackage\s+[a-z][a-z0-9_]*\b',
        r'\bif\s+err\s*!=\s*nil\b',
    ]),
    ('csharp', [
        r'\bnamespace\s+[A-Za-z.]+\b',
        r'\bpublic\s+(?:class|interface|enum)\b',
        r'\busing\s+[A-Za-z.]+;',
        r'\basync\s+Task<',
    ]),
    ('kotlin', [
        r'\bfun\s+[a-zA-Z_][a-zA-Z0-9_]*\s*\(',
        r'\bval\s+[a-zA-Z_][a-zA-Z0-9_]*:',
        r'\bvar\s+[a-zA-Z_][a-zA-Z0-9_]*:',
        r'\bdata\s+class\b',
    ]),
    ('swift', [
        r'\bfunc\s+[a-zA-Z_][a-zA-Z0-9_]*\s*\(',
        r'\bvar\s+[a-zA-Z_][a-zA-Z0-9_]*:\s*[A-Z]',
        r'\blet\s+[a-zA-Z_][a-zA-Z0-9_]*:',
        r'\bclass\s+[A-Z][A-Za-z0-9_]*:',
    ]),
    ('cpp', [
        r'\b(?:class|struct)\s+[A-Z][a-zA-Z0-9_]*\b',
        r'\bstd::[a-z0-9_]+',
        r'\b#include\s+[<"][a-z0-9_.]+[>"]',
        r'\btemplate\s*<[^>]+>',
    ]),
    ('scala', [
        r'\bdef\s+[a-z][a-zA-Z0-9_]*\s*\(',
        r'\bcase\s+class\b',
        r'\bobject\s+[A-Z][a-zA-Z0-9_]*\b',
        r'\bval\s+[a-z][a-zA-Z0-9_]*\s*=',
    ]),
    ('perl', [
        r'\buse\s+[A-Z][A-Za-z:]+;',
        r'\bsub\s+[a-z_][a-z0-9_]*\s*\{',
        r'@[a-zA-Z_][a-zA-Z0-9_]*',
    ]),
    ('lua', [
        r'\bfunction\s+[a-z_][a-z0-9_]*\s*\(',
        r'\blocal\s+[a-z_][a-z0-9_]*\s*=',
        r'\brequire\s*\(?[\'"][^\'"]+[\'"]\)?',
    ]),
    ('vb', [
        r'\bPublic\s+(?:Class|Interface|Module)\b',
        r'\bPrivate\s+Sub\s+[A-Za-z_][A-Za-z0-9_]*\(',
        r'\bDim\s+[A-Za-z_][A-Za-z0-9_]*\s+As\b',
        r'\bEnd\s+(?:Sub|Function|Class|If|While)\b',
    ]),
    ('fsharp', [
        r'\blet\s+[a-z_][a-zA-Z0-9_]*\s*=',
        r'\bmodule\s+[A-Z][A-Za-z0-9_]*\s*=',
        r'\btype\s+[A-Z][A-Za-z0-9_]*\s*=',
        r'\bmatch\s+.*\bwith\b',
    ]),
    ('powershell', [
        r'\$[A-Za-z_][A-Za-z0-9_]*',
        r'\[Parameter\(.*?\)\]',
        r'\bfunction\s+[A-Z][A-Za-z0-9-]*',
        r'\b(?:Get|Set|New|Remove)-[A-Z][A-Za-z]*',
    ]),
    ('xaml', [
        r'<Window\s+[^>]*>',
        r'<UserControl\s+[^>]*>',
        r'xmlns:(?:x|d)="[^"]+"',
        r'<(?:Grid|StackPanel|DockPanel)[^>]*>',
    ]),
    ('razor', [
        r'@(?:model|using|inject)',
        r'@Html\.[A-Za-z]+\(',
        r'@\{.*?\}',
        r'<partial\s+name="[^"]+"\s*/>',
    ]),
    ('html', [
        r'<(html|head|body|h1|a|img|table|tr|td|ul|ol|li|script|style)[^>]*>',
    ]),
]

COMPILED_PATTERNS: List[Tuple[str, List[re.Pattern]]] = [
    (language, [re.compile(pattern) for pattern in patterns])
    for language, patterns in LANGUAGE_PATTERNS
]

# Fenced block opened without a language tag
CODE_BLOCK_PATTERN = re.compile(r'```\s*\n((?:[^`]|`[^`]|``[^`])*?)\n```', re.DOTALL)


def score_languages(code: str) -> Dict[str, int]:
    """Count pattern matches per language; every match of every pattern scores one point."""
    return {
        language: sum(len(pattern.findall(code)) for pattern in patterns)
        for language, patterns in COMPILED_PATTERNS
    }


def detect_language(code: str) -> str:
    """
    Return the best-scoring language for a code snippet.

    Returns:
        Language name, or '' when no pattern matched
    """
    detected = ''
    max_score = 0
    for language, score in score_languages(code).items():
        if score > max_score:
            max_score = score
            detected = language
    return detected


def set_code_languages(markdown: str) -> str:
    """Tag every untagged fenced code block with its detected language."""
    def replace_block(match):
        code = match.group(1)
        return f"```{detect_language(code)}\n{code}\n```"

    return CODE_BLOCK_PATTERN.sub(replace_block, markdown)


__all__ = ['LANGUAGE_PATTERNS', 'score_languages', 'detect_language', 'set_code_languages']
