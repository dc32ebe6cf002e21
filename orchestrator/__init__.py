"""
Reporting package for analyzers and the tables they produce.

Analyzers inspect the crawl status after the crawl and register SuperTables
that are rendered to the console, the HTML report and the JSON report.
"""

from .page404_analyzer import Page404Analyzer
from .super_table import SuperTable, SuperTableColumn

__all__ = [
    'Page404Analyzer',
    'SuperTable',
    'SuperTableColumn'
]
