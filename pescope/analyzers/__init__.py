"""PEScope analyzers built on top of a decoded :class:`AnalysisResult`."""

from pescope.analyzers.dependencies import (
    DependencySummary,
    is_system_dll,
    summarize_dependencies,
)
from pescope.analyzers.export_search import search_exports, wildcard_to_regex

__all__ = [
    "DependencySummary",
    "is_system_dll",
    "search_exports",
    "summarize_dependencies",
    "wildcard_to_regex",
]
