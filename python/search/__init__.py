"""
Library Search Module

Boolean search and custom tagging expressions over the library's tag graph.

Key Components:
- expression_parser: parses both expression languages into nested lists
- search_engine: retrieval of books under tags, and search expression evaluation
- tag_manager: custom tags and tagging expression evaluation
"""

from .expression_parser import parse_expression
from .search_engine import (
    SORT_ASC,
    SORT_CHOICES,
    SORT_DESC,
    SearchUnit,
    exec_search_expression,
    get_books,
    sort_search_items,
)
from .tag_manager import (
    TaggingResult,
    TagManager,
    exec_tagging_expression,
    get_custom_tags,
    load_custom_tags,
)

__all__ = [
    "parse_expression",
    "SORT_ASC",
    "SORT_DESC",
    "SORT_CHOICES",
    "SearchUnit",
    "exec_search_expression",
    "get_books",
    "sort_search_items",
    "TaggingResult",
    "TagManager",
    "exec_tagging_expression",
    "get_custom_tags",
    "load_custom_tags",
]
