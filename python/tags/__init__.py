"""
Tag Graph

In-memory labelled graph of tags and tagged entities, with bounded traversal
used by the library search and tagging engines.

Key Components:
- TagGraph: tag registry, connections and descendant search
- Tag, Connection, ConnectionType: graph nodes and edges
- names: tag name normalization and search patterns
"""

from .graph import Connection, ConnectionType, Tag, TagGraph, node_name
from .names import (
    SearchPattern,
    compile_pattern,
    compile_query,
    date_tag_name,
    format_pattern,
    lineage_name,
    pattern_matches,
    text_tag_name,
)

__all__ = [
    "TagGraph",
    "Tag",
    "Connection",
    "ConnectionType",
    "node_name",
    "SearchPattern",
    "compile_pattern",
    "compile_query",
    "date_tag_name",
    "format_pattern",
    "lineage_name",
    "pattern_matches",
    "text_tag_name",
]
