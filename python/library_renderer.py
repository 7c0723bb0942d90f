"""
Export of library search results as tag listings, plain text, or markdown
with an embedded mermaid flowchart.
"""

from typing import Any, Dict, Iterator, List, Optional, Set

from colored_logger import get_colored_logger
from library.search_entry import BookReference
from search.search_engine import BookResult, exec_search_expression
from tags.graph import Connection, ConnectionType, Tag
from tags.names import SearchPattern, TAG_LINEAGE_NAME_PARTS_MAX, compile_query, format_pattern, lineage_name

logger = get_colored_logger(__name__)

FORMAT_TAG = "tag"
FORMAT_TXT = "txt"
FORMAT_MD = "md"
EXPORT_FORMATS = (FORMAT_TXT, FORMAT_MD, FORMAT_TAG)

TAG_LINEAGE_DELIM = " / "


def _mermaid_label(text: str) -> str:
    return text.replace('"', "#quot;")


class LibraryExport:
    """
    Chunks of one library export, consumed once.

    Iterating runs the search and renders its results; ``book_refs`` holds
    a reference to every rendered book once iteration is done.
    """

    def __init__(
        self,
        library,
        format: str,
        start_tag_name: Optional[str] = None,
        query: Optional[SearchPattern] = None,
        search_expr: Optional[str] = None,
        sort: Optional[str] = None,
    ):
        """
        Validate the export options and prepare the search.

        Raises:
            ValueError: If the format is not supported.
            TagNotFoundError: If the start tag does not exist.
            MalformedExpressionError: If the search expression is invalid or the query is an invalid regular expression.
        """
        if format not in EXPORT_FORMATS:
            raise ValueError(f"unsupported library export format={format}")

        self.library = library
        self.format = format
        self.start_tag_name = start_tag_name
        self.query = compile_query(query) if isinstance(query, str) else query
        self.search_expr = search_expr
        self.sort = sort
        self.book_refs: List[BookReference] = []
        self._consumed = False

        self._results: Optional[Iterator[BookResult]] = None
        if format != FORMAT_TAG:
            if search_expr is not None:
                self._results = exec_search_expression(library, search_expr, sort)
            else:
                start_tag = (
                    library.graph.get(start_tag_name, create=False)
                    if start_tag_name is not None
                    else library.root
                )
                self._results = library.get_books(start_tag, self.query, sort)

    @property
    def input_text(self) -> str:
        """Command line options equivalent to this export."""
        parts = []
        if self.start_tag_name is not None:
            parts.append(f'--tag "{self.start_tag_name}"')
        if self.query is not None:
            parts.append(f'--query "{format_pattern(self.query)}"')
        if self.search_expr is not None:
            parts.append(f'--search-expr "{self.search_expr}"')
        if self.sort is not None:
            parts.append(f"--sort {self.sort}")
        parts.append(f"--show-library {self.format}")
        return " ".join(parts)

    def __iter__(self) -> Iterator[str]:
        if self._consumed:
            raise RuntimeError("library export can only be consumed once")
        self._consumed = True

        if self.format == FORMAT_TAG:
            return self._render_tags()
        if self.format == FORMAT_TXT:
            return self._render_txt()
        return self._render_md()

    def _books(self) -> Iterator[BookResult]:
        for book, path in self._results:
            self.book_refs.append(BookReference.from_book(book))
            yield book, path

    def _render_tags(self) -> Iterator[str]:
        logger.info("render library tags")
        parts_max = self.library.context.setting("tag_lineage_name_parts_max", TAG_LINEAGE_NAME_PARTS_MAX)

        yield "doc-level all tags\n\n"
        names = sorted(
            (lineage_name(tag, TAG_LINEAGE_DELIM, parts_max=parts_max) for tag in self.library.graph.all_tags()),
            key=lambda name: (name.casefold(), name),
        )
        for name in names:
            yield name + "\n"
        yield "\n"

    def _render_txt(self) -> Iterator[str]:
        logger.info("render library as a list of books")

        yield (
            f"=== books in library for start-tag={self.start_tag_name} "
            f"query={format_pattern(self.query)} search-expr={self.search_expr} sort={self.sort}\n\n"
        )
        for book, path in self._books():
            yield "- \n"
            yield from book.describe("  ", path)
            yield "\n\n"
        yield "===\n"

    def _render_md(self) -> Iterator[str]:
        logger.info("render library books as markdown with embedded mermaid")

        yield "# doc-level library export\n\n"
        yield "## input\n\n"
        yield f"`{self.input_text}`\n\n"
        yield "## output\n\n"

        yield "```mermaid\n"
        yield "flowchart LR\n"
        yield "classDef book text-align:left;\n"
        yield "classDef tag text-align:center;\n"

        # node ids by node identity, and edges already drawn
        nodes: Dict[Any, str] = {}
        edges: Set[Connection] = set()

        def tag_node(tag: Tag) -> Iterator[str]:
            if tag not in nodes:
                nodes[tag] = f"tag-{len(nodes)}"
                yield f'{nodes[tag]}(["{_mermaid_label(tag.name)}"]):::tag\n'

        for book, path in self._books():
            if book not in nodes:
                nodes[book] = f"book-{len(nodes)}"
                label = _mermaid_label("".join(book.describe()))
                yield f'{nodes[book]}["{label}"]:::book\n'

            for conn in path:
                if conn in edges:
                    continue
                edges.add(conn)

                yield from tag_node(conn.source)
                if conn.is_self_loop:
                    continue

                if not isinstance(conn.target, Tag):
                    yield f"%% skip edge to entity {conn.target}\n"
                elif conn.type is not ConnectionType.CHILD:
                    yield f"%% skip edge {conn}\n"
                else:
                    yield from tag_node(conn.target)
                    label = f'|"{conn.weight}"|' if conn.weight is not None else ""
                    yield f"{nodes[conn.source]} -->{label} {nodes[conn.target]}\n"

            # edge from the last tag of the path to the book
            if path:
                last = path[-1].target
                yield from tag_node(last)
                logger.trace("render edge %s -> %s", last.name, book)
                yield f"{nodes[last]} --> {nodes[book]}\n"

        yield "```\n"


def export_library(
    library,
    format: str,
    start_tag_name: Optional[str] = None,
    query: Optional[SearchPattern] = None,
    search_expr: Optional[str] = None,
    sort: Optional[str] = None,
) -> LibraryExport:
    """
    Export a library search in the requested format.

    Args:
        library: Library to render
        format: ``tag``, ``txt`` or ``md``
        start_tag_name: Tag from which to search (default: library root)
        query: Query pattern, as ``/regex/`` or substring text, or compiled
        search_expr: Search expression; replaces start tag and query when given
        sort: ``asc``, ``desc`` or None

    Returns:
        LibraryExport to iterate once for the output chunks.
    """
    return LibraryExport(library, format, start_tag_name, query, search_expr, sort)
