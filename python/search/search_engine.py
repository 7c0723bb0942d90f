import functools
import itertools
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from colored_logger import get_colored_logger
from errors import MalformedExpressionError
from library.descriptor import owning_book
from tags.graph import Connection, ConnectionType, Tag, node_name
from tags.names import SearchPattern, compile_query, format_pattern
from .expression_parser import parse_expression, unwrap_group

logger = get_colored_logger(__name__)

SEARCH_TAGS_MAX = 1000
SEARCH_TAG_BOOKS_MAX = 10000

SORT_ASC = "asc"
SORT_DESC = "desc"
SORT_CHOICES = (SORT_ASC, SORT_DESC)

# Expression variables
VAR_TAG = "t"
VAR_QUERY = "q"

BookResult = Tuple[Any, List[Connection]]


@dataclass
class SearchUnit:
    """
    One retrieval: a start tag and an optional query pattern, either of which
    may be negated.
    """

    start_tag: Tag
    pattern: Optional[SearchPattern] = None
    exclude_start_tag: bool = False
    exclude_query: bool = False

    def __str__(self) -> str:
        tag_op = "!=" if self.exclude_start_tag else "=="
        text = f"t{tag_op}{self.start_tag.name!r}"
        if self.pattern is not None:
            query_op = "!=" if self.exclude_query else "=="
            text += f" ^ q{query_op}{format_pattern(self.pattern)!r}"
        return text


def _compare_text(a: str, b: str) -> int:
    a_key = (a.casefold(), a)
    b_key = (b.casefold(), b)
    return (a_key > b_key) - (a_key < b_key)


def compare_search_items(
    a: Tuple[Any, List[Connection]], b: Tuple[Any, List[Connection]]
) -> int:
    """
    Ascending order of two search results.

    Paths are compared connection by connection: by weight when both are
    weighted, else by target name. Then shorter paths first, then result name.
    """
    a_node, a_path = a
    b_node, b_path = b

    cmp = 0
    for a_conn, b_conn in zip(a_path, b_path):
        if a_conn.weight is not None and b_conn.weight is not None:
            cmp = (a_conn.weight > b_conn.weight) - (a_conn.weight < b_conn.weight)
        else:
            cmp = _compare_text(node_name(a_conn.target), node_name(b_conn.target))
        if cmp != 0:
            return cmp

    cmp = len(a_path) - len(b_path)
    if cmp != 0:
        return 1 if cmp > 0 else -1

    return _compare_text(node_name(a_node), node_name(b_node))


def sort_search_items(
    items: Dict[Any, List[Connection]], sort: Optional[str]
) -> List[Tuple[Any, List[Connection]]]:
    """
    Order search results; ``sort`` None keeps discovery order.

    Raises:
        ValueError: If ``sort`` is not one of SORT_CHOICES.
    """
    if sort is None:
        return list(items.items())
    if sort not in SORT_CHOICES:
        raise ValueError(f"unsupported sort direction {sort!r}")

    sign = 1 if sort == SORT_ASC else -1
    return sorted(
        items.items(),
        key=functools.cmp_to_key(lambda a, b: sign * compare_search_items(a, b)),
    )


def _book_path(path_to_tag: List[Connection], path_to_descriptor: List[Connection]) -> List[Connection]:
    """Join the two search paths, keeping only proper tag-to-tag hops."""
    return [
        conn
        for conn in itertools.chain(path_to_tag, path_to_descriptor)
        if not conn.is_self_loop and isinstance(conn.target, Tag)
    ]


def _books_under(library, tags: Iterable[Tag]) -> Set[Any]:
    books = set()
    for tag in tags:
        entities = library.graph.search_descendants(tag, include_entities=True, include_tags=False)
        for descriptor in entities:
            book, _ = owning_book(descriptor)
            if book is not None:
                books.add(book)
    return books


def get_books(
    library,
    start_tag: Tag,
    pattern: Optional[SearchPattern] = None,
    sort: Optional[str] = None,
    exclude_start_tag: bool = False,
    exclude_query: bool = False,
) -> Iterator[BookResult]:
    """
    Fetch books reachable from a start tag, lazily.

    Args:
        library: Library whose graph and books are searched
        start_tag: Tag from which to search
        pattern: Query matched against names of tags under the start tag
        sort: ``asc``, ``desc`` or None for discovery order
        exclude_start_tag: Return books not under the start tag
        exclude_query: Return books not under tags matching the pattern

    Yields:
        ``(book, path)`` pairs, each book once; ``path`` holds the tag
        connections from the start tag (or library root) to the book.
    """
    graph = library.graph
    root = library.root
    tags_max = library.context.setting("search_tags_max", SEARCH_TAGS_MAX)
    tag_books_max = library.context.setting("search_tag_books_max", SEARCH_TAG_BOOKS_MAX)

    # tags whose books are included
    if pattern is not None and not exclude_query:
        search_from = root if exclude_start_tag else start_tag
        include_tags = graph.search_descendants(search_from, pattern=pattern)
        logger.info(
            "under parent %s found %d tags matching query %s",
            search_from.name,
            len(include_tags),
            format_pattern(pattern),
        )
        if not include_tags:
            logger.warning(
                "no tags found under parent tag %s matching query %s",
                search_from.name,
                format_pattern(pattern),
            )
            return
    elif not exclude_start_tag:
        include_tags = {start_tag: []}
    else:
        include_tags = {}

    # tags whose books are excluded
    exclude_tags: List[Tag] = []
    if exclude_query and pattern is not None:
        exclude_tags.extend(graph.search_descendants(root, pattern=pattern))
    if exclude_start_tag:
        exclude_tags.append(start_tag)
        start_descendants = graph.search_descendants(start_tag)
        include_tags = {
            tag: path
            for tag, path in include_tags.items()
            if tag is not start_tag and tag not in start_descendants
        }

    excluded_books = _books_under(library, exclude_tags)
    logger.debug(
        "search include_tags=%d exclude_tags=%d excluded_books=%d",
        len(include_tags),
        len(exclude_tags),
        len(excluded_books),
    )

    if not include_tags:
        if not exclude_tags:
            return

        # exclude without include: every other book
        all_books = {book: [] for book in library}
        for book, path in sort_search_items(all_books, sort):
            if book not in excluded_books:
                yield book, path
        return

    result_descriptors: Set[Any] = set()
    result_books: Set[Any] = set()

    for t, (tag, path_to_tag) in enumerate(sort_search_items(include_tags, sort)):
        if t >= tags_max:
            logger.info("reached result tags maximum %d", tags_max)
            break

        descriptors = graph.search_descendants(
            tag,
            ConnectionType.CHILD,
            include_entities=True,
            include_tags=False,
            exclude=result_descriptors,
        )

        for b, (descriptor, path_to_descriptor) in enumerate(sort_search_items(descriptors, sort)):
            if b >= tag_books_max:
                logger.info("reached books maximum %d for result tag %s", tag_books_max, tag.name)
                break

            result_descriptors.add(descriptor)
            # some descriptors do not belong to books, like stories indexes
            book, _ = owning_book(descriptor)
            if book is None or book in result_books or book in excluded_books:
                continue

            result_books.add(book)
            logger.trace("found %s under tag %s", book, tag.name)
            yield book, _book_path(path_to_tag, path_to_descriptor)


# ----------------------------------------------------------------- expressions


def _literal(ast: Any) -> str:
    if isinstance(ast, list) and len(ast) == 2 and ast[0] is None and isinstance(ast[1], str):
        return ast[1]
    raise MalformedExpressionError(f"expected a quoted literal, found {ast!r}")


def _is_condition(ast: Any) -> bool:
    return isinstance(ast, list) and len(ast) == 3 and ast[0] in ("==", "!=")


def _parse_condition(ast: Any) -> Tuple[str, bool, str]:
    """
    Read ``t == 'name'`` or ``q != 'pattern'``.

    Returns:
        Variable name, whether the condition is negated, and the literal.
    """
    ast = unwrap_group(ast)
    if not _is_condition(ast):
        raise MalformedExpressionError(f"expected a t or q condition, found {ast!r}")

    op, variable, value = ast
    if variable not in (VAR_TAG, VAR_QUERY):
        raise MalformedExpressionError(f"unknown condition variable {variable!r}; expected t or q")
    return variable, op == "!=", _literal(value)


def search_unit(library, ast: Any) -> SearchUnit:
    """
    Convert a condition, or a composite ``tagCondition ^ queryCondition``, to a SearchUnit.

    Raises:
        MalformedExpressionError: If the operands are not one tag and one query condition.
        TagNotFoundError: If the tag condition names an unknown tag.
    """
    ast = unwrap_group(ast)
    if isinstance(ast, list) and len(ast) == 3 and ast[0] == "^":
        conditions = [_parse_condition(ast[1]), _parse_condition(ast[2])]
    else:
        conditions = [_parse_condition(ast)]

    by_variable: Dict[str, Tuple[bool, str]] = {}
    for variable, negated, value in conditions:
        if variable in by_variable:
            raise MalformedExpressionError(
                f"composite condition needs one t and one q operand, found two {variable} operands"
            )
        by_variable[variable] = (negated, value)

    unit = SearchUnit(start_tag=library.root)
    if VAR_TAG in by_variable:
        negated, name = by_variable[VAR_TAG]
        unit.start_tag = library.graph.get(name, create=False)
        unit.exclude_start_tag = negated
    if VAR_QUERY in by_variable:
        negated, text = by_variable[VAR_QUERY]
        unit.pattern = compile_query(text)
        unit.exclude_query = negated

    return unit


def _materialize(results: Iterable[BookResult]) -> Set[Any]:
    return {book for book, _ in results}


def _evaluate(library, ast: Any, sort: Optional[str]) -> Iterator[BookResult]:
    ast = unwrap_group(ast)
    if not isinstance(ast, list) or not ast:
        raise MalformedExpressionError(f"expected a search operation, found {ast!r}")

    op = ast[0]

    if op in ("==", "!=", "^"):
        unit = search_unit(library, ast)
        logger.debug("search %s", unit)
        yield from get_books(
            library,
            unit.start_tag,
            unit.pattern,
            sort=sort,
            exclude_start_tag=unit.exclude_start_tag,
            exclude_query=unit.exclude_query,
        )

    elif op == "&&" and len(ast) == 3:
        right = _materialize(_evaluate(library, ast[2], sort))
        for book, path in _evaluate(library, ast[1], sort):
            if book in right:
                yield book, path

    elif op == "||" and len(ast) == 3:
        seen: Set[Any] = set()
        for book, path in itertools.chain(
            _evaluate(library, ast[1], sort), _evaluate(library, ast[2], sort)
        ):
            if book not in seen:
                seen.add(book)
                yield book, path

    elif op == "-" and len(ast) == 3:
        subtract = _materialize(_evaluate(library, ast[2], sort))
        for book, path in _evaluate(library, ast[1], sort):
            if book not in subtract:
                yield book, path

    elif op == "!" and len(ast) == 2:
        subtract = _materialize(_evaluate(library, ast[1], sort))
        remaining = {book: [] for book in library if book not in subtract}
        yield from sort_search_items(remaining, sort)

    else:
        raise MalformedExpressionError(f"unsupported search operator {op!r}")


def exec_search_expression(library, expression: Any, sort: Optional[str] = None) -> Iterator[BookResult]:
    """
    Evaluate a search expression over a library.

    Args:
        library: Library to search
        expression: Expression text, or its already parsed form
        sort: ``asc``, ``desc`` or None

    Returns:
        Single-pass iterator of ``(book, path)`` pairs, each book once.

    Raises:
        MalformedExpressionError: If the expression does not parse or is not a
            search operation.
    """
    ast = parse_expression(expression) if isinstance(expression, str) else expression
    if not isinstance(ast, list):
        raise MalformedExpressionError(f"search expression must be an operation, found {ast!r}")

    # validate the whole tree before the first result is requested
    _validate(library, ast)
    return _evaluate(library, ast, sort)


def _validate(library, ast: Any) -> None:
    ast = unwrap_group(ast)
    if not isinstance(ast, list) or not ast:
        raise MalformedExpressionError(f"expected a search operation, found {ast!r}")

    op = ast[0]
    if op in ("==", "!=", "^"):
        search_unit(library, ast)
    elif op in ("&&", "||", "-") and len(ast) == 3:
        _validate(library, ast[1])
        _validate(library, ast[2])
    elif op == "!" and len(ast) == 2:
        _validate(library, ast[1])
    else:
        raise MalformedExpressionError(f"unsupported search operator {op!r}")
