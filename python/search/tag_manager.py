from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from colored_logger import get_colored_logger
from errors import CustomTagError, MalformedExpressionError, NotFoundError
from library.search_entry import BookReference
from tags.graph import ConnectionType, Tag
from .expression_parser import call_arguments, parse_expression, unwrap_group

logger = get_colored_logger(__name__)

ACTION_ADD = "add"
ACTION_DELETE = "del"
ACTION_CONNECT = "connect"
ACTION_DISCONNECT = "disconnect"

# Access functions within tagging statements
ACCESS_TAG = "t"
ACCESS_STORIES_INDEX = "s"
ACCESS_STORY_ID = "id"


@dataclass
class TaggingResult:
    """One applied tagging statement."""

    action: str
    tag: Tag
    target: Optional[Any] = None

    def __str__(self) -> str:
        if self.target is None:
            return f"{self.action} {self.tag.name}"
        target = self.target.name if isinstance(self.target, Tag) else str(self.target)
        return f"{self.action} {self.tag.name} -> {target}"


class TagManager:
    """
    Manages user-defined ("custom") tags of a library.

    Custom tags are children of the reserved ``custom`` tag under the library
    root. They can be connected to other tags, or directly to books.
    """

    def __init__(self, library):
        """
        Initialize the tag manager.

        Args:
            library: Library whose graph holds the custom tags.
        """
        self.library = library

    @property
    def graph(self):
        return self.library.graph

    def is_custom(self, tag: Tag) -> bool:
        """Whether a tag was added as a custom tag."""
        conn = tag.connections.get(self.library.custom_root)
        return conn is not None and conn.type is ConnectionType.PARENT

    def custom_tags(self) -> List[Tag]:
        return [tag for tag in self.library.custom_root.children() if self.is_custom(tag)]

    def _require_custom(self, name: str) -> Tag:
        tag = self.graph.get(name, create=False)
        if not self.is_custom(tag):
            raise CustomTagError(f"tag {name!r} is not a custom tag")
        return tag

    def add_tag(self, name: str) -> Tag:
        """
        Create a custom tag, or return it if it already exists.

        Raises:
            CustomTagError: If the name belongs to a system tag.
        """
        name = name.strip()
        if not name:
            raise MalformedExpressionError("custom tag name cannot be empty")

        if self.graph.has(name):
            tag = self.graph.get(name)
            if not self.is_custom(tag):
                raise CustomTagError(f"tag {name!r} already exists as a system tag")
            logger.warning("custom tag '%s' already exists", name)
            return tag

        tag = self.graph.get(name)
        self.graph.connect(self.library.custom_root, tag, ConnectionType.CHILD)
        logger.info("created custom tag: %s", name)
        return tag

    def delete_tag(self, name: str) -> Tag:
        """
        Delete a custom tag and all its connections.

        Raises:
            TagNotFoundError: If the tag does not exist.
            CustomTagError: If the tag is not a custom tag.
        """
        tag = self._require_custom(name)
        self.graph.delete(tag)
        logger.info("deleted custom tag: %s", name)
        return tag

    def connect(self, name: str, target: Any) -> Tag:
        """Connect a custom tag to a child tag or to a book."""
        tag = self._require_custom(name)
        if isinstance(target, Tag):
            self.graph.connect(tag, target, ConnectionType.CHILD)
        else:
            self.graph.connect(tag, target)
        logger.debug("connected custom tag %s to %s", name, target)
        return tag

    def disconnect(self, name: str, target: Any) -> Tag:
        tag = self._require_custom(name)
        if not self.graph.disconnect(tag, target):
            logger.warning("custom tag %s was not connected to %s", name, target)
        return tag

    # ---------------------------------------------------------- persistence

    def get_custom_tags(self) -> List[Dict[str, Any]]:
        """
        Export custom tags as JSON-ready records.

        Returns:
            One ``{"name", "children", "books"}`` record per custom tag, where
            ``books`` holds book references.
        """
        records = []
        for tag in self.custom_tags():
            records.append(
                {
                    "name": tag.name,
                    "children": [child.name for child in tag.children()],
                    "books": [
                        BookReference.from_book(entity).to_dict()
                        for entity in tag.entities()
                        if getattr(entity, "is_book", False)
                    ],
                }
            )
        return records

    def load_custom_tags(self, records: List[Dict[str, Any]]) -> int:
        """
        Rebuild custom tags from exported records.

        Books missing from the library are skipped with a warning.

        Returns:
            Number of custom tags loaded.
        """
        for record in records:
            self.add_tag(record["name"])

        for record in records:
            name = record["name"]
            for child_name in record.get("children", []):
                self.connect(name, self.graph.get(child_name))

            for ref_data in record.get("books", []):
                ref = BookReference.from_dict(ref_data)
                try:
                    book = self.library.get_book_by_key(ref.index_name, ref.page_number, ref.story_id)
                except NotFoundError as e:
                    book = None
                    logger.debug("book reference %s: %s", ref.key, e)
                if book is None:
                    logger.warning("skip missing book %s for custom tag %s", "/".join(map(str, ref.key)), name)
                    continue
                self.connect(name, book)

        logger.info("loaded %d custom tags", len(records))
        return len(records)


# ------------------------------------------------------------------ statements


def _statements(ast: Any) -> List[Any]:
    ast = unwrap_group(ast)
    if isinstance(ast, list) and len(ast) == 3 and ast[0] == ";":
        return _statements(ast[1]) + _statements(ast[2])
    return [ast]


def _call(ast: Any):
    """Split a call node into its function and argument list, or None."""
    if isinstance(ast, list) and len(ast) == 3 and ast[0] == "()":
        return ast[1], call_arguments(ast[2])
    return None


def _literal_argument(arguments: List[Any], what: str) -> str:
    if len(arguments) != 1:
        raise MalformedExpressionError(f"{what} takes one quoted argument, found {len(arguments)}")
    argument = unwrap_group(arguments[0])
    if isinstance(argument, list) and len(argument) == 2 and argument[0] is None:
        return argument[1]
    raise MalformedExpressionError(f"{what} argument must be a quoted literal, found {argument!r}")


def _tag_name(ast: Any) -> Optional[str]:
    """Name in ``t('name')``, or None if the node is not a tag access."""
    call = _call(unwrap_group(ast))
    if call is None or call[0] != ACCESS_TAG:
        return None
    return _literal_argument(call[1], "t()")


def _resolve_target(library, ast: Any) -> Any:
    """Resolve ``t('name')`` to a tag, or ``s('index').id('story')`` to a book."""
    ast = unwrap_group(ast)
    name = _tag_name(ast)
    if name is not None:
        return library.graph.get(name, create=False)

    call = _call(ast)
    if call is not None:
        function, arguments = call
        if (
            isinstance(function, list)
            and len(function) == 3
            and function[0] == "."
            and function[2] == ACCESS_STORY_ID
        ):
            index_call = _call(unwrap_group(function[1]))
            if index_call is not None and index_call[0] == ACCESS_STORIES_INDEX:
                index_name = _literal_argument(index_call[1], "s()")
                story_id = _literal_argument(arguments, "id()")
                return library.get_book(index_name, story_id)

    raise MalformedExpressionError(f"expected t('name') or s('index').id('story'), found {ast!r}")


def _apply(manager: TagManager, statement: Any) -> TaggingResult:
    call = _call(statement)
    if call is None or not isinstance(call[0], str):
        raise MalformedExpressionError(f"expected a tagging statement, found {statement!r}")

    action, arguments = call

    if action in (ACTION_ADD, ACTION_DELETE):
        if len(arguments) != 1:
            raise MalformedExpressionError(f"{action}() takes one tag, found {len(arguments)}")
        name = _tag_name(arguments[0])
        if name is None:
            raise MalformedExpressionError(f"{action}() argument must be t('name')")
        tag = manager.add_tag(name) if action == ACTION_ADD else manager.delete_tag(name)
        return TaggingResult(action, tag)

    if action in (ACTION_CONNECT, ACTION_DISCONNECT):
        if len(arguments) != 2:
            raise MalformedExpressionError(f"{action}() takes a tag and a target, found {len(arguments)}")
        name = _tag_name(arguments[0])
        if name is None:
            raise MalformedExpressionError(f"{action}() first argument must be t('name')")
        target = _resolve_target(manager.library, arguments[1])
        if action == ACTION_CONNECT:
            tag = manager.connect(name, target)
        else:
            tag = manager.disconnect(name, target)
        return TaggingResult(action, tag, target)

    raise MalformedExpressionError(f"unknown tagging action {action!r}")


def exec_tagging_expression(library, expression: Any) -> List[TaggingResult]:
    """
    Apply ``;``-separated tagging statements to the custom tags of a library.

    Statements: ``add(t('name'))``, ``del(t('name'))``,
    ``connect(t('name'), target)``, ``disconnect(t('name'), target)``, where a
    target is ``t('name')`` or ``s('index').id('story')``.

    Statements are applied in order; a failing statement stops the expression
    and raises, leaving earlier statements applied.

    Returns:
        One result per applied statement.
    """
    ast = parse_expression(expression) if isinstance(expression, str) else expression
    if not isinstance(ast, list):
        raise MalformedExpressionError(f"tagging expression must be a statement, found {ast!r}")

    manager = TagManager(library)
    results = []
    for statement in _statements(ast):
        result = _apply(manager, statement)
        logger.info("tagging %s", result)
        results.append(result)
    return results


def get_custom_tags(library) -> List[Dict[str, Any]]:
    return TagManager(library).get_custom_tags()


def load_custom_tags(library, records: List[Dict[str, Any]]) -> int:
    return TagManager(library).load_custom_tags(records)
