from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from colored_logger import get_colored_logger
from errors import TagNotFoundError
from .names import (
    TAG_TEXT_LEN_MAX,
    TAG_TEXT_WORD_LEN_MIN,
    SearchPattern,
    date_tag_name,
    pattern_matches,
    text_tag_name,
)

logger = get_colored_logger(__name__)


class ConnectionType(Enum):
    """Direction of a connection, as seen from its source."""

    PARENT = "to-tag-parent"
    CHILD = "to-tag-child"
    UNDIRECTED = "to-tag-undirected"

    def inverse(self) -> "ConnectionType":
        if self is ConnectionType.PARENT:
            return ConnectionType.CHILD
        if self is ConnectionType.CHILD:
            return ConnectionType.PARENT
        return ConnectionType.UNDIRECTED


@dataclass(eq=False)
class Tag:
    """
    Named node of the tag graph.

    Tags compare by identity. ``connections`` maps each target (tag or entity)
    to the outgoing connection from this tag.
    """

    name: str
    aliases: List[str] = field(default_factory=list)
    connections: Dict[Any, "Connection"] = field(default_factory=dict, repr=False)

    def first_parent(self) -> Optional["Tag"]:
        """First tag connected to this one as its parent, if any."""
        for target, conn in self.connections.items():
            if isinstance(target, Tag) and target is not self and conn.type is ConnectionType.PARENT:
                return target
        return None

    def children(self) -> List["Tag"]:
        return [
            target
            for target, conn in self.connections.items()
            if isinstance(target, Tag) and target is not self and conn.type is ConnectionType.CHILD
        ]

    def entities(self) -> List[Any]:
        return [target for target in self.connections if not isinstance(target, Tag)]

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class Connection:
    """Directed, typed, optionally weighted edge."""

    source: Any
    target: Any
    type: ConnectionType
    weight: Optional[float] = None

    @property
    def is_self_loop(self) -> bool:
        return self.source is self.target

    def __str__(self) -> str:
        weight = f"[{self.weight}]" if self.weight is not None else ""
        return f"{node_name(self.source)} -{self.type.value}{weight}-> {node_name(self.target)}"


def node_name(node: Any) -> str:
    """Name used to match and sort a node: the tag name, or the entity's str()."""
    if isinstance(node, Tag):
        return node.name
    return str(node)


class TagGraph:
    """
    In-memory labelled graph of tags and tagged entities.

    Tag-tag connections are stored on both endpoints, the second one being the
    inverse of the first (parent/child, or undirected/undirected). Tag-entity
    connections always point from the tag to the entity; the graph keeps a
    reverse index of the tags connected to each entity. Entities are never
    connected to each other.

    Entities are keyed by identity, so they must keep the default object hash.
    """

    def __init__(
        self,
        text_len_max: int = TAG_TEXT_LEN_MAX,
        text_word_len_min: int = TAG_TEXT_WORD_LEN_MIN,
    ):
        self.text_len_max = text_len_max
        self.text_word_len_min = text_word_len_min
        self._tags: Dict[str, Tag] = {}
        self._entity_tags: Dict[Any, Dict[Tag, Connection]] = {}

    # ------------------------------------------------------------------ tags

    def get(self, name: str, create: bool = True) -> Tag:
        """
        Return the tag with this name or alias.

        Args:
            name: Tag name or alias
            create: Create the tag when missing

        Raises:
            TagNotFoundError: If the tag is missing and ``create`` is False.
        """
        tag = self._tags.get(name)
        if tag is not None:
            return tag

        if not create:
            raise TagNotFoundError(name)

        tag = Tag(name)
        self._tags[name] = tag
        logger.trace("created tag %r", name)
        return tag

    def has(self, name: str) -> bool:
        return name in self._tags

    def get_text(self, text: str) -> Tag:
        """Tag for free text, compressed when long (see ``text_tag_name``)."""
        return self.get(text_tag_name(text, self.text_len_max, self.text_word_len_min))

    def get_date(self, value) -> Tag:
        """Tag for a date, named ``YYYY-MM-DD``."""
        return self.get(date_tag_name(value))

    def alias(self, tag: Tag, name: str) -> Tag:
        """
        Bind an additional name to an existing tag.

        Raises:
            ValueError: If the name already belongs to another tag.
        """
        existing = self._tags.get(name)
        if existing is tag:
            return tag
        if existing is not None:
            raise ValueError(f"name {name!r} already belongs to tag {existing.name!r}")

        self._tags[name] = tag
        tag.aliases.append(name)
        return tag

    def all_tags(self) -> List[Tag]:
        """Every distinct tag, in creation order."""
        return list(dict.fromkeys(self._tags.values()))

    def delete(self, tag: Tag) -> None:
        """
        Remove a tag, its names and all its connections.

        Entities that lose their last tag stay valid, just untagged.
        """
        for target in list(tag.connections):
            self.disconnect(tag, target)

        for name in [tag.name] + tag.aliases:
            if self._tags.get(name) is tag:
                del self._tags[name]

        logger.debug("deleted tag %r", tag.name)

    def clear(self) -> None:
        self._tags.clear()
        self._entity_tags.clear()

    # ----------------------------------------------------------- connections

    def connect(
        self,
        source: Tag,
        target: Any,
        type: Optional[ConnectionType] = None,
        weight: Optional[float] = None,
    ) -> Connection:
        """
        Create or update a connection from a tag to a tag or an entity.

        Tag targets default to an undirected connection, and the inverse
        connection is created or updated on the target. Entity targets are
        always children of the tag. Self-connections are allowed.

        Raises:
            TypeError: If the source is not a tag.
            ValueError: If an entity target is given a non-child type.
        """
        if not isinstance(source, Tag):
            raise TypeError(f"connection source must be a tag, not {type_name(source)}")

        if isinstance(target, Tag):
            conn_type = type or ConnectionType.UNDIRECTED
            conn = self._set_connection(source, target, conn_type, weight)
            if target is not source:
                self._set_connection(target, source, conn_type.inverse(), weight)
            return conn

        if type is not None and type is not ConnectionType.CHILD:
            raise ValueError("entities can only be connected as children of a tag")

        conn = self._set_connection(source, target, ConnectionType.CHILD, weight)
        inverse = self._entity_tags.setdefault(target, {}).get(source)
        if inverse is None:
            self._entity_tags[target][source] = Connection(target, source, ConnectionType.PARENT, weight)
        else:
            inverse.weight = weight
        return conn

    @staticmethod
    def _set_connection(
        source: Tag, target: Any, conn_type: ConnectionType, weight: Optional[float]
    ) -> Connection:
        conn = source.connections.get(target)
        if conn is None:
            conn = Connection(source, target, conn_type, weight)
            source.connections[target] = conn
        else:
            conn.type = conn_type
            conn.weight = weight
        return conn

    def disconnect(self, source: Tag, target: Any) -> bool:
        """
        Remove the connection between a tag and a target, in both directions.

        Returns:
            True if a connection existed.
        """
        existed = source.connections.pop(target, None) is not None

        if isinstance(target, Tag):
            target.connections.pop(source, None)
        else:
            tags = self._entity_tags.get(target)
            if tags is not None:
                tags.pop(source, None)
                if not tags:
                    del self._entity_tags[target]

        return existed

    def untag(self, entity: Any) -> int:
        """
        Disconnect an entity from every tag.

        Returns:
            Number of removed connections.
        """
        tags = self._entity_tags.pop(entity, {})
        for tag in tags:
            tag.connections.pop(entity, None)
        return len(tags)

    def tags_of(self, entity: Any) -> List[Tag]:
        """Tags directly connected to an entity."""
        return list(self._entity_tags.get(entity, {}))

    def is_tagged(self, entity: Any) -> bool:
        return bool(self._entity_tags.get(entity))

    # ------------------------------------------------------------- traversal

    def _walk(
        self,
        roots: Iterable[Tuple[Tag, List[Connection]]],
        direction: ConnectionType,
        visited: Set[Any],
    ) -> Iterator[Tuple[Any, List[Connection]]]:
        """
        Depth-first walk along connections of one direction, yielding each newly
        reached node with the first path that reached it. Entities are reached
        only when walking towards children, and are never expanded.
        """
        stack = list(reversed(list(roots)))
        while stack:
            tag, path = stack.pop()
            children = []
            for target, conn in tag.connections.items():
                if target is tag or target in visited:
                    # self-connections do not advance the walk
                    continue
                if isinstance(target, Tag):
                    if conn.type is not direction:
                        continue
                    visited.add(target)
                    target_path = path + [conn]
                    logger.trace("walk %s", conn)
                    yield target, target_path
                    children.append((target, target_path))
                elif direction is ConnectionType.CHILD:
                    visited.add(target)
                    yield target, path + [conn]
            stack.extend(reversed(children))

    def search_descendants(
        self,
        start: Tag,
        direction: ConnectionType = ConnectionType.CHILD,
        include_entities: bool = False,
        include_tags: bool = True,
        pattern: Optional[SearchPattern] = None,
        exclude: Optional[Iterable[Any]] = None,
    ) -> Dict[Any, List[Connection]]:
        """
        Find nodes reachable from ``start`` along connections of ``direction``.

        Args:
            start: Tag to search from; never part of the result
            direction: Connection type to follow (CHILD walks down, PARENT up)
            include_entities: Include tagged entities in the result
            include_tags: Include tags in the result
            pattern: Substring or compiled regex the node name must match
            exclude: Nodes to skip; they are neither returned nor walked through

        Returns:
            Insertion-ordered mapping of each match to the connections leading
            to it from ``start`` (the first path found, not necessarily the
            shortest).
        """
        visited: Set[Any] = set(exclude or ())
        visited.add(start)
        results: Dict[Any, List[Connection]] = {}

        for node, path in self._walk([(start, [])], direction, visited):
            is_tag = isinstance(node, Tag)
            if (include_tags if is_tag else include_entities) and pattern_matches(
                node_name(node), pattern
            ):
                results[node] = path

        logger.trace(
            "found %d descendants of %r matching %r", len(results), start.name, pattern
        )
        return results

    def search_tags_of_entity(
        self,
        entity: Any,
        pattern: Optional[SearchPattern] = None,
        direction: Optional[ConnectionType] = ConnectionType.PARENT,
        stop_at_first: bool = False,
    ) -> Dict[Tag, List[Connection]]:
        """
        Find tags of an entity whose name matches ``pattern``.

        The entity's own tags are checked first; when ``direction`` is given the
        search continues from them along connections of that type (PARENT for
        ancestors). Paths start with the connection from the entity to its tag.
        """
        roots = [(tag, [conn]) for tag, conn in self._entity_tags.get(entity, {}).items()]
        visited: Set[Any] = {entity}
        visited.update(tag for tag, _ in roots)
        results: Dict[Tag, List[Connection]] = {}

        def candidates():
            yield from roots
            if direction is not None:
                yield from self._walk(roots, direction, visited)

        for tag, path in candidates():
            if isinstance(tag, Tag) and pattern_matches(tag.name, pattern):
                results[tag] = path
                if stop_at_first:
                    break

        return results

    def _neighbors(self, node: Any) -> Iterable[Any]:
        if isinstance(node, Tag):
            return [target for target in node.connections if target is not node]
        return list(self._entity_tags.get(node, {}))

    def graph_distance(self, a: Any, b: Any) -> Optional[int]:
        """
        Shortest number of connections between two nodes, ignoring direction.

        Returns:
            Edge count, or None if ``b`` is unreachable from ``a``.
        """
        if a is b:
            return 0

        visited = {a}
        queue = deque([(a, 0)])
        while queue:
            node, distance = queue.popleft()
            for neighbor in self._neighbors(node):
                if neighbor is b:
                    return distance + 1
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append((neighbor, distance + 1))

        return None


def type_name(value: Any) -> str:
    return type(value).__name__
