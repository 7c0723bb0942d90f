import weakref
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Tuple

from tags.graph import ConnectionType, Tag, TagGraph


class LibraryDescriptor(ABC):
    """
    Anything that defines tags by which library items are registered and described.

    Instances are tagged entities in the library's TagGraph. Each subclass
    declares a root tag (``tag_name``) and the dimension tags adopted as its
    children (``child_tag_names``).

    The owner of a descriptor is kept as a weak reference, so walking
    ``parent`` from any descriptor of a book ends at that book without the
    ownership tree holding its parents alive.
    """

    tag_name: str = ""
    child_tag_names: Tuple[str, ...] = ()
    is_book = False

    _parent_ref: Optional[weakref.ref] = None

    @property
    def parent(self) -> Optional["LibraryDescriptor"]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def set_parent(self, parent: Optional["LibraryDescriptor"]) -> None:
        """Set the owner of this descriptor within the library."""
        self._parent_ref = weakref.ref(parent) if parent is not None else None

    @classmethod
    def root_tag(cls, graph: TagGraph) -> Tag:
        return graph.get(cls.tag_name)

    @classmethod
    def adopt_tag(cls, graph: TagGraph, tag: Tag) -> None:
        """Add a tag as a child of this descriptor's root tag."""
        graph.connect(cls.root_tag(graph), tag, ConnectionType.CHILD)

    @classmethod
    def init_tags(cls, graph: TagGraph) -> None:
        """Define the root tag and its dimension tags."""
        for name in cls.child_tag_names:
            cls.adopt_tag(graph, graph.get(name))

    def tag_value(self, graph: TagGraph, dimension: str, value_tag: Tag, weight=None) -> None:
        """Connect ``dimension -> value_tag -> self``."""
        graph.connect(graph.get(dimension), value_tag, ConnectionType.CHILD)
        graph.connect(value_tag, self, weight=weight)

    @abstractmethod
    def set_tags(self, graph: TagGraph) -> None:
        """Register this descriptor, and the descriptors it owns, in the graph."""

    def unset_tags(self, graph: TagGraph) -> None:
        """Remove this descriptor, and the descriptors it owns, from the graph."""
        for child in self.owned_descriptors():
            child.unset_tags(graph)
        graph.untag(self)

    def owned_descriptors(self) -> Iterable["LibraryDescriptor"]:
        return ()


def owning_book(descriptor: Any) -> Tuple[Optional[LibraryDescriptor], List[Any]]:
    """
    Find the book a descriptor belongs to by walking ``parent`` links.

    Returns:
        The book (None if the descriptor is not owned by a book, like a stories
        index) and the walked chain, starting with the descriptor.
    """
    node = descriptor
    chain = [descriptor]
    while node is not None and not getattr(node, "is_book", False):
        node = getattr(node, "parent", None)
        if node is not None:
            chain.append(node)

    return node, chain
