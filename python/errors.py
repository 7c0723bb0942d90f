"""
Failures raised by the tag graph, the expression engines and the library.

All of them are synchronous and local: they are raised to the immediate caller
and never retried. The command loop in ``main`` catches ``LibraryError``, logs
it and moves on to the next command.
"""

from typing import Optional


class LibraryError(Exception):
    """Base class for library failures."""

    pass


class NotFoundError(LibraryError, LookupError):
    """Raised when a named item is required but absent."""

    pass


class TagNotFoundError(NotFoundError):
    """Raised when a tag is looked up without creating it and does not exist."""

    def __init__(self, name: str):
        super().__init__(f"tag not found: {name!r}")
        self.name = name


class IndexNotFoundError(NotFoundError):
    """Raised when a stories index alias is not registered."""

    def __init__(self, alias: str):
        super().__init__(f"stories index not found: {alias!r}")
        self.alias = alias


class PageNumberError(NotFoundError):
    """Raised when a page number is outside the bounds configured for an index."""

    def __init__(self, page_number: int, page_min: int, page_max: int, index: str):
        super().__init__(
            f"page_number={page_number} is out of bounds [{page_min}, {page_max}] for {index}"
        )
        self.page_number = page_number


class MalformedExpressionError(LibraryError, ValueError):
    """Raised when search or tagging text fails to parse or has the wrong shape."""

    def __init__(self, message: str, position: Optional[int] = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class AmbiguousResultError(LibraryError):
    """Raised when an operation expecting exactly one match finds zero or many."""

    def __init__(self, message: str, count: int):
        super().__init__(f"{message}: expected 1 match, found {count}")
        self.count = count


class CustomTagError(LibraryError, ValueError):
    """Raised when a tagging statement would modify a tag outside the custom subgraph."""

    pass


class UnsupportedOperationError(LibraryError):
    """Raised when a stories index has no way to perform an operation, like paging the local index."""

    pass
