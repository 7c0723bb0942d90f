import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from colored_logger import get_colored_logger
from errors import AmbiguousResultError
from search.search_engine import BookResult, exec_search_expression, get_books
from tags.graph import Connection, Tag, TagGraph
from tags.names import SearchPattern
from .context import LibraryContext
from .descriptor import LibraryDescriptor
from .index_page import IndexPage
from .stories_index import StoriesIndex
from .story_summary import StorySummary
from .text_profile import Difficulty, Ideology, Maturity, TextProfile, Topic

logger = get_colored_logger(__name__)

CUSTOM_TAG_NAME = "custom"

BookKey = Tuple[str, int, str]


class LibraryBook(LibraryDescriptor):
    """
    One story in the library: its summary, its own copy of the index page it
    was listed on, the shared stories index, and an optional text profile.
    """

    tag_name = "library-book"
    child_tag_names = ("story", "index-page", "text-profile")
    is_book = True

    def __init__(
        self,
        story: StorySummary,
        index_page: IndexPage,
        index: StoriesIndex,
        profile: Optional[TextProfile] = None,
    ):
        self.story = story
        self.story.set_parent(self)

        self.index_page = index_page.clone()
        self.index_page.set_parent(self)

        # shared by every book of the index; owned by the library
        self.index = index

        self.profile = profile
        if self.profile is not None:
            self.profile.set_parent(self)

    @property
    def key(self) -> BookKey:
        return self.index.name, self.index_page.page_number, self.story.id

    def owned_descriptors(self) -> Iterable[LibraryDescriptor]:
        owned: List[LibraryDescriptor] = [self.story, self.index_page]
        if self.profile is not None:
            owned.append(self.profile)
        return owned

    def set_tags(self, graph: TagGraph) -> None:
        graph.connect(LibraryBook.root_tag(graph), self)
        for child in self.owned_descriptors():
            child.set_tags(graph)

    def describe(self, indent: str = "", search_path: Optional[List[Connection]] = None) -> Iterator[str]:
        """
        Describe this book as lines of text.

        Args:
            indent: Prefix of every line
            search_path: Tag connections that led a search to this book

        Yields:
            Chunks of the description.
        """
        yield f"{indent}title={self.story.title} \n"
        yield f"{indent}author={self.story.author_name} \n"
        yield f"{indent}id={self.story.id}\n"
        yield f"{indent}index={self.index} index-page={self.index_page.page_number} \n"

        profile = self.profile
        if profile is not None:
            yield f"{indent}text-profile.file-path={profile.file_path}\n"
            yield (
                f"{indent}reading-level={profile.difficulty.reading_level_name} "
                f"years-of-education={profile.difficulty.years_of_education}\n"
            )
            yield f"{indent}restricted={profile.maturity.is_restricted} {' '.join(profile.maturity.presents)}\n"
            yield f"{indent}topics={' '.join(topic.id for topic in profile.topics)}\n"
            yield f"{indent}ideologies={profile.describe_ideologies()}\n"
        else:
            yield f"{indent}text-profile=<missing>\n"

        if search_path is not None:
            yield f"{indent}search-path="
            yield ".".join(
                (f"[{conn.weight}]" if conn.weight is not None else "") + conn.target.name
                for conn in search_path
            )

    def __str__(self) -> str:
        return f"LibraryBook[{self.index.name}/{self.index_page.page_number}/{self.story.id}]"


DESCRIPTOR_TYPES = (
    LibraryBook,
    StoriesIndex,
    IndexPage,
    StorySummary,
    TextProfile,
    Maturity,
    Difficulty,
    Topic,
    Ideology,
)


class Library(LibraryDescriptor):
    """
    Unified collection of books from every stories index.

    All items are organized in the context's TagGraph. Creating a library
    defines the descriptor tag hierarchy and tags the registered stories
    indexes; books are tagged as they are added.
    """

    tag_name = "library"
    child_tag_names = (LibraryBook.tag_name, StoriesIndex.tag_name, CUSTOM_TAG_NAME)

    def __init__(self, context: Optional[LibraryContext] = None):
        self.context = context or LibraryContext()
        self.books: Dict[BookKey, LibraryBook] = {}

        Library.init_tags(self.graph)
        for descriptor_type in DESCRIPTOR_TYPES:
            descriptor_type.init_tags(self.graph)
        self.set_tags(self.graph)

        for index in self.context.indexes.indexes():
            index.set_parent(self)
            index.set_tags(self.graph)

        logger.info("created empty library")

    @property
    def graph(self) -> TagGraph:
        return self.context.graph

    @property
    def root(self) -> Tag:
        return Library.root_tag(self.graph)

    @property
    def custom_root(self) -> Tag:
        return self.graph.get(CUSTOM_TAG_NAME)

    def set_tags(self, graph: TagGraph) -> None:
        # books are tagged when added
        graph.connect(Library.root_tag(graph), self)

    def new_book(
        self, story: StorySummary, index_page: IndexPage, profile: Optional[TextProfile] = None
    ) -> LibraryBook:
        """Create a book from loaded descriptors, resolving its stories index by name."""
        index = self.context.indexes.get(index_page.index_name)
        return LibraryBook(story, index_page, index, profile)

    def add_book(self, book: LibraryBook) -> Optional[LibraryBook]:
        """
        Add a book, replacing any book with the same key.

        The replaced book is fully removed from the tag graph before the new one
        is tagged.

        Returns:
            The replaced book, if any.
        """
        key = book.key
        replaced = self.books.pop(key, None)
        if replaced is not None:
            logger.debug("replace existing book %s", "-".join(map(str, key)))
            replaced.unset_tags(self.graph)

        book.set_parent(self)
        self.books[key] = book
        book.set_tags(self.graph)
        return replaced

    def has(self, book: LibraryBook) -> bool:
        """Whether this exact book is the one stored under its key."""
        return self.books.get(book.key) is book

    def __len__(self) -> int:
        return len(self.books)

    def __iter__(self) -> Iterator[LibraryBook]:
        return iter(list(self.books.values()))

    def get_book_by_key(self, index_name: str, page_number: int, story_id: str) -> Optional[LibraryBook]:
        index = self.context.indexes.get(index_name)
        return self.books.get((index.name, int(page_number), str(story_id)))

    def get_book(self, index_name: str, story_id: str) -> LibraryBook:
        """
        Find a book by index and story id through a composite search.

        Story ids are assumed unique within an index across its pages.

        Raises:
            IndexNotFoundError: If the index is unknown.
            AmbiguousResultError: If zero or several books match.
        """
        index = self.context.indexes.get(index_name)
        expression = [
            "&&",
            [
                "^",
                ["==", "t", [None, "index-name"]],
                ["==", "q", [None, f"/^{re.escape(index.name)}$/"]],
            ],
            [
                "^",
                ["==", "t", [None, "story-id"]],
                ["==", "q", [None, f"/^{re.escape(str(story_id))}$/"]],
            ],
        ]
        books = [book for book, _ in exec_search_expression(self, expression)]
        if len(books) != 1:
            raise AmbiguousResultError(f"get book index={index.name} story={story_id}", len(books))
        return books[0]

    def get_books(
        self,
        start_tag: Optional[Tag] = None,
        pattern: Optional[SearchPattern] = None,
        sort: Optional[str] = None,
        exclude_start_tag: bool = False,
        exclude_query: bool = False,
    ) -> Iterator[BookResult]:
        """Lazily fetch ``(book, path)`` pairs; see ``search_engine.get_books``."""
        return get_books(
            self,
            start_tag if start_tag is not None else self.root,
            pattern,
            sort=sort,
            exclude_start_tag=exclude_start_tag,
            exclude_query=exclude_query,
        )

    def __str__(self) -> str:
        return f"Library[books={len(self.books)}]"
