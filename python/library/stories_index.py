import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urljoin, urlparse

from colored_logger import get_colored_logger
from errors import IndexNotFoundError, PageNumberError, UnsupportedOperationError
from tags.graph import TagGraph
from .descriptor import LibraryDescriptor
from .story_summary import StorySummary

logger = get_colored_logger(__name__)

LOCAL_INDEX_NAME = "local"


class StorySource(ABC):
    """
    Per-website adapter of a stories index: page urls and page parsing.

    An adapter is chosen when the index is constructed; the index delegates to it.
    """

    @abstractmethod
    def get_page_url(self, index: "StoriesIndex", page_number: int) -> str:
        """Url of a listing page, already validated against the index bounds."""

    @abstractmethod
    def get_story_summaries(self, index: "StoriesIndex", page_content: str) -> Iterator[StorySummary]:
        """Parse the stories listed in the content of an index page."""

    @abstractmethod
    def get_story_text(self, index: "StoriesIndex", story_page: str) -> Iterator[str]:
        """Parse the paragraphs of a story from its page content."""


@dataclass(eq=False)
class StoriesIndex(LibraryDescriptor):
    """
    A source of stories, listed over numbered pages.

    One instance is shared by every book loaded from it; it belongs to the
    library rather than to a book.
    """

    tag_name = "stories-index"
    child_tag_names = ("url-template", "index-name", "index-page")

    url_template: str
    names: List[str]
    page_number_min: int = 0
    page_number_max: int = 50
    page_filename: str = "index.html"
    story_file_ext: str = ".html"
    hide: bool = False
    is_page_dynamic: bool = False
    source: Optional[StorySource] = None
    page_request_headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.names:
            raise ValueError("a stories index needs at least one name")

    @property
    def name(self) -> str:
        return self.names[0]

    @property
    def hostname(self) -> str:
        return urlparse(self.url_template).hostname or self.url_template

    def assert_page_number_is_valid(self, page_number: int) -> None:
        if page_number < self.page_number_min or page_number > self.page_number_max:
            raise PageNumberError(page_number, self.page_number_min, self.page_number_max, str(self))

    def get_page_url(self, page_number: int) -> str:
        """
        Raises:
            PageNumberError: If the page number is out of bounds.
            UnsupportedOperationError: If the index has no remote pages.
        """
        self.assert_page_number_is_valid(page_number)
        return self._require_source().get_page_url(self, page_number)

    def get_story_summaries(self, page_content: str) -> Iterator[StorySummary]:
        return self._require_source().get_story_summaries(self, page_content)

    def get_story_text(self, story_page: str) -> Iterator[str]:
        return self._require_source().get_story_text(self, story_page)

    def _require_source(self) -> StorySource:
        if self.source is None:
            raise UnsupportedOperationError(f"{self} has no story source")
        return self.source

    def set_tags(self, graph: TagGraph) -> None:
        self.tag_value(graph, "url-template", graph.get(self.hostname))

        name_tag = graph.get(self.name)
        self.tag_value(graph, "index-name", name_tag)
        for alias in self.names[1:]:
            try:
                graph.alias(name_tag, alias)
            except ValueError as e:
                logger.warning("skip alias %r of %s: %s", alias, self, e)

    def __str__(self) -> str:
        return f"StoriesIndex[{self.name}={self.hostname}]"


class LocalStorySource(StorySource):
    """Virtual source for stories saved directly on the local filesystem."""

    def get_page_url(self, index, page_number):
        raise UnsupportedOperationError("virtual index for local filesystem does not have page urls")

    def get_story_summaries(self, index, page_content):
        for record in json.loads(page_content):
            yield StorySummary.from_data(record)

    def get_story_text(self, index, story_page):
        raise UnsupportedOperationError("virtual index for local filesystem does not have story pages")


class _GutenbergTitlesParser(HTMLParser):
    """Collects book entries from a Project Gutenberg browse-by-title page."""

    def __init__(self):
        super().__init__()
        self.books: List[Dict[str, Any]] = []
        self._list_depth = 0
        self._capture: Optional[str] = None
        self._current: Optional[Dict[str, Any]] = None

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        if tag == "div" and "pgdbbytitle" in (attrs.get("class") or "").split():
            self._list_depth = 1
            return
        if not self._list_depth:
            return
        if tag == "div":
            self._list_depth += 1

        href = attrs.get("href") or ""
        if tag == "a" and href.startswith(GutenbergStorySource.PATH_BOOK):
            self._current = {"href": href, "title": "", "author": "", "audio": False}
            self.books.append(self._current)
            self._capture = "title"
        elif tag == "a" and href.startswith(GutenbergStorySource.PATH_BROWSE_AUTHOR):
            if self._current is not None and not self._current["author"]:
                self._capture = "author"
        elif tag == "img" and attrs.get("title") == "Audio Book" and self._current is not None:
            self._current["audio"] = True

    def handle_endtag(self, tag):
        if tag == "a":
            self._capture = None
        elif tag == "div" and self._list_depth:
            self._list_depth -= 1

    def handle_data(self, data):
        if self._capture and self._current is not None:
            self._current[self._capture] += data


class GutenbergStorySource(StorySource):
    """
    Project Gutenberg online library of public domain literature.

    Index pages are the alphabetical title listings
    (``/browse/titles/<letter>``, plus ``other``); books are read as plain text
    (``/ebooks/<id>.txt.utf-8``).
    """

    PATH_BROWSE_TITLE = "/browse/titles"
    PATH_BROWSE_AUTHOR = "/browse/authors"
    PATH_BOOK = "/ebooks"

    ALPHABET_PREFIXES = ["other"] + [chr(c) for c in range(ord("z"), ord("a") - 1, -1)]

    _INTRO_END = re.compile(r"\*{3}.+\*{3}[\n\r]*")
    _PARAGRAPH_BREAK = re.compile(r"[\n\r]{2,}")

    def get_page_url(self, index, page_number):
        prefix = self.ALPHABET_PREFIXES[page_number - 1]
        return urljoin(index.url_template, f"{self.PATH_BROWSE_TITLE}/{prefix}")

    def get_story_summaries(self, index, page_content):
        parser = _GutenbergTitlesParser()
        parser.feed(page_content)
        parser.close()
        logger.info("found %d books in index page", len(parser.books))

        prev_id = None
        for book in parser.books:
            title = book["title"].strip()
            if book["audio"]:
                logger.info("skip audiobook %r", title)
                continue

            story_id = book["href"].rstrip("/").rsplit("/", 1)[-1]
            if story_id == prev_id:
                logger.info("skip duplicate book entry title=%s", title)
                continue
            prev_id = story_id

            yield StorySummary(
                id=story_id,
                author_name=book["author"].strip(),
                title=title,
                url=urljoin(index.url_template, book["href"]) + ".txt.utf-8",
            )

    def get_story_text(self, index, story_page):
        start = self._INTRO_END.search(story_page)
        body = story_page[start.end():] if start else story_page

        for paragraph in self._PARAGRAPH_BREAK.split(body):
            paragraph = paragraph.strip()
            if paragraph:
                yield paragraph


def local_stories_index() -> StoriesIndex:
    return StoriesIndex(
        url_template="file://local-filesystem",
        names=[LOCAL_INDEX_NAME],
        page_number_min=1,
        page_number_max=1,
        page_filename="index.json",
        hide=True,
        source=LocalStorySource(),
    )


def gutenberg_stories_index() -> StoriesIndex:
    return StoriesIndex(
        url_template="https://www.gutenberg.org",
        names=["gutenberg", "gutb"],
        page_number_min=1,
        page_number_max=len(GutenbergStorySource.ALPHABET_PREFIXES),
        story_file_ext=".txt",
        source=GutenbergStorySource(),
    )


class StoriesIndexRegistry:
    """Stories indexes available to a library, by name and alias."""

    def __init__(self, indexes: Optional[List[StoriesIndex]] = None):
        self._by_alias: Dict[str, StoriesIndex] = {}
        for index in indexes or []:
            self.register(index)

    def register(self, index: StoriesIndex) -> StoriesIndex:
        for alias in index.names:
            existing = self._by_alias.get(alias)
            if existing is not None and existing is not index:
                logger.warning(
                    "stories index alias %s already registered as %s; do not overwrite", alias, existing
                )
                continue
            self._by_alias[alias] = index
        return index

    def get(self, alias: str) -> StoriesIndex:
        """
        Raises:
            IndexNotFoundError: If no index has this name or alias.
        """
        index = self._by_alias.get(alias)
        if index is None:
            raise IndexNotFoundError(alias)
        return index

    def names(self, include_hidden: bool = False) -> List[str]:
        return [alias for alias, index in self._by_alias.items() if include_hidden or not index.hide]

    def indexes(self) -> List[StoriesIndex]:
        """Distinct registered indexes, in registration order."""
        return list(dict.fromkeys(self._by_alias.values()))

    def __contains__(self, alias: str) -> bool:
        return alias in self._by_alias


def default_registry() -> StoriesIndexRegistry:
    return StoriesIndexRegistry([local_stories_index(), gutenberg_stories_index()])
