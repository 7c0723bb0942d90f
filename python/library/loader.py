import json
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Tuple

from colored_logger import get_colored_logger
from errors import IndexNotFoundError
from io_ops.file_manager import FileManager
from .context import LibraryContext
from .index_page import IndexPage
from .library import Library
from .story_summary import StorySummary
from .text_profile import TextProfile

logger = get_colored_logger(__name__)

StoryProfile = Tuple[StorySummary, Optional[TextProfile]]


def _load_profile(profiles_dir: str, index_name: str, story: StorySummary) -> Optional[TextProfile]:
    try:
        return FileManager.load_profile(profiles_dir, index_name, story.id)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("no profile found for story=%s", story.id)
        logger.trace("profile load error: %s", e)
        return None


def _load_page(page: IndexPage, profiles_dir: str, profile_pool: ThreadPoolExecutor) -> List[StoryProfile]:
    """Read the stories of one page, loading each story profile in the profile pool."""
    logger.debug("load stories of page-path=%s", page.file_path)
    stories = FileManager.read_index_page(page)
    futures: List[Future] = [
        profile_pool.submit(_load_profile, profiles_dir, page.index_name, story) for story in stories
    ]
    return [(story, future.result()) for story, future in zip(stories, futures)]


def load_library(
    context: LibraryContext,
    index_pages: Iterable[IndexPage],
    profiles_dir: str,
    max_workers: Optional[int] = None,
) -> Library:
    """
    Create a library from stored index pages and story profiles.

    Pages and profiles are read concurrently, each page into its own slot.
    Books are then added to the library from the calling thread, in page
    order, so the tag graph is only modified by one thread.

    Args:
        context: Context holding the tag graph to populate
        index_pages: Stored pages to load
        profiles_dir: Root directory of story profiles
        max_workers: Threads per pool (default: ``load_workers`` setting)

    Returns:
        The populated library.
    """
    pages = list(index_pages)
    max_workers = max_workers or context.setting("load_workers", 4)
    library = Library(context)

    slots: Dict[int, List[StoryProfile]] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as page_pool, ThreadPoolExecutor(
        max_workers=max_workers
    ) as profile_pool:
        futures = {
            page_pool.submit(_load_page, page, profiles_dir, profile_pool): slot
            for slot, page in enumerate(pages)
        }
        for future in as_completed(futures):
            slot = futures[future]
            try:
                slots[slot] = future.result()
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error("Failed to load index page %s: %s", pages[slot].file_path, e)
                slots[slot] = []

    book_count = 0
    for slot, page in enumerate(pages):
        for story, profile in slots[slot]:
            try:
                book = library.new_book(story, page, profile)
            except IndexNotFoundError as e:
                logger.warning("skip page %s: %s", page.file_path, e)
                break
            if library.add_book(book) is None:
                book_count += 1

    logger.success("loaded %d books from %d index pages", book_count, len(pages))
    return library
