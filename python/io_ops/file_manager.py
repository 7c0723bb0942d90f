import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from colored_logger import get_colored_logger
from library.index_page import IndexPage
from library.search_entry import (
    SEARCHES_DIR,
    SearchHistoryEntry,
    next_search_number,
    parse_search_number,
)
from library.story_summary import StorySummary
from library.text_profile import TextProfile

logger = get_colored_logger(__name__)

INDEX_PAGE_FILENAME = "index.json"
PAGE_DIR_PATTERN = re.compile(r"^page-(\d+)$")
PARAGRAPH_BREAK_PATTERN = re.compile(r"[\n\r]{2,}")
CUSTOM_TAGS_FILENAME = "custom.json"

PathLike = Union[str, Path]


class FileManager:
    @staticmethod
    def ensure_dir_exists(directory: Path) -> None:
        directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def write_to_file(file_path: Path, content: str) -> None:
        FileManager.ensure_dir_exists(file_path.parent)
        with file_path.open("w", encoding="utf-8") as f:
            f.write(content)

    @staticmethod
    def write_chunks(file_path: Path, chunks: Iterable[str]) -> int:
        """Write text chunks as they are produced; returns the number of chunks."""
        FileManager.ensure_dir_exists(file_path.parent)
        count = 0
        with file_path.open("w", encoding="utf-8") as f:
            for chunk in chunks:
                f.write(chunk)
                count += 1
        return count

    @staticmethod
    def write_json(file_path: PathLike, data: Any) -> None:
        FileManager.write_to_file(Path(file_path), json.dumps(data, indent=2, ensure_ascii=False))

    @staticmethod
    def read_json(file_path: PathLike) -> Any:
        """
        Raises:
            OSError: If the file cannot be read.
            json.JSONDecodeError: If the content is not JSON.
        """
        with Path(file_path).open("r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def file_string(name: str, max_length: int = 255) -> str:
        """Convert text to a safe file name: no path characters, parentheses or whitespace."""
        name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", name)
        name = re.sub(r"\s+", "-", name.strip())
        name = re.sub(r"[()]", "", name)
        name = re.sub(r"\.+$", "", name)

        if len(name) > max_length:
            name = name[:max_length]

        return name or "unnamed"

    # ------------------------------------------------------------ index pages

    @staticmethod
    def index_page_path(
        stories_dir: PathLike, index_name: str, page_number: int, page_filename: str = INDEX_PAGE_FILENAME
    ) -> str:
        return os.path.join(str(stories_dir), index_name, f"page-{page_number}", page_filename)

    @staticmethod
    def list_index_pages(stories_dir: PathLike) -> Dict[str, Dict[int, IndexPage]]:
        """
        Find stored index pages.

        Returns:
            Pages by index name, then by page number (ascending).
        """
        pages: Dict[str, Dict[int, IndexPage]] = {}
        root = Path(stories_dir)
        if not root.is_dir():
            logger.warning("stories directory does not exist: %s", stories_dir)
            return pages

        for index_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            index_pages: Dict[int, IndexPage] = {}
            for page_dir in index_dir.iterdir():
                match = PAGE_DIR_PATTERN.match(page_dir.name)
                page_file = page_dir / INDEX_PAGE_FILENAME
                if match and page_file.is_file():
                    page_number = int(match.group(1))
                    index_pages[page_number] = IndexPage(index_dir.name, page_number, str(page_file))

            if index_pages:
                pages[index_dir.name] = dict(sorted(index_pages.items()))

        logger.debug(
            "found %d index pages in %s", sum(len(p) for p in pages.values()), stories_dir
        )
        return pages

    @staticmethod
    def read_index_page(page: IndexPage) -> List[StorySummary]:
        return [StorySummary.from_data(record) for record in FileManager.read_json(page.file_path)]

    @staticmethod
    def save_index_page(
        stories_dir: PathLike, index_name: str, page_number: int, stories: List[StorySummary]
    ) -> IndexPage:
        file_path = FileManager.index_page_path(stories_dir, index_name, page_number)
        FileManager.write_json(file_path, [story.to_data() for story in stories])
        logger.info("saved %d stories to %s", len(stories), file_path)
        return IndexPage(index_name, page_number, file_path)

    @staticmethod
    def find_story(page: IndexPage, story_id: str) -> Optional[StorySummary]:
        for story in FileManager.read_index_page(page):
            if story.id == story_id:
                return story
        return None

    # ---------------------------------------------------------------- stories

    @staticmethod
    def story_file_name(story: StorySummary, ext: str) -> str:
        return f"{FileManager.file_string(story.author_name)}_{FileManager.file_string(story.title)}{ext}"

    @staticmethod
    def story_webpage_path(
        stories_dir: PathLike, index_name: str, page_number: int, story: StorySummary, ext: str
    ) -> str:
        """Where the downloaded page of a story is kept, beside its index page."""
        return os.path.join(
            str(stories_dir),
            index_name,
            f"page-{page_number}",
            FileManager.file_string(f"story-{story.id}"),
            FileManager.story_file_name(story, ext),
        )

    @staticmethod
    def story_text_path(stories_dir: PathLike, index_name: str, story: StorySummary) -> str:
        return os.path.join(
            str(stories_dir),
            index_name,
            FileManager.file_string(f"story-{story.id}"),
            FileManager.story_file_name(story, ".txt"),
        )

    @staticmethod
    def save_story_text(file_path: PathLike, paragraphs: List[str]) -> None:
        FileManager.write_chunks(Path(file_path), (f"{paragraph}\n\n" for paragraph in paragraphs))
        logger.info("saved %d paragraphs to %s", len(paragraphs), file_path)

    @staticmethod
    def load_story_text(file_path: PathLike) -> List[str]:
        """Paragraphs of a saved story text, split on blank lines."""
        with Path(file_path).open("r", encoding="utf-8") as f:
            text = f.read()
        return [paragraph for paragraph in PARAGRAPH_BREAK_PATTERN.split(text) if paragraph.strip()]

    # --------------------------------------------------------------- profiles

    @staticmethod
    def profile_path(profiles_dir: PathLike, index_name: str, story_id: str) -> str:
        return os.path.join(str(profiles_dir), index_name, f"story-{story_id}.profile.json")

    @staticmethod
    def load_profile(profiles_dir: PathLike, index_name: str, story_id: str) -> TextProfile:
        """
        Raises:
            OSError: If the profile file cannot be read.
            json.JSONDecodeError: If the profile file is not JSON.
        """
        file_path = FileManager.profile_path(profiles_dir, index_name, story_id)
        return TextProfile.from_data(FileManager.read_json(file_path), file_path)

    # ---------------------------------------------------------------- history

    @staticmethod
    def list_search_numbers(history_dir: PathLike) -> List[int]:
        searches_dir = Path(history_dir) / SEARCHES_DIR
        if not searches_dir.is_dir():
            return []

        numbers = []
        for path in searches_dir.iterdir():
            try:
                numbers.append(parse_search_number(path.name))
            except ValueError:
                logger.debug("skip non search history file %s", path)
        return sorted(numbers)

    @staticmethod
    def next_search_number(history_dir: PathLike) -> int:
        return next_search_number(FileManager.list_search_numbers(history_dir))

    @staticmethod
    def save_search_entry(history_dir: PathLike, entry: SearchHistoryEntry) -> str:
        file_path = entry.file_path(str(history_dir))
        FileManager.write_json(file_path, entry.to_dict())
        logger.info("write library search entry to %s", file_path)
        return file_path

    @staticmethod
    def load_search_history(
        history_dir: PathLike, count: int, last_number: Optional[int] = None
    ) -> List[SearchHistoryEntry]:
        """
        Load the latest ``count`` search entries up to ``last_number``, newest first.
        """
        numbers = [
            n for n in FileManager.list_search_numbers(history_dir)
            if last_number is None or n <= last_number
        ]
        entries = []
        for number in reversed(numbers[-count:] if count > 0 else []):
            path = Path(history_dir) / SEARCHES_DIR / f"libsearch-{number}.json"
            entries.append(SearchHistoryEntry.from_dict(FileManager.read_json(path)))
        return entries

    # ------------------------------------------------------------ custom tags

    @staticmethod
    def custom_tags_path(tags_dir: PathLike) -> str:
        return os.path.join(str(tags_dir), CUSTOM_TAGS_FILENAME)

    @staticmethod
    def save_custom_tags(tags_dir: PathLike, records: List[Dict[str, Any]]) -> str:
        file_path = FileManager.custom_tags_path(tags_dir)
        FileManager.write_json(file_path, records)
        logger.info("saved %d custom tags to %s", len(records), file_path)
        return file_path

    @staticmethod
    def load_custom_tags(tags_dir: PathLike) -> Optional[List[Dict[str, Any]]]:
        """Stored custom tag records, or None if none were saved."""
        file_path = FileManager.custom_tags_path(tags_dir)
        if not os.path.isfile(file_path):
            return None
        return FileManager.read_json(file_path)
