import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

SEARCHES_DIR = "searches"
SEARCH_FILE_PATTERN = re.compile(r"libsearch-(\d+)\.json$")


@dataclass(frozen=True)
class BookReference:
    """Persistable pointer to a book: its library key plus its profile file."""

    index_name: str
    page_number: int
    story_id: str
    profile_path: Optional[str] = None

    @classmethod
    def from_book(cls, book) -> "BookReference":
        return cls(
            index_name=book.index_page.index_name,
            page_number=book.index_page.page_number,
            story_id=book.story.id,
            profile_path=book.profile.file_path if book.profile is not None else None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookReference":
        return cls(
            index_name=data["indexName"],
            page_number=int(data["pageNumber"]),
            story_id=str(data["storyId"]),
            profile_path=data.get("profilePath"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indexName": self.index_name,
            "pageNumber": self.page_number,
            "storyId": self.story_id,
            "profilePath": self.profile_path,
        }

    @property
    def key(self) -> Tuple[str, int, str]:
        return self.index_name, self.page_number, self.story_id


def search_file_path(history_dir: str, search_number: int) -> str:
    return os.path.join(history_dir, SEARCHES_DIR, f"libsearch-{search_number}.json")


def parse_search_number(path: str) -> int:
    """
    Raises:
        ValueError: If the path is not a search history file.
    """
    match = SEARCH_FILE_PATTERN.search(path)
    if match is None:
        raise ValueError(f"failed to parse search number from {path}")
    return int(match.group(1))


@dataclass(frozen=True)
class SearchHistoryEntry:
    """One executed search: its input, render output and resulting books."""

    search_date: datetime
    search_number: int
    input: str
    render_file_path: Optional[str]
    result_book_refs: Tuple[BookReference, ...] = field(default_factory=tuple)

    def file_path(self, history_dir: str) -> str:
        return search_file_path(history_dir, self.search_number)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchHistoryEntry":
        return cls(
            search_date=datetime.fromisoformat(data["searchDate"]),
            search_number=int(data["searchNumber"]),
            input=data.get("input", ""),
            render_file_path=data.get("renderFilePath"),
            result_book_refs=tuple(
                BookReference.from_dict(ref) for ref in data.get("resultBookRefs") or []
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "searchDate": self.search_date.isoformat(),
            "searchNumber": self.search_number,
            "input": self.input,
            "renderFilePath": self.render_file_path,
            "resultBookRefs": [ref.to_dict() for ref in self.result_book_refs],
        }

    def __str__(self) -> str:
        return (
            f"SearchHistoryEntry[date={self.search_date:%Y-%m-%d %H:%M:%S} "
            f"number={self.search_number} books={len(self.result_book_refs)}]"
        )


def next_search_number(existing: List[int]) -> int:
    """Sequence number after the highest existing one; 0 for an empty history."""
    return max(existing) + 1 if existing else 0
