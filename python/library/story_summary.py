from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tags.graph import TagGraph
from .descriptor import LibraryDescriptor


def parse_publish_date(value: Any) -> Optional[datetime]:
    """Parse an ISO date string, epoch milliseconds or datetime; None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


@dataclass(eq=False)
class StorySummary(LibraryDescriptor):
    """Identity and listing details of one story, as found on an index page."""

    tag_name = "story"
    child_tag_names = ("author-name", "title", "publish-date", "story-id")

    id: str
    author_name: str
    title: str
    publish_date: Optional[datetime] = None
    view_count: int = -1
    url: str = ""
    excerpts: List[str] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "StorySummary":
        """Build from a stored page record (camelCase keys)."""
        return cls(
            id=str(data["id"]),
            author_name=data.get("authorName") or "",
            title=data.get("title") or "",
            publish_date=parse_publish_date(data.get("publishDate")),
            view_count=data.get("viewCount") if data.get("viewCount") is not None else -1,
            url=data.get("url") or "",
            excerpts=list(data.get("excerpts") or []),
        )

    def to_data(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "authorName": self.author_name,
            "title": self.title,
            "publishDate": self.publish_date.isoformat() if self.publish_date else None,
            "viewCount": self.view_count,
            "url": self.url,
            "excerpts": self.excerpts,
        }

    def set_tags(self, graph: TagGraph) -> None:
        if self.author_name:
            self.tag_value(graph, "author-name", graph.get_text(self.author_name))
        if self.title:
            self.tag_value(graph, "title", graph.get_text(self.title))
        if self.publish_date is not None:
            self.tag_value(graph, "publish-date", graph.get_date(self.publish_date))
        self.tag_value(graph, "story-id", graph.get(self.id))

    def __str__(self) -> str:
        return f"StorySummary[id={self.id} title={self.title}]"
