from dataclasses import dataclass, field
from typing import Optional

from tags.graph import TagGraph
from .stories_index import StoriesIndexRegistry, default_registry


@dataclass
class LibraryContext:
    """
    State shared by the load, query, tag and render steps of one run.

    Replaces process-wide registries: every component that needs the tag
    graph, the stories indexes or settings receives this object.
    """

    settings: Optional[object] = None
    graph: TagGraph = field(default_factory=TagGraph)
    indexes: StoriesIndexRegistry = field(default_factory=default_registry)

    @classmethod
    def from_settings(cls, settings) -> "LibraryContext":
        graph = TagGraph(
            text_len_max=settings.tag_text_len_max,
            text_word_len_min=settings.tag_text_word_len_min,
        )
        return cls(settings=settings, graph=graph)

    def setting(self, name: str, default):
        """Attribute of the settings, or ``default`` when running without settings."""
        if self.settings is None:
            return default
        return getattr(self.settings, name, default)
