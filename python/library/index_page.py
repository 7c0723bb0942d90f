import dataclasses
import os
from dataclasses import dataclass

from tags.graph import TagGraph
from .descriptor import LibraryDescriptor


@dataclass(eq=False)
class IndexPage(LibraryDescriptor):
    """One stored page of story summaries from a stories index."""

    tag_name = "index-page"
    child_tag_names = ("index-name", "page-number", "page-dir", "page-file")

    index_name: str
    page_number: int
    file_path: str

    def clone(self) -> "IndexPage":
        """Copy for a single book; books never share page instances."""
        return dataclasses.replace(self)

    @property
    def dir_name(self) -> str:
        return os.path.basename(os.path.dirname(self.file_path))

    @property
    def file_name(self) -> str:
        return os.path.basename(self.file_path)

    def set_tags(self, graph: TagGraph) -> None:
        self.tag_value(graph, "index-name", graph.get(self.index_name))
        graph.connect(graph.get("page-number"), self, weight=self.page_number)
        if self.dir_name:
            self.tag_value(graph, "page-dir", graph.get(self.dir_name))
        self.tag_value(graph, "page-file", graph.get(self.file_name))

    def __str__(self) -> str:
        return f"IndexPage[{self.index_name} page={self.page_number}]"
