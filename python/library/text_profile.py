"""
Text profile descriptors: maturity, reading difficulty, topics and ideologies
scored for one story. Profiles are read from disk; each nested score is its own
tagged descriptor owned by the profile.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from colored_logger import get_colored_logger
from tags.graph import TagGraph
from .descriptor import LibraryDescriptor

logger = get_colored_logger(__name__)

MATURITY_TYPE_PROFANE = "profanity"
# Ideologies at or below this presence are omitted from book descriptions
IDEOLOGY_PRESENCE_DESCRIBE_MIN = 0.5


@dataclass(eq=False)
class Maturity(LibraryDescriptor):
    """Restricted flag and the maturity categories present in or absent from a text."""

    tag_name = "maturity"
    child_tag_names = ("restricted",)

    is_restricted: Optional[bool] = None
    presents: List[str] = field(default_factory=list)
    absents: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: Optional[Dict[str, Any]]) -> "Maturity":
        data = data or {}
        return cls(
            is_restricted=data.get("isRestricted"),
            presents=list(data.get("presents") or []),
            absents=list(data.get("absents") or []),
            examples=list(data.get("examples") or []),
        )

    def append(self, other: "Maturity") -> None:
        """Merge another maturity estimate into this one."""
        self.is_restricted = bool(self.is_restricted or other.is_restricted)
        self.presents = self.presents + other.presents
        self.absents = self.absents + other.absents
        self.examples = self.examples + other.examples

    def set_tags(self, graph: TagGraph) -> None:
        restricted = graph.get("restricted")
        if self.is_restricted:
            graph.connect(restricted, self)
        else:
            graph.disconnect(restricted, self)

        for category in self.presents:
            tag = graph.get(category)
            Maturity.adopt_tag(graph, tag)
            graph.connect(tag, self)

        for category in self.absents:
            tag = graph.get(category)
            Maturity.adopt_tag(graph, tag)
            graph.disconnect(tag, self)

    def __str__(self) -> str:
        return f"Maturity[restricted={self.is_restricted} presents={','.join(self.presents)}]"


@dataclass(eq=False)
class Difficulty(LibraryDescriptor):
    """Reading difficulty."""

    tag_name = "difficulty"
    child_tag_names = ("years-of-education", "reading-level", "difficult-word")

    years_of_education: float = 0
    reading_level_name: Optional[str] = None
    reasons: List[str] = field(default_factory=list)
    difficult_words: List[str] = field(default_factory=list)
    difficult_phrases: List[str] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: Optional[Dict[str, Any]]) -> "Difficulty":
        data = data or {}
        return cls(
            years_of_education=data.get("yearsOfEducation") or 0,
            reading_level_name=data.get("readingLevelName"),
            reasons=list(data.get("reasons") or []),
            difficult_words=list(data.get("difficultWords") or []),
            difficult_phrases=list(data.get("difficultPhrases") or []),
        )

    def set_tags(self, graph: TagGraph) -> None:
        graph.connect(graph.get("years-of-education"), self, weight=self.years_of_education)

        if self.reading_level_name:
            self.tag_value(graph, "reading-level", graph.get(self.reading_level_name))

        for word in self.difficult_words:
            self.tag_value(graph, "difficult-word", graph.get(word))

    def __str__(self) -> str:
        return (
            f"Difficulty[years-of-education={self.years_of_education} "
            f"reading-level={self.reading_level_name}]"
        )


@dataclass(eq=False)
class Topic(LibraryDescriptor):
    tag_name = "topic"

    id: str = ""
    example_phrases: List[str] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "Topic":
        return cls(id=data["id"], example_phrases=list(data.get("examplePhrases") or []))

    def set_tags(self, graph: TagGraph) -> None:
        tag = graph.get(self.id)
        Topic.adopt_tag(graph, tag)
        graph.connect(tag, self)

    def __str__(self) -> str:
        return f"Topic[id={self.id}]"


@dataclass(eq=False)
class Ideology(LibraryDescriptor):
    tag_name = "ideology"
    child_tag_names = ("presence",)

    id: str = ""
    presence: float = 0
    example_phrases: List[str] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "Ideology":
        return cls(
            id=data["id"],
            presence=data.get("presence") or 0,
            example_phrases=list(data.get("examplePhrases") or []),
        )

    def set_tags(self, graph: TagGraph) -> None:
        tag = graph.get(self.id)
        Ideology.adopt_tag(graph, tag)
        graph.connect(tag, self)
        graph.connect(graph.get("presence"), self, weight=self.presence)

    def __str__(self) -> str:
        return f"Ideology[id={self.id}]"


@dataclass(eq=False)
class TextProfile(LibraryDescriptor):
    """
    Scores of one story text, identified by the file it was loaded from.

    Nested descriptors are owned by the profile: tagging or untagging the
    profile cascades to them.
    """

    tag_name = "text-profile"
    child_tag_names = ("maturity", "difficulty", "topic", "ideology")

    file_path: Optional[str] = None
    maturity: Maturity = field(default_factory=Maturity)
    difficulty: Difficulty = field(default_factory=Difficulty)
    topics: List[Topic] = field(default_factory=list)
    ideologies: List[Ideology] = field(default_factory=list)

    def __post_init__(self):
        for child in self.owned_descriptors():
            child.set_parent(self)

    @classmethod
    def from_data(cls, data: Optional[Dict[str, Any]], file_path: Optional[str] = None) -> "TextProfile":
        """
        Build a profile from its stored record.

        Args:
            data: Record with optional ``maturity``, ``difficulty``, ``topics``
                and ``ideologies`` keys (camelCase nested keys)
            file_path: File the record was read from

        Returns:
            TextProfile with every nested descriptor owned by it.
        """
        data = data or {}
        profile = cls(
            file_path=file_path,
            maturity=Maturity.from_data(data.get("maturity")),
            difficulty=Difficulty.from_data(data.get("difficulty")),
            topics=[Topic.from_data(t) for t in data.get("topics") or []],
            ideologies=[Ideology.from_data(i) for i in data.get("ideologies") or []],
        )
        logger.trace("loaded %s from %s", profile, file_path)
        return profile

    def owned_descriptors(self) -> Iterable[LibraryDescriptor]:
        return [self.maturity, self.difficulty, *self.topics, *self.ideologies]

    def set_tags(self, graph: TagGraph) -> None:
        graph.connect(TextProfile.root_tag(graph), self)
        for child in self.owned_descriptors():
            child.set_tags(graph)

    def describe_ideologies(self) -> str:
        return " ".join(
            f"{ideology.id}[{ideology.presence}]"
            for ideology in self.ideologies
            if ideology.presence > IDEOLOGY_PRESENCE_DESCRIBE_MIN
        )

    def __str__(self) -> str:
        return f"TextProfile[{self.file_path}]"
