"""
Library domain model.

Typed entities owned by one Library in a strict tree (library > book > story,
index page, text profile) that project themselves into a TagGraph:

- LibraryDescriptor: base of every taggable entity
- StorySummary, IndexPage, TextProfile: per-book descriptors
- StoriesIndex: shared source descriptor with its StorySource adapter
- Library, LibraryBook: the collection and its aggregates
- SearchHistoryEntry: persisted record of one search
"""
