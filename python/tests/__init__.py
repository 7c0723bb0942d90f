"""
Test suite for the doc-level story library.

Tests cover the tag graph, the search and tagging expression languages,
library loading and rendering, storage, the stories client and the
command line session.
"""
