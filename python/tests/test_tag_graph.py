import re
import unittest
from datetime import date, datetime

from errors import MalformedExpressionError, TagNotFoundError
from tags.graph import ConnectionType, Tag, TagGraph
from tags.names import (
    compile_pattern,
    compile_query,
    date_tag_name,
    format_pattern,
    lineage_name,
    pattern_matches,
    text_tag_name,
)
from .test_utils import BaseTestCase


class Entity:
    """Minimal taggable object."""

    def __init__(self, name):
        self.name = name

    def __str__(self):
        return self.name


class TestTagGraphTags(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.graph = TagGraph()

    def test_get_returns_identical_tag(self):
        first = self.graph.get("title")
        second = self.graph.get("title")

        self.assertIs(first, second)
        self.assertEqual(len(self.graph.all_tags()), 1)

    def test_get_without_create_raises_for_unseen_name(self):
        with self.assertRaises(TagNotFoundError):
            self.graph.get("missing", create=False)
        self.assertFalse(self.graph.has("missing"))

    def test_tag_not_found_is_a_lookup_error(self):
        with self.assertRaises(LookupError):
            self.graph.get("missing", create=False)

    def test_alias_resolves_to_same_tag(self):
        tag = self.graph.get("gutenberg")
        self.graph.alias(tag, "gutb")

        self.assertIs(self.graph.get("gutb", create=False), tag)
        self.assertEqual(tag.aliases, ["gutb"])
        self.assertEqual(self.graph.all_tags(), [tag])

    def test_alias_of_another_tag_is_rejected(self):
        tag = self.graph.get("a")
        self.graph.get("b")

        with self.assertRaises(ValueError):
            self.graph.alias(tag, "b")

    def test_get_text_compresses_long_text(self):
        tag = self.graph.get_text("The Adventures of Tom Sawyer")
        self.assertEqual(tag.name, "adventures sawyer")

    def test_get_date_uses_day_precision(self):
        tag = self.graph.get_date(datetime(2000, 1, 2, 13, 14))
        self.assertEqual(tag.name, "2000-01-02")

    def test_delete_removes_names_and_connections(self):
        parent = self.graph.get("parent")
        tag = self.graph.get("tag")
        entity = Entity("e")
        self.graph.alias(tag, "alias")
        self.graph.connect(parent, tag, ConnectionType.CHILD)
        self.graph.connect(tag, entity)

        self.graph.delete(tag)

        self.assertFalse(self.graph.has("tag"))
        self.assertFalse(self.graph.has("alias"))
        self.assertNotIn(tag, parent.connections)
        self.assertFalse(self.graph.is_tagged(entity))

    def test_clear_empties_graph(self):
        self.graph.connect(self.graph.get("a"), Entity("e"))
        self.graph.clear()

        self.assertEqual(self.graph.all_tags(), [])


class TestTagGraphConnections(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.graph = TagGraph()
        self.a = self.graph.get("a")
        self.b = self.graph.get("b")

    def test_connect_tags_creates_inverse(self):
        self.graph.connect(self.a, self.b, ConnectionType.CHILD, weight=2)

        self.assertIs(self.a.connections[self.b].type, ConnectionType.CHILD)
        self.assertIs(self.b.connections[self.a].type, ConnectionType.PARENT)
        self.assertEqual(self.b.connections[self.a].weight, 2)
        self.assertIs(self.b.first_parent(), self.a)
        self.assertEqual(self.a.children(), [self.b])

    def test_connect_tags_defaults_to_undirected(self):
        conn = self.graph.connect(self.a, self.b)

        self.assertIs(conn.type, ConnectionType.UNDIRECTED)
        self.assertIs(self.b.connections[self.a].type, ConnectionType.UNDIRECTED)

    def test_reconnect_updates_existing_connection(self):
        first = self.graph.connect(self.a, self.b, ConnectionType.CHILD)
        second = self.graph.connect(self.a, self.b, ConnectionType.CHILD, weight=5)

        self.assertIs(first, second)
        self.assertEqual(second.weight, 5)

    def test_self_connection_is_allowed(self):
        conn = self.graph.connect(self.a, self.a)
        self.assertTrue(conn.is_self_loop)

    def test_entity_connection_is_child_of_tag(self):
        entity = Entity("e")
        conn = self.graph.connect(self.a, entity)

        self.assertIs(conn.type, ConnectionType.CHILD)
        self.assertEqual(self.graph.tags_of(entity), [self.a])
        self.assertEqual(self.a.entities(), [entity])

    def test_entity_connection_with_parent_type_is_rejected(self):
        with self.assertRaises(ValueError):
            self.graph.connect(self.a, Entity("e"), ConnectionType.PARENT)

    def test_entity_as_source_is_rejected(self):
        with self.assertRaises(TypeError):
            self.graph.connect(Entity("e"), self.a)

    def test_disconnect_removes_both_directions(self):
        self.graph.connect(self.a, self.b, ConnectionType.CHILD)

        self.assertTrue(self.graph.disconnect(self.a, self.b))
        self.assertNotIn(self.b, self.a.connections)
        self.assertNotIn(self.a, self.b.connections)
        self.assertFalse(self.graph.disconnect(self.a, self.b))

    def test_untag_removes_every_entity_connection(self):
        entity = Entity("e")
        self.graph.connect(self.a, entity)
        self.graph.connect(self.b, entity)

        self.assertEqual(self.graph.untag(entity), 2)
        self.assertFalse(self.graph.is_tagged(entity))
        self.assertEqual(self.a.entities(), [])


class TestTagGraphTraversal(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.graph = TagGraph()
        self.a = self.graph.get("a")
        self.b = self.graph.get("b")
        self.c = self.graph.get("c")
        self.ab = self.graph.connect(self.a, self.b, ConnectionType.CHILD)
        self.bc = self.graph.connect(self.b, self.c, ConnectionType.CHILD)

    def test_descendants_of_chain(self):
        result = self.graph.search_descendants(self.a)

        self.assertEqual(list(result), [self.b, self.c])
        self.assertEqual(result[self.b], [self.ab])
        self.assertEqual(result[self.c], [self.ab, self.bc])

    def test_descendants_never_include_start(self):
        self.graph.connect(self.c, self.a, ConnectionType.CHILD)

        result = self.graph.search_descendants(self.a)
        self.assertNotIn(self.a, result)
        self.assertEqual(set(result), {self.b, self.c})

    def test_descendants_skip_self_loops(self):
        self.graph.connect(self.b, self.b)

        result = self.graph.search_descendants(self.a)
        self.assertEqual(result[self.c], [self.ab, self.bc])

    def test_ancestors_follow_parent_connections(self):
        result = self.graph.search_descendants(self.c, ConnectionType.PARENT)
        self.assertEqual(list(result), [self.b, self.a])

    def test_descendants_with_pattern(self):
        result = self.graph.search_descendants(self.a, pattern=re.compile("^c$"))
        self.assertEqual(list(result), [self.c])

    def test_descendants_with_entities_only(self):
        entity = Entity("e")
        self.graph.connect(self.c, entity)

        result = self.graph.search_descendants(self.a, include_entities=True, include_tags=False)

        self.assertEqual(list(result), [entity])
        self.assertEqual(len(result[entity]), 3)

    def test_excluded_nodes_are_not_walked_through(self):
        result = self.graph.search_descendants(self.a, exclude=[self.b])
        self.assertEqual(result, {})

    def test_tags_of_entity_and_ancestors(self):
        entity = Entity("e")
        self.graph.connect(self.c, entity)

        own = self.graph.search_tags_of_entity(entity, direction=None)
        self.assertEqual(list(own), [self.c])

        ancestors = self.graph.search_tags_of_entity(entity, pattern="a")
        self.assertEqual(list(ancestors), [self.a])
        self.assertEqual(len(ancestors[self.a]), 3)

    def test_tags_of_entity_stop_at_first(self):
        entity = Entity("e")
        self.graph.connect(self.c, entity)

        result = self.graph.search_tags_of_entity(entity, stop_at_first=True)
        self.assertEqual(list(result), [self.c])

    def test_graph_distance(self):
        entity = Entity("e")
        self.graph.connect(self.c, entity)

        self.assertEqual(self.graph.graph_distance(self.a, self.a), 0)
        self.assertEqual(self.graph.graph_distance(self.a, self.c), 2)
        self.assertEqual(self.graph.graph_distance(entity, self.a), 3)
        self.assertIsNone(self.graph.graph_distance(self.a, Entity("other")))


class TestTagNames(unittest.TestCase):
    def test_short_text_is_kept(self):
        self.assertEqual(text_tag_name("Mark Twain"), "Mark Twain")

    def test_long_text_drops_short_words(self):
        self.assertEqual(
            text_tag_name("A Tale of Two Cities, by Charles"),
            "cities charles",
        )

    def test_long_text_keeps_unicode_letters(self):
        self.assertEqual(text_tag_name("Über die Straße nach München"), "straße münchen")

    def test_limits_are_configurable(self):
        self.assertEqual(text_tag_name("one two three", len_max=5, word_len_min=3), "three")

    def test_date_tag_name(self):
        self.assertEqual(date_tag_name(date(2001, 1, 1)), "2001-01-01")
        self.assertEqual(date_tag_name("2001-01-01T10:00:00Z"), "2001-01-01")

    def test_compile_pattern(self):
        pattern = compile_pattern("/^Foo/")

        self.assertTrue(pattern.search("foobar"))
        self.assertEqual(compile_pattern("foo"), "foo")
        self.assertIsNone(compile_pattern(None))
        self.assertEqual(format_pattern(pattern), "/^Foo/")

    def test_compile_query_rejects_invalid_regex(self):
        self.assertEqual(compile_query("/[a]/").pattern, "[a]")
        with self.assertRaises(re.error):
            compile_pattern("/[/")
        with self.assertRaises(MalformedExpressionError):
            compile_query("/[/")

    def test_pattern_matches(self):
        self.assertTrue(pattern_matches("anything", None))
        self.assertTrue(pattern_matches("a-or-b", "or"))
        self.assertFalse(pattern_matches("a-or-b", "xor"))
        self.assertTrue(pattern_matches("A-or-B", re.compile("a-or", re.IGNORECASE)))

    def test_lineage_name(self):
        graph = TagGraph()
        chain = [graph.get(name) for name in ("library", "library-book", "story", "title", "x")]
        for parent, child in zip(chain, chain[1:]):
            graph.connect(parent, child, ConnectionType.CHILD)

        self.assertEqual(lineage_name(chain[2]), "library.library-book.story")
        self.assertEqual(lineage_name(chain[4]), "....library-book.story.title.x")
        self.assertEqual(lineage_name(chain[4], " / ", parts_max=2), "... / title / x")
        self.assertEqual(lineage_name(Tag("alone")), "alone")


if __name__ == "__main__":
    unittest.main()
