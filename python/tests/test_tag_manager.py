import unittest

from errors import CustomTagError, MalformedExpressionError, TagNotFoundError
from search.search_engine import exec_search_expression
from search.tag_manager import (
    ACTION_ADD,
    ACTION_CONNECT,
    TagManager,
    exec_tagging_expression,
    get_custom_tags,
    load_custom_tags,
)
from .test_utils import BaseTestCase, LibraryFixtureMixin


class TestTagManager(LibraryFixtureMixin, BaseTestCase):
    """Test cases for TagManager class."""

    def setUp(self):
        super().setUp()
        self.library = self.make_library()
        self.book1 = self.add_book(self.library, "1", title="first tale")
        self.book2 = self.add_book(self.library, "2", title="second tale")
        self.manager = TagManager(self.library)

    def test_add_tag_creates_custom_tag(self):
        tag = self.manager.add_tag("favorites")

        self.assertTrue(self.manager.is_custom(tag))
        self.assertEqual(self.manager.custom_tags(), [tag])
        self.assertIs(tag.first_parent(), self.library.custom_root)

    def test_add_existing_custom_tag_returns_it(self):
        tag = self.manager.add_tag("favorites")
        self.assertIs(self.manager.add_tag("favorites"), tag)

    def test_add_system_tag_is_rejected(self):
        with self.assertRaises(CustomTagError):
            self.manager.add_tag("title")

    def test_add_empty_name_is_rejected(self):
        with self.assertRaises(MalformedExpressionError):
            self.manager.add_tag("  ")

    def test_delete_tag(self):
        tag = self.manager.add_tag("favorites")
        self.manager.connect("favorites", self.book1)

        self.manager.delete_tag("favorites")

        self.assertFalse(self.library.graph.has("favorites"))
        self.assertNotIn(tag, self.library.graph.tags_of(self.book1))

    def test_delete_system_tag_is_rejected(self):
        with self.assertRaises(CustomTagError):
            self.manager.delete_tag("title")
        self.assertTrue(self.library.graph.has("title"))

    def test_connect_unknown_custom_tag(self):
        with self.assertRaises(TagNotFoundError):
            self.manager.connect("missing", self.book1)

    def test_connect_and_disconnect_book(self):
        tag = self.manager.add_tag("favorites")

        self.manager.connect("favorites", self.book1)
        self.assertIn(self.book1, tag.entities())

        self.manager.disconnect("favorites", self.book1)
        self.assertNotIn(self.book1, tag.entities())


class TestTaggingExpressions(LibraryFixtureMixin, BaseTestCase):
    def setUp(self):
        super().setUp()
        self.library = self.make_library()
        self.book1 = self.add_book(self.library, "1", title="first tale")
        self.book2 = self.add_book(self.library, "2", title="second tale")

    def test_statements_are_applied_in_order(self):
        results = exec_tagging_expression(
            self.library,
            "add(t('favorites')); connect(t('favorites'), s('local').id('2'));",
        )

        self.assertEqual([result.action for result in results], [ACTION_ADD, ACTION_CONNECT])
        self.assertIs(results[1].target, self.book2)
        self.assertEqual(str(results[1]), "connect favorites -> LibraryBook[local/1/2]")

    def test_custom_tag_is_searchable(self):
        exec_tagging_expression(
            self.library,
            "add(t('favorites')); connect(t('favorites'), s('local').id('1'))",
        )

        results = list(exec_search_expression(self.library, "t=='custom' ^ q=='favorites'"))
        self.assertEqual([book for book, _ in results], [self.book1])

    def test_connect_custom_tag_to_system_tag(self):
        exec_tagging_expression(
            self.library, "add(t('classics')); connect(t('classics'), t('first tale'))"
        )

        results = list(exec_search_expression(self.library, "t=='classics'"))
        self.assertEqual([book for book, _ in results], [self.book1])

    def test_failing_statement_keeps_earlier_ones(self):
        with self.assertRaises(CustomTagError):
            exec_tagging_expression(self.library, "add(t('kept')); del(t('title'))")

        self.assertTrue(self.library.graph.has("kept"))

    def test_unknown_action(self):
        with self.assertRaises(MalformedExpressionError):
            exec_tagging_expression(self.library, "rename(t('x'))")

    def test_wrong_arity(self):
        with self.assertRaises(MalformedExpressionError):
            exec_tagging_expression(self.library, "connect(t('x'))")

    def test_target_must_be_tag_or_book(self):
        exec_tagging_expression(self.library, "add(t('x'))")
        with self.assertRaises(MalformedExpressionError):
            exec_tagging_expression(self.library, "connect(t('x'), 'y')")

    def test_bare_identifier_is_not_a_statement(self):
        with self.assertRaises(MalformedExpressionError):
            exec_tagging_expression(self.library, "add")


class TestCustomTagPersistence(LibraryFixtureMixin, BaseTestCase):
    def test_export_and_reload(self):
        library = self.make_library()
        self.add_book(library, "1", title="first tale")
        exec_tagging_expression(
            library,
            "add(t('favorites')); add(t('classics')); "
            "connect(t('favorites'), t('classics')); "
            "connect(t('classics'), s('local').id('1'))",
        )

        records = get_custom_tags(library)
        self.assertEqual(
            records,
            [
                {"name": "favorites", "children": ["classics"], "books": []},
                {
                    "name": "classics",
                    "children": [],
                    "books": [
                        {"indexName": "local", "pageNumber": 1, "storyId": "1", "profilePath": None}
                    ],
                },
            ],
        )

        reloaded = self.make_library()
        book = self.add_book(reloaded, "1", title="first tale")

        self.assertEqual(load_custom_tags(reloaded, records), 2)
        results = list(exec_search_expression(reloaded, "t=='favorites'"))
        self.assertEqual([found for found, _ in results], [book])

    def test_missing_books_are_skipped(self):
        library = self.make_library()
        records = [
            {
                "name": "favorites",
                "children": [],
                "books": [{"indexName": "local", "pageNumber": 1, "storyId": "404"}],
            },
            {
                "name": "elsewhere",
                "children": [],
                "books": [{"indexName": "nowhere", "pageNumber": 1, "storyId": "1"}],
            },
        ]

        self.assertEqual(load_custom_tags(library, records), 2)
        self.assertEqual(library.graph.get("favorites").entities(), [])


if __name__ == "__main__":
    unittest.main()
