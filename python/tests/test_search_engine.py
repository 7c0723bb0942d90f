import unittest

from errors import MalformedExpressionError, TagNotFoundError
from library.context import LibraryContext
from search.search_engine import (
    SORT_ASC,
    SORT_DESC,
    exec_search_expression,
    search_unit,
    sort_search_items,
)
from search.expression_parser import parse_expression
from tags.names import compile_pattern
from .test_utils import BaseTestCase, LibraryFixtureMixin, MockFactory


def book_ids(results):
    return [book.story.id for book, _ in results]


class SearchTestCase(LibraryFixtureMixin, BaseTestCase):
    def setUp(self):
        super().setUp()
        self.library = self.make_library()
        self.book1 = self.add_book(
            self.library, "1", title="tale-1-a-or-b", author="Ann", publish_date="2000-01-01"
        )
        self.book2 = self.add_book(
            self.library, "2", title="tale-2-a-or-b", author="Bob", publish_date="2000-02-01"
        )
        self.book3 = self.add_book(
            self.library, "3", title="tale-3-c", author="Cid", publish_date="2001-01-01"
        )
        # no title, author or date
        self.book4 = self.add_book(self.library, "4")

    def search(self, expression, sort=None):
        return list(exec_search_expression(self.library, expression, sort))


class TestGetBooks(SearchTestCase):
    def test_books_under_tag_matching_query(self):
        results = list(
            self.library.get_books(self.library.graph.get("title"), compile_pattern("/a-or-b/"))
        )
        self.assertEqual(sorted(book_ids(results)), ["1", "2"])

    def test_path_holds_tag_connections_only(self):
        results = self.search("t=='title' ^ q=='tale-1'")

        self.assertEqual(len(results), 1)
        book, path = results[0]
        self.assertIs(book, self.book1)
        self.assertEqual([conn.target.name for conn in path], ["tale-1-a-or-b"])
        self.assertEqual(path[0].source.name, "title")

    def test_whole_library(self):
        results = list(self.library.get_books())
        self.assertEqual(sorted(book_ids(results)), ["1", "2", "3", "4"])

    def test_each_book_yielded_once(self):
        # every book is reachable through several tags under the root
        ids = book_ids(self.library.get_books(pattern="-"))
        self.assertEqual(len(ids), len(set(ids)))

    def test_no_matching_tags_yields_nothing(self):
        results = list(self.library.get_books(self.library.graph.get("title"), "no such title"))
        self.assertEqual(results, [])

    def test_tag_books_maximum(self):
        context = LibraryContext(settings=MockFactory.create_settings_mock(search_tag_books_max=1))
        library = self.make_library(context)
        for story_id in ("1", "2", "3"):
            self.add_book(library, story_id)

        results = list(exec_search_expression(library, "t=='story-id'"))
        self.assertEqual(len(results), 1)


class TestSearchExpressions(SearchTestCase):
    def test_composite_equals_direct_retrieval(self):
        expression = self.search("t == 'title' ^ q == '/a-or-b/'")
        direct = list(
            self.library.get_books(self.library.graph.get("title"), compile_pattern("/a-or-b/"))
        )

        self.assertEqual({book for book, _ in expression}, {book for book, _ in direct})

    def test_end_to_end_date_and_title(self):
        results = self.search(
            "t=='publish-date' ^ q=='/2000-.+/' && t=='title' ^ q=='/.+a-or-b/'"
        )
        self.assertEqual(sorted(book_ids(results)), ["1", "2"])

    def test_and_is_subset_of_operands(self):
        a = "t=='title' ^ q=='a-or-b'"
        b = "t=='publish-date' ^ q=='2000-01'"

        both = set(book_ids(self.search(f"{a} && {b}")))
        self.assertTrue(both <= set(book_ids(self.search(a))))
        self.assertTrue(both <= set(book_ids(self.search(b))))
        self.assertEqual(both, {"1"})

    def test_or_with_itself_has_no_duplicates(self):
        a = "t=='title' ^ q=='a-or-b'"

        ids = book_ids(self.search(f"{a} || {a}"))
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(set(ids), set(book_ids(self.search(a))))

    def test_or_unites(self):
        ids = book_ids(self.search("t=='title' ^ q=='tale-3' || t=='author-name' ^ q=='Ann'"))
        self.assertEqual(sorted(ids), ["1", "3"])

    def test_minus_itself_is_empty(self):
        a = "t=='title' ^ q=='a-or-b'"
        self.assertEqual(self.search(f"{a} - {a}"), [])

    def test_minus(self):
        ids = book_ids(self.search("t=='title' - t=='publish-date' ^ q=='2001'"))
        self.assertEqual(sorted(ids), ["1", "2"])

    def test_not(self):
        ids = book_ids(self.search("!(t=='title' ^ q=='a-or-b')"))
        self.assertEqual(sorted(ids), ["3", "4"])

    def test_excluded_start_tag(self):
        self.assertEqual(book_ids(self.search("t!='title'")), ["4"])

    def test_excluded_query_from_root(self):
        ids = book_ids(self.search("q!='a-or-b'"))
        self.assertEqual(sorted(ids), ["3", "4"])

    def test_sort_desc_is_reverse_of_asc(self):
        expression = "t=='story-id'"

        asc = book_ids(self.search(expression, SORT_ASC))
        desc = book_ids(self.search(expression, SORT_DESC))

        self.assertEqual(asc, ["1", "2", "3", "4"])
        self.assertEqual(list(reversed(asc)), desc)

    def test_results_are_single_pass(self):
        results = exec_search_expression(self.library, "t=='title'")

        self.assertEqual(len(list(results)), 3)
        self.assertEqual(list(results), [])

    def test_unknown_tag_fails_before_iteration(self):
        with self.assertRaises(TagNotFoundError):
            exec_search_expression(self.library, "t=='title' && t=='missing'")

    def test_composite_needs_one_tag_and_one_query(self):
        with self.assertRaises(MalformedExpressionError):
            self.search("t=='title' ^ t=='author-name'")

    def test_unknown_variable(self):
        with self.assertRaises(MalformedExpressionError):
            self.search("x=='title'")

    def test_bare_identifier_is_not_a_search(self):
        with self.assertRaises(MalformedExpressionError):
            self.search("t")

    def test_invalid_regex(self):
        with self.assertRaises(MalformedExpressionError):
            self.search("q=='/(/'")

    def test_accepts_parsed_expression(self):
        ast = parse_expression("t=='title' ^ q=='tale-3'")
        self.assertEqual(book_ids(exec_search_expression(self.library, ast)), ["3"])


class TestSearchUnit(SearchTestCase):
    def test_search_unit_from_composite(self):
        unit = search_unit(self.library, parse_expression("t=='title' ^ q!='/x/'"))

        self.assertIs(unit.start_tag, self.library.graph.get("title"))
        self.assertFalse(unit.exclude_start_tag)
        self.assertTrue(unit.exclude_query)
        self.assertEqual(unit.pattern.pattern, "x")

    def test_query_only_unit_starts_at_root(self):
        unit = search_unit(self.library, parse_expression("q=='a'"))
        self.assertIs(unit.start_tag, self.library.root)

    def test_sort_rejects_unknown_direction(self):
        with self.assertRaises(ValueError):
            sort_search_items({}, "sideways")


if __name__ == "__main__":
    unittest.main()
