import unittest

from errors import MalformedExpressionError, TagNotFoundError
from library_renderer import FORMAT_MD, FORMAT_TAG, FORMAT_TXT, export_library
from search.search_engine import SORT_ASC
from .test_utils import BaseTestCase, LibraryFixtureMixin


class TestLibraryExport(LibraryFixtureMixin, BaseTestCase):
    def setUp(self):
        super().setUp()
        self.library = self.make_library()
        self.book1 = self.add_book(self.library, "1", title='say "hi"', author="Ann")
        self.book2 = self.add_book(self.library, "2", title="quiet", author="Bob")

    def test_unsupported_format(self):
        with self.assertRaises(ValueError):
            export_library(self.library, "pdf")

    def test_unknown_start_tag_fails_before_rendering(self):
        with self.assertRaises(TagNotFoundError):
            export_library(self.library, FORMAT_TXT, start_tag_name="missing")

    def test_malformed_expression_fails_before_rendering(self):
        with self.assertRaises(MalformedExpressionError):
            export_library(self.library, FORMAT_TXT, search_expr="t == ")

    def test_invalid_query_regex_fails_before_rendering(self):
        with self.assertRaises(MalformedExpressionError):
            export_library(self.library, FORMAT_TXT, query="/[/")

    def test_txt_lists_books_and_references(self):
        export = export_library(self.library, FORMAT_TXT, start_tag_name="author-name", query="Ann")
        text = "".join(export)

        self.assertTrue(text.startswith("=== books in library for start-tag=author-name query=Ann"))
        self.assertIn('title=say "hi"', text)
        self.assertNotIn("title=quiet", text)
        self.assertIn("search-path=Ann", text)
        self.assertTrue(text.endswith("===\n"))
        self.assertEqual([ref.story_id for ref in export.book_refs], ["1"])

    def test_export_is_consumed_once(self):
        export = export_library(self.library, FORMAT_TXT)
        list(export)

        with self.assertRaises(RuntimeError):
            list(export)

    def test_md_embeds_mermaid_flowchart(self):
        export = export_library(
            self.library, FORMAT_MD, search_expr="t=='title' ^ q=='hi'", sort=SORT_ASC
        )
        text = "".join(export)

        self.assertIn("## input\n\n`--search-expr \"t=='title' ^ q=='hi'\" --sort asc --show-library md`", text)
        self.assertIn("```mermaid\nflowchart LR\n", text)
        self.assertIn('book-0["', text)
        self.assertIn('tag-1(["title"]):::tag', text)
        self.assertIn('tag-2(["say #quot;hi#quot;"]):::tag', text)
        self.assertIn("tag-1 --> tag-2\n", text)
        self.assertIn("tag-2 --> book-0\n", text)
        self.assertTrue(text.endswith("```\n"))
        self.assertEqual(len(export.book_refs), 1)

    def test_md_renders_tags_of_search_path(self):
        text = "".join(export_library(self.library, FORMAT_MD, search_expr="t=='page-number'"))
        self.assertNotIn('-->|"', text)

        text = "".join(export_library(self.library, FORMAT_MD, search_expr="t=='story-id' ^ q=='2'"))
        self.assertIn('(["story-id"]):::tag', text)

    def test_tag_format_lists_lineage_names(self):
        export = export_library(self.library, FORMAT_TAG)
        lines = "".join(export).splitlines()

        self.assertEqual(lines[0], "doc-level all tags")
        self.assertIn("library / library-book / story / title", lines)
        self.assertIn("... / library-book / story / title / quiet", lines)
        self.assertEqual(export.book_refs, [])

    def test_input_text(self):
        export = export_library(self.library, FORMAT_TXT, start_tag_name="title", query="/q/", sort="desc")
        self.assertEqual(export.input_text, '--tag "title" --query "/q/" --sort desc --show-library txt')


if __name__ == "__main__":
    unittest.main()
