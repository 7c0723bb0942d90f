#!/usr/bin/env python3

from __future__ import (
    annotations,
)

import shlex
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from api.stories_client import StoriesClient
from cli_args import CommandLineArgs
from colored_logger import get_colored_logger, set_log_level, setup_colored_logging
from errors import LibraryError, NotFoundError, UnsupportedOperationError
from io_ops.file_manager import FileManager
from library.context import LibraryContext
from library.index_page import IndexPage
from library.library import Library
from library.loader import load_library
from library.search_entry import SEARCHES_DIR, SearchHistoryEntry
from library.stories_index import StoriesIndex
from library.story_summary import StorySummary
from library_renderer import FORMAT_TAG, export_library
from search.tag_manager import exec_tagging_expression, get_custom_tags, load_custom_tags
from settings import Settings, load_env_files

logger = get_colored_logger(__name__)

EXIT_COMMANDS = ("exit", "quit")
PROMPT = "doc-level> "


@dataclass
class Directories:
    stories: str
    profiles: str
    history: str
    tags: str
    renders: str

    @classmethod
    def resolve(
        cls, cli: CommandLineArgs, settings: Settings, previous: Optional["Directories"] = None
    ) -> "Directories":
        """Command line directories, falling back to those of the previous command, then the settings."""
        return cls(
            stories=cli.stories_dir or (previous.stories if previous else settings.stories_dir),
            profiles=cli.profiles_dir or (previous.profiles if previous else settings.profiles_dir),
            history=cli.history_dir or (previous.history if previous else settings.history_dir),
            tags=cli.tags_dir or (previous.tags if previous else settings.tags_dir),
            renders=cli.renders_dir or (previous.renders if previous else settings.renders_dir),
        )


@dataclass
class RunState:
    """State kept across the commands of one interactive session."""

    context: LibraryContext
    library: Optional[Library] = None
    dirs: Optional[Directories] = None
    cycle: bool = True

    @property
    def settings(self) -> Settings:
        return self.context.settings


def build_context(settings: Settings) -> LibraryContext:
    return LibraryContext.from_settings(settings)


@contextmanager
def _command(name: str) -> Iterator[None]:
    """Log a failed command and let the session continue with the next one."""
    try:
        yield
    except LibraryError as e:
        logger.failure("%s failed: %s", name, e)


def run(argv: Optional[List[str]] = None, state: Optional[RunState] = None) -> RunState:
    """
    Perform the operations requested by one command line.

    Operations run in this order: fetch story summaries, fetch a story text,
    show history, load the library, render it, apply custom tagging. A failing operation is
    logged and the following ones still run.

    Args:
        argv: Command arguments (default: process arguments)
        state: Session state from the previous command, None for the first

    Returns:
        Session state for the next command.
    """
    cli = CommandLineArgs(argv)

    if state is None:
        state = RunState(build_context(Settings(cli.settings)))
    elif cli.settings is not None:
        logger.warning("--settings only applies to the first command; ignoring %s", cli.settings)

    state.cycle = cli.cycle
    state.dirs = dirs = Directories.resolve(cli, state.settings, state.dirs)
    set_log_level(cli.log_level or state.settings.log_level)

    for directory in (dirs.stories, dirs.profiles, str(Path(dirs.history) / SEARCHES_DIR), dirs.tags):
        FileManager.ensure_dir_exists(Path(directory))

    if cli.fetch_stories_index is not None:
        with _command("fetch stories"):
            index = state.context.indexes.get(cli.fetch_stories_index)
            _fetch_stories(state, index, cli.page, cli.fetch_stories_max)

    if cli.story is not None:
        with _command("fetch story"):
            index = state.context.indexes.get(cli.index)
            _fetch_story(state, index, cli.page, cli.story)

    if not cli.has_command:
        _show_index_pages(FileManager.list_index_pages(dirs.stories))

    if cli.show_history is not None:
        _show_history(dirs.history, cli.show_history)

    if cli.show_library is not None or cli.custom_tag is not None:
        if cli.reload or state.library is None:
            _load_library(state)
        else:
            logger.notice("use existing library from memory; pass --reload to read it again")

    if cli.show_library is not None:
        with _command("show library"):
            _show_library(state, cli)

    if cli.custom_tag is not None:
        with _command("custom tag"):
            for result in exec_tagging_expression(state.library, cli.custom_tag):
                logger.success("%s", result)

    return state


def _fetch_stories(state: RunState, index: StoriesIndex, start_page: int, stories_max: int) -> Dict[int, List[StorySummary]]:
    """
    Fetch story summaries page by page from start_page until stories_max
    stories are saved or the last page of the index is reached.

    Raises:
        PageNumberError: If start_page is out of the index bounds.
    """
    index.assert_page_number_is_valid(start_page)
    client = StoriesClient.from_settings(state.settings)

    paged_stories: Dict[int, List[StorySummary]] = {}
    story_count = 0
    page_number = start_page
    while story_count < stories_max and page_number <= index.page_number_max:
        stories = client.fetch_story_summaries(index, page_number)
        if not stories:
            logger.warning("no stories fetched from %s page %d; stop fetch", index.name, page_number)
            break

        stories = stories[: stories_max - story_count]
        FileManager.save_index_page(state.dirs.stories, index.name, page_number, stories)
        paged_stories[page_number] = stories
        story_count += len(stories)
        page_number += 1

    logger.success("fetched %d stories in %d pages from %s", story_count, len(paged_stories), index.name)
    return paged_stories


def _fetch_story(state: RunState, index: StoriesIndex, page_number: int, story_id: str) -> List[str]:
    """
    Load the full text of a story listed on a saved index page, downloading
    and saving it first if no local text exists.

    Raises:
        PageNumberError: If page_number is out of the index bounds.
        NotFoundError: If the page is not saved or does not list the story.
        UnsupportedOperationError: If the story cannot be downloaded from its index.
    """
    index.assert_page_number_is_valid(page_number)
    page_path = FileManager.index_page_path(state.dirs.stories, index.name, page_number)
    if not Path(page_path).is_file():
        raise NotFoundError(f"{index.name} page {page_number} is not saved; fetch it with --fetch-stories-index")

    story = FileManager.find_story(IndexPage(index.name, page_number, page_path), story_id)
    if story is None:
        raise NotFoundError(f"story {story_id} is not listed on {index.name} page {page_number}")

    text_path = FileManager.story_text_path(state.dirs.stories, index.name, story)
    if Path(text_path).is_file():
        logger.info("local full text exists at %s; load from local instead of download", text_path)
        paragraphs = FileManager.load_story_text(text_path)
    else:
        if not story.url:
            raise UnsupportedOperationError(f"story {story.id} of {index.name} has no url to download")

        client = StoriesClient.from_settings(state.settings)
        webpage_path = FileManager.story_webpage_path(
            state.dirs.stories, index.name, page_number, story, index.story_file_ext
        )
        paragraphs = client.fetch_story_text(index, story, webpage_path)
        if paragraphs is None:
            raise NotFoundError(f"failed to download story {story.id} from {story.url}")
        FileManager.save_story_text(text_path, paragraphs)

    print(f"story={story.id} paragraph-count={len(paragraphs)} at {text_path}")
    return paragraphs


def _show_index_pages(index_pages) -> None:
    lines = []
    for index_name, pages in index_pages.items():
        lines.append(f"[{index_name}]")
        lines.extend(f"  [{page_number}] {page.file_path}" for page_number, page in pages.items())
        lines.append("")
    print("\n".join(lines) if lines else "no stories saved yet; fetch some with --fetch-stories-index")


def _show_history(history_dir: str, count: int) -> None:
    entries = FileManager.load_search_history(history_dir, count)
    print(f"Library search history: show latest {count}")
    for entry in entries:
        print(
            f"[{entry.search_number}] @{entry.search_date.isoformat()} x{len(entry.result_book_refs)}\n"
            f"\t(({entry.input}))\n"
            f"\t[{entry.render_file_path}]"
        )


def _load_library(state: RunState) -> None:
    """(Re)load the library from the filesystem, keeping custom tags across the reload."""
    if state.library is not None:
        _save_custom_tags(state)
        state.context.graph.clear()

    logger.info("load library from filesystem")
    index_pages = FileManager.list_index_pages(state.dirs.stories)
    state.library = load_library(
        state.context,
        [page for pages in index_pages.values() for page in pages.values()],
        state.dirs.profiles,
    )

    records = FileManager.load_custom_tags(state.dirs.tags)
    if records is not None:
        load_custom_tags(state.library, records)


def render_file_name(cli: CommandLineArgs) -> str:
    name = "library"
    if cli.tag is not None:
        name += f"_t={cli.tag}"
    if cli.query is not None:
        name += f"_q={cli.query}"
    if cli.search_expr is not None:
        name += "_search-expr=" + cli.search_expr.replace("==", "=").replace("'", "")
    name += "_tags.txt" if cli.show_library == FORMAT_TAG else f".{cli.show_library}"
    return FileManager.file_string(name)


def _show_library(state: RunState, cli: CommandLineArgs) -> None:
    logger.info("show library in format=%s", cli.show_library)

    export = export_library(
        state.library, cli.show_library, cli.tag, cli.query, cli.search_expr, cli.sort
    )
    render_path = Path(state.dirs.renders) / render_file_name(cli)
    FileManager.write_chunks(render_path, export)
    print(f"view library at {render_path}")

    if cli.show_library == FORMAT_TAG:
        return

    entry = SearchHistoryEntry(
        search_date=datetime.now(timezone.utc),
        search_number=FileManager.next_search_number(state.dirs.history),
        input=export.input_text,
        render_file_path=str(render_path),
        result_book_refs=tuple(export.book_refs),
    )
    entry_path = FileManager.save_search_entry(state.dirs.history, entry)
    print(
        f"added entry with {len(entry.result_book_refs)} book references "
        f"to library search history at {entry_path}"
    )


def _save_custom_tags(state: RunState) -> None:
    if state.library is None or state.dirs is None:
        return
    FileManager.save_custom_tags(state.dirs.tags, get_custom_tags(state.library))


def main() -> None:
    """
    Run the process arguments, then prompt for more commands until
    EOF or ``exit``. Custom tags are saved when the session ends.
    """
    load_env_files()
    setup_colored_logging()

    state = run(sys.argv[1:])
    while state.cycle:
        try:
            line = input(PROMPT)
        except EOFError:
            break

        if line.strip() in EXIT_COMMANDS:
            break

        try:
            argv = shlex.split(line)
        except ValueError as e:
            logger.error("invalid command line: %s", e)
            continue

        try:
            state = run(argv, state)
        except SystemExit:
            # argparse already printed the usage error
            continue

    _save_custom_tags(state)
    logger.info("end of session")


if __name__ == "__main__":
    main()
