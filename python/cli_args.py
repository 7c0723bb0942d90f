import argparse
from typing import List, Optional

from colored_logger import LEVEL_NAMES, get_colored_logger
from library_renderer import EXPORT_FORMATS
from search.search_engine import SORT_CHOICES

logger = get_colored_logger(__name__)

DEFAULT_HISTORY_COUNT = 10
DEFAULT_FETCH_STORIES_MAX = 10


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc-level",
        description="Browse, search and tag a library of stories and their text profiles.",
    )

    parser.add_argument(
        "--log-level",
        "-l",
        choices=list(LEVEL_NAMES),
        default=None,
        help="Log level (default: log_level setting).",
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        help="Path to a settings.json file.",
    )

    # storage locations override settings
    parser.add_argument("--stories-dir", "-d", type=str, default=None, help="Directory of story index pages.")
    parser.add_argument("--profiles-dir", "-D", type=str, default=None, help="Directory of story profiles.")
    parser.add_argument("--history-dir", type=str, default=None, help="Directory of library search history.")
    parser.add_argument("--tags-dir", type=str, default=None, help="Directory of saved custom tags.")
    parser.add_argument("--renders-dir", type=str, default=None, help="Directory of library renders.")

    parser.add_argument(
        "--show-library",
        "-L",
        choices=EXPORT_FORMATS,
        default=None,
        help="Render the library (or a search of it) to a file in the given format.",
    )
    parser.add_argument("--tag", "-t", type=str, default=None, help="Start tag of a library search.")
    parser.add_argument(
        "--query",
        "-q",
        type=str,
        default=None,
        help="Tag name query of a library search, as text or /regex/.",
    )
    parser.add_argument(
        "--search-expr",
        "-e",
        type=str,
        default=None,
        help="Library search expression, e.g. \"t=='title' ^ q=='/foo/'\". Replaces --tag and --query.",
    )
    parser.add_argument("--sort", choices=SORT_CHOICES, default=None, help="Sort order of library search results.")
    parser.add_argument(
        "--custom-tag",
        "-T",
        type=str,
        default=None,
        help="Custom tagging expression, e.g. \"add(t('x')); connect(t('x'), s('local').id('1'))\".",
    )
    parser.add_argument(
        "--show-history",
        "-H",
        type=int,
        nargs="?",
        const=DEFAULT_HISTORY_COUNT,
        default=None,
        help=f"Show the latest N library searches (default: {DEFAULT_HISTORY_COUNT}).",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload the library from the filesystem instead of reusing the one in memory.",
    )

    parser.add_argument(
        "--fetch-stories-index",
        "-f",
        type=str,
        default=None,
        help="Fetch story summaries from a registered stories index.",
    )
    parser.add_argument("--page", "-p", type=int, default=1, help="Stories index page number (default: 1).")
    parser.add_argument(
        "--fetch-stories-max",
        "-m",
        type=int,
        default=DEFAULT_FETCH_STORIES_MAX,
        help=f"Max number of stories to fetch (default: {DEFAULT_FETCH_STORIES_MAX}).",
    )
    parser.add_argument(
        "--story",
        "-s",
        type=str,
        default=None,
        help="Fetch the full text of a story listed on a saved index page, given by --index and --page.",
    )
    parser.add_argument("--index", "-i", type=str, default=None, help="Stories index of --story.")
    parser.add_argument(
        "--no-cycle",
        action="store_true",
        help="Run once instead of prompting for more commands.",
    )

    return parser


class CommandLineArgs:
    """
    Parses the options of one command: the process arguments or one line of the interactive loop.
    """

    def __init__(self, argv: Optional[List[str]] = None) -> None:
        self.parser = build_parser()
        self.args = self.parser.parse_args(argv)

        self.log_level: Optional[str] = self.args.log_level
        self.settings: Optional[str] = self.args.settings

        self.stories_dir: Optional[str] = self.args.stories_dir
        self.profiles_dir: Optional[str] = self.args.profiles_dir
        self.history_dir: Optional[str] = self.args.history_dir
        self.tags_dir: Optional[str] = self.args.tags_dir
        self.renders_dir: Optional[str] = self.args.renders_dir

        self.show_library: Optional[str] = self.args.show_library
        self.tag: Optional[str] = self.args.tag
        self.query: Optional[str] = self.args.query
        self.search_expr: Optional[str] = self.args.search_expr
        self.sort: Optional[str] = self.args.sort
        self.custom_tag: Optional[str] = self.args.custom_tag
        self.show_history: Optional[int] = self.args.show_history
        self.reload: bool = self.args.reload

        self.fetch_stories_index: Optional[str] = self.args.fetch_stories_index
        self.page: int = self.args.page
        self.fetch_stories_max: int = self.args.fetch_stories_max
        self.story: Optional[str] = self.args.story
        self.index: Optional[str] = self.args.index
        self.cycle: bool = not self.args.no_cycle

        if self.story is not None and self.index is None:
            self.parser.error("--story requires --index")

        if self.search_expr is not None and (self.tag is not None or self.query is not None):
            logger.warning("--search-expr replaces --tag and --query; ignoring them")

        logger.debug("parsed command line args: %s", vars(self.args))

    @property
    def has_command(self) -> bool:
        """Whether any operation beyond listing the stored index pages was requested."""
        return any(
            value is not None
            for value in (
                self.show_library,
                self.custom_tag,
                self.show_history,
                self.fetch_stories_index,
                self.story,
            )
        )
