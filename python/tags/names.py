import re
from datetime import date, datetime
from typing import Optional, Pattern, Union

from colored_logger import get_colored_logger
from errors import MalformedExpressionError

logger = get_colored_logger(__name__)

# Free text longer than this is compressed before becoming a tag name
TAG_TEXT_LEN_MAX = 16
# Words of this length or shorter are dropped from compressed tag names
TAG_TEXT_WORD_LEN_MIN = 4
# Prefix of an ISO timestamp used for date tags
TAG_DATE_PRECISION = len("yyyy-mm-dd")
# Generations included in a lineage name
TAG_LINEAGE_NAME_PARTS_MAX = 4

_WORD_PATTERN = re.compile(r"[^\W_]+")

SearchPattern = Union[str, Pattern[str]]


def text_tag_name(
    text: str,
    len_max: int = TAG_TEXT_LEN_MAX,
    word_len_min: int = TAG_TEXT_WORD_LEN_MIN,
) -> str:
    """
    Convert free text (titles, author names) to a compressed tag name.

    Text longer than ``len_max`` is lower-cased, split on anything that is not a
    letter or digit, stripped of words not longer than ``word_len_min``, and
    rejoined with spaces. Shorter text is used as is.
    """
    if len(text) <= len_max:
        return text

    words = [w for w in _WORD_PATTERN.findall(text.lower()) if len(w) > word_len_min]
    name = " ".join(words)
    if not name:
        # every word was short; keep the text rather than an empty tag
        name = text.lower().strip()

    logger.trace("compressed text %r to tag name %r", text, name)
    return name


def date_tag_name(value: Union[date, datetime, str]) -> str:
    """Tag name for a date value: ``YYYY-MM-DD``."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:TAG_DATE_PRECISION]
    return str(value)[:TAG_DATE_PRECISION]


def compile_pattern(text: Optional[str], ignore_case: bool = True) -> Optional[SearchPattern]:
    """
    Convert query text to a search pattern.

    ``/expr/`` becomes a compiled regular expression (case-insensitive by
    default); any other text stays a literal substring.

    Raises:
        re.error: If the regular expression is invalid.
    """
    if text is None:
        return None

    if len(text) >= 2 and text.startswith("/") and text.endswith("/"):
        return re.compile(text[1:-1], re.IGNORECASE if ignore_case else 0)

    return text


def compile_query(text: str) -> SearchPattern:
    """
    Like compile_pattern, for query text typed by a user.

    Raises:
        MalformedExpressionError: If the regular expression is invalid.
    """
    try:
        return compile_pattern(text)
    except re.error as e:
        raise MalformedExpressionError(f"invalid query pattern {text!r}: {e}") from e


def format_pattern(pattern: Optional[SearchPattern]) -> Optional[str]:
    """Inverse of compile_pattern, without flags."""
    if pattern is None:
        return None
    if isinstance(pattern, str):
        return pattern
    return f"/{pattern.pattern}/"


def pattern_matches(name: str, pattern: Optional[SearchPattern]) -> bool:
    """Whether a node name matches a search pattern; no pattern matches everything."""
    if pattern is None:
        return True
    if isinstance(pattern, str):
        return pattern in name
    return pattern.search(name) is not None


def lineage_name(
    tag,
    delim: str = ".",
    trunc_prefix: str = "...",
    parts_max: int = TAG_LINEAGE_NAME_PARTS_MAX,
) -> str:
    """
    Dot-joined ancestor chain of a tag, e.g. ``story.title.some title``.

    At most ``parts_max`` generations are included; when older ancestors exist
    the name starts with ``trunc_prefix``.
    """
    generations = [tag.name]
    parent = tag

    while len(generations) < parts_max:
        next_parent = parent.first_parent()
        if next_parent is None:
            break
        parent = next_parent
        generations.insert(0, parent.name)

    if len(generations) >= parts_max and parent.first_parent() is not None:
        generations.insert(0, trunc_prefix)

    return delim.join(generations)
