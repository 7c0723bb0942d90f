from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import requests

from colored_logger import get_colored_logger
from core import Cache, RateLimiter
from io_ops.file_manager import FileManager
from library.stories_index import StoriesIndex
from library.story_summary import StorySummary

logger = get_colored_logger(__name__)


class StoriesClient:
    """Fetches stories index pages and story texts over HTTP."""

    USER_AGENT = "doc-level/1.0 (story library)"
    TIMEOUT_SECONDS = 30

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[Cache] = None,
    ):
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=30, window_seconds=60
        )
        self.cache = cache or Cache(ttl_seconds=300, max_entries=1000)

    @classmethod
    def from_settings(cls, settings) -> "StoriesClient":
        return cls(
            rate_limiter=RateLimiter(
                max_requests=settings.rate_limit_requests_per_minute, window_seconds=60
            ),
            cache=Cache(
                ttl_seconds=settings.cache_ttl_seconds,
                max_entries=settings.max_cache_entries,
            ),
        )

    def download_text(
        self, url: str, headers: Optional[Dict[str, str]] = None, use_cache: bool = True
    ) -> Optional[str]:
        """
        Download the text content of a url.

        Returns:
            The content, or None if the request failed.
        """
        if not url:
            return None

        if use_cache:
            cached = self.cache.get(url)
            if cached is not None:
                logger.debug("Using cached page for %s", url)
                return cached

        self.rate_limiter.wait_if_needed(urlparse(url).hostname or "")

        request_headers = {"User-Agent": self.USER_AGENT}
        request_headers.update(headers or {})

        try:
            logger.debug("Downloading %s", url)
            response = requests.get(url, headers=request_headers, timeout=self.TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Failed to download %s: %s", url, e)
            return None

        text = response.text
        if use_cache:
            self.cache.set(url, text)
        return text

    def fetch_story_summaries(self, index: StoriesIndex, page_number: int) -> Optional[List[StorySummary]]:
        """
        Fetch and parse one listing page of a stories index.

        Pages of indexes whose listings change over time are never cached.

        Raises:
            PageNumberError: If the page number is out of the index bounds.
        """
        url = index.get_page_url(page_number)
        content = self.download_text(
            url, headers=index.page_request_headers, use_cache=not index.is_page_dynamic
        )
        if content is None:
            return None

        stories = list(index.get_story_summaries(content))
        logger.info("fetched %d stories from %s page %d", len(stories), index.name, page_number)
        return stories

    def fetch_story_text(
        self, index: StoriesIndex, story: StorySummary, webpage_path: Optional[str] = None
    ) -> Optional[List[str]]:
        """
        Fetch the paragraphs of a story, or None if the request failed.

        Args:
            index: Stories index that parses the story page
            story: Story to fetch, from a saved index page
            webpage_path: Where to also save the downloaded story page

        Raises:
            UnsupportedOperationError: If the index has no story pages.
        """
        content = self.download_text(story.url, use_cache=False)
        if content is None:
            return None

        paragraphs = list(index.get_story_text(content))
        if webpage_path is not None:
            FileManager.write_to_file(Path(webpage_path), content)
            logger.debug("saved story page to %s", webpage_path)

        logger.info("fetched story=%s paragraph-count=%d from %s", story.id, len(paragraphs), index.name)
        return paragraphs
