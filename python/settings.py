import json
import logging
import os
import sys
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _load_env_file(env_path: str) -> None:
    """
    Simple .env file parser that doesn't require external dependencies.
    Loads key=value pairs from .env file into os.environ.
    """
    if not os.path.isfile(env_path):
        return

    try:
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith("#"):
                    continue

                if "=" in line:
                    key, value = line.split("=", 1)  # Split on first = only
                    key = key.strip()
                    value = value.strip()

                    # Remove quotes if present
                    if (value.startswith('"') and value.endswith('"')) or (
                        value.startswith("'") and value.endswith("'")
                    ):
                        value = value[1:-1]

                    # .env file takes precedence over system environment variables
                    if key:
                        os.environ[key] = value

        logger.info(".env file loaded successfully (built-in parser)")

    except OSError as e:
        logger.warning("Failed to load .env file: %s", e)


def load_env_files(paths=(".env", "../.env")) -> Optional[str]:
    """Load the first .env file found; returns its path."""
    for env_path in paths:
        if os.path.isfile(env_path):
            _load_env_file(env_path)
            return env_path
    return None


# Environment variables overriding settings.json
ENV_STORIES_DIR = "DOC_LEVEL_STORIES_DIR"
ENV_PROFILES_DIR = "DOC_LEVEL_PROFILES_DIR"
ENV_LOG_LEVEL = "DOC_LEVEL_LOG_LEVEL"


class Settings:
    """
    Manages loading of settings from a JSON file (by default none: built-in defaults).

    Directories, search bounds and tag naming limits can be overridden per run
    by command line options, which main applies on top of these values.
    """

    def __init__(self, settings_file: Optional[str] = None) -> None:
        """
        Loads settings from the specified file, then populates instance variables.
        Exits the program if a file is given but missing or invalid.

        :param settings_file: The path to `settings.json`. Defaults to no file.
        """
        self.raw: Dict[str, Any] = {}

        if settings_file is not None:
            if not os.path.isfile(settings_file):
                logger.critical(
                    "settings.json not found at '%s'. Exiting...", settings_file
                )
                sys.exit(1)

            self.raw = self._load_json(settings_file)
            if not isinstance(self.raw, dict):
                logger.critical("settings.json appears to be empty or invalid. Exiting...")
                sys.exit(1)

        # Storage locations
        self.stories_dir: str = os.environ.get(
            ENV_STORIES_DIR, self.raw.get("stories_dir", os.path.join("data", "stories"))
        )
        self.profiles_dir: str = os.environ.get(
            ENV_PROFILES_DIR, self.raw.get("profiles_dir", os.path.join("data", "profiles"))
        )
        self.history_dir: str = self.raw.get("history_dir", os.path.join("data", "history"))
        self.tags_dir: str = self.raw.get("tags_dir", os.path.join("data", "tags"))
        self.renders_dir: str = self.raw.get("renders_dir", os.path.join("data", "renders"))

        self.log_level: str = os.environ.get(ENV_LOG_LEVEL, self.raw.get("log_level", "info"))

        # Search bounds
        search_settings = self.raw.get("search", {})
        self.search_tags_max: int = search_settings.get("tags_max", 1000)
        self.search_tag_books_max: int = search_settings.get("tag_books_max", 10000)

        # Tag naming
        tag_settings = self.raw.get("tags", {})
        self.tag_lineage_name_parts_max: int = tag_settings.get("lineage_name_parts_max", 4)
        self.tag_text_len_max: int = tag_settings.get("text_len_max", 16)
        self.tag_text_word_len_min: int = tag_settings.get("text_word_len_min", 4)

        # Performance settings
        performance_settings = self.raw.get("performance", {})
        self.cache_ttl_seconds: int = performance_settings.get("cache_ttl_seconds", 300)
        self.max_cache_entries: int = performance_settings.get(
            "max_cache_entries", 1000
        )
        self.rate_limit_requests_per_minute: int = performance_settings.get(
            "rate_limit_requests_per_minute", 30
        )

        self.load_workers: int = self.raw.get("load_workers", 4)

        if settings_file is not None:
            logger.info("Settings loaded from '%s'.", settings_file)

    def _load_json(self, path: str) -> Any:
        """
        Loads JSON from the given file path.

        :param path: The path to the JSON file.
        :return: The parsed JSON (dictionary or list) if valid, otherwise None.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.error("Error loading JSON file '%s': %s", path, e)
            return None
