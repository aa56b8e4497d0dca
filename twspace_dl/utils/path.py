"""
Utilities for handling file paths, filename templates, and URL parsing.
"""

import re
from pathlib import Path
from typing import Mapping, Optional

from pathvalidate import sanitize_filename

_SPACE_URL_REGEX = re.compile(r"spaces/(?P<id>\w+)")
_SPACE_LINK_REGEX = re.compile(r"https://twitter\.com/i/spaces/\w+")
_PLACEHOLDER_REGEX = re.compile(r"%\{(\w*)\}")


def parse_space_url(url: str) -> Optional[str]:
    """Extracts the Space id from a Space URL."""
    match = _SPACE_URL_REGEX.search(url)
    return match.group("id") if match else None


def find_space_urls(text: str) -> list[str]:
    """Returns every Space link found in `text`, without duplicates, in order."""
    return list(dict.fromkeys(_SPACE_LINK_REGEX.findall(text)))


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


class FilenameFormatter:
    """
    Formats a filename template containing `%{field}` placeholders.

    Unknown placeholders resolve to an empty string. Substituted values are
    sanitized so they are safe to use in a filename.
    """

    def __init__(self, template: str) -> None:
        self.template = template

    def format(self, variables: Mapping[str, str]) -> str:
        def replacer(match: re.Match) -> str:
            value = variables.get(match.group(1), "")
            return sanitize_filename(str(value), platform="auto")

        return _PLACEHOLDER_REGEX.sub(replacer, self.template)
