"""Extraction of ``[[Title]]`` wiki-links from note content."""
import logging
import re
from typing import Optional, Set

logger = logging.getLogger(__name__)

# Two opening brackets, one or more non-"]" characters, two closing brackets
WIKI_LINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")


def extract_wiki_links(content: Optional[str]) -> Set[str]:
    """Return the set of note titles referenced by wiki-links in ``content``.

    Targets are trimmed and empty targets are dropped. Whether a title names
    an existing note is not checked here.

    Examples:
        >>> sorted(extract_wiki_links("[[A]] and [[ B ]] and [[A]]"))
        ['A', 'B']
        >>> extract_wiki_links("[[unterminated")
        set()
    """
    if not content:
        return set()

    links = set()
    for match in WIKI_LINK_PATTERN.finditer(content):
        title = match.group(1).strip()
        if title:
            links.add(title)

    logger.debug(f"Extracted {len(links)} wiki-links")
    return links
