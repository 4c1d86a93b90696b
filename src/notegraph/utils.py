"""Utility functions for NoteGraph."""


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for use with ``ESCAPE '\\'``

    Example:
        >>> escape_like_pattern("100% done")
        '100\\\\% done'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def excerpt(text: str, max_words: int, ellipsis: str = "...") -> str:
    """Return the first ``max_words`` whitespace-separated words of ``text``.

    Appends ``ellipsis`` when words were cut off.
    """
    words = text.split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + ellipsis
