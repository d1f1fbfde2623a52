"""
Splitting of comma-separated rule strings (pattern lists, header rules).

A backslash escapes the separator (``\\,`` is a literal comma) and itself
(``\\\\``). Escaped sequences are swapped for private-use placeholders
before splitting and restored afterwards, so an escaped backslash in front
of a comma never gets read as an escaped comma.
"""

from typing import List

ESCAPED_BACKSLASH = "\ue000"
ESCAPED_SEPARATOR = "\ue001"


def split_unescaped(raw: str, separator: str = ",") -> List[str]:
    """Split ``raw`` on unescaped separators into trimmed, non-empty entries.

    ``\\\\`` is restored in its escaped form so later stages (wildcard
    compilation, header value unescaping) still see it; an escaped
    separator is restored as the bare separator.
    """
    if not raw or not raw.strip():
        return []

    protected = raw.replace("\\\\", ESCAPED_BACKSLASH).replace(
        "\\" + separator, ESCAPED_SEPARATOR
    )

    entries = []
    for part in protected.split(separator):
        part = part.replace(ESCAPED_SEPARATOR, separator)
        part = part.replace(ESCAPED_BACKSLASH, "\\\\").strip()
        if part:
            entries.append(part)
    return entries
