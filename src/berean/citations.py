"""Scripture reference extraction from finished responses."""

import re
from typing import List

# "John 3:16", "Romans 8:28-30", "1 John 4:8", "2Timothy 3:16"
CITATION_PATTERN = re.compile(r"\b(?:[1-3] ?)?[A-Z][a-z]+ +\d+:\d+(?:-\d+)?")


def extract_citations(text: str) -> List[str]:
    """Find scripture-reference-shaped substrings in ``text``.

    This is purely syntactic: no check is made that the book exists or that
    the chapter and verse are in range. Duplicates are dropped, keeping the
    position of the first occurrence.

    Args:
        text: The completed assistant response.

    Returns:
        References in first-occurrence order.
    """
    references: List[str] = []
    seen = set()
    for match in CITATION_PATTERN.finditer(text):
        reference = match.group(0)
        if reference not in seen:
            seen.add(reference)
            references.append(reference)
    return references
