"""
Extract `@student@school.edu`-style mentions from notification text.
"""

from __future__ import annotations

import re

# A marker "@" immediately followed by a complete email address.
MENTION_RE = re.compile(r"@([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")


def extract_mentions(text: object) -> list[str]:
    """
    Return mentioned email addresses in first-occurrence order, without duplicates.

    Case is preserved; callers normalize. Anything that is not a non-empty
    string yields an empty list.
    """
    if not isinstance(text, str) or not text:
        return []
    return list(dict.fromkeys(m.group(1) for m in MENTION_RE.finditer(text)))
