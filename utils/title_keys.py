"""
Title helpers used by source policies.
Groups editions of the same game and recognizes titles that need special handling.
"""

import re
from typing import List

MYSTERY_TITLE = "Mystery Game"

_MYSTERY_PATTERNS = [
    re.compile(r"\bmystery\s+game\b", re.IGNORECASE),
    re.compile(r"\bgioco\s+misterioso\b", re.IGNORECASE),
]


def normalize_title_key(title: str) -> str:
    """
    Normalize a title so that editions/variants of one game share a key.

    Args:
        title: Raw product title

    Returns:
        Lower-cased title without bracketed parts, separators or repeated spaces
    """
    t = (title or "").lower()

    # Bracketed parts are usually edition tags
    t = re.sub(r"\(.*?\)", " ", t)
    t = re.sub(r"\[.*?\]", " ", t)

    t = re.sub(r"[:\-–—|•·]", " ", t)
    t = re.sub(r"\s+", " ", t).strip()

    return t


def is_mystery_title(title: str) -> bool:
    """Epic hides some upcoming giveaways behind a placeholder title."""
    if not title:
        return False
    return any(p.search(title) for p in _MYSTERY_PATTERNS)


def matches_keywords(title: str, keywords: List[str], min_token_len: int = 4) -> bool:
    """
    Keyword matcher for the strict AAA filter.

    Long keywords match as substrings. Short tokens (3 alphanumerics, e.g. "gta")
    need a word-boundary match; anything shorter ("ea") is ignored.
    An empty keyword list matches everything.
    """
    if not keywords:
        return True
    t = (title or "").lower()

    for raw in keywords:
        kw = raw.lower().strip()
        if not kw:
            continue
        compact = re.sub(r"\s+", "", kw)

        if len(compact) <= 3:
            if not re.fullmatch(r"[a-z0-9]{3}", compact):
                continue
            if len(compact) < min_token_len:
                if re.search(rf"\b{re.escape(compact)}\b", t):
                    return True
                continue

        if kw in t:
            return True

    return False
