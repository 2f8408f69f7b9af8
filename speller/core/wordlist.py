"""
Word hygiene for curated lists.

Normalizes pasted text into clean, lowercase candidate words before they are
added to a learner's curated list.
"""

from __future__ import annotations

import re

STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "from", "your", "you",
    "are", "was", "were", "has", "have", "had", "not", "but",
})

MIN_WORD_LENGTH = 3
MAX_WORD_LENGTH = 14

_TOKEN_RE = re.compile(r"[A-Za-z][A-Za-z'-]*")
_STRIP_RE = re.compile(r"[^a-z'-]")
_EDGE_PUNCT_RE = re.compile(r"^['-]+|['-]+$")
# letters, with single apostrophes/hyphens only between letters
_VALID_RE = re.compile(r"^[a-z](?:[a-z]|['-](?=[a-z]))*[a-z]$")


def is_valid_word_length(word: str) -> bool:
    return MIN_WORD_LENGTH <= len(word) <= MAX_WORD_LENGTH


def normalize_word(raw: str) -> str:
    """Lowercase and strip a token; returns "" when nothing usable remains."""
    if not raw:
        return ""
    cleaned = _STRIP_RE.sub("", raw.strip().lower())
    cleaned = _EDGE_PUNCT_RE.sub("", cleaned)
    if not cleaned or not _VALID_RE.match(cleaned):
        return ""
    return cleaned


def extract_candidates_from_text(text: str) -> list[str]:
    """Pull unique, valid, non-stop-word candidates out of free text, in order."""
    if not text:
        return []

    seen: set[str] = set()
    candidates: list[str] = []
    for token in _TOKEN_RE.findall(text):
        word = normalize_word(token)
        if not word or not is_valid_word_length(word):
            continue
        if word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        candidates.append(word)
    return candidates
