from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

SIMILARITY_NOISE_WORDS = (
    "track",
    "trail",
    "walk",
    "walking",
    "scenic",
    "reserve",
    "tramping",
    "hike",
    "hiking",
)
SEARCH_NOISE_WORDS = SIMILARITY_NOISE_WORDS + ("great", "short", "loop", "circuit")
SEARCH_KEYWORD = "hike"
FIRST_TOKEN_BONUS = 0.2

WHITESPACE = re.compile(r"\s+")


def _noise_pattern(words: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


SIMILARITY_NOISE = _noise_pattern(SIMILARITY_NOISE_WORDS)
SEARCH_NOISE = _noise_pattern(SEARCH_NOISE_WORDS)


@dataclass
class NormalizedName:
    text: str
    tokens: list[str]


def strip_noise(text: str, pattern: re.Pattern[str] = SIMILARITY_NOISE) -> str:
    return WHITESPACE.sub(" ", pattern.sub("", text)).strip()


def normalize_name(name: str) -> NormalizedName:
    """Lower-case a name and split it into its meaningful tokens.

    Falls back to the untouched words when every token is a noise word, so
    "Track" still compares as ["track"] rather than as nothing.
    """
    text = name.lower().strip()
    tokens = strip_noise(text).split()
    if not tokens:
        tokens = text.split()
    return NormalizedName(text=text, tokens=tokens)


def normalize_for_search(name: str) -> str:
    cleaned = strip_noise(name.lower(), SEARCH_NOISE)
    if not cleaned:
        return name
    return f"{cleaned} {SEARCH_KEYWORD}"


def _tokens_match(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def _hits(tokens: list[str], others: list[str]) -> int:
    return sum(1 for token in tokens if any(_tokens_match(token, other) for other in others))


def similarity(name_a: str, name_b: str) -> float:
    """Token-overlap similarity between two place names, in [0, 1]."""
    left = normalize_name(name_a)
    right = normalize_name(name_b)
    if left.text == right.text:
        return 1.0

    longest = max(len(left.tokens), len(right.tokens))
    if longest == 0:
        return 0.0
    # symmetric: the smaller of the two directional match counts
    hits = min(_hits(left.tokens, right.tokens), _hits(right.tokens, left.tokens))
    score = hits / longest

    if left.tokens and right.tokens and _tokens_match(left.tokens[0], right.tokens[0]):
        return min(1.0, score + FIRST_TOKEN_BONUS)
    return score
