"""
Title Similarity Scoring

Scores how alike two transaction titles are, on a 0.0 - 1.0 scale:
- Case, punctuation and spacing differences are ignored
- A title contained in a longer one ("Starbucks" in "Starbucks Coffee")
  keeps most of its score
- Typos and plurals cost one edit each

The score depends only on the titles' lengths and the edit distance between
them, so at a fixed length more edits never score higher, and titles with no
characters in common score exactly 0.

    similarity("Starbucks Coffee", "starbucks")  -> 0.76
    similarity("Starbuks", "Starbucks")          -> ~0.93
    similarity("Netflix", "Starbucks")           -> below 0.01
"""
import re
from functools import lru_cache
from typing import Tuple

from rapidfuzz.distance import Levenshtein

# Score kept by a title fully contained in a much longer one
CONTAINMENT_WEIGHT = 0.4

# How steeply the score falls with edits beyond the length difference
DISTANCE_EXPONENT = 3

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "up", "down", "out", "off", "over", "under", "again",
    "further", "then", "once", "here", "there", "when", "where", "why", "how",
    "all", "any", "both", "each", "few", "more", "most", "other", "some",
    "such", "no", "nor", "not", "only", "own", "same", "so", "than", "too",
    "very", "can", "will", "just", "should", "now",
})


def normalize_title(title: str) -> str:
    """
    Normalize a title for grouping and exact comparison.

    Examples:
        "  Starbucks   Coffee " -> "starbucks coffee"
        "NETFLIX"              -> "netflix"
    """
    if not title:
        return ""
    return " ".join(title.casefold().split())


def _strip_punctuation(normalized: str) -> str:
    # "mcdonald's" -> "mcdonalds", "uber *trip" -> "uber trip"
    without_apostrophes = re.sub(r"['’`]", "", normalized)
    return " ".join(re.sub(r"[^\w\s]", " ", without_apostrophes).split())


def compact_title(title: str) -> str:
    """Title reduced to the characters that are compared: "Uber *Trip" -> "ubertrip"."""
    return _prepare(title)[0]


def extract_keywords(title: str) -> list:
    """Meaningful words of a title: no stop words, longer than two characters."""
    return list(_prepare(title)[1])


@lru_cache(maxsize=4096)
def _prepare(title: str) -> Tuple[str, Tuple[str, ...]]:
    words = _strip_punctuation(normalize_title(title)).split()
    keywords = []
    for word in words:
        if len(word) > 2 and word not in STOP_WORDS and word not in keywords:
            keywords.append(word)
    return "".join(words), tuple(keywords)


def similarity(title1: str, title2: str) -> float:
    """
    Calculate similarity between two transaction titles.

    Edits needed only to pad the shorter title out to the longer one are
    free; every further edit lowers the fit. The fit is then scaled by how
    much of the longer title the shorter one covers.

    Returns:
        float: Similarity score 0.0 to 1.0
    """
    norm1 = normalize_title(title1)
    norm2 = normalize_title(title2)
    if not norm1 or not norm2:
        return 0.0
    if norm1 == norm2:
        return 1.0

    compact1 = compact_title(title1)
    compact2 = compact_title(title2)
    if not compact1 or not compact2:
        return 0.0
    if compact1 == compact2:
        return 1.0

    shorter, longer = sorted((len(compact1), len(compact2)))
    excess = Levenshtein.distance(compact1, compact2) - (longer - shorter)
    # No shared characters means every position of the shorter title is an edit
    if excess >= shorter:
        return 0.0

    fit = (1 - excess / shorter) ** DISTANCE_EXPONENT
    coverage = shorter / longer
    return fit * (CONTAINMENT_WEIGHT + (1 - CONTAINMENT_WEIGHT) * coverage)
