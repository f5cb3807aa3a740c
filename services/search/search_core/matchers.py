from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from rapidfuzz.distance import Levenshtein

from .classifier import QueryMode
from .config import CONFIG, SearchConfig
from .normalize import require_wellformed


class MatchType(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    SUBSTRING = "substring"
    ACRONYM = "acronym"
    TRIGRAM = "trigram"
    EDIT_DISTANCE = "edit_distance"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]


_PRIORITY = {
    MatchType.EXACT: 6,
    MatchType.PREFIX: 5,
    MatchType.SUBSTRING: 4,
    MatchType.ACRONYM: 3,
    MatchType.TRIGRAM: 2,
    MatchType.EDIT_DISTANCE: 1,
}

LITERAL_MATCH_TYPES = (MatchType.EXACT, MatchType.PREFIX, MatchType.SUBSTRING)


@dataclass(frozen=True, slots=True)
class Verdict:
    match_type: MatchType
    score: float


# (normalized query, normalized field, trigram threshold, config) -> verdict or None
Matcher = Callable[[str, str, float, SearchConfig], "Verdict | None"]

_RUN_RE = re.compile(r"[^\W\d_]+|\d+")
_WORD_RE = re.compile(r"[^\W_]+")


def match_exact(query: str, name: str, threshold: float = 0.0, config: SearchConfig = CONFIG) -> Verdict | None:
    if query == name:
        return Verdict(MatchType.EXACT, config.exact_score)
    return None


def match_prefix(query: str, name: str, threshold: float = 0.0, config: SearchConfig = CONFIG) -> Verdict | None:
    if name != query and name.startswith(query):
        return Verdict(MatchType.PREFIX, config.prefix_score)
    return None


def match_substring(query: str, name: str, threshold: float = 0.0, config: SearchConfig = CONFIG) -> Verdict | None:
    if query in name and not name.startswith(query):
        return Verdict(MatchType.SUBSTRING, config.substring_score)
    return None


def tokenize(text: str) -> list[str]:
    """Split on separators, then split each piece into letter runs and digit runs."""
    return _RUN_RE.findall(text)


def acronym_of(name: str) -> str:
    # "product-1" -> ["product", "1"] -> "p1"; numbers are kept whole.
    return "".join(tok if tok.isdigit() else tok[0] for tok in tokenize(name))


def match_acronym(query: str, name: str, threshold: float = 0.0, config: SearchConfig = CONFIG) -> Verdict | None:
    require_wellformed(query)
    require_wellformed(name)
    compact = "".join(tokenize(query))
    acronym = acronym_of(name)
    if compact and acronym and acronym.startswith(compact):
        return Verdict(MatchType.ACRONYM, config.acronym_score)
    return None


def trigrams(text: str) -> Counter[str]:
    """Multiset of padded 3-grams per word, the way pg_trgm pads ("  w" ... "d ")."""
    grams: Counter[str] = Counter()
    for word in _WORD_RE.findall(text):
        padded = f"  {word} "
        grams.update(padded[i : i + 3] for i in range(len(padded) - 2))
    return grams


def trigram_similarity(a: str, b: str) -> float:
    left, right = trigrams(a), trigrams(b)
    union = sum((left | right).values())
    if union == 0:
        return 0.0
    return sum((left & right).values()) / union


def match_trigram(query: str, name: str, threshold: float, config: SearchConfig = CONFIG) -> Verdict | None:
    require_wellformed(query)
    require_wellformed(name)
    score = trigram_similarity(query, name)
    if score > 0.0 and score >= threshold:
        return Verdict(MatchType.TRIGRAM, score)
    return None


def match_edit_distance(
    query: str, name: str, threshold: float = 0.0, config: SearchConfig = CONFIG
) -> Verdict | None:
    require_wellformed(query)
    require_wellformed(name)
    # 1 - d / max(len(query), len(name)); 0.0 below the cutoff
    score = Levenshtein.normalized_similarity(query, name, score_cutoff=config.edit_distance_floor)
    if score > 0.0:
        return Verdict(MatchType.EDIT_DISTANCE, score)
    return None


MATCHERS: tuple[tuple[MatchType, Matcher], ...] = (
    (MatchType.EXACT, match_exact),
    (MatchType.PREFIX, match_prefix),
    (MatchType.SUBSTRING, match_substring),
    (MatchType.ACRONYM, match_acronym),
    (MatchType.TRIGRAM, match_trigram),
    (MatchType.EDIT_DISTANCE, match_edit_distance),
)

_MODE_TYPES = {
    QueryMode.NONE: frozenset(),
    QueryMode.PASSTHROUGH: frozenset({MatchType.EXACT, MatchType.PREFIX, MatchType.ACRONYM}),
    QueryMode.FUZZY: frozenset(MatchType),
}


def matchers_for(mode: QueryMode) -> list[tuple[MatchType, Matcher]]:
    """Matchers enabled for a mode, in priority order."""
    enabled = _MODE_TYPES[mode]
    return [(match_type, fn) for match_type, fn in MATCHERS if match_type in enabled]
