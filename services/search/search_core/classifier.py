from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .config import CONFIG, SearchConfig
from .normalize import normalize_text


class QueryMode(str, Enum):
    NONE = "none"
    PASSTHROUGH = "passthrough"
    FUZZY = "fuzzy"


@dataclass(frozen=True, slots=True)
class ClassifiedQuery:
    mode: QueryMode
    threshold: float
    text: str

    @property
    def ranked(self) -> bool:
        return self.mode is not QueryMode.NONE


def similarity_threshold(length: int, config: SearchConfig = CONFIG) -> float:
    """
    Trigram gate by query length. Short strings carry few trigrams, so they need
    a stricter gate; long strings dilute overlap, so the gate is relaxed.
    """
    if length <= 3:
        return config.strict_similarity_threshold
    if length <= 5:
        return config.default_similarity_threshold
    return config.loose_similarity_threshold


def classify(
    query: str | None,
    *,
    enable_fuzzy: bool = True,
    config: SearchConfig = CONFIG,
) -> ClassifiedQuery:
    text = normalize_text(query)
    if not text or not enable_fuzzy:
        return ClassifiedQuery(mode=QueryMode.NONE, threshold=config.default_similarity_threshold, text=text)

    threshold = similarity_threshold(len(text), config)
    if len(text) < config.min_fuzzy_query_length:
        return ClassifiedQuery(mode=QueryMode.PASSTHROUGH, threshold=threshold, text=text)
    return ClassifiedQuery(mode=QueryMode.FUZZY, threshold=threshold, text=text)
