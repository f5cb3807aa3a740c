from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(slots=True)
class SearchConfig:
    min_fuzzy_query_length: int = int(os.getenv("SEARCH_MIN_FUZZY_QUERY_LENGTH", "3"))
    strict_similarity_threshold: float = float(os.getenv("SEARCH_STRICT_SIMILARITY_THRESHOLD", "0.15"))
    default_similarity_threshold: float = float(os.getenv("SEARCH_DEFAULT_SIMILARITY_THRESHOLD", "0.20"))
    loose_similarity_threshold: float = float(os.getenv("SEARCH_LOOSE_SIMILARITY_THRESHOLD", "0.10"))
    edit_distance_floor: float = float(os.getenv("SEARCH_EDIT_DISTANCE_FLOOR", "0.5"))
    exact_score: float = 1.0
    prefix_score: float = 0.9
    substring_score: float = 0.75
    acronym_score: float = 0.6
    score_decimals: int = int(os.getenv("SEARCH_SCORE_DECIMALS", "4"))


CONFIG = SearchConfig()
