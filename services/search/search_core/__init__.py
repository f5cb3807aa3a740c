"""Ranking engine for catalog search: classify, match, aggregate, rank."""

from .aggregator import Candidate, aggregate
from .classifier import ClassifiedQuery, QueryMode, classify
from .matchers import MatchType, Verdict
from .normalize import MalformedQueryInput, normalize_text
from .ranker import Direction, Window, rank, relevance_key, window

__all__ = [
    "Candidate",
    "ClassifiedQuery",
    "Direction",
    "MalformedQueryInput",
    "MatchType",
    "QueryMode",
    "Verdict",
    "Window",
    "aggregate",
    "classify",
    "normalize_text",
    "rank",
    "relevance_key",
    "window",
]
