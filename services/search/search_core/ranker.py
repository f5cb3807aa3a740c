from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .aggregator import Candidate

RelevanceKey = tuple[float, int, str, str]


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(slots=True)
class Window:
    items: list[Candidate]
    has_more: bool


def relevance_key(candidate: Candidate) -> RelevanceKey:
    """Ascending sort key for (score desc, type priority desc, name asc, id asc)."""
    return (-candidate.match_score, -candidate.match_type.priority, candidate.name, candidate.product_id)


def relevance_value(candidate: Candidate) -> list:
    return [candidate.match_score, candidate.match_type.priority, candidate.name]


def key_from_value(value: Sequence, product_id: str) -> RelevanceKey:
    score, priority, name = value
    return (-float(score), -int(priority), str(name), str(product_id))


def rank(candidates: Sequence[Candidate]) -> list[Candidate]:
    return sorted(candidates, key=relevance_key)


def window(
    ranked: Sequence[Candidate],
    *,
    limit: int,
    direction: Direction = Direction.FORWARD,
    after: RelevanceKey | None = None,
) -> Window:
    """
    Slice a ranked list strictly past the boundary key.

    Forward returns the `limit` items after `after`; backward returns the `limit`
    items before it (the tail of the list when `after` is None). Either way items
    come back in display order and `has_more` reports whether another item exists
    further along the scan direction.
    """
    keys = [relevance_key(c) for c in ranked]
    if direction is Direction.FORWARD:
        start = 0 if after is None else bisect_right(keys, after)
        chunk = list(ranked[start : start + limit + 1])
        return Window(items=chunk[:limit], has_more=len(chunk) > limit)

    end = len(keys) if after is None else bisect_left(keys, after)
    start = max(0, end - limit)
    return Window(items=list(ranked[start:end]), has_more=start > 0)

