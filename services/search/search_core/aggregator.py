from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from .classifier import ClassifiedQuery
from .config import CONFIG, SearchConfig
from .matchers import LITERAL_MATCH_TYPES, MatchType, Matcher, Verdict, matchers_for

logger = logging.getLogger(__name__)

# (product_id, normalized name, *other normalized matchable fields); None fields are skipped
Row = Sequence["str | None"]


@dataclass(frozen=True, slots=True)
class Candidate:
    product_id: str
    name: str
    match_type: MatchType
    match_score: float


def literal_verdict(match_type: MatchType, config: SearchConfig = CONFIG) -> Verdict:
    scores = {
        MatchType.EXACT: config.exact_score,
        MatchType.PREFIX: config.prefix_score,
        MatchType.SUBSTRING: config.substring_score,
    }
    return Verdict(match_type, scores[match_type])


def _best_verdict(
    chain: list[tuple[MatchType, Matcher]],
    classified: ClassifiedQuery,
    fields: list[str],
    failures: Counter[str],
    config: SearchConfig,
) -> Verdict | None:
    # first strategy that matches any field wins; its best-scoring field is kept
    for match_type, matcher in chain:
        best: Verdict | None = None
        for text in fields:
            try:
                verdict = matcher(classified.text, text, classified.threshold, config)
            except ValueError:
                failures[match_type.value] += 1
                continue
            if verdict is not None and (best is None or verdict.score > best.score):
                best = verdict
        if best is not None:
            return best
    return None


def aggregate(
    rows: Iterable[Row],
    classified: ClassifiedQuery,
    *,
    resolved: Mapping[str, MatchType] | None = None,
    config: SearchConfig = CONFIG,
) -> list[Candidate]:
    """
    Produce at most one candidate per `(product_id, name, *fields)` row.

    Matchers run in priority order and stop at the first strategy that matches
    any field. When `resolved` is given, the store has already decided the literal
    strategies (exact, prefix, substring) for every row: ids in it take that
    verdict, all other rows only go through the remaining in-process matchers.
    """
    if not classified.ranked:
        return []

    chain = matchers_for(classified.mode)
    if resolved is not None:
        chain = [(t, fn) for t, fn in chain if t not in LITERAL_MATCH_TYPES]

    failures: Counter[str] = Counter()
    out: list[Candidate] = []
    for product_id, name, *extra in rows:
        if resolved is not None and product_id in resolved:
            verdict: Verdict | None = literal_verdict(resolved[product_id], config)
        else:
            fields = [name, *(f for f in extra if f)]
            verdict = _best_verdict(chain, classified, fields, failures, config)
        if verdict is None:
            continue
        out.append(
            Candidate(
                product_id=product_id,
                name=name,
                match_type=verdict.match_type,
                match_score=round(verdict.score, config.score_decimals),
            )
        )

    if failures:
        logger.warning("matcher_failed", extra={"failures": dict(failures)})
    return out
