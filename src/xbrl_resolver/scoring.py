"""Candidate scoring and deterministic ranking.

Score components:
  segment member                    -1000 (stop)
  discontinued / NCI member         -1500 (stop)
  relatedness member                 -500 each, applied even after a stop
  consolidated or no dimensions       +50
  separate entity                     -50
  weak consolidated bias              +30
  zero dimensions                     +20
  more than two dimensions    -10 × (count - 2)
  period type matches target          +30, else -30
  end date equals report end date     +20

Ranking: higher score, then fewer dimensions, then larger |value|, then
earlier tag in the mapping, then document order.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from xbrl_resolver.models import (
    CandidateFact,
    ClassificationFlags,
    PeriodDescriptor,
    PeriodType,
    StatementFamily,
)

SEGMENT_PENALTY = -1000
EXCLUDED_ENTITY_PENALTY = -1500
RELATEDNESS_PENALTY = -500
CONSOLIDATED_BONUS = 50
SEPARATE_PENALTY = -50
WEAK_CONSOLIDATED_BONUS = 30
ZERO_DIMENSION_BONUS = 20
EXTRA_DIMENSION_PENALTY = -10
PERIOD_MATCH_BONUS = 30
PERIOD_MISMATCH_PENALTY = -30
REPORT_END_BONUS = 20

# Candidates scoring below this are never selected
REJECT_BELOW = -1000


def default_target(family: StatementFamily) -> PeriodType:
    """YTD for flow statements, FY for the balance sheet."""
    if family == StatementFamily.BALANCE:
        return PeriodType.FY
    return PeriodType.YTD


def score_flags(
    flags: ClassificationFlags,
    period: PeriodDescriptor | None,
    target: PeriodType,
    report_end_date: date | None = None,
) -> int:
    """Desirability of one (tag, context) pair."""
    related = RELATEDNESS_PENALTY * flags.relatedness_hits

    if flags.has_excluded_entity_member:
        return EXCLUDED_ENTITY_PENALTY + related
    if flags.has_segment_member:
        return SEGMENT_PENALTY + related

    score = related
    if flags.is_consolidated or flags.dimension_count == 0:
        score += CONSOLIDATED_BONUS
    elif flags.is_separate:
        score += SEPARATE_PENALTY
    elif flags.weak_consolidated_bias:
        score += WEAK_CONSOLIDATED_BONUS

    if flags.dimension_count == 0:
        score += ZERO_DIMENSION_BONUS
    elif flags.dimension_count > 2:
        score += EXTRA_DIMENSION_PENALTY * (flags.dimension_count - 2)

    if period is not None:
        score += PERIOD_MATCH_BONUS if period.period_type == target else PERIOD_MISMATCH_PENALTY
        if report_end_date is not None and period.reference_date == report_end_date:
            score += REPORT_END_BONUS

    return score


def score_candidates(
    candidates: Iterable[CandidateFact],
    target: PeriodType,
    report_end_date: date | None = None,
) -> None:
    """Fill in `score` on each candidate in place."""
    for c in candidates:
        c.score = score_flags(c.flags, c.period, target, report_end_date)


def rank_key(c: CandidateFact) -> tuple:
    return (-(c.score or 0), c.dimension_count, -abs(c.value), c.tag_rank, c.order)


def rank_candidates(
    candidates: Iterable[CandidateFact],
    target: PeriodType,
    report_end_date: date | None = None,
) -> list[CandidateFact]:
    """Score and sort candidates, best first. Input order never matters."""
    pool = list(candidates)
    score_candidates(pool, target, report_end_date)
    return sorted(pool, key=rank_key)


def is_selectable(c: CandidateFact) -> bool:
    return c.score is not None and c.score >= REJECT_BELOW
