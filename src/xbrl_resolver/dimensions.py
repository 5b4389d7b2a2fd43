"""Dimension/segment classification of reporting contexts.

Keyword matching runs on a normalized form of the member and dimension
QNames (lowercase, alphanumerics only), so 'ifrs-full:OperatingSegmentsMember'
and 'OperatingSegments' both hit 'operatingsegments'.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from xbrl_resolver.models import ClassificationFlags, DimensionMember

_NON_ALNUM = re.compile(r"[^0-9a-z가-힣]+")

# Segment / business-unit axes: figure is a breakdown, not the entity total
SEGMENT_KEYWORDS: tuple[str, ...] = (
    "segment",
    "segments",
    "operatingsegments",
    "businesssegment",
    "geographicalsegment",
    "geographicalareas",
    "productsandservicessegment",
    "reportablesegment",
    "lineofbusiness",
    "region",
)

# Entity variants that must never stand in for the line item itself
EXCLUDED_ENTITY_KEYWORDS: tuple[str, ...] = (
    "discontinuedoperationsmember",
    "discontinuedoperations",
    "discontinued",
    "noncontrollinginterestsmember",
    "noncontrollinginterests",
    "noncontrollinginterest",
)

# Counterparty breakdowns, penalized per matching member
RELATEDNESS_KEYWORDS: tuple[str, ...] = (
    "relatedparty",
    "relatedparties",
    "majorcustomer",
    "majorcustomers",
)


def normalize(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)


def classify_members(members: Iterable[DimensionMember]) -> ClassificationFlags:
    """Classify one context from its explicit and typed dimension members."""
    members = list(members)
    count = len(members)
    if count == 0:
        # Filers tag the consolidated figure without dimensions
        return ClassificationFlags(dimension_count=0, is_consolidated=True)

    has_segment = False
    has_excluded = False
    relatedness = 0
    consolidated = False
    separate = False

    for m in members:
        member = normalize(m.member)
        dimension = normalize(m.dimension)
        both = f"{dimension} {member}"

        if _contains_any(both, EXCLUDED_ENTITY_KEYWORDS):
            has_excluded = True
        elif _contains_any(both, SEGMENT_KEYWORDS):
            has_segment = True
        if _contains_any(both, RELATEDNESS_KEYWORDS):
            relatedness += 1

        # The consolidation axis itself is named "ConsolidatedAndSeparate...",
        # so the member decides; the dimension only speaks for typed members.
        probe = member if member else dimension
        if "separate" in probe:
            separate = True
        elif "consolidated" in probe:
            consolidated = True

    if consolidated and separate:
        consolidated = separate = False

    explicit = sum(1 for m in members if not m.typed)
    weak_bias = (
        not consolidated
        and not separate
        and not has_segment
        and not has_excluded
        and explicit <= 1
    )

    return ClassificationFlags(
        dimension_count=count,
        is_consolidated=consolidated,
        is_separate=separate,
        weak_consolidated_bias=weak_bias,
        has_segment_member=has_segment,
        has_excluded_entity_member=has_excluded,
        relatedness_hits=relatedness,
    )
