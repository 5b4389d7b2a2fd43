"""Pydantic models for resolver inputs and outputs."""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from xbrl_resolver.errors import InsufficientDataError
from xbrl_resolver.tag_mappings import CONCEPT_NAMES


# ---------------------------------------------------------------------------
# Periods & contexts
# ---------------------------------------------------------------------------

class PeriodType(str, Enum):
    FY = "FY"
    Q = "Q"
    YTD = "YTD"


class StatementFamily(str, Enum):
    INCOME = "income"
    BALANCE = "balance"
    CASH_FLOW = "cash_flow"


def quarter_for_month(month: int) -> int:
    """Jan–Mar → 1, Apr–Jun → 2, Jul–Sep → 3, Oct–Dec → 4."""
    return math.ceil(month / 3)


class PeriodDescriptor(BaseModel):
    """Normalized reporting period of one context."""

    model_config = ConfigDict(frozen=True)

    period_type: PeriodType
    start_date: date | None = None
    end_date: date | None = None
    instant: date | None = None
    fiscal_year: int
    quarter: int | None = Field(default=None, ge=1, le=4)
    label: str

    @model_validator(mode="after")
    def _instant_xor_duration(self) -> "PeriodDescriptor":
        if self.instant is not None:
            if self.start_date is not None or self.end_date is not None:
                raise ValueError("instant periods cannot carry start/end dates")
        elif self.end_date is None:
            raise ValueError("duration periods need an end date")
        return self

    @property
    def is_instant(self) -> bool:
        return self.instant is not None

    @property
    def reference_date(self) -> date:
        """End date for durations, the instant itself otherwise."""
        return self.instant if self.instant is not None else self.end_date

    def same_period(self, other: "PeriodDescriptor | None") -> bool:
        """End dates (or instants) equal, and start dates equal when both are present."""
        if other is None:
            return False
        if self.is_instant or other.is_instant:
            return self.instant == other.instant
        if self.end_date != other.end_date:
            return False
        if self.start_date is not None and other.start_date is not None:
            return self.start_date == other.start_date
        return True

    def describe(self) -> str:
        if self.is_instant:
            return f"{self.label} (instant={self.instant})"
        return f"{self.label} ({self.start_date} ~ {self.end_date})"


class DimensionMember(NamedTuple):
    dimension: str          # e.g. "ifrs-full:SegmentsAxis"
    member: str             # explicit member QName, or typed member value
    typed: bool = False


class ClassificationFlags(BaseModel):
    """Dimensional classification of one context."""

    model_config = ConfigDict(frozen=True)

    dimension_count: int = Field(default=0, ge=0)
    is_consolidated: bool = False
    is_separate: bool = False
    weak_consolidated_bias: bool = False
    has_segment_member: bool = False
    has_excluded_entity_member: bool = False   # discontinued ops / non-controlling interests
    relatedness_hits: int = 0

    @property
    def has_disallowed_member(self) -> bool:
        return self.has_segment_member or self.has_excluded_entity_member

    @property
    def is_clean(self) -> bool:
        return not self.has_disallowed_member and self.relatedness_hits == 0


class Context(BaseModel):
    """One reporting context; built once per document, read-only afterwards."""

    model_config = ConfigDict(frozen=True)

    id: str
    period: PeriodDescriptor | None = None
    members: tuple[DimensionMember, ...] = ()
    flags: ClassificationFlags = ClassificationFlags()

    @property
    def signature(self) -> str:
        """Sorted `dimension:member` pairs joined by `|`; empty for no dimensions."""
        return "|".join(sorted(f"{m.dimension}:{m.member}" for m in self.members))


# ---------------------------------------------------------------------------
# Candidates & resolutions
# ---------------------------------------------------------------------------

class ResolutionStage(str, Enum):
    EXACT = "exact"
    LOCAL_NAME = "local_name"
    STRUCTURAL = "structural"
    LABEL_SIMILARITY = "label_similarity"
    AGGREGATE = "aggregate"
    DERIVED = "derived"
    POLICY = "policy"


class UnresolvedReason(str, Enum):
    NOT_FOUND = "not_found"
    ANCHOR_MISMATCH = "anchor_mismatch"
    AMBIGUOUS = "ambiguous"
    UNIT_MISMATCH = "unit_mismatch"
    DEPENDENCY_UNRESOLVED = "dependency_unresolved"


class ComponentValue(BaseModel):
    """One addend of an aggregated value."""
    name: str
    tag: str
    value: float
    context_ref: str | None = None


class CandidateFact:
    """One (tag, context) candidate for a concept. Ephemeral, rebuilt per lookup."""

    __slots__ = (
        "concept", "tag", "local_name", "context_ref", "value", "unit",
        "decimals", "order", "period", "flags", "signature", "score",
        "stage", "tag_rank", "components", "label",
    )

    def __init__(
        self,
        concept: str,
        tag: str,
        local_name: str,
        context_ref: str | None,
        value: float,
        unit: str,
        *,
        decimals: str | None = None,
        order: int = 0,
        period: PeriodDescriptor | None = None,
        flags: ClassificationFlags | None = None,
        signature: str = "",
        stage: ResolutionStage = ResolutionStage.EXACT,
        tag_rank: int = 0,
        components: list[ComponentValue] | None = None,
        label: str | None = None,
    ):
        self.concept = concept
        self.tag = tag
        self.local_name = local_name
        self.context_ref = context_ref
        self.value = value
        self.unit = unit
        self.decimals = decimals            # metadata only, never used to rescale
        self.order = order                  # document order, final tiebreak
        self.period = period
        self.flags = flags or ClassificationFlags()
        self.signature = signature
        self.score: int | None = None
        self.stage = stage
        self.tag_rank = tag_rank            # position of the matching tag in the mapping
        self.components = components or []
        self.label = label

    @property
    def dimension_count(self) -> int:
        return self.flags.dimension_count

    def __repr__(self) -> str:
        return (
            f"CandidateFact({self.tag}@{self.context_ref}={self.value:,.0f} "
            f"{self.unit} score={self.score})"
        )


class ConceptResolution(BaseModel):
    """Resolved value for one concept, or an explicit unresolved outcome."""

    concept: str
    value: float | None = None
    unit: str | None = None
    context_ref: str | None = None
    period: PeriodDescriptor | None = None
    source_tag: str | None = None
    stage: ResolutionStage | None = None
    score: int | None = None
    decimals: str | None = None
    components: list[ComponentValue] = []
    reason: UnresolvedReason | None = None
    detail: str | None = None
    override_reasons: list[str] = []
    needs_review: bool = False

    @property
    def resolved(self) -> bool:
        return self.value is not None

    @classmethod
    def unresolved(
        cls,
        concept: str,
        reason: UnresolvedReason,
        detail: str | None = None,
    ) -> "ConceptResolution":
        return cls(concept=concept, reason=reason, detail=detail)

    @classmethod
    def from_candidate(cls, concept: str, candidate: CandidateFact, **extra) -> "ConceptResolution":
        return cls(
            concept=concept,
            value=candidate.value,
            unit=candidate.unit,
            context_ref=candidate.context_ref,
            period=candidate.period,
            source_tag=candidate.tag,
            stage=candidate.stage,
            score=candidate.score,
            decimals=candidate.decimals,
            components=list(candidate.components),
            **extra,
        )


class AnchorPeriod(BaseModel):
    """Canonical period for one statement family, fixed once per assembly."""

    model_config = ConfigDict(frozen=True)

    family: StatementFamily
    period: PeriodDescriptor
    context_ref: str | None = None
    source_concept: str | None = None


class EarningsScope(str, Enum):
    CONTINUING = "continuing"
    TOTAL = "total"


def _check_concept_keys(v: dict[str, ConceptResolution]) -> dict[str, ConceptResolution]:
    unknown = sorted(set(v) - CONCEPT_NAMES)
    if unknown:
        raise ValueError(f"unknown concept(s): {', '.join(unknown)}")
    return v


class ResolvedStatement(BaseModel):
    family: StatementFamily
    anchor: AnchorPeriod
    concepts: dict[str, ConceptResolution] = {}
    companions: dict[str, ConceptResolution] = {}
    unit: str | None = None
    fiscal_year: int | None = None
    quarter: int | None = None
    earnings_scope: EarningsScope | None = None
    warnings: list[str] = []

    @field_validator("concepts")
    @classmethod
    def known_concepts(cls, v: dict[str, ConceptResolution]) -> dict[str, ConceptResolution]:
        return _check_concept_keys(v)

    def get(self, concept: str) -> ConceptResolution:
        found = self.concepts.get(concept)
        if found is None:
            return ConceptResolution.unresolved(concept, UnresolvedReason.NOT_FOUND)
        return found

    def value(self, concept: str) -> float | None:
        return self.get(concept).value

    def rederive_period_fields(self) -> None:
        """Fiscal year and quarter always follow the anchor end date."""
        ref = self.anchor.period.reference_date
        self.fiscal_year = ref.year
        self.quarter = quarter_for_month(ref.month)


class MissingConcepts(BaseModel):
    family: StatementFamily
    missing: list[str]
    anchor: AnchorPeriod | None = None
    partial: dict[str, ConceptResolution] = {}

    @field_validator("partial")
    @classmethod
    def known_partial(cls, v: dict[str, ConceptResolution]) -> dict[str, ConceptResolution]:
        return _check_concept_keys(v)


class Ok(BaseModel):
    ok: Literal[True] = True
    statement: ResolvedStatement


class Err(BaseModel):
    ok: Literal[False] = False
    error: MissingConcepts


StatementResult = Union[Ok, Err]


# ---------------------------------------------------------------------------
# Derived metrics & validation
# ---------------------------------------------------------------------------

class DerivedMetrics(BaseModel):
    revenue: float | None = None
    operating_income: float | None = None
    operating_cash_flow: float | None = None
    capital_expenditure: float | None = None
    free_cash_flow: float | None = None
    operating_margin: float | None = None       # percent
    fcf_margin: float | None = None             # percent
    roic: float | None = None                   # percent
    invested_capital: float | None = None
    net_cash: float | None = None
    missing_concepts: list[str] = []
    blocked_metrics: list[str] = []
    warnings: list[str] = []


class ValidationIssue(BaseModel):
    """One validation check result."""
    rule: str
    severity: str                # "error" | "warning"
    message: str


class ValidationReport(BaseModel):
    passed: bool
    summary: str
    failures: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []


class FilingResolution(BaseModel):
    """Everything one resolution run hands back to its caller."""

    company_name: str | None = None
    taxonomy: str
    report_end_date: date | None = None
    income: StatementResult
    balance: StatementResult
    cash_flow: StatementResult
    derived: DerivedMetrics = DerivedMetrics()
    missing_required: list[str] = []
    unresolved_optional: list[str] = []
    validation: ValidationReport | None = None

    def statements(self) -> dict[StatementFamily, StatementResult]:
        return {
            StatementFamily.INCOME: self.income,
            StatementFamily.BALANCE: self.balance,
            StatementFamily.CASH_FLOW: self.cash_flow,
        }

    def require_all(self) -> "FilingResolution":
        """Raise InsufficientDataError if any required concept is missing."""
        if self.missing_required:
            raise InsufficientDataError(self.missing_required)
        return self
