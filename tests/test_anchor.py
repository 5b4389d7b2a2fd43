"""Tests for anchor period pinning, filtering, overrides and companions."""

from datetime import date

from xbrl_resolver.anchor import AnchorPeriodResolver
from xbrl_resolver.config import Settings
from xbrl_resolver.document import ContextIndex, load_document
from xbrl_resolver.models import PeriodType, StatementFamily, UnresolvedReason
from xbrl_resolver.periods import classify_period
from xbrl_resolver.resolution import ConceptResolver, ResolutionChain
from xbrl_resolver.tag_mappings import BalanceConcept, IncomeConcept, Taxonomy

from conftest import DISCONTINUED, SEGMENT


def _resolver(builder, settings, family=StatementFamily.INCOME, report_end=date(2025, 9, 30)):
    doc = load_document(builder.xml(), default_unit="KRW")
    index = ContextIndex(doc).build()
    chain = ResolutionChain(doc, index, Taxonomy.IFRS, settings)
    anchor = AnchorPeriodResolver(index, family, settings, report_end)
    return ConceptResolver(chain, anchor), anchor


def test_seed_prefers_ytd_at_latest_end(ifrs_filing, settings):
    _, anchor = _resolver(ifrs_filing, settings)
    seed = anchor.seed_period()
    assert seed.period_type == PeriodType.YTD
    assert seed.start_date == date(2025, 1, 1)
    assert anchor.target == PeriodType.YTD


def test_seed_for_balance_is_latest_instant(ifrs_filing, settings):
    _, anchor = _resolver(ifrs_filing, settings, StatementFamily.BALANCE)
    assert anchor.seed_period().instant == date(2025, 9, 30)


def test_first_required_concept_pins_anchor(ifrs_filing, settings):
    resolver, anchor = _resolver(ifrs_filing, settings)
    revenue = resolver.resolve(IncomeConcept.REVENUE, required=True)
    assert revenue.value == 300000
    assert revenue.context_ref == "CFY"
    assert anchor.anchor.context_ref == "CFY"
    assert anchor.anchor.source_concept == "revenue"
    assert anchor.anchor.period.label == "9M(YTD)"


def test_segment_candidate_loses(ifrs_filing, settings):
    resolver, _ = _resolver(ifrs_filing, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    assert op.context_ref == "CFY"
    assert op.value == 30000
    assert op.score >= 70


def test_anchor_filter_mismatch(builder, settings):
    builder.duration("C1", "2025-01-01", "2025-09-30")
    builder.duration("C2", "2025-01-01", "2025-06-30")
    builder.fact("ifrs-full:Revenue", "C1", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "C2", 100)
    resolver, _ = _resolver(builder, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    assert not op.resolved
    assert op.reason == UnresolvedReason.ANCHOR_MISMATCH


def test_override_on_high_dimension_count(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("P", "2024-01-01", "2024-09-30")
    builder.duration("CDIM", "2025-01-01", "2025-09-30", [
        ("dart:AAxis", "dart:AMember"),
        ("dart:BAxis", "dart:BMember"),
        ("dart:CAxis", "dart:CMember"),
    ])
    builder.fact("ifrs-full:Revenue", "C", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "CDIM", 90)
    builder.fact("ifrs-full:OperatingProfitLoss", "P", 80)
    resolver, _ = _resolver(builder, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    assert op.value == 80
    assert op.needs_review
    assert op.override_reasons == ["high_dimension_count", "period_mismatch"]


def test_override_disabled_keeps_anchor_candidate(builder):
    settings = Settings(_env_file=None, override_on_high_dimension_count=False)
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("P", "2024-01-01", "2024-09-30")
    builder.duration("CDIM", "2025-01-01", "2025-09-30", [
        ("dart:AAxis", "dart:AMember"),
        ("dart:BAxis", "dart:BMember"),
        ("dart:CAxis", "dart:CMember"),
    ])
    builder.fact("ifrs-full:Revenue", "C", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "CDIM", 90)
    builder.fact("ifrs-full:OperatingProfitLoss", "P", 80)
    resolver, _ = _resolver(builder, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    assert op.value == 90
    assert not op.needs_review


def test_override_without_clean_alternative(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("CSEG", "2025-01-01", "2025-09-30", [SEGMENT])
    builder.fact("ifrs-full:Revenue", "C", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "CSEG", 90)
    resolver, _ = _resolver(builder, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    # Segment figure kept, but flagged
    assert op.value == 90
    assert op.override_reasons == ["disallowed_member"]
    assert op.needs_review


def test_segment_only_first_concept_is_flagged(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("CSEG", "2025-01-01", "2025-09-30", [SEGMENT])
    builder.fact("ifrs-full:Revenue", "CSEG", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "C", 100)
    resolver, anchor = _resolver(builder, settings)
    revenue = resolver.resolve(IncomeConcept.REVENUE, required=True)
    assert revenue.value == 1000
    assert revenue.override_reasons == ["disallowed_member"]
    assert revenue.needs_review
    # Period pinned, segment context not
    assert anchor.anchor.context_ref is None
    assert anchor.anchor.period.label == "9M(YTD)"

    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    assert op.context_ref == "C"
    assert not op.needs_review


def test_first_concept_prefers_clean_candidate_in_seed_period(builder):
    settings = Settings(_env_file=None, override_on_zero_value=True)
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("CX", "2025-01-01", "2025-09-30", [("dart:AAxis", "dart:AMember")])
    builder.fact("ifrs-full:Revenue", "C", 0)
    builder.fact("ifrs-full:Revenue", "CX", 1000)
    resolver, anchor = _resolver(builder, settings)
    revenue = resolver.resolve(IncomeConcept.REVENUE, required=True)
    assert revenue.value == 1000
    assert revenue.override_reasons == ["zero_value"]
    assert revenue.needs_review
    assert anchor.anchor.context_ref == "CX"


def test_excluded_entity_never_selected(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("CDISC", "2025-01-01", "2025-09-30", [DISCONTINUED])
    builder.fact("ifrs-full:Revenue", "C", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "CDISC", 90)
    resolver, _ = _resolver(builder, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME, required=True)
    assert not op.resolved
    assert op.reason == UnresolvedReason.AMBIGUOUS


def test_zero_value_override_is_opt_in(builder):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("P", "2024-01-01", "2024-09-30")
    builder.fact("ifrs-full:Revenue", "C", 1000)
    builder.fact("ifrs-full:OperatingProfitLoss", "C", 0)
    builder.fact("ifrs-full:OperatingProfitLoss", "P", 50)

    resolver, _ = _resolver(builder, Settings(_env_file=None))
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    assert resolver.resolve(IncomeConcept.OPERATING_INCOME).value == 0

    resolver, _ = _resolver(builder, Settings(_env_file=None, override_on_zero_value=True))
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    op = resolver.resolve(IncomeConcept.OPERATING_INCOME)
    assert op.value == 50
    assert "zero_value" in op.override_reasons


def test_prior_year_companion(ifrs_filing, settings):
    resolver, _ = _resolver(ifrs_filing, settings)
    revenue = resolver.resolve(IncomeConcept.REVENUE, required=True)
    prior = resolver.prior_year(IncomeConcept.REVENUE, revenue)
    assert prior.concept == "revenue_prior_year"
    assert prior.value == 280000
    assert prior.context_ref == "PFY"


def test_prior_year_unit_mismatch(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.duration("P", "2024-01-01", "2024-09-30")
    builder.fact("ifrs-full:Revenue", "C", 1000)
    builder.fact("ifrs-full:Revenue", "P", 900, unit="USD")
    resolver, _ = _resolver(builder, settings)
    revenue = resolver.resolve(IncomeConcept.REVENUE, required=True)
    prior = resolver.prior_year(IncomeConcept.REVENUE, revenue)
    assert not prior.resolved
    assert prior.reason == UnresolvedReason.UNIT_MISMATCH


def test_prior_year_missing(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:Revenue", "C", 1000)
    resolver, _ = _resolver(builder, settings)
    revenue = resolver.resolve(IncomeConcept.REVENUE, required=True)
    prior = resolver.prior_year(IncomeConcept.REVENUE, revenue)
    assert prior.reason == UnresolvedReason.NOT_FOUND


def test_prior_period_end_matches_signature(builder, settings):
    axis = ("ifrs-full:ComponentsOfEquityAxis", "ifrs-full:EquityAttributableToOwnersOfParentMember")
    builder.instant("I", "2025-09-30", [axis])
    builder.instant("P", "2024-12-31")
    builder.instant("PA", "2024-12-31", [axis])
    builder.fact("ifrs-full:Equity", "I", 600)
    builder.fact("ifrs-full:Equity", "P", 580)
    builder.fact("ifrs-full:Equity", "PA", 550)
    resolver, anchor = _resolver(builder, settings, StatementFamily.BALANCE)
    equity = resolver.resolve(BalanceConcept.TOTAL_EQUITY, required=True)
    comparison = anchor.prior_period_end()
    # Instant anchor: same day one year earlier has no facts
    assert comparison.instant == date(2024, 9, 30)

    prior = resolver.prior_period_end(
        BalanceConcept.TOTAL_EQUITY, equity, classify_period(instant=date(2024, 12, 31)),
    )
    assert prior.value == 550
    assert prior.context_ref == "PA"


def test_hinted_anchor_filters_without_context(ifrs_filing, settings):
    resolver, anchor = _resolver(ifrs_filing, settings)
    resolver.resolve(IncomeConcept.REVENUE, required=True)
    hinted = AnchorPeriodResolver(anchor.index, StatementFamily.CASH_FLOW, settings, hint=anchor.anchor)
    assert hinted.pinned
    assert hinted.context_ref is None
    assert hinted.anchor.period == anchor.anchor.period
