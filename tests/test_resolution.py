"""Tests for the tag resolution chain stages."""

import logging

import pytest

from xbrl_resolver.anchor import AnchorPeriodResolver
from xbrl_resolver.document import ContextIndex, load_document
from xbrl_resolver.models import ResolutionStage, StatementFamily
from xbrl_resolver.resolution import (
    ConceptResolver,
    ResolutionChain,
    similar_local_names,
    similarity,
)
from xbrl_resolver.tag_mappings import (
    BalanceConcept,
    CashFlowConcept,
    IncomeConcept,
    Taxonomy,
    get_mapping,
)


def _chain(builder, settings, taxonomy=Taxonomy.IFRS):
    doc = load_document(builder.xml(), default_unit="KRW")
    index = ContextIndex(doc).build()
    return ResolutionChain(doc, index, taxonomy, settings)


def _anchor(chain, family=StatementFamily.INCOME):
    return AnchorPeriodResolver(chain.index, family, chain.settings)


def _collect(chain, concept, family=StatementFamily.INCOME):
    return chain.collect(concept.value, get_mapping(chain.taxonomy, concept), _anchor(chain, family))


# ── Similarity ──────────────────────────────────────────────────────────

def test_similarity_exact():
    assert similarity("Revenue", ["revenue"]) == 1.0


def test_similarity_containment():
    assert similarity("Total revenue", ["revenue"]) == pytest.approx(7 / 13 * 0.9)


def test_similarity_common_characters():
    # 'abc' vs 'abd': 2 shared characters
    assert similarity("abc", ["abd"]) == pytest.approx(4 / 6)


def test_similarity_best_of_targets():
    assert similarity("영업이익", ["매출액", "영업이익"]) == 1.0


# ── Stages ──────────────────────────────────────────────────────────────

def test_exact_stage(ifrs_filing, settings):
    result = _collect(_chain(ifrs_filing, settings), IncomeConcept.REVENUE)
    assert result.stage == ResolutionStage.EXACT
    assert len(result.candidates) == 5
    assert {c.context_ref for c in result.candidates} == {"CFY", "CQ3", "PFY", "CSEG", "CSEP"}


def test_exact_stage_preserves_tag_rank(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:RevenueFromContractsWithCustomers", "C", 90)
    builder.fact("ifrs-full:Revenue", "C", 100)
    result = _collect(_chain(builder, settings), IncomeConcept.REVENUE)
    ranks = {c.tag: c.tag_rank for c in result.candidates}
    assert ranks == {"ifrs-full:Revenue": 0, "ifrs-full:RevenueFromContractsWithCustomers": 1}


def test_local_name_stage_ignores_prefix(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("entity00126380:OperatingIncomeLoss", "C", 42)
    result = _collect(_chain(builder, settings), IncomeConcept.OPERATING_INCOME)
    assert result.stage == ResolutionStage.LOCAL_NAME
    assert result.candidates[0].value == 42


def test_local_name_stage_is_case_insensitive(builder, settings):
    builder.instant("I", "2025-09-30")
    builder.fact("dart:totalassets", "I", 7)
    result = _collect(_chain(builder, settings), BalanceConcept.TOTAL_ASSETS, StatementFamily.BALANCE)
    assert result.stage == ResolutionStage.LOCAL_NAME


def test_structural_stage_parent_section(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.raw(
        '<dart:IncomeStatement><dart:NetIncomeAttributable contextRef="C" unitRef="KRW">55'
        "</dart:NetIncomeAttributable></dart:IncomeStatement>"
    )
    result = _collect(_chain(builder, settings), IncomeConcept.NET_INCOME_TOTAL)
    assert result.stage == ResolutionStage.STRUCTURAL
    assert [c.value for c in result.candidates] == [55.0]


def test_structural_stage_context_pattern(builder, settings):
    builder.duration("CurrentYearDuration", "2025-01-01", "2025-09-30")
    builder.fact("dart:OperatingCashFlowTotal", "CurrentYearDuration", 77)
    result = _collect(_chain(builder, settings), CashFlowConcept.OPERATING_CASH_FLOW, StatementFamily.CASH_FLOW)
    assert result.stage == ResolutionStage.STRUCTURAL
    assert result.candidates[0].value == 77


def test_label_similarity_stage(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("dart:CustomLineItem1", "C", 300, label="매출액")
    builder.fact("dart:CustomLineItem2", "C", 30, label="판매비와관리비")
    result = _collect(_chain(builder, settings), IncomeConcept.REVENUE)
    assert result.stage == ResolutionStage.LABEL_SIMILARITY
    assert [c.value for c in result.candidates] == [300.0]
    assert result.candidates[0].label == "매출액"


def test_label_similarity_below_floor(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("dart:CustomLineItem1", "C", 30, label="기타")
    result = _collect(_chain(builder, settings), IncomeConcept.REVENUE)
    assert not result


def test_aggregation_depreciation_and_amortisation(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:DepreciationExpense", "C", 8000)
    builder.fact("ifrs-full:AmortisationExpense", "C", -2000)
    result = _collect(_chain(builder, settings), IncomeConcept.DEPRECIATION_AND_AMORTIZATION)
    assert result.stage == ResolutionStage.AGGREGATE
    [total] = result.candidates
    assert total.value == 10000
    assert [c.tag for c in total.components] == [
        "ifrs-full:DepreciationExpense",
        "ifrs-full:AmortisationExpense",
    ]
    assert result.notes == []


def test_aggregation_partial_sum_reports_missing(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:DepreciationExpense", "C", 8000)
    result = _collect(_chain(builder, settings), IncomeConcept.DEPRECIATION_AND_AMORTIZATION)
    [total] = result.candidates
    assert total.value == 8000
    assert [c.name for c in total.components] == ["depreciation"]
    assert any("amortisation" in n for n in result.notes)


def test_aggregation_skips_component_in_other_unit(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:DepreciationExpense", "C", 8000)
    builder.fact("ifrs-full:AmortisationExpense", "C", 2000, unit="USD")
    result = _collect(_chain(builder, settings), IncomeConcept.DEPRECIATION_AND_AMORTIZATION)
    assert result.candidates[0].value == 8000


def test_aggregation_never_zero_fills(builder, settings):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:Revenue", "C", 1)
    result = _collect(_chain(builder, settings), IncomeConcept.DEPRECIATION_AND_AMORTIZATION)
    assert not result
    assert result.candidates == []


def test_components_first_for_debt(ifrs_filing, settings):
    ifrs_filing.fact("ifrs-full:Borrowings", "I2025", 999999)
    chain = _chain(ifrs_filing, settings)
    anchor = _anchor(chain, StatementFamily.BALANCE)
    resolver = ConceptResolver(chain, anchor)
    resolver.resolve(BalanceConcept.TOTAL_ASSETS, required=True)
    debt = resolver.resolve(BalanceConcept.INTEREST_BEARING_DEBT)
    assert debt.stage == ResolutionStage.AGGREGATE
    assert debt.value == 130000
    assert {c.name for c in debt.components} == {"short_term_borrowings", "long_term_borrowings"}


# ── Diagnostics ─────────────────────────────────────────────────────────

def test_similar_local_names():
    names = ["OperatingProfitLossSegment", "Revenue", "AdjustmentsForDepreciation", "Assets"]
    found = similar_local_names(
        "operating_income",
        ["ifrs-full:OperatingProfitLoss", "DepreciationExpense"],
        names,
    )
    assert "OperatingProfitLossSegment" in found
    assert "AdjustmentsForDepreciation" in found
    assert "Assets" not in found


def test_missing_required_concept_logs_error(builder, settings, caplog):
    builder.duration("C", "2025-01-01", "2025-09-30")
    builder.fact("ifrs-full:OperatingProfitLossSegment", "C", 1)
    chain = _chain(builder, settings)
    resolver = ConceptResolver(chain, _anchor(chain))
    with caplog.at_level(logging.ERROR, logger="xbrl_resolver.resolution"):
        r = resolver.resolve(IncomeConcept.EPS_CONTINUING, required=True)
    assert not r.resolved
    assert r.reason.value == "not_found"
    assert any("Attempted tags" in rec.message for rec in caplog.records)
