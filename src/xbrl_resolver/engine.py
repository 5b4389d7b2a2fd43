"""Fact resolution entry points.

    resolve_filing(source)   document → FilingResolution (statements,
                             derived metrics, validation report)
    apply_period_correction  in-place anchor correction against an
                             externally supplied authoritative period

Order of assembly: income first (its anchor is the duration reference),
then cash flow (hinted with the income anchor), then balance (prior
period-end derived from the income anchor's start date).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from xbrl_resolver.assemblers import BalanceAssembler, CashFlowAssembler, IncomeAssembler
from xbrl_resolver.config import Settings, get_config
from xbrl_resolver.derived import compute_derived
from xbrl_resolver.document import ContextIndex, load_document
from xbrl_resolver.models import (
    AnchorPeriod,
    FilingResolution,
    Ok,
    PeriodDescriptor,
    StatementFamily,
)
from xbrl_resolver.periods import classify_period
from xbrl_resolver.resolution import ResolutionChain, report_reference_date
from xbrl_resolver.tag_mappings import Taxonomy
from xbrl_resolver.validator import validate_filing

log = logging.getLogger(__name__)


def resolve_filing(
    source: Any,
    *,
    taxonomy: Taxonomy | str | None = None,
    report_end_date: date | None = None,
    settings: Settings | None = None,
) -> FilingResolution:
    """Resolve income, balance and cash flow statements from one filing.

    Args:
        source: XML bytes / str, or an already parsed lxml tree or element.
        taxonomy: "ifrs" or "gaap"; detected from fact prefixes when omitted.
        report_end_date: Report reference end date used as a scoring
            tie-breaker; defaults to the latest context date.
        settings: Explicit settings; the shared get_config() otherwise.

    Raises:
        MalformedDocumentError: the document cannot be parsed or has no contexts.
    """
    settings = settings or get_config()
    document = load_document(source)

    taxonomy = Taxonomy(taxonomy) if taxonomy is not None else document.detect_taxonomy()
    document.default_unit = (
        settings.default_unit_gaap if taxonomy == Taxonomy.GAAP else settings.default_unit_ifrs
    )

    index = ContextIndex(document).build()
    report_end = report_reference_date(index, report_end_date)
    log.info("Resolving filing: taxonomy=%s, %d facts, %d contexts, report end %s",
             taxonomy.value, len(document.facts), len(index), report_end)

    chain = ResolutionChain(document, index, taxonomy, settings)

    income_assembler = IncomeAssembler(chain, settings, report_end)
    income = income_assembler.assemble()
    duration_anchor = income_assembler.anchor.anchor

    cash_flow = CashFlowAssembler(chain, settings, report_end, hint=duration_anchor).assemble()
    balance = BalanceAssembler(chain, settings, report_end, duration_anchor=duration_anchor).assemble()

    resolution = FilingResolution(
        company_name=document.company_name(),
        taxonomy=taxonomy.value,
        report_end_date=report_end,
        income=income,
        balance=balance,
        cash_flow=cash_flow,
        derived=compute_derived(income, balance, cash_flow, settings),
    )
    _collect_unresolved(resolution)
    resolution.validation = validate_filing(resolution, settings)

    if resolution.missing_required:
        log.error("Missing required concepts: %s", resolution.missing_required)
    return resolution


def _collect_unresolved(resolution: FilingResolution) -> None:
    missing: list[str] = []
    optional: list[str] = []
    for family, result in resolution.statements().items():
        if isinstance(result, Ok):
            concepts = result.statement.concepts
            required_missing: list[str] = []
        else:
            concepts = result.error.partial
            required_missing = result.error.missing
        for name in required_missing:
            missing.append(f"{family.value}.{name}")
        for name, concept in concepts.items():
            if not concept.resolved and name not in required_missing:
                optional.append(f"{family.value}.{name}")
    resolution.missing_required = missing
    resolution.unresolved_optional = optional


def apply_period_correction(
    resolution: FilingResolution,
    authoritative_period: PeriodDescriptor,
    settings: Settings | None = None,
) -> FilingResolution:
    """Replace mismatching statement anchors in place with an authoritative period.

    Duration families take the period as given; the balance sheet takes
    its end date as the instant. Fiscal year and quarter are re-derived
    from the corrected period and the validation report is refreshed.
    """
    for family, result in resolution.statements().items():
        if not isinstance(result, Ok):
            continue
        statement = result.statement
        if family == StatementFamily.BALANCE:
            corrected = classify_period(instant=authoritative_period.reference_date)
        elif authoritative_period.is_instant:
            continue
        else:
            corrected = authoritative_period

        if statement.anchor.period.same_period(corrected):
            continue

        message = (
            f"anchor corrected from {statement.anchor.period.describe()} "
            f"to {corrected.describe()}"
        )
        log.warning("%s: %s", family.value, message)
        statement.anchor = AnchorPeriod(
            family=family,
            period=corrected,
            context_ref=statement.anchor.context_ref,
            source_concept=statement.anchor.source_concept,
        )
        statement.rederive_period_fields()
        statement.warnings.append(message)

    resolution.validation = validate_filing(resolution, settings)
    return resolution
