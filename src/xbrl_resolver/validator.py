"""Post-assembly consistency checks.

The validator only reads the finished FilingResolution; it never calls
back into the resolver and never raises. Failures and warnings are
collected into a ValidationReport and the caller decides what to block.
"""

from __future__ import annotations

import logging

from xbrl_resolver.config import Settings, get_config
from xbrl_resolver.models import (
    ConceptResolution,
    FilingResolution,
    Ok,
    PeriodDescriptor,
    ValidationIssue,
    ValidationReport,
)
from xbrl_resolver.periods import validate_period

log = logging.getLogger(__name__)

FCF_RELATIVE_TOLERANCE = 0.0001
FCF_ABSOLUTE_TOLERANCE = 1000.0


def _fmt(v: float | None) -> str:
    if v is None:
        return "N/A"
    return f"{v:,.0f}"


def fcf_within_tolerance(ocf: float, capex: float, fcf: float) -> bool:
    """|fcf - (ocf - capex)| ≤ max(|ocf - capex| × 0.0001, 1000)."""
    expected = ocf - capex
    tolerance = max(abs(expected) * FCF_RELATIVE_TOLERANCE, FCF_ABSOLUTE_TOLERANCE)
    return abs(fcf - expected) <= tolerance


def _period_issues(where: str, period: PeriodDescriptor | None) -> list[ValidationIssue]:
    if period is None:
        return [ValidationIssue(
            rule="period_integrity", severity="error", message=f"{where}: no period",
        )]
    return [
        ValidationIssue(rule="period_integrity", severity="error", message=f"{where}: {problem}")
        for problem in validate_period(period)
    ]


def validate_filing(
    resolution: FilingResolution,
    settings: Settings | None = None,
) -> ValidationReport:
    """Run validation rules over a resolved filing."""
    settings = settings or get_config()
    issues: list[ValidationIssue] = []

    statements = resolution.statements()

    # Rule 1: Every assembled statement carries a sound anchor period
    for family, result in statements.items():
        if not isinstance(result, Ok):
            issues.append(ValidationIssue(
                rule="statement_incomplete",
                severity="warning",
                message=f"{family.value} statement not assembled; missing {', '.join(result.error.missing)}",
            ))
            continue
        statement = result.statement
        issues.extend(_period_issues(f"{family.value} anchor", statement.anchor.period))
        for name, concept in statement.concepts.items():
            if concept.resolved and concept.period is not None:
                issues.extend(_period_issues(f"{family.value}.{name}", concept.period))

    # Rule 2: FCF identity
    d = resolution.derived
    if d.operating_cash_flow is not None and d.capital_expenditure is not None and d.free_cash_flow is not None:
        if not fcf_within_tolerance(d.operating_cash_flow, d.capital_expenditure, d.free_cash_flow):
            issues.append(ValidationIssue(
                rule="fcf_identity",
                severity="error",
                message=(
                    f"FCF ({_fmt(d.free_cash_flow)}) != OCF ({_fmt(d.operating_cash_flow)}) - "
                    f"CAPEX ({_fmt(d.capital_expenditure)}) = "
                    f"{_fmt(d.operating_cash_flow - d.capital_expenditure)}"
                ),
            ))
    elif d.free_cash_flow is not None and d.capital_expenditure is None:
        issues.append(ValidationIssue(
            rule="fcf_identity",
            severity="error",
            message="FCF present although capital expenditure is unresolved",
        ))

    # Rule 3: Accounting equation A = L + E
    balance = resolution.balance
    if isinstance(balance, Ok):
        ta = balance.statement.value("total_assets")
        tl = balance.statement.value("total_liabilities")
        eq = balance.statement.value("total_equity")
        if ta is not None and tl is not None and eq is not None and ta != 0:
            diff = abs(ta - (tl + eq)) / abs(ta)
            if diff > settings.balance_equation_tolerance:
                issues.append(ValidationIssue(
                    rule="accounting_equation",
                    severity="warning",
                    message=(
                        f"Assets ({_fmt(ta)}) != Liabilities ({_fmt(tl)}) + "
                        f"Equity ({_fmt(eq)}) = {_fmt(tl + eq)}. Difference: {diff:.4%}"
                    ),
                ))

    # Rule 4: Anchor overrides and review flags
    for family, result in statements.items():
        if not isinstance(result, Ok):
            continue
        concepts: dict[str, ConceptResolution] = result.statement.concepts
        for name, concept in concepts.items():
            if concept.override_reasons or concept.needs_review:
                reasons = ", ".join(concept.override_reasons) or "flagged"
                issues.append(ValidationIssue(
                    rule="manual_review",
                    severity="warning",
                    message=f"{family.value}.{name} needs manual review ({reasons})",
                ))

    failures = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]
    passed = not failures
    summary = (
        f"{'PASSED' if passed else 'FAILED'}: "
        f"{len(failures)} failure(s), {len(warnings)} warning(s)"
    )
    if passed:
        log.info("Validation %s", summary)
    else:
        log.warning("Validation %s", summary)
    return ValidationReport(passed=passed, summary=summary, failures=failures, warnings=warnings)
