"""Derived metrics over resolved statements.

Every ratio is suppressed (left None, listed in blocked_metrics) when an
input is missing, when inputs disagree on period or unit, or when the
result falls outside its sanity band. Nothing here estimates a value.
"""

from __future__ import annotations

import logging

from xbrl_resolver.config import Settings, get_config
from xbrl_resolver.errors import CalculationError
from xbrl_resolver.models import (
    ConceptResolution,
    DerivedMetrics,
    Ok,
    StatementResult,
    UnresolvedReason,
)

log = logging.getLogger(__name__)


def _concept(result: StatementResult, name: str) -> ConceptResolution:
    if isinstance(result, Ok):
        return result.statement.get(name)
    found = result.error.partial.get(name)
    if found is not None:
        return found
    return ConceptResolution.unresolved(name, UnresolvedReason.NOT_FOUND)


def identical_period(a: ConceptResolution, b: ConceptResolution) -> bool:
    """Same start and end (or same instant); missing periods never match."""
    if a.period is None or b.period is None:
        return False
    pa, pb = a.period, b.period
    return (pa.start_date, pa.end_date, pa.instant) == (pb.start_date, pb.end_date, pb.instant)


def percent(numerator: ConceptResolution, denominator: ConceptResolution, calculation_type: str) -> float:
    """numerator / denominator × 100. Raises CalculationError on unusable inputs."""
    if not numerator.resolved or not denominator.resolved:
        raise CalculationError("Missing input", calculation_type)
    if numerator.unit != denominator.unit:
        raise CalculationError(
            f"Unit mismatch: {numerator.unit} vs {denominator.unit}",
            calculation_type,
            {"numerator": numerator.concept, "denominator": denominator.concept},
        )
    if denominator.value == 0:
        raise CalculationError("Zero denominator", calculation_type)
    return numerator.value / denominator.value * 100


def _in_band(value: float, band: tuple[float, float]) -> bool:
    low, high = band
    return low <= value <= high


class _Collector:
    def __init__(self, metrics: DerivedMetrics):
        self.metrics = metrics

    def block(self, metric: str, message: str) -> None:
        log.warning("%s suppressed: %s", metric, message)
        if metric not in self.metrics.blocked_metrics:
            self.metrics.blocked_metrics.append(metric)
        self.metrics.warnings.append(f"{metric}: {message}")

    def missing(self, *concepts: ConceptResolution) -> bool:
        absent = [c.concept for c in concepts if not c.resolved]
        for name in absent:
            if name not in self.metrics.missing_concepts:
                self.metrics.missing_concepts.append(name)
        return bool(absent)


def operating_margin(
    revenue: ConceptResolution,
    operating_income: ConceptResolution,
    settings: Settings | None = None,
) -> tuple[float | None, str | None]:
    """(margin %, None) or (None, reason). Never computed across mismatched periods."""
    settings = settings or get_config()
    if not revenue.resolved or not operating_income.resolved:
        return None, "revenue or operating income unresolved"
    if not identical_period(revenue, operating_income):
        return None, (
            f"period mismatch: revenue {revenue.period.describe() if revenue.period else '-'} "
            f"vs operating income {operating_income.period.describe() if operating_income.period else '-'}"
        )
    try:
        margin = percent(operating_income, revenue, "operating_margin")
    except CalculationError as exc:
        return None, exc.message
    if not _in_band(margin, settings.operating_margin_band):
        return None, f"abnormal value {margin:.2f}%"
    return margin, None


def compute_derived(
    income: StatementResult,
    balance: StatementResult,
    cash_flow: StatementResult,
    settings: Settings | None = None,
) -> DerivedMetrics:
    settings = settings or get_config()

    revenue = _concept(income, "revenue")
    op_income = _concept(income, "operating_income")
    ocf = _concept(cash_flow, "operating_cash_flow")
    capex = _concept(cash_flow, "capital_expenditure")
    fcf = _concept(cash_flow, "free_cash_flow")
    equity = _concept(balance, "total_equity")
    debt = _concept(balance, "interest_bearing_debt")
    cash = _concept(balance, "cash")
    net_cash = _concept(balance, "net_cash")

    metrics = DerivedMetrics(
        revenue=revenue.value,
        operating_income=op_income.value,
        operating_cash_flow=ocf.value,
        capital_expenditure=capex.value,
        free_cash_flow=fcf.value,
        net_cash=net_cash.value,
    )
    out = _Collector(metrics)

    # ── Operating margin ──
    out.missing(revenue, op_income)
    margin, reason = operating_margin(revenue, op_income, settings)
    if margin is None:
        out.block("operating_margin", reason)
    metrics.operating_margin = margin

    # ── FCF margin ──
    if not fcf.resolved:
        out.block("fcf_margin", "capital expenditure unresolved" if not capex.resolved else "free cash flow unresolved")
    elif out.missing(revenue):
        out.block("fcf_margin", "revenue unresolved")
    elif fcf.period is not None and revenue.period is not None and not revenue.period.same_period(fcf.period):
        out.block("fcf_margin", f"period mismatch: {revenue.period.describe()} vs {fcf.period.describe()}")
    else:
        try:
            value = percent(fcf, revenue, "fcf_margin")
        except CalculationError as exc:
            out.block("fcf_margin", exc.message)
        else:
            if _in_band(value, settings.fcf_margin_band):
                metrics.fcf_margin = value
            else:
                out.block("fcf_margin", f"abnormal value {value:.2f}%")

    # ── ROIC: NOPAT / (equity + interest-bearing debt - cash) ──
    if out.missing(equity, debt, cash, op_income):
        out.block("roic", "inputs unresolved")
        out.block("invested_capital", "inputs unresolved")
    elif len({equity.unit, debt.unit, cash.unit, op_income.unit}) > 1:
        out.block("roic", "unit mismatch between balance and income inputs")
        out.block("invested_capital", "unit mismatch between balance and income inputs")
    else:
        invested = equity.value + debt.value - cash.value
        if invested <= 0:
            out.block("roic", "invested capital is not positive")
            out.block("invested_capital", f"non-positive value {invested:,.0f}")
        elif abs(invested) >= settings.invested_capital_ceiling:
            out.block("roic", "invested capital implausibly large")
            out.block("invested_capital", f"implausible value {invested:,.0f}")
        else:
            nopat = op_income.value * (1 - settings.roic_tax_rate)
            roic = nopat / invested * 100
            if _in_band(roic, settings.roic_band):
                metrics.roic = roic
                metrics.invested_capital = invested
                log.debug("ROIC %.2f%% (NOPAT=%s, invested capital=%s)", roic, nopat, invested)
            else:
                out.block("roic", f"abnormal value {roic:.2f}%")
                out.block("invested_capital", "rejected with ROIC")

    return metrics
