"""Statement assemblers: one per statement family.

Each assembler owns one AnchorPeriodResolver and resolves its concepts in
a fixed order (required first, so the anchor is pinned by the first
required concept). The result is Ok(ResolvedStatement) or
Err(MissingConcepts); a missing required concept is an expected outcome,
not an exception.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date

from xbrl_resolver.config import CapexPolicy, Settings
from xbrl_resolver.models import (
    AnchorPeriod,
    ComponentValue,
    ConceptResolution,
    EarningsScope,
    Err,
    MissingConcepts,
    Ok,
    PeriodDescriptor,
    ResolutionStage,
    ResolvedStatement,
    StatementFamily,
    StatementResult,
    UnresolvedReason,
)
from xbrl_resolver.anchor import AnchorPeriodResolver
from xbrl_resolver.periods import prior_period_end
from xbrl_resolver.resolution import ConceptResolver, ResolutionChain
from xbrl_resolver.tag_mappings import (
    BalanceConcept,
    CashFlowConcept,
    Concept,
    IncomeConcept,
)

log = logging.getLogger(__name__)


def _component(name: str, r: ConceptResolution) -> ComponentValue:
    return ComponentValue(name=name, tag=r.source_tag or name, value=r.value, context_ref=r.context_ref)


def _rename(r: ConceptResolution, concept: str) -> ConceptResolution:
    return r.model_copy(update={"concept": concept})


def difference(
    concept: str,
    left: ConceptResolution,
    right: ConceptResolution,
) -> ConceptResolution:
    """left - right, unresolved unless both sides resolved in the same unit."""
    if not left.resolved or not right.resolved:
        missing = [r.concept for r in (left, right) if not r.resolved]
        return ConceptResolution.unresolved(
            concept, UnresolvedReason.DEPENDENCY_UNRESOLVED, f"missing {', '.join(missing)}",
        )
    if left.unit != right.unit:
        return ConceptResolution.unresolved(
            concept, UnresolvedReason.UNIT_MISMATCH, f"{left.unit} vs {right.unit}",
        )
    return ConceptResolution(
        concept=concept,
        value=left.value - right.value,
        unit=left.unit,
        context_ref=left.context_ref,
        period=left.period,
        source_tag=f"{left.concept} - {right.concept}",
        stage=ResolutionStage.DERIVED,
        components=[_component(left.concept, left), _component(right.concept, right)],
        override_reasons=left.override_reasons + right.override_reasons,
        needs_review=left.needs_review or right.needs_review,
    )


def apply_capex_policy(
    concept: str,
    ppe: ConceptResolution,
    intangible: ConceptResolution,
    policy: CapexPolicy,
) -> ConceptResolution:
    """Capital expenditure as absolute outflow: |PPE| (+ |intangible| under PPE_PLUS_INTANGIBLE).

    PPE is always required; an intangible figure alone never becomes capex.
    """
    if not ppe.resolved:
        return ConceptResolution.unresolved(
            concept, UnresolvedReason.DEPENDENCY_UNRESOLVED, "capex_ppe unresolved",
        )

    value = abs(ppe.value)
    components = [ComponentValue(name="capex_ppe", tag=ppe.source_tag or "capex_ppe",
                                 value=value, context_ref=ppe.context_ref)]
    if policy == CapexPolicy.PPE_PLUS_INTANGIBLE and intangible.resolved:
        if intangible.unit != ppe.unit:
            log.warning("%s: intangible capex unit %s differs from %s; not added",
                        concept, intangible.unit, ppe.unit)
        else:
            value += abs(intangible.value)
            components.append(ComponentValue(
                name="capex_intangible", tag=intangible.source_tag or "capex_intangible",
                value=abs(intangible.value), context_ref=intangible.context_ref,
            ))

    return ConceptResolution(
        concept=concept,
        value=value,
        unit=ppe.unit,
        context_ref=ppe.context_ref,
        period=ppe.period,
        source_tag=" + ".join(c.tag for c in components),
        stage=ResolutionStage.POLICY,
        components=components,
        override_reasons=list(ppe.override_reasons),
        needs_review=ppe.needs_review,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Base assembler
# ═══════════════════════════════════════════════════════════════════════════

class StatementAssembler(ABC):
    family: StatementFamily

    def __init__(
        self,
        chain: ResolutionChain,
        settings: Settings,
        report_end_date: date | None = None,
        hint: AnchorPeriod | None = None,
    ):
        self.chain = chain
        self.settings = settings
        self.anchor = AnchorPeriodResolver(chain.index, self.family, settings, report_end_date, hint)
        self.resolver = ConceptResolver(chain, self.anchor)
        self.concepts: dict[str, ConceptResolution] = {}
        self.companions: dict[str, ConceptResolution] = {}
        self.missing: list[str] = []
        self.warnings: list[str] = []
        self.unit: str | None = None

    @abstractmethod
    def assemble(self) -> StatementResult:
        """Resolve this family's concepts into a statement or the missing list."""

    # ── Helpers ───────────────────────────────────────────────────────

    def _store(self, r: ConceptResolution, *, required: bool = False) -> ConceptResolution:
        self.concepts[r.concept] = r
        if r.resolved:
            if self.unit is None:
                self.unit = r.unit
        elif required:
            self.missing.append(r.concept)
        else:
            log.warning("%s: optional concept %s unresolved (%s)",
                        self.family.value, r.concept, r.reason.value if r.reason else "-")
        return r

    def _resolve(self, concept: Concept, *, required: bool = False) -> ConceptResolution:
        return self._store(self.resolver.resolve(concept, required=required), required=required)

    def _prior_year(self, concept: Concept) -> ConceptResolution:
        r = self.resolver.prior_year(concept, self.concepts.get(concept.value) or
                                     ConceptResolution.unresolved(concept.value, UnresolvedReason.NOT_FOUND))
        self.companions[r.concept] = r
        if r.resolved:
            log.info("%s: %s = %s (%s)", self.family.value, r.concept, r.value, r.period.describe())
        return r

    def _finish(self) -> StatementResult:
        self.warnings.extend(self.resolver.notes)
        for r in self.concepts.values():
            if r.override_reasons:
                self.warnings.append(
                    f"{r.concept}: anchor override ({', '.join(r.override_reasons)}), manual review"
                )

        if self.missing or self.anchor.anchor is None:
            missing = self.missing or [c for c, r in self.concepts.items() if not r.resolved]
            log.error("%s statement incomplete: missing %s", self.family.value, missing)
            return Err(error=MissingConcepts(
                family=self.family,
                missing=missing,
                anchor=self.anchor.anchor,
                partial=self.concepts,
            ))

        statement = ResolvedStatement(
            family=self.family,
            anchor=self.anchor.anchor,
            concepts=self.concepts,
            companions=self.companions,
            unit=self.unit,
            warnings=self.warnings,
        )
        statement.rederive_period_fields()
        return Ok(statement=statement)


# ═══════════════════════════════════════════════════════════════════════════
#  Income statement
# ═══════════════════════════════════════════════════════════════════════════

class IncomeAssembler(StatementAssembler):
    family = StatementFamily.INCOME

    _SCOPES = {
        EarningsScope.CONTINUING: (IncomeConcept.NET_INCOME_CONTINUING, IncomeConcept.EPS_CONTINUING),
        EarningsScope.TOTAL: (IncomeConcept.NET_INCOME_TOTAL, IncomeConcept.EPS_TOTAL),
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.earnings_scope: EarningsScope | None = None

    def assemble(self) -> StatementResult:
        self._resolve(IncomeConcept.REVENUE, required=True)
        self._resolve(IncomeConcept.OPERATING_INCOME, required=True)
        self._bind_earnings_scope()

        self._resolve(IncomeConcept.NET_INCOME_DISCONTINUED)
        self._resolve(IncomeConcept.EPS_DISCONTINUED)
        self._resolve(IncomeConcept.DEPRECIATION_AND_AMORTIZATION)

        if self.anchor.pinned:
            for concept in (IncomeConcept.REVENUE, IncomeConcept.OPERATING_INCOME, IncomeConcept.NET_INCOME):
                self._prior_year(concept)

        result = self._finish()
        if isinstance(result, Ok):
            result.statement.earnings_scope = self.earnings_scope
        return result

    def _bind_earnings_scope(self) -> None:
        """Net income and EPS come from the same scope (continuing vs. total)."""
        eps_continuing = self.resolver.resolve(IncomeConcept.EPS_CONTINUING)
        order = (
            [EarningsScope.CONTINUING, EarningsScope.TOTAL]
            if eps_continuing.resolved
            else [EarningsScope.TOTAL, EarningsScope.CONTINUING]
        )

        net_income = None
        for scope in order:
            ni_concept, _ = self._SCOPES[scope]
            candidate = self.resolver.resolve(ni_concept, required=False)
            if candidate.resolved:
                net_income, self.earnings_scope = candidate, scope
                break

        if net_income is None:
            log.error("income: net income unresolved in every scope")
            self._store(ConceptResolution.unresolved(
                IncomeConcept.NET_INCOME.value, UnresolvedReason.NOT_FOUND,
                "neither continuing nor total net income resolved",
            ), required=True)
            self._store(ConceptResolution.unresolved(
                IncomeConcept.EPS.value, UnresolvedReason.DEPENDENCY_UNRESOLVED, "net income unresolved",
            ))
            return

        self._store(_rename(net_income, IncomeConcept.NET_INCOME.value), required=True)
        log.debug("income: earnings scope %s", self.earnings_scope.value)

        _, eps_concept = self._SCOPES[self.earnings_scope]
        eps = eps_continuing if eps_concept == IncomeConcept.EPS_CONTINUING else self.resolver.resolve(eps_concept)
        self._store(_rename(eps, IncomeConcept.EPS.value))

    def _prior_year(self, concept: Concept) -> ConceptResolution:
        if concept != IncomeConcept.NET_INCOME:
            return super()._prior_year(concept)
        # Prior-year net income stays in the bound scope
        scoped, _ = self._SCOPES[self.earnings_scope] if self.earnings_scope else (None, None)
        primary = self.concepts.get(IncomeConcept.NET_INCOME.value)
        if scoped is None or primary is None:
            r = ConceptResolution.unresolved(
                f"{concept.value}_prior_year", UnresolvedReason.DEPENDENCY_UNRESOLVED,
            )
        else:
            r = _rename(self.resolver.prior_year(scoped, primary), f"{concept.value}_prior_year")
        self.companions[r.concept] = r
        return r


# ═══════════════════════════════════════════════════════════════════════════
#  Balance sheet
# ═══════════════════════════════════════════════════════════════════════════

class BalanceAssembler(StatementAssembler):
    family = StatementFamily.BALANCE

    _PRIOR_END = (
        BalanceConcept.TOTAL_EQUITY,
        BalanceConcept.CASH,
        BalanceConcept.INTEREST_BEARING_DEBT,
        BalanceConcept.TOTAL_LIABILITIES,
    )

    def __init__(self, *args, duration_anchor: AnchorPeriod | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.duration_anchor = duration_anchor

    def comparison_period(self) -> PeriodDescriptor | None:
        """Day before the duration anchor's start; one year back from the instant otherwise."""
        if self.duration_anchor is not None and self.duration_anchor.period.start_date is not None:
            return prior_period_end(self.duration_anchor.period)
        return self.anchor.prior_period_end()

    def assemble(self) -> StatementResult:
        for concept in (BalanceConcept.TOTAL_ASSETS, BalanceConcept.TOTAL_EQUITY, BalanceConcept.TOTAL_LIABILITIES):
            self._resolve(concept, required=True)

        self._resolve(BalanceConcept.OPERATING_ASSETS)
        nibl = self._resolve(BalanceConcept.NON_INTEREST_BEARING_LIABILITIES)
        if nibl.resolved and nibl.stage == ResolutionStage.AGGREGATE and len(nibl.components) < 2:
            self.warnings.append(
                f"{nibl.concept}: single operating-liability component ({nibl.components[0].tag})"
            )
        self._resolve(BalanceConcept.ACCOUNTS_RECEIVABLE)
        self._resolve(BalanceConcept.INVENTORY)
        cash = self._resolve(BalanceConcept.CASH)
        debt = self._resolve(BalanceConcept.INTEREST_BEARING_DEBT)
        self._store(difference(BalanceConcept.NET_CASH.value, cash, debt))

        if self.anchor.pinned:
            self._prior_end_companions()
        return self._finish()

    def _prior_end_companions(self) -> None:
        comparison = self.comparison_period()
        if comparison is None:
            log.debug("balance: no comparison instant")
            return
        log.debug("balance: prior period-end %s", comparison.describe())
        for concept in self._PRIOR_END:
            primary = self.concepts.get(concept.value)
            r = self.resolver.prior_period_end(concept, primary, comparison)
            self.companions[r.concept] = r
        self.companions["net_cash_prior_end"] = difference(
            "net_cash_prior_end",
            self.companions["cash_prior_end"],
            self.companions["interest_bearing_debt_prior_end"],
        )


# ═══════════════════════════════════════════════════════════════════════════
#  Cash flow statement
# ═══════════════════════════════════════════════════════════════════════════

class CashFlowAssembler(StatementAssembler):
    family = StatementFamily.CASH_FLOW

    def assemble(self) -> StatementResult:
        ocf = self.resolver.resolve(CashFlowConcept.OPERATING_CASH_FLOW, required=True)
        self._store(ocf, required=True)

        self._resolve(CashFlowConcept.INVESTING_CASH_FLOW)
        self._resolve(CashFlowConcept.FINANCING_CASH_FLOW)
        ppe = self._resolve(CashFlowConcept.CAPEX_PPE)
        intangible = self._resolve(CashFlowConcept.CAPEX_INTANGIBLE)

        capex = self._store(apply_capex_policy(
            CashFlowConcept.CAPITAL_EXPENDITURE.value, ppe, intangible, self.settings.capex_policy,
        ))
        self._store(difference(CashFlowConcept.FREE_CASH_FLOW.value, ocf, capex))

        if self.anchor.pinned:
            self._prior_year(CashFlowConcept.OPERATING_CASH_FLOW)
            ppe_prior = self.resolver.prior_year(CashFlowConcept.CAPEX_PPE, ppe)
            intangible_prior = self.resolver.prior_year(CashFlowConcept.CAPEX_INTANGIBLE, intangible)
            self.companions["capital_expenditure_prior_year"] = apply_capex_policy(
                "capital_expenditure_prior_year", ppe_prior, intangible_prior, self.settings.capex_policy,
            )
        return self._finish()
