"""Anchor period resolution for one statement family.

The first required concept picks the anchor: candidates are narrowed to
the seed period (latest consolidated period of the preferred type) when
any match it, ranked, and the winner's period and contextRef are pinned.
Every later concept of the same family is filtered to that period before
scoring. An empty filtered set is an ANCHOR_MISMATCH, never a silent
fallback to another period.

Override: when the best period-consistent candidate is zero-valued (if
enabled), carries a segment/discontinued/NCI member, or has more than
`high_dimension_threshold` dimensions, a structurally clean candidate is
taken instead, flagged for review. The same triggers apply to the pinning
concept: a clean candidate in the seed pool wins, otherwise the flagged one
is kept for review and only its period is pinned, never its context.
"""

from __future__ import annotations

import logging
from datetime import date

from xbrl_resolver.config import Settings
from xbrl_resolver.document import ContextIndex
from xbrl_resolver.models import (
    AnchorPeriod,
    CandidateFact,
    ConceptResolution,
    PeriodDescriptor,
    PeriodType,
    StatementFamily,
    UnresolvedReason,
)
from xbrl_resolver.periods import prior_period_end, shift_year
from xbrl_resolver.scoring import default_target, is_selectable, rank_candidates, rank_key

log = logging.getLogger(__name__)

# Seed preference among periods sharing the latest end date
_SEED_ORDER = {PeriodType.YTD: 0, PeriodType.Q: 1, PeriodType.FY: 2}


class AnchorPeriodResolver:
    def __init__(
        self,
        index: ContextIndex,
        family: StatementFamily,
        settings: Settings,
        report_end_date: date | None = None,
        hint: AnchorPeriod | None = None,
    ):
        self.index = index
        self.family = family
        self.settings = settings
        self.report_end_date = report_end_date
        self.anchor: AnchorPeriod | None = None
        self._seed: PeriodDescriptor | None = None
        self._seed_done = False
        if hint is not None:
            # Hinted anchors (cash flow from income) keep their period, not their context
            self.anchor = AnchorPeriod(
                family=family,
                period=hint.period,
                context_ref=None,
                source_concept=hint.source_concept,
            )
            log.info("%s anchor hinted from %s: %s",
                     family.value, hint.family.value, hint.period.describe())

    # ── State ─────────────────────────────────────────────────────────

    @property
    def pinned(self) -> bool:
        return self.anchor is not None

    @property
    def context_ref(self) -> str | None:
        return self.anchor.context_ref if self.anchor else None

    @property
    def target(self) -> PeriodType:
        if self.anchor is not None:
            return self.anchor.period.period_type
        seed = self.seed_period()
        if seed is not None:
            return seed.period_type
        return default_target(self.family)

    def seed_period(self) -> PeriodDescriptor | None:
        """Latest consolidated period of this family's shape (instant or duration)."""
        if self._seed_done:
            return self._seed
        self._seed_done = True

        want_instant = self.family == StatementFamily.BALANCE
        periods = [
            ctx.period for ctx in self.index
            if ctx.period is not None
            and ctx.period.is_instant == want_instant
            and not ctx.flags.is_separate
            and not ctx.flags.has_disallowed_member
        ]
        if not periods:
            return None
        latest = max(p.reference_date for p in periods)
        at_latest = [p for p in periods if p.reference_date == latest]
        at_latest.sort(key=lambda p: _SEED_ORDER[p.period_type])
        self._seed = at_latest[0]
        log.debug("%s seed period: %s", self.family.value, self._seed.describe())
        return self._seed

    def in_anchor(self, c: CandidateFact) -> bool:
        return self.anchor is not None and self.anchor.period.same_period(c.period)

    def rank(self, candidates: list[CandidateFact]) -> list[CandidateFact]:
        return rank_candidates(candidates, self.target, self.report_end_date)

    def pin(self, concept: str, winner: CandidateFact, keep_context: bool = True) -> AnchorPeriod:
        context_ref = winner.context_ref if keep_context else None
        self.anchor = AnchorPeriod(
            family=self.family,
            period=winner.period,
            context_ref=context_ref,
            source_concept=concept,
        )
        log.info("%s anchor pinned by %s: %s (context=%s)",
                 self.family.value, concept, winner.period.describe(), context_ref)
        return self.anchor

    # ── Override triggers ─────────────────────────────────────────────

    def override_triggers(self, c: CandidateFact) -> list[str]:
        s = self.settings
        reasons = []
        if s.override_on_zero_value and c.value == 0:
            reasons.append("zero_value")
        if s.override_on_disallowed_member and c.flags.has_disallowed_member:
            reasons.append("disallowed_member")
        if s.override_on_high_dimension_count and c.dimension_count > s.high_dimension_threshold:
            reasons.append("high_dimension_count")
        return reasons

    # ── Selection ─────────────────────────────────────────────────────

    def select(
        self,
        concept: str,
        candidates: list[CandidateFact],
        *,
        required: bool = False,
    ) -> tuple[ConceptResolution, CandidateFact | None]:
        """Pick one candidate for `concept`; pins the anchor if none is pinned yet."""
        if self.anchor is None:
            return self._select_and_pin(concept, candidates)
        return self._select_anchored(concept, candidates, required=required)

    def _select_and_pin(
        self,
        concept: str,
        candidates: list[CandidateFact],
    ) -> tuple[ConceptResolution, CandidateFact | None]:
        pool = [c for c in candidates if c.period is not None]
        seed = self.seed_period()
        if seed is not None:
            in_seed = [c for c in pool if seed.same_period(c.period)]
            if in_seed:
                pool = in_seed
            else:
                log.debug("%s: no candidate in seed period %s; ranking all periods",
                          concept, seed.describe())

        ranked = [c for c in self.rank(pool) if is_selectable(c)]
        if not ranked:
            log.warning("%s: %d candidate(s), none selectable", concept, len(candidates))
            return ConceptResolution.unresolved(
                concept, UnresolvedReason.AMBIGUOUS,
                f"{len(candidates)} candidate(s), all rejected by scoring",
            ), None

        best = ranked[0]
        triggers = self.override_triggers(best)
        if not triggers:
            self.pin(concept, best)
            return ConceptResolution.from_candidate(concept, best), best

        clean = [c for c in ranked if not self.override_triggers(c)]
        if clean:
            alt = clean[0]
            log.warning("%s: override %s → %s@%s before pinning (%s)",
                        concept, best.context_ref, alt.tag, alt.context_ref, ", ".join(triggers))
            self.pin(concept, alt)
            return ConceptResolution.from_candidate(
                concept, alt, override_reasons=list(triggers), needs_review=True,
            ), alt

        log.warning("%s: override triggered (%s) but no cleaner candidate; keeping %s@%s",
                    concept, ", ".join(triggers), best.tag, best.context_ref)
        # A flagged context pins the period only
        self.pin(concept, best, keep_context=False)
        return ConceptResolution.from_candidate(
            concept, best, override_reasons=list(triggers), needs_review=True,
        ), best

    def _select_anchored(
        self,
        concept: str,
        candidates: list[CandidateFact],
        *,
        required: bool,
    ) -> tuple[ConceptResolution, CandidateFact | None]:
        filtered = [c for c in candidates if self.in_anchor(c)]
        if not filtered:
            level = logging.ERROR if required else logging.WARNING
            periods = sorted({c.period.describe() for c in candidates if c.period is not None})
            log.log(level, "%s: no candidate in anchor period %s (%d candidate(s) in %s)",
                    concept, self.anchor.period.describe(), len(candidates), periods)
            return ConceptResolution.unresolved(
                concept, UnresolvedReason.ANCHOR_MISMATCH,
                f"no fact for anchor period {self.anchor.period.describe()}",
            ), None

        ranked = self.rank(filtered)
        best = ranked[0]
        if self.anchor.context_ref is not None:
            for c in ranked:
                if c.context_ref == self.anchor.context_ref and is_selectable(c):
                    best = c
                    break

        triggers = self.override_triggers(best)
        if triggers:
            return self._override(concept, candidates, best, triggers)

        if not is_selectable(best):
            return ConceptResolution.unresolved(
                concept, UnresolvedReason.AMBIGUOUS,
                f"best candidate {best.tag}@{best.context_ref} rejected (score {best.score})",
            ), None
        return ConceptResolution.from_candidate(concept, best), best

    def _override(
        self,
        concept: str,
        candidates: list[CandidateFact],
        best: CandidateFact,
        triggers: list[str],
    ) -> tuple[ConceptResolution, CandidateFact | None]:
        ranked = self.rank(candidates)
        clean = [c for c in ranked if is_selectable(c) and not self.override_triggers(c)]
        # Cleaner candidates inside the anchor period come first
        clean.sort(key=lambda c: (not self.in_anchor(c),) + rank_key(c))

        if clean:
            alt = clean[0]
            reasons = list(triggers)
            if not self.in_anchor(alt):
                reasons.append("period_mismatch")
            log.warning("%s: override %s → %s@%s (%s)",
                        concept, best.context_ref, alt.tag, alt.context_ref, ", ".join(reasons))
            return ConceptResolution.from_candidate(
                concept, alt, override_reasons=reasons, needs_review=True,
            ), alt

        log.warning("%s: override triggered (%s) but no cleaner candidate; keeping %s@%s",
                    concept, ", ".join(triggers), best.tag, best.context_ref)
        if not is_selectable(best):
            return ConceptResolution.unresolved(
                concept, UnresolvedReason.AMBIGUOUS,
                f"only candidates with {', '.join(triggers)}",
            ), None
        return ConceptResolution.from_candidate(
            concept, best, override_reasons=triggers, needs_review=True,
        ), best

    # ── Companions ────────────────────────────────────────────────────

    def prior_year_period(self) -> PeriodDescriptor | None:
        if self.anchor is None:
            return None
        return shift_year(self.anchor.period, -1)

    def prior_period_end(self) -> PeriodDescriptor | None:
        if self.anchor is None:
            return None
        return prior_period_end(self.anchor.period)

    def companion(
        self,
        name: str,
        candidates: list[CandidateFact],
        primary: ConceptResolution,
        target: PeriodDescriptor,
        *,
        signature: str | None = None,
    ) -> ConceptResolution:
        """Best candidate at `target`; unit must equal the primary's unit."""
        pool = [c for c in candidates if target.same_period(c.period)]
        ranked = [c for c in self.rank(pool) if is_selectable(c)]
        if not ranked:
            log.debug("%s: no fact for %s", name, target.describe())
            return ConceptResolution.unresolved(
                name, UnresolvedReason.NOT_FOUND, f"no fact for {target.describe()}",
            )

        best = ranked[0]
        if signature is not None:
            same_sig = [c for c in ranked if c.signature == signature]
            if same_sig:
                best = same_sig[0]
            else:
                best = min(ranked, key=lambda c: (-(c.score or 0), len(c.signature), c.order))

        if best.unit != primary.unit:
            log.warning("%s: unit %s differs from primary unit %s; discarded",
                        name, best.unit, primary.unit)
            return ConceptResolution.unresolved(
                name, UnresolvedReason.UNIT_MISMATCH,
                f"{best.unit} vs {primary.unit}",
            )
        return ConceptResolution.from_candidate(name, best)
