"""Tag resolution chain: concept → candidate facts.

Resolution order (first stage with ≥1 candidate wins):
  1. Exact qualified tag (prefix:LocalName as written by the filer)
  2. Local name only (filer extensions vary the prefix, rarely the suffix)
  3. Structural position (statement section / neighbouring line items /
     conventional contextRef ids)
  4. Label similarity against concept keywords, then tag-name similarity
  5. Component aggregation (partial sums allowed, never zero-filled)

Concepts flagged components_first run stage 5 before stage 1. Candidates
from the winning stage are handed to the anchor resolver, which applies
the period filter and scoring.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import date

import pandas as pd
from lxml import etree

from xbrl_resolver.anchor import AnchorPeriodResolver
from xbrl_resolver.config import Settings
from xbrl_resolver.document import ContextIndex, FilingDocument, element_label, local_name
from xbrl_resolver.models import (
    CandidateFact,
    ComponentValue,
    ConceptResolution,
    PeriodDescriptor,
    ResolutionStage,
    UnresolvedReason,
)
from xbrl_resolver.scoring import is_selectable
from xbrl_resolver.tag_mappings import (
    ComponentGroup,
    Concept,
    ConceptMapping,
    StructuralHints,
    Taxonomy,
    all_tags,
    get_mapping,
    split_tag,
)

log = logging.getLogger(__name__)


class StageResult:
    """Candidates produced by the first successful stage."""

    __slots__ = ("stage", "candidates", "notes")

    def __init__(
        self,
        stage: ResolutionStage | None,
        candidates: list[CandidateFact] | None = None,
        notes: list[str] | None = None,
    ):
        self.stage = stage
        self.candidates = candidates or []
        self.notes = notes or []

    def __bool__(self) -> bool:
        return bool(self.candidates)


# ═══════════════════════════════════════════════════════════════════════════
#  Similarity
# ═══════════════════════════════════════════════════════════════════════════

def similarity(text: str, targets: Iterable[str]) -> float:
    """Best similarity of `text` against any target.

    exact match → 1.0; containment → length ratio × 0.9;
    otherwise the Dice coefficient over shared characters.
    """
    text_lower = text.lower()
    best = 0.0
    for target in targets:
        target_lower = target.lower()
        if not text_lower or not target_lower:
            continue
        if text_lower == target_lower:
            return 1.0
        if target_lower in text_lower or text_lower in target_lower:
            ratio = min(len(text_lower), len(target_lower)) / max(len(text_lower), len(target_lower))
            best = max(best, ratio * 0.9)
            continue
        common = sum((Counter(text_lower) & Counter(target_lower)).values())
        best = max(best, 2 * common / (len(text_lower) + len(target_lower)))
    return best


def _matches_field(name: str, field: str) -> bool:
    name = name.lower()
    if field in name:
        return True
    # Reverse containment only for names that cover most of the field
    return len(name) * 2 >= len(field) and name in field


# ═══════════════════════════════════════════════════════════════════════════
#  Missing-tag diagnostics
# ═══════════════════════════════════════════════════════════════════════════

_FAMILY_WORDS = ("earnings", "depreciation", "amortisation", "amortization")


def similar_local_names(
    concept: str,
    attempted_tags: list[str],
    available: Iterable[str],
    limit: int = 30,
) -> list[str]:
    """Local names in the document that look like what we were searching for."""
    attempted = [split_tag(t)[1].lower() for t in attempted_tags]
    names = list(available)
    found: list[str] = []
    for wanted in attempted:
        for name in names:
            lower = name.lower()
            if (
                lower in wanted
                or wanted in lower
                or any(w in wanted and w in lower for w in _FAMILY_WORDS)
            ) and name not in found:
                found.append(name)
    if "operating" in concept.lower():
        for name in names:
            lower = name.lower()
            if (
                lower.startswith("operating")
                and any(w in lower for w in ("income", "profit", "loss"))
                and name not in found
            ):
                found.append(name)
    return found[:limit]


def log_missing_tag(
    concept: str,
    attempted_tags: list[str],
    document: FilingDocument,
    settings: Settings,
    *,
    required: bool,
) -> None:
    level = logging.ERROR if required else logging.WARNING
    kind = "Required" if required else "Optional"
    names = document.local_names()
    similar = similar_local_names(concept, attempted_tags, names, settings.missing_tag_sample_size)
    if similar:
        log.log(level, "%s concept %s not found. Similar local names: %s", kind, concept, similar)
    else:
        sample = list(names)[: settings.missing_tag_sample_size]
        log.log(level, "%s concept %s not found. Local name sample: %s", kind, concept, sample)

    limit = settings.attempted_tag_sample_size
    if len(attempted_tags) > limit:
        log.log(level, "Attempted tags (first %d of %d): %s",
                limit, len(attempted_tags), attempted_tags[:limit])
    else:
        log.log(level, "Attempted tags: %s", attempted_tags)


# ═══════════════════════════════════════════════════════════════════════════
#  Resolution chain
# ═══════════════════════════════════════════════════════════════════════════

class ResolutionChain:
    """Ordered fallback strategies over one document."""

    def __init__(
        self,
        document: FilingDocument,
        index: ContextIndex,
        taxonomy: Taxonomy,
        settings: Settings,
    ):
        self.document = document
        self.index = index
        self.taxonomy = taxonomy
        self.settings = settings

    # ── Candidate construction ────────────────────────────────────────

    def _candidate(
        self,
        concept: str,
        *,
        tag: str,
        local: str,
        context_ref: str | None,
        value: float,
        unit: str | None,
        decimals: str | None,
        order: int,
        stage: ResolutionStage,
        tag_rank: int = 0,
        label: str | None = None,
    ) -> CandidateFact:
        ctx = self.index.get(context_ref)
        return CandidateFact(
            concept,
            tag,
            local,
            context_ref,
            float(value),
            self.document.unit_for(unit),
            decimals=decimals,
            order=order,
            period=ctx.period if ctx else None,
            flags=ctx.flags if ctx else None,
            signature=ctx.signature if ctx else "",
            stage=stage,
            tag_rank=tag_rank,
            label=label,
        )

    def _from_frame(self, concept: str, frame: pd.DataFrame, stage: ResolutionStage) -> list[CandidateFact]:
        if frame.empty:
            return []
        frame = frame.sort_values(["tag_rank", "order"], kind="mergesort")
        frame = frame.drop_duplicates("order", keep="first").sort_values("order", kind="mergesort")
        return [
            self._candidate(
                concept,
                tag=row.tag,
                local=row.local_name,
                context_ref=row.context_ref,
                value=row.value,
                unit=row.unit if isinstance(row.unit, str) else None,
                decimals=row.decimals if isinstance(row.decimals, str) else None,
                order=int(row.order),
                stage=stage,
                tag_rank=int(row.tag_rank),
                label=row.label if isinstance(row.label, str) else None,
            )
            for row in frame.itertuples(index=False)
        ]

    def _from_element(
        self,
        concept: str,
        el: etree._Element,
        stage: ResolutionStage,
        label: str | None = None,
    ) -> CandidateFact | None:
        order = self.document.fact_order(el)
        if order is None:
            return None
        row = self.document.facts.iloc[order]
        return self._candidate(
            concept,
            tag=row["tag"],
            local=row["local_name"],
            context_ref=row["context_ref"],
            value=row["value"],
            unit=row["unit"] if isinstance(row["unit"], str) else None,
            decimals=row["decimals"] if isinstance(row["decimals"], str) else None,
            order=order,
            stage=stage,
            label=label,
        )

    # ── Stage 1 & 2: tag matching on the fact table ───────────────────

    def match_exact(self, concept: str, tags: Iterable[str]) -> list[CandidateFact]:
        df = self.document.facts
        frames = []
        for rank, tag in enumerate(tags):
            prefix, local = split_tag(tag)
            if prefix is None:
                continue
            hit = df[(df["prefix"] == prefix) & (df["local_name"] == local)]
            if not hit.empty:
                frames.append(hit.assign(tag_rank=rank))
        if not frames:
            return []
        return self._from_frame(concept, pd.concat(frames), ResolutionStage.EXACT)

    def match_local(self, concept: str, tags: Iterable[str]) -> list[CandidateFact]:
        df = self.document.facts
        frames = []
        seen: set[str] = set()
        for rank, tag in enumerate(tags):
            local = split_tag(tag)[1].lower()
            if local in seen:
                continue
            seen.add(local)
            hit = df[df["local_lower"] == local]
            if not hit.empty:
                frames.append(hit.assign(tag_rank=rank))
        if not frames:
            return []
        return self._from_frame(concept, pd.concat(frames), ResolutionStage.LOCAL_NAME)

    def match_tags(self, concept: str, tags: Iterable[str]) -> list[CandidateFact]:
        tags = list(tags)
        return self.match_exact(concept, tags) or self.match_local(concept, tags)

    # ── Stage 3: structural position ──────────────────────────────────

    def match_structural(self, concept: str, hints: StructuralHints) -> list[CandidateFact]:
        facts = self.document.fact_elements
        field = hints.field

        for hint in hints.parent_tags:
            h = hint.lower()
            found = [
                el for el in facts
                if _matches_field(local_name(el), field)
                and any(
                    h in local_name(a).lower()
                    for a in el.iterancestors()
                    if isinstance(a.tag, str)
                )
            ]
            if found:
                log.debug("%s: structural match under <%s>: %d", concept, hint, len(found))
                return self._elements_to_candidates(concept, found)

        for hint in hints.sibling_tags:
            h = hint.lower()
            found: list[etree._Element] = []
            for el in facts:
                if h not in local_name(el).lower():
                    continue
                for neighbour in (el.getnext(), el.getprevious()):
                    if (
                        neighbour is not None
                        and isinstance(neighbour.tag, str)
                        and neighbour.get("contextRef") is not None
                        and _matches_field(local_name(neighbour), field)
                        and neighbour not in found
                    ):
                        found.append(neighbour)
            if found:
                log.debug("%s: structural match next to %s: %d", concept, hint, len(found))
                return self._elements_to_candidates(concept, found)

        for pattern in hints.context_patterns:
            found = [
                el for el in facts
                if pattern in (el.get("contextRef") or "")
                and _matches_field(local_name(el), field)
            ]
            if found:
                log.debug("%s: structural match on contextRef %s: %d", concept, pattern, len(found))
                return self._elements_to_candidates(concept, found)

        return []

    def _elements_to_candidates(self, concept: str, elements: list[etree._Element]) -> list[CandidateFact]:
        out = []
        for el in elements:
            c = self._from_element(concept, el, ResolutionStage.STRUCTURAL)
            if c is not None:
                out.append(c)
        out.sort(key=lambda c: c.order)
        return out

    # ── Stage 4: label similarity ─────────────────────────────────────

    def match_label(self, concept: str, keywords: tuple[str, ...]) -> list[CandidateFact]:
        floor = self.settings.label_similarity_floor
        facts = self.document.fact_elements

        scored: list[tuple[float, etree._Element, str]] = []
        for el in facts:
            label = element_label(el)
            if label:
                s = similarity(label, keywords)
                if s > floor:
                    scored.append((s, el, label))

        if not scored:
            # No usable labels: fall back to the tag's local name
            for el in facts:
                name = local_name(el)
                s = similarity(name, keywords)
                if s > floor:
                    scored.append((s, el, name))

        if not scored:
            return []

        best = max(s for s, _, _ in scored)
        winners = [(el, label) for s, el, label in scored if s == best]
        log.info("%s: similarity match %r (%.1f%%), %d fact(s)",
                 concept, winners[0][1], best * 100, len(winners))
        out = []
        for el, label in winners:
            c = self._from_element(concept, el, ResolutionStage.LABEL_SIMILARITY, label=label)
            if c is not None:
                out.append(c)
        return out

    # ── Stage 5: component aggregation ────────────────────────────────

    def _pick_component(
        self,
        group: ComponentGroup,
        concept: str,
        anchor: AnchorPeriodResolver,
        target: PeriodDescriptor | None,
        first: CandidateFact | None,
    ) -> CandidateFact | None:
        pool = self.match_tags(f"{concept}.{group.name}", group.tags)
        if not pool:
            return None
        if first is not None:
            pool = [c for c in pool if c.period is not None and first.period.same_period(c.period)]
            same_unit = [c for c in pool if c.unit == first.unit]
            if pool and not same_unit:
                log.warning("%s: component %s only in unit %s (expected %s); skipped",
                            concept, group.name, pool[0].unit, first.unit)
            pool = same_unit
        elif target is not None:
            pool = [c for c in pool if target.same_period(c.period)]
        elif anchor.pinned:
            pool = [c for c in pool if anchor.in_anchor(c)]

        ranked = [c for c in anchor.rank(pool) if is_selectable(c)]
        if not ranked:
            return None
        preferred = anchor.context_ref
        if preferred:
            for c in ranked:
                if c.context_ref == preferred:
                    return c
        return ranked[0]

    def aggregate(
        self,
        concept: str,
        mapping: ConceptMapping,
        anchor: AnchorPeriodResolver,
        target: PeriodDescriptor | None = None,
    ) -> StageResult:
        if not mapping.components:
            return StageResult(None)

        parts: list[tuple[ComponentGroup, CandidateFact]] = []
        missing: list[str] = []
        for group in mapping.components:
            first = parts[0][1] if parts else None
            picked = self._pick_component(group, concept, anchor, target, first)
            if picked is None:
                missing.append(group.name)
            else:
                parts.append((group, picked))

        if not parts:
            return StageResult(None)

        total = 0.0
        components: list[ComponentValue] = []
        for group, c in parts:
            value = abs(c.value) if group.absolute else c.value
            total += value
            components.append(ComponentValue(
                name=group.name, tag=c.tag, value=value, context_ref=c.context_ref,
            ))

        head = parts[0][1]
        aggregated = CandidateFact(
            concept,
            " + ".join(c.tag for _, c in parts),
            head.local_name,
            head.context_ref,
            total,
            head.unit,
            decimals=head.decimals,
            order=head.order,
            period=head.period,
            flags=head.flags,
            signature=head.signature,
            stage=ResolutionStage.AGGREGATE,
            components=components,
        )

        notes = []
        if missing:
            notes.append(f"{concept}: partial sum, missing components {missing}")
        if len(parts) < mapping.expected_components:
            notes.append(
                f"{concept}: aggregated from {len(parts)} component(s), "
                f"expected at least {mapping.expected_components}"
            )
        for note in notes:
            log.warning(note)
        log.debug("%s: aggregated %s = %s", concept, [p.name for p in components], total)
        return StageResult(ResolutionStage.AGGREGATE, [aggregated], notes)

    # ── Chain ─────────────────────────────────────────────────────────

    def collect(
        self,
        concept: str,
        mapping: ConceptMapping,
        anchor: AnchorPeriodResolver,
        target: PeriodDescriptor | None = None,
    ) -> StageResult:
        """Run the stages in order and return the first non-empty result."""
        if mapping.components_first:
            result = self.aggregate(concept, mapping, anchor, target)
            if result:
                return result

        found = self.match_exact(concept, mapping.tags)
        if found:
            return StageResult(ResolutionStage.EXACT, found)

        found = self.match_local(concept, mapping.tags)
        if found:
            return StageResult(ResolutionStage.LOCAL_NAME, found)

        if mapping.hints is not None:
            found = self.match_structural(concept, mapping.hints)
            if found:
                return StageResult(ResolutionStage.STRUCTURAL, found)

        if mapping.keywords:
            found = self.match_label(concept, mapping.keywords)
            if found:
                return StageResult(ResolutionStage.LABEL_SIMILARITY, found)

        if not mapping.components_first:
            result = self.aggregate(concept, mapping, anchor, target)
            if result:
                return result

        return StageResult(None)


# ═══════════════════════════════════════════════════════════════════════════
#  Concept resolver (chain + anchor for one statement family)
# ═══════════════════════════════════════════════════════════════════════════

class ConceptResolver:
    """Resolves concepts of one statement family under its anchor period."""

    def __init__(self, chain: ResolutionChain, anchor: AnchorPeriodResolver):
        self.chain = chain
        self.anchor = anchor
        self.notes: list[str] = []
        self._primary: dict[str, CandidateFact] = {}

    def _mapping(self, concept: Concept) -> ConceptMapping:
        return get_mapping(self.chain.taxonomy, concept)

    def resolve(self, concept: Concept, *, required: bool = False) -> ConceptResolution:
        name = concept.value
        mapping = self._mapping(concept)
        result = self.chain.collect(name, mapping, self.anchor)
        self.notes.extend(result.notes)

        if not result:
            log_missing_tag(name, all_tags(mapping), self.chain.document,
                            self.chain.settings, required=required)
            return ConceptResolution.unresolved(
                name, UnresolvedReason.NOT_FOUND, "no candidate in any resolution stage",
            )

        log.debug("%s: %d candidate(s) from stage %s",
                  name, len(result.candidates), result.stage.value)
        resolution, winner = self.anchor.select(name, result.candidates, required=required)
        if winner is not None:
            self._primary[name] = winner
        return resolution

    def prior_year(self, concept: Concept, primary: ConceptResolution) -> ConceptResolution:
        """Same period one year earlier, anchor-free, unit must match the primary."""
        name = f"{concept.value}_prior_year"
        target = self.anchor.prior_year_period()
        if target is None or not primary.resolved:
            return ConceptResolution.unresolved(name, UnresolvedReason.DEPENDENCY_UNRESOLVED)
        result = self.chain.collect(name, self._mapping(concept), self.anchor, target)
        return self.anchor.companion(name, result.candidates, primary, target)

    def prior_period_end(
        self,
        concept: Concept,
        primary: ConceptResolution,
        comparison: PeriodDescriptor | None,
    ) -> ConceptResolution:
        """Balance value at the comparison instant, matched by dimensional signature first."""
        name = f"{concept.value}_prior_end"
        if comparison is None or not primary.resolved:
            return ConceptResolution.unresolved(name, UnresolvedReason.DEPENDENCY_UNRESOLVED)
        result = self.chain.collect(name, self._mapping(concept), self.anchor, comparison)
        winner = self._primary.get(concept.value)
        signature = winner.signature if winner is not None else None
        return self.anchor.companion(name, result.candidates, primary, comparison, signature=signature)


def report_reference_date(index: ContextIndex, supplied: date | None) -> date | None:
    return supplied if supplied is not None else index.latest_reference_date()
