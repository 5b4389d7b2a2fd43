"""Parsed filing document, fact table and context index.

The document is parsed once with lxml. Two derived structures are built
from it and never mutated afterwards:

  FilingDocument.facts  — pandas DataFrame, one row per numeric non-nil fact
                          (order, tag, prefix, local_name, context_ref,
                          value, unit, decimals, label), in document order
  ContextIndex          — explicit cache of Context objects (period +
                          dimension classification) keyed by context id

Lookups are namespace-independent: elements are matched on local name and
on the prefix the filer actually wrote, never on namespace URIs.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date
from typing import Any, Iterator

import pandas as pd
from lxml import etree

from xbrl_resolver.dimensions import classify_members
from xbrl_resolver.errors import MalformedDocumentError
from xbrl_resolver.models import Context, DimensionMember
from xbrl_resolver.periods import classify_period, parse_date
from xbrl_resolver.tag_mappings import TAXONOMY_PREFIXES, Taxonomy

log = logging.getLogger(__name__)

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

FACT_COLUMNS = [
    "order", "tag", "prefix", "local_name", "context_ref",
    "value", "unit", "decimals", "label",
]

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")
_NUMBER_NOISE = re.compile(r"[,\s]")

COMPANY_NAME_TAGS = ("EntityRegistrantName", "EntityName", "CompanyName", "RegistrantName")
_MAX_COMPANY_NAME = 100


# ═══════════════════════════════════════════════════════════════════════════
#  Element helpers
# ═══════════════════════════════════════════════════════════════════════════

def local_name(el: etree._Element) -> str:
    return etree.QName(el).localname


def qualified_name(el: etree._Element) -> str:
    name = local_name(el)
    return f"{el.prefix}:{name}" if el.prefix else name


def element_text(el: etree._Element) -> str:
    return "".join(el.itertext()).strip()


def parse_number(text: str | None) -> float | None:
    """'1,234,567' → 1234567.0. Commas and whitespace are noise; decimals are not applied."""
    if not text:
        return None
    cleaned = _NUMBER_NOISE.sub("", text)
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def is_nil(el: etree._Element) -> bool:
    return el.get(f"{{{XSI_NS}}}nil") == "true" or el.get("nil") == "true"


def element_label(el: etree._Element) -> str | None:
    """Human-readable label from a `label` attribute (any prefix) or a <label> child."""
    for key, value in el.attrib.items():
        if etree.QName(key).localname == "label" and value.strip():
            return value.strip()
    for child in el:
        if isinstance(child.tag, str) and local_name(child) == "label":
            text = element_text(child)
            if text:
                return text
    return None


def _unit_code(measures: list[str]) -> str | None:
    for m in measures:
        if "USD" in m:
            return "USD"
    for m in measures:
        if "KRW" in m:
            return "KRW"
    if measures:
        return measures[0].split(":")[-1]
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  Document
# ═══════════════════════════════════════════════════════════════════════════

class FilingDocument:
    """Navigable view over one parsed filing."""

    def __init__(self, root: etree._Element, default_unit: str | None = None):
        self.root = root
        self.default_unit = default_unit
        self._fact_elements: list[etree._Element] = []
        self._fact_order: dict[etree._Element, int] = {}
        self._units = self._build_units()
        self.facts = self._build_fact_table()
        log.debug("Parsed %d numeric facts, %d units", len(self.facts), len(self._units))

    # ── Construction ──────────────────────────────────────────────────

    def _build_units(self) -> dict[str, str]:
        units: dict[str, str] = {}
        for el in self.iter_local("unit"):
            unit_id = el.get("id")
            if not unit_id:
                continue
            measures = [
                element_text(m) for m in el.iter()
                if isinstance(m.tag, str) and local_name(m) == "measure"
            ]
            code = _unit_code(measures)
            if code:
                units[unit_id] = code
        return units

    def _build_fact_table(self) -> pd.DataFrame:
        rows: list[dict[str, Any]] = []
        for el in self.root.iter():
            if not isinstance(el.tag, str):
                continue
            context_ref = el.get("contextRef")
            if context_ref is None or is_nil(el):
                continue
            raw = element_text(el) if len(el) == 0 else (el.text or "")
            value = parse_number(raw)
            if value is None:
                continue
            order = len(self._fact_elements)
            self._fact_elements.append(el)
            self._fact_order[el] = order
            rows.append({
                "order": order,
                "tag": qualified_name(el),
                "prefix": el.prefix or "",
                "local_name": local_name(el),
                "context_ref": context_ref,
                "value": value,
                "unit": self._units.get(el.get("unitRef") or ""),
                "decimals": el.get("decimals"),
                "label": element_label(el),
            })
        df = pd.DataFrame(rows, columns=FACT_COLUMNS)
        df["local_lower"] = df["local_name"].str.lower()
        return df

    # ── Element access ────────────────────────────────────────────────

    def iter_local(self, name: str) -> Iterator[etree._Element]:
        """All elements with the given local name, any namespace."""
        for el in self.root.iter():
            if isinstance(el.tag, str) and local_name(el) == name:
                yield el

    def fact_element(self, order: int) -> etree._Element:
        return self._fact_elements[order]

    def fact_order(self, el: etree._Element) -> int | None:
        return self._fact_order.get(el)

    @property
    def fact_elements(self) -> list[etree._Element]:
        return self._fact_elements

    def unit_for(self, unit: str | None) -> str:
        return unit or self.default_unit or ""

    def local_names(self) -> dict[str, int]:
        """Local name → occurrence count over every element, in document order."""
        counts: dict[str, int] = {}
        for el in self.root.iter():
            if isinstance(el.tag, str):
                name = local_name(el)
                counts[name] = counts.get(name, 0) + 1
        return counts

    # ── Document-level facts ──────────────────────────────────────────

    def company_name(self) -> str | None:
        """EntityRegistrantName first, then an element *named* so, then other name tags."""
        for el in self.iter_local("EntityRegistrantName"):
            name = element_text(el)
            if 0 < len(name) < _MAX_COMPANY_NAME:
                return name

        for el in self.root.iter():
            if not isinstance(el.tag, str):
                continue
            name_attr = el.get("name") or ""
            if "entityregistrantname" in name_attr.lower():
                name = element_text(el)
                if 0 < len(name) < _MAX_COMPANY_NAME:
                    return name

        for tag in COMPANY_NAME_TAGS[1:]:
            for el in self.iter_local(tag):
                name = element_text(el)
                if 0 < len(name) < _MAX_COMPANY_NAME:
                    return name

        log.warning("Company name not found in document")
        return None

    def detect_taxonomy(self) -> Taxonomy:
        """Pick the variant whose prefixes tag the most facts; IFRS when none do."""
        if self.facts.empty:
            return Taxonomy.IFRS
        prefixes = self.facts["prefix"].value_counts()
        best, best_count = Taxonomy.IFRS, 0
        for taxonomy in (Taxonomy.IFRS, Taxonomy.GAAP):
            count = int(sum(prefixes.get(p, 0) for p in TAXONOMY_PREFIXES[taxonomy]))
            if count > best_count:
                best, best_count = taxonomy, count
        return best


def load_document(source: Any, default_unit: str | None = None) -> FilingDocument:
    """Parse bytes/str (or wrap an lxml tree) into a FilingDocument.

    Raises MalformedDocumentError for unparseable input or a document
    without any reporting context; nothing partial is returned.
    """
    if isinstance(source, FilingDocument):
        return source

    if isinstance(source, etree._ElementTree):
        root = source.getroot()
    elif isinstance(source, etree._Element):
        root = source
    else:
        if isinstance(source, str):
            data = _XML_DECLARATION.sub("", source, count=1).encode("utf-8")
        elif isinstance(source, (bytes, bytearray, memoryview)):
            data = bytes(source)
        else:
            raise MalformedDocumentError(f"Unsupported document source: {type(source).__name__}")
        if not data.strip():
            raise MalformedDocumentError("Empty document")
        parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
        try:
            root = etree.fromstring(data, parser=parser)
        except etree.XMLSyntaxError as exc:
            raise MalformedDocumentError(
                f"Unparseable document: {exc}",
                {"line": exc.lineno},
            ) from exc

    if root is None:
        raise MalformedDocumentError("Document has no root element")

    document = FilingDocument(root, default_unit=default_unit)
    if next(document.iter_local("context"), None) is None:
        raise MalformedDocumentError("Document contains no reporting contexts")
    return document


# ═══════════════════════════════════════════════════════════════════════════
#  Context index (explicit cache)
# ═══════════════════════════════════════════════════════════════════════════

def _parse_members(context_el: etree._Element) -> tuple[DimensionMember, ...]:
    members: list[DimensionMember] = []
    for el in context_el.iter():
        if not isinstance(el.tag, str):
            continue
        name = local_name(el)
        if name == "explicitMember":
            members.append(DimensionMember(el.get("dimension") or "", element_text(el)))
        elif name == "typedMember":
            value = element_text(el)
            if not value:
                child = next((c for c in el if isinstance(c.tag, str)), None)
                value = local_name(child) if child is not None else ""
            members.append(DimensionMember(el.get("dimension") or "", value, typed=True))
    return tuple(members)


def parse_context(context_el: etree._Element) -> Context | None:
    context_id = context_el.get("id")
    if not context_id:
        return None

    start = end = instant = None
    for el in context_el.iter():
        if not isinstance(el.tag, str):
            continue
        name = local_name(el)
        if name == "instant":
            instant = parse_date(element_text(el))
        elif name == "startDate":
            start = parse_date(element_text(el))
        elif name == "endDate":
            end = parse_date(element_text(el))

    members = _parse_members(context_el)
    return Context(
        id=context_id,
        period=classify_period(start=start, end=end, instant=instant),
        members=members,
        flags=classify_members(members),
    )


class ContextIndex:
    """Per-document context cache with an explicit build/invalidate lifecycle."""

    def __init__(self, document: FilingDocument):
        self._document = document
        self._contexts: dict[str, Context] | None = None

    def build(self) -> "ContextIndex":
        contexts: dict[str, Context] = {}
        for el in self._document.iter_local("context"):
            ctx = parse_context(el)
            if ctx is None:
                continue
            if ctx.id in contexts:
                log.warning("Duplicate context id %s; keeping the first", ctx.id)
                continue
            if ctx.period is None:
                log.debug("Context %s has no recognizable period", ctx.id)
            contexts[ctx.id] = ctx
        self._contexts = contexts
        log.debug("Context index built: %d contexts", len(contexts))
        return self

    def invalidate(self) -> None:
        self._contexts = None

    @property
    def contexts(self) -> dict[str, Context]:
        if self._contexts is None:
            raise RuntimeError("ContextIndex used before build()")
        return self._contexts

    @property
    def built(self) -> bool:
        return self._contexts is not None

    def get(self, context_ref: str | None) -> Context | None:
        if context_ref is None:
            return None
        return self.contexts.get(context_ref)

    def __len__(self) -> int:
        return len(self.contexts)

    def __iter__(self) -> Iterator[Context]:
        return iter(self.contexts.values())

    def latest_reference_date(self) -> date | None:
        """Latest end date / instant over all contexts (the report end date)."""
        dates = [c.period.reference_date for c in self if c.period is not None]
        return max(dates) if dates else None
