"""Shared fixtures: small in-memory XBRL instance documents."""

from __future__ import annotations

from xml.sax.saxutils import escape

import pytest

from xbrl_resolver.config import Settings

NAMESPACES = {
    "xbrli": "http://www.xbrl.org/2003/instance",
    "xbrldi": "http://xbrl.org/2006/xbrldi",
    "iso4217": "http://www.xbrl.org/2003/iso4217",
    "ifrs-full": "http://xbrl.ifrs.org/taxonomy/2023-03-23/ifrs-full",
    "us-gaap": "http://fasb.org/us-gaap/2024",
    "dart": "http://dart.fss.or.kr/xbrl/2024",
    "dei": "http://xbrl.sec.gov/dei/2024",
    "entity00126380": "http://dart.fss.or.kr/entity/00126380",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}

SEGMENT = ("ifrs-full:SegmentsAxis", "ifrs-full:OperatingSegmentsMember")
SEPARATE = ("ifrs-full:ConsolidatedAndSeparateFinancialStatementsAxis", "ifrs-full:SeparateMember")
DISCONTINUED = ("ifrs-full:ContinuingAndDiscontinuedOperationsAxis", "ifrs-full:DiscontinuedOperationsMember")


class FilingBuilder:
    """Accumulates contexts, units and facts, then renders an instance document."""

    def __init__(self):
        self.contexts: list[str] = []
        self.units: dict[str, str] = {
            "KRW": "<xbrli:measure>iso4217:KRW</xbrli:measure>",
            "USD": "<xbrli:measure>iso4217:USD</xbrli:measure>",
            "EUR": "<xbrli:measure>iso4217:EUR</xbrli:measure>",
            "KRWPerShare": (
                "<xbrli:divide>"
                "<xbrli:unitNumerator><xbrli:measure>iso4217:KRW</xbrli:measure></xbrli:unitNumerator>"
                "<xbrli:unitDenominator><xbrli:measure>xbrli:shares</xbrli:measure></xbrli:unitDenominator>"
                "</xbrli:divide>"
            ),
        }
        self.body: list[str] = []

    def _context(self, context_id: str, period_xml: str, members) -> str:
        segment = ""
        if members:
            segment = "<xbrli:segment>" + "".join(
                f'<xbrldi:explicitMember dimension="{dim}">{member}</xbrldi:explicitMember>'
                for dim, member in members
            ) + "</xbrli:segment>"
        self.contexts.append(
            f'<xbrli:context id="{context_id}">'
            f'<xbrli:entity><xbrli:identifier scheme="http://dart.fss.or.kr">00126380</xbrli:identifier>'
            f"{segment}</xbrli:entity>"
            f"<xbrli:period>{period_xml}</xbrli:period></xbrli:context>"
        )
        return context_id

    def duration(self, context_id: str, start: str, end: str, members=()) -> str:
        return self._context(
            context_id,
            f"<xbrli:startDate>{start}</xbrli:startDate><xbrli:endDate>{end}</xbrli:endDate>",
            members,
        )

    def instant(self, context_id: str, day: str, members=()) -> str:
        return self._context(context_id, f"<xbrli:instant>{day}</xbrli:instant>", members)

    def fact(
        self,
        tag: str,
        context: str,
        value,
        unit: str = "KRW",
        decimals: str = "-6",
        label: str | None = None,
        nil: bool = False,
    ) -> "FilingBuilder":
        attrs = f'contextRef="{context}" unitRef="{unit}" decimals="{decimals}"'
        if label is not None:
            attrs += f' label="{escape(label)}"'
        if nil:
            self.body.append(f'<{tag} {attrs} xsi:nil="true"/>')
        else:
            text = value if isinstance(value, str) else f"{value}"
            self.body.append(f"<{tag} {attrs}>{text}</{tag}>")
        return self

    def raw(self, xml: str) -> "FilingBuilder":
        self.body.append(xml)
        return self

    def xml(self) -> str:
        ns = " ".join(f'xmlns:{p}="{uri}"' for p, uri in NAMESPACES.items())
        units = "".join(f'<xbrli:unit id="{uid}">{m}</xbrli:unit>' for uid, m in self.units.items())
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            f"<xbrli:xbrl {ns}>"
            + "".join(self.contexts)
            + units
            + "".join(self.body)
            + "</xbrli:xbrl>"
        )

    def bytes(self) -> bytes:
        return self.xml().encode("utf-8")


def quarterly_ifrs() -> FilingBuilder:
    """Q3 2025 consolidated IFRS filing with the usual distractor contexts."""
    b = FilingBuilder()
    b.duration("CFY", "2025-01-01", "2025-09-30")
    b.duration("CQ3", "2025-07-01", "2025-09-30")
    b.duration("PFY", "2024-01-01", "2024-09-30")
    b.duration("CSEG", "2025-01-01", "2025-09-30", [SEGMENT])
    b.duration("CSEP", "2025-01-01", "2025-09-30", [SEPARATE])
    b.instant("I2025", "2025-09-30")
    b.instant("I2024", "2024-12-31")
    b.instant("I2025SEP", "2025-09-30", [SEPARATE])

    b.raw('<dart:EntityRegistrantName contextRef="CFY">Samsung Example Co., Ltd.</dart:EntityRegistrantName>')

    # Income statement
    b.fact("ifrs-full:Revenue", "CFY", "300,000")
    b.fact("ifrs-full:Revenue", "CQ3", 100000)
    b.fact("ifrs-full:Revenue", "PFY", 280000)
    b.fact("ifrs-full:Revenue", "CSEG", 120000)
    b.fact("ifrs-full:Revenue", "CSEP", 200000)
    b.fact("ifrs-full:OperatingProfitLoss", "CFY", 30000)
    b.fact("ifrs-full:OperatingProfitLoss", "CSEG", 15000)
    b.fact("ifrs-full:OperatingProfitLoss", "PFY", 25000)
    b.fact("ifrs-full:ProfitLoss", "CFY", 20000)
    b.fact("ifrs-full:ProfitLoss", "PFY", 18000)
    b.fact("ifrs-full:BasicEarningsLossPerShare", "CFY", 1500, unit="KRWPerShare", decimals="0")
    b.fact("ifrs-full:DepreciationExpense", "CFY", 8000)
    b.fact("ifrs-full:AmortisationExpense", "CFY", -2000)

    # Balance sheet
    b.fact("ifrs-full:Assets", "I2025", 1000000)
    b.fact("ifrs-full:Assets", "I2024", 950000)
    b.fact("ifrs-full:Assets", "I2025SEP", 600000)
    b.fact("ifrs-full:Liabilities", "I2025", 400000)
    b.fact("ifrs-full:Liabilities", "I2024", 380000)
    b.fact("ifrs-full:Equity", "I2025", 600000)
    b.fact("ifrs-full:Equity", "I2024", 570000)
    b.fact("ifrs-full:CashAndCashEquivalents", "I2025", 120000)
    b.fact("ifrs-full:CashAndCashEquivalents", "I2024", 100000)
    b.fact("ifrs-full:ShortTermBorrowings", "I2025", 50000)
    b.fact("ifrs-full:LongTermBorrowings", "I2025", 80000)
    b.fact("ifrs-full:ShortTermBorrowings", "I2024", 40000)
    b.fact("ifrs-full:LongTermBorrowings", "I2024", 90000)
    b.fact("ifrs-full:Inventories", "I2025", 0)

    # Cash flow statement
    b.fact("ifrs-full:CashFlowsFromUsedInOperatingActivities", "CFY", 60000)
    b.fact("ifrs-full:CashFlowsFromUsedInOperatingActivities", "PFY", 55000)
    b.fact("ifrs-full:PurchaseOfPropertyPlantAndEquipment", "CFY", -25000)
    b.fact("ifrs-full:PurchaseOfPropertyPlantAndEquipment", "PFY", -20000)
    b.fact("ifrs-full:PaymentsToAcquireIntangibleAssets", "CFY", -5000)
    return b


@pytest.fixture
def builder() -> FilingBuilder:
    return FilingBuilder()


@pytest.fixture
def ifrs_filing() -> FilingBuilder:
    return quarterly_ifrs()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)
