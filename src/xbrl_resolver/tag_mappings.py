"""Taxonomy tag tables: concept enum → ordered candidate tags.

Two taxonomy variants:
  - IFRS  — domestic filings (ifrs-full / dart / kasb prefixes, Korean
            local names on older filings)
  - GAAP  — US-style filings (us-gaap prefix)

Each concept maps to a ConceptMapping:
  tags        — ordered qualified (prefix:Local) or bare local-name tags
  components  — optional addend groups for stage 5 aggregation; each
                group contributes at most one fact (first tag that hits)
  keywords    — optional label keywords for stage 4 similarity search
  hints       — optional structural hints for stage 3 inference

A concept that is derived or scope-bound (net_income, eps,
capital_expenditure, free_cash_flow, net_cash) has no table entry.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Union


# ═══════════════════════════════════════════════════════════════════════════
#  Taxonomy & concept identifiers
# ═══════════════════════════════════════════════════════════════════════════

class Taxonomy(str, Enum):
    IFRS = "ifrs"
    GAAP = "gaap"


class IncomeConcept(str, Enum):
    REVENUE = "revenue"
    OPERATING_INCOME = "operating_income"
    NET_INCOME = "net_income"                     # scope-bound result
    NET_INCOME_CONTINUING = "net_income_continuing"
    NET_INCOME_TOTAL = "net_income_total"
    NET_INCOME_DISCONTINUED = "net_income_discontinued"
    EPS = "eps"                                   # scope-bound result
    EPS_CONTINUING = "eps_continuing"
    EPS_TOTAL = "eps_total"
    EPS_DISCONTINUED = "eps_discontinued"
    DEPRECIATION_AND_AMORTIZATION = "depreciation_and_amortization"


class BalanceConcept(str, Enum):
    TOTAL_ASSETS = "total_assets"
    TOTAL_LIABILITIES = "total_liabilities"
    TOTAL_EQUITY = "total_equity"
    OPERATING_ASSETS = "operating_assets"
    NON_INTEREST_BEARING_LIABILITIES = "non_interest_bearing_liabilities"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    INVENTORY = "inventory"
    CASH = "cash"
    INTEREST_BEARING_DEBT = "interest_bearing_debt"
    NET_CASH = "net_cash"                         # derived: cash - debt


class CashFlowConcept(str, Enum):
    OPERATING_CASH_FLOW = "operating_cash_flow"
    INVESTING_CASH_FLOW = "investing_cash_flow"
    FINANCING_CASH_FLOW = "financing_cash_flow"
    CAPEX_PPE = "capex_ppe"
    CAPEX_INTANGIBLE = "capex_intangible"
    CAPITAL_EXPENDITURE = "capital_expenditure"   # capex policy result
    FREE_CASH_FLOW = "free_cash_flow"             # derived: ocf - capex


Concept = Union[IncomeConcept, BalanceConcept, CashFlowConcept]

CONCEPT_NAMES = frozenset(c.value for e in (IncomeConcept, BalanceConcept, CashFlowConcept) for c in e)


# ═══════════════════════════════════════════════════════════════════════════
#  Mapping entry types
# ═══════════════════════════════════════════════════════════════════════════

class ComponentGroup(NamedTuple):
    name: str                   # addend label, e.g. "depreciation"
    tags: tuple[str, ...]       # ordered tags, first hit wins
    absolute: bool = False      # sum |value| (payments reported negative)


class StructuralHints(NamedTuple):
    field: str                          # lowercased field name matched against local names
    parent_tags: tuple[str, ...]        # statement section element names
    sibling_tags: tuple[str, ...]       # neighbouring line items
    context_patterns: tuple[str, ...]   # substrings of conventional contextRef ids


class ConceptMapping(NamedTuple):
    tags: tuple[str, ...]
    components: tuple[ComponentGroup, ...] | None = None
    keywords: tuple[str, ...] | None = None
    hints: StructuralHints | None = None
    expected_components: int = 1       # fewer found components → warning
    components_first: bool = False     # try aggregation before single tags


def split_tag(tag: str) -> tuple[str | None, str]:
    """'us-gaap:Revenues' → ('us-gaap', 'Revenues'); 'Revenue' → (None, 'Revenue')."""
    if ":" in tag:
        prefix, local = tag.split(":", 1)
        return prefix, local
    return None, tag


# ═══════════════════════════════════════════════════════════════════════════
#  Label keywords & structural hints
# ═══════════════════════════════════════════════════════════════════════════

LABEL_KEYWORDS: dict[str, tuple[str, ...]] = {
    "revenue": ("매출액", "매출", "수익", "revenue", "sales"),
    "operating_income": ("영업이익", "영업손익", "operating income", "operating profit"),
    "net_income": ("당기순이익", "순이익", "net income", "profit", "loss"),
    "total_assets": ("자산총계", "총자산", "total assets", "assets"),
    "total_liabilities": ("부채총계", "총부채", "total liabilities", "liabilities"),
    "total_equity": ("자본총계", "총자본", "total equity", "equity"),
}

_INCOME_PARENTS = ("incomeStatement", "statement", "financial")
_INCOME_SIBLINGS = ("revenue", "operatingIncome", "netIncome", "profit", "loss")
_INCOME_CONTEXTS = ("CurrentYear", "Instant", "Duration")

_BALANCE_PARENTS = ("balanceSheet", "statement", "financial")
_BALANCE_SIBLINGS = ("assets", "liabilities", "equity")
_BALANCE_CONTEXTS = ("CurrentYear", "Instant")

_CASH_FLOW_PARENTS = ("cashFlowStatement", "statement", "financial")
_CASH_FLOW_SIBLINGS = ("operating", "investing", "financing", "cash")
_CASH_FLOW_CONTEXTS = ("CurrentYear", "Duration")


def _income_hints(field: str) -> StructuralHints:
    return StructuralHints(field, _INCOME_PARENTS, _INCOME_SIBLINGS, _INCOME_CONTEXTS)


def _balance_hints(field: str) -> StructuralHints:
    return StructuralHints(field, _BALANCE_PARENTS, _BALANCE_SIBLINGS, _BALANCE_CONTEXTS)


def _cash_flow_hints(field: str) -> StructuralHints:
    return StructuralHints(field, _CASH_FLOW_PARENTS, _CASH_FLOW_SIBLINGS, _CASH_FLOW_CONTEXTS)


# ═══════════════════════════════════════════════════════════════════════════
#  IFRS (domestic) table
# ═══════════════════════════════════════════════════════════════════════════

_IFRS_DEPRECIATION = ComponentGroup("depreciation", (
    "ifrs-full:DepreciationExpense",
    "ifrs-full:DepreciationPropertyPlantAndEquipment",
    "ifrs-full:AdjustmentsForDepreciationExpense",
    "ifrs-full:DepreciationRightofuseAssets",
    "DepreciationExpense",
    "감가상각비",
))

_IFRS_AMORTISATION = ComponentGroup("amortisation", (
    "ifrs-full:AmortisationExpense",
    "ifrs-full:AmortisationIntangibleAssetsOtherThanGoodwill",
    "ifrs-full:AmortizationIntangibleAssetsOtherThanGoodwill",
    "ifrs-full:AdjustmentsForAmortisationExpense",
    "ifrs-full:AdjustmentsForAmortizationExpense",
    "AmortisationExpense",
    "AmortizationExpense",
    "무형자산상각비",
), absolute=True)

_IFRS_OPERATING_LIABILITIES = (
    ComponentGroup("payables", (
        "ifrs-full:TradeAndOtherPayables",
        "ifrs-full:TradePayables",
        "ifrs-full:OtherPayables",
        "TradePayables",
        "매입채무",
        "기타채무",
    )),
    ComponentGroup("contract_liabilities", (
        "ifrs-full:ContractLiabilities",
        "ifrs-full:AdvancesReceived",
        "ContractLiabilities",
        "선수금",
        "계약부채",
    )),
    ComponentGroup("accrued", (
        "ifrs-full:AccruedLiabilities",
        "ifrs-full:OtherCurrentLiabilities",
        "AccruedLiabilities",
        "OtherCurrentLiabilities",
        "미지급비용",
        "기타유동부채",
    )),
    ComponentGroup("provisions", (
        "ifrs-full:ProvisionsCurrent",
        "ifrs-full:Provisions",
        "Provisions",
        "충당부채",
    )),
)

_IFRS_DEBT_COMPONENTS = (
    ComponentGroup("short_term_borrowings", (
        "ifrs-full:ShortTermBorrowings",
        "ifrs-full:CurrentBorrowings",
        "ifrs-full:BorrowingsCurrent",
        "ifrs-full:CurrentLoansReceived",
        "ShortTermBorrowings",
        "CurrentBorrowings",
        "단기차입금",
    ), absolute=True),
    ComponentGroup("current_portion_long_term", (
        "ifrs-full:CurrentPortionOfNoncurrentBorrowings",
        "ifrs-full:CurrentLoansReceivedOfCurrentLiabilities",
        "CurrentPortionOfNoncurrentBorrowings",
        "CurrentLoansReceivedOfCurrentLiabilities",
        "유동성장기부채",
    ), absolute=True),
    ComponentGroup("long_term_borrowings", (
        "ifrs-full:LongTermBorrowings",
        "ifrs-full:NonCurrentBorrowings",
        "ifrs-full:BorrowingsNoncurrent",
        "ifrs-full:NoncurrentPortionOfNoncurrentLoansReceived",
        "ifrs-full:NoncurrentLoansReceived",
        "LongTermBorrowings",
        "NonCurrentBorrowings",
        "장기차입금",
    ), absolute=True),
    ComponentGroup("bonds", (
        "ifrs-full:BondsPayable",
        "ifrs-full:DebtSecurities",
        "ifrs-full:DebtSecuritiesNoncurrent",
        "BondsPayable",
        "DebtSecurities",
        "사채",
        "회사채",
    ), absolute=True),
)

_IFRS: dict[Concept, ConceptMapping] = {
    # --- Income statement ---
    IncomeConcept.REVENUE: ConceptMapping(
        tags=(
            "ifrs-full:Revenue",
            "ifrs-full:RevenueFromContractsWithCustomers",
            "ifrs:Revenue",
            "kasb:Revenue",
            "Revenue",
            "매출액",
        ),
        keywords=LABEL_KEYWORDS["revenue"],
        hints=_income_hints("revenue"),
    ),
    IncomeConcept.OPERATING_INCOME: ConceptMapping(
        tags=(
            "ifrs-full:OperatingProfitLoss",
            "ifrs-full:ProfitLossFromOperatingActivities",
            "dart:OperatingProfitLoss",
            "dart:OperatingIncomeLoss",
            "dart_OperatingProfitLoss",
            "dart_OperatingIncomeLoss",
            "ifrs:OperatingIncome",
            "kasb:OperatingIncome",
            "kasb:OperatingProfitLoss",
            "OperatingIncome",
            "OperatingProfitLoss",
            "OperatingIncomeLoss",
            "영업이익",
            "영업손익",
        ),
        keywords=LABEL_KEYWORDS["operating_income"],
        hints=_income_hints("operatingincome"),
    ),
    IncomeConcept.EPS_CONTINUING: ConceptMapping(tags=(
        "ifrs-full:BasicEarningsLossPerShareFromContinuingOperations",
        "ifrs-full:DilutedEarningsLossPerShareFromContinuingOperations",
        "BasicEarningsLossPerShareFromContinuingOperations",
        "DilutedEarningsLossPerShareFromContinuingOperations",
    )),
    IncomeConcept.EPS_TOTAL: ConceptMapping(tags=(
        "ifrs-full:BasicEarningsLossPerShare",
        "ifrs-full:DilutedEarningsLossPerShare",
        "ifrs-full:EarningsPerShare",
        "ifrs:EPS",
        "kasb:EPS",
        "EPS",
        "BasicEarningsLossPerShare",
        "DilutedEarningsLossPerShare",
        "EarningsPerShare",
        "주당순이익",
    )),
    IncomeConcept.EPS_DISCONTINUED: ConceptMapping(tags=(
        "ifrs-full:BasicEarningsLossPerShareFromDiscontinuedOperations",
        "ifrs-full:DilutedEarningsLossPerShareFromDiscontinuedOperations",
        "BasicEarningsLossPerShareFromDiscontinuedOperations",
        "DilutedEarningsLossPerShareFromDiscontinuedOperations",
    )),
    IncomeConcept.NET_INCOME_CONTINUING: ConceptMapping(tags=(
        "ifrs-full:ProfitLossFromContinuingOperations",
        "ifrs-full:ProfitLossFromContinuingOperationsAttributableToOwnersOfParent",
        "dart:ProfitLossFromContinuingOperations",
        "dart_ProfitLossFromContinuingOperations",
        "ProfitLossFromContinuingOperations",
        "계속영업순이익",
        "계속영업당기순이익",
    )),
    IncomeConcept.NET_INCOME_TOTAL: ConceptMapping(
        tags=(
            "ifrs-full:ProfitLoss",
            "ifrs-full:ProfitLossAttributableToOwnersOfParent",
            "ifrs-full:ProfitLossAttributableToOwnersOfParentAndNoncontrollingInterests",
            "dart:ProfitLoss",
            "dart:ProfitLossAttributableToOwnersOfParent",
            "dart_ProfitLoss",
            "dart_ProfitLossAttributableToOwnersOfParent",
            "ifrs:NetIncome",
            "kasb:NetIncome",
            "NetIncome",
            "ProfitLoss",
            "ProfitLossAttributableToOwnersOfParent",
            "당기순이익",
            "지배주주귀속당기순이익",
        ),
        keywords=LABEL_KEYWORDS["net_income"],
        hints=_income_hints("netincome"),
    ),
    IncomeConcept.NET_INCOME_DISCONTINUED: ConceptMapping(tags=(
        "ifrs-full:ProfitLossFromDiscontinuedOperations",
        "ifrs-full:ProfitLossFromDiscontinuedOperationsAttributableToOwnersOfParent",
        "ProfitLossFromDiscontinuedOperations",
    )),
    IncomeConcept.DEPRECIATION_AND_AMORTIZATION: ConceptMapping(
        tags=(
            "ifrs-full:DepreciationAndAmortisationExpense",
            "ifrs-full:DepreciationAndAmortizationExpense",
            "ifrs-full:DepreciationAmortisationAndImpairmentLossReversalOfImpairmentLossRecognisedInProfitOrLoss",
            "ifrs:DepreciationAndAmortization",
            "kasb:DepreciationAndAmortization",
            "DepreciationAndAmortisationExpense",
            "DepreciationAndAmortizationExpense",
            "DepreciationAndAmortization",
            "감가상각비와무형자산상각비",
        ),
        components=(_IFRS_DEPRECIATION, _IFRS_AMORTISATION),
    ),

    # --- Balance sheet ---
    BalanceConcept.TOTAL_ASSETS: ConceptMapping(
        tags=("ifrs-full:Assets", "ifrs:TotalAssets", "kasb:TotalAssets", "TotalAssets", "자산총계"),
        keywords=LABEL_KEYWORDS["total_assets"],
        hints=_balance_hints("totalassets"),
    ),
    BalanceConcept.TOTAL_LIABILITIES: ConceptMapping(
        tags=(
            "ifrs-full:Liabilities", "ifrs:TotalLiabilities", "kasb:TotalLiabilities",
            "TotalLiabilities", "부채총계",
        ),
        keywords=LABEL_KEYWORDS["total_liabilities"],
        hints=_balance_hints("totalliabilities"),
    ),
    BalanceConcept.TOTAL_EQUITY: ConceptMapping(
        tags=("ifrs-full:Equity", "ifrs:TotalEquity", "kasb:TotalEquity", "TotalEquity", "자본총계"),
        keywords=LABEL_KEYWORDS["total_equity"],
        hints=_balance_hints("totalequity"),
    ),
    BalanceConcept.OPERATING_ASSETS: ConceptMapping(tags=(
        "ifrs-full:PropertyPlantAndEquipment",
        "ifrs:PropertyPlantAndEquipment",
        "kasb:PropertyPlantAndEquipment",
        "PPE",
        "유형자산",
    )),
    BalanceConcept.NON_INTEREST_BEARING_LIABILITIES: ConceptMapping(
        tags=(
            "ifrs-full:TradeAndOtherPayables",
            "ifrs-full:TradePayables",
            "dart:TradeAndOtherPayables",
            "dart:NonInterestBearingLiabilities",
            "ifrs:TradePayables",
            "kasb:TradePayables",
            "TradeAndOtherPayables",
            "NonInterestBearingLiabilities",
            "매입채무",
        ),
        components=_IFRS_OPERATING_LIABILITIES,
        expected_components=2,
    ),
    BalanceConcept.ACCOUNTS_RECEIVABLE: ConceptMapping(tags=(
        "ifrs-full:TradeAndOtherReceivables",
        "ifrs-full:TradeReceivables",
        "ifrs:TradeReceivables",
        "kasb:TradeReceivables",
        "TradeReceivables",
        "매출채권",
    )),
    BalanceConcept.INVENTORY: ConceptMapping(tags=(
        "ifrs-full:Inventories",
        "ifrs:Inventory",
        "kasb:Inventory",
        "Inventory",
        "재고자산",
    )),
    BalanceConcept.CASH: ConceptMapping(tags=(
        "ifrs-full:CashAndCashEquivalents",
        "ifrs-full:Cash",
        "ifrs:CashAndCashEquivalents",
        "kasb:CashAndCashEquivalents",
        "CashAndCashEquivalents",
        "현금및현금성자산",
    )),
    BalanceConcept.INTEREST_BEARING_DEBT: ConceptMapping(
        tags=(
            "ifrs-full:Borrowings",
            "dart:InterestBearingDebt",
            "dart:TotalBorrowings",
            "Borrowings",
            "InterestBearingDebt",
            "이자발생부채",
            "차입금",
        ),
        components=_IFRS_DEBT_COMPONENTS,
        components_first=True,
    ),

    # --- Cash flow statement ---
    CashFlowConcept.OPERATING_CASH_FLOW: ConceptMapping(
        tags=(
            "ifrs-full:CashFlowsFromUsedInOperatingActivities",
            "ifrs:OperatingCashFlow",
            "kasb:OperatingCashFlow",
            "OperatingCashFlow",
            "영업활동현금흐름",
            "영업현금흐름",
        ),
        hints=_cash_flow_hints("operatingcashflow"),
    ),
    CashFlowConcept.INVESTING_CASH_FLOW: ConceptMapping(
        tags=(
            "ifrs-full:CashFlowsFromUsedInInvestingActivities",
            "ifrs:InvestingCashFlow",
            "kasb:InvestingCashFlow",
            "InvestingCashFlow",
            "투자활동현금흐름",
        ),
        hints=_cash_flow_hints("investingcashflow"),
    ),
    CashFlowConcept.FINANCING_CASH_FLOW: ConceptMapping(
        tags=(
            "ifrs-full:CashFlowsFromUsedInFinancingActivities",
            "ifrs:FinancingCashFlow",
            "kasb:FinancingCashFlow",
            "FinancingCashFlow",
            "재무활동현금흐름",
        ),
        hints=_cash_flow_hints("financingcashflow"),
    ),
    CashFlowConcept.CAPEX_PPE: ConceptMapping(tags=(
        "ifrs-full:PaymentsToAcquirePropertyPlantAndEquipment",
        "ifrs-full:PurchaseOfPropertyPlantAndEquipmentClassifiedAsInvestingActivities",
        "ifrs-full:AcquisitionsOfPropertyPlantAndEquipment",
        "ifrs-full:PurchaseOfPropertyPlantAndEquipment",
        "ifrs:CapitalExpenditure",
        "kasb:CapitalExpenditure",
        "PurchaseOfPropertyPlantAndEquipment",
        "PaymentsToAcquirePropertyPlantAndEquipment",
        "AcquisitionsOfPropertyPlantAndEquipment",
        "CAPEX",
        "유형자산의취득",
    )),
    CashFlowConcept.CAPEX_INTANGIBLE: ConceptMapping(tags=(
        "ifrs-full:PaymentsToAcquireIntangibleAssets",
        "ifrs-full:PurchaseOfIntangibleAssetsClassifiedAsInvestingActivities",
        "ifrs-full:AcquisitionsOfIntangibleAssets",
        "PurchaseOfIntangibleAssets",
        "PaymentsToAcquireIntangibleAssets",
        "AcquisitionsOfIntangibleAssets",
        "무형자산의취득",
    )),
}


# ═══════════════════════════════════════════════════════════════════════════
#  US GAAP table
# ═══════════════════════════════════════════════════════════════════════════

_GAAP_DEPRECIATION = ComponentGroup("depreciation", (
    "us-gaap:Depreciation",
    "us-gaap:DepreciationNonproduction",
    "us-gaap:DepreciationExpense",
    "Depreciation",
    "DepreciationExpense",
))

_GAAP_AMORTIZATION = ComponentGroup("amortization", (
    "us-gaap:AmortizationOfIntangibleAssets",
    "us-gaap:AmortizationExpense",
    "AmortizationOfIntangibleAssets",
    "AmortizationExpense",
    "AmortisationExpense",
), absolute=True)

_GAAP_OPERATING_LIABILITIES = (
    ComponentGroup("payables", (
        "us-gaap:AccountsPayableCurrent",
        "us-gaap:AccountsPayableAndAccruedLiabilitiesCurrent",
        "us-gaap:OtherPayablesAndAccruedLiabilitiesCurrent",
        "AccountsPayableCurrent",
        "TradePayables",
    )),
    ComponentGroup("contract_liabilities", (
        "us-gaap:ContractWithCustomerLiabilityCurrent",
        "us-gaap:ContractWithCustomerLiability",
        "us-gaap:DeferredRevenueCurrent",
        "ContractWithCustomerLiability",
        "DeferredRevenueCurrent",
    )),
    ComponentGroup("accrued", (
        "us-gaap:AccruedLiabilitiesCurrent",
        "us-gaap:OtherAccruedLiabilitiesCurrent",
        "us-gaap:OtherLiabilitiesCurrent",
        "AccruedLiabilitiesCurrent",
        "OtherCurrentLiabilities",
    )),
    ComponentGroup("employee_accruals", (
        "us-gaap:EmployeeRelatedLiabilitiesCurrent",
        "us-gaap:AccruedEmployeeBenefitsCurrent",
        "us-gaap:AccruedSalariesCurrent",
        "EmployeeRelatedLiabilitiesCurrent",
    )),
)

_GAAP_DEBT_COMPONENTS = (
    ComponentGroup("short_term_debt", (
        "us-gaap:ShortTermBorrowings",
        "us-gaap:CommercialPaper",
        "ShortTermBorrowings",
        "ShortTermDebt",
    ), absolute=True),
    ComponentGroup("current_portion_long_term", (
        "us-gaap:LongTermDebtCurrent",
        "us-gaap:CurrentPortionOfLongTermDebt",
        "LongTermDebtCurrent",
        "CurrentPortionOfLongTermDebt",
    ), absolute=True),
    ComponentGroup("long_term_debt", (
        "us-gaap:LongTermDebtNoncurrent",
        "LongTermDebtNoncurrent",
    ), absolute=True),
    ComponentGroup("bonds", (
        "us-gaap:SeniorNotes",
        "us-gaap:ConvertibleNotesPayable",
        "us-gaap:BondsPayable",
        "BondsPayable",
    ), absolute=True),
)

_GAAP: dict[Concept, ConceptMapping] = {
    # --- Income statement ---
    IncomeConcept.REVENUE: ConceptMapping(
        tags=(
            "us-gaap:Revenues",
            "us-gaap:RevenueFromContractWithCustomerExcludingAssessedTax",
            "us-gaap:SalesRevenueNet",
            "Revenue",
        ),
        keywords=LABEL_KEYWORDS["revenue"],
        hints=_income_hints("revenue"),
    ),
    IncomeConcept.OPERATING_INCOME: ConceptMapping(
        tags=("us-gaap:OperatingIncomeLoss", "us-gaap:IncomeFromOperations", "OperatingIncome"),
        keywords=LABEL_KEYWORDS["operating_income"],
        hints=_income_hints("operatingincome"),
    ),
    IncomeConcept.EPS_CONTINUING: ConceptMapping(tags=(
        "us-gaap:IncomeLossFromContinuingOperationsPerBasicShare",
        "us-gaap:IncomeLossFromContinuingOperationsPerDilutedShare",
        "us-gaap:EarningsPerShareBasicFromContinuingOperations",
        "us-gaap:EarningsPerShareDilutedFromContinuingOperations",
        "EarningsPerShareBasicFromContinuingOperations",
        "EarningsPerShareDilutedFromContinuingOperations",
    )),
    IncomeConcept.EPS_TOTAL: ConceptMapping(tags=(
        "us-gaap:EarningsPerShareBasic",
        "us-gaap:EarningsPerShareDiluted",
        "EarningsPerShareBasic",
        "EarningsPerShareDiluted",
        "EPS",
    )),
    IncomeConcept.EPS_DISCONTINUED: ConceptMapping(tags=(
        "us-gaap:IncomeLossFromDiscontinuedOperationsNetOfTaxPerBasicShare",
        "us-gaap:IncomeLossFromDiscontinuedOperationsNetOfTaxPerDilutedShare",
        "us-gaap:EarningsPerShareBasicFromDiscontinuedOperations",
        "EarningsPerShareBasicFromDiscontinuedOperations",
    )),
    IncomeConcept.NET_INCOME_CONTINUING: ConceptMapping(tags=(
        "us-gaap:IncomeLossFromContinuingOperations",
        "us-gaap:IncomeFromContinuingOperations",
        "us-gaap:IncomeFromContinuingOperationsAttributableToParent",
        "IncomeFromContinuingOperations",
    )),
    IncomeConcept.NET_INCOME_TOTAL: ConceptMapping(
        tags=("us-gaap:NetIncomeLoss", "us-gaap:ProfitLoss", "NetIncomeLoss", "NetIncome", "ProfitLoss"),
        keywords=LABEL_KEYWORDS["net_income"],
        hints=_income_hints("netincome"),
    ),
    IncomeConcept.NET_INCOME_DISCONTINUED: ConceptMapping(tags=(
        "us-gaap:IncomeLossFromDiscontinuedOperationsNetOfTax",
        "us-gaap:IncomeFromDiscontinuedOperations",
        "us-gaap:IncomeFromDiscontinuedOperationsAttributableToParent",
        "IncomeFromDiscontinuedOperations",
    )),
    IncomeConcept.DEPRECIATION_AND_AMORTIZATION: ConceptMapping(
        tags=(
            "us-gaap:DepreciationAndAmortization",
            "us-gaap:DepreciationDepletionAndAmortization",
            "us-gaap:DepreciationAmortizationAndAccretionNet",
            "DepreciationAndAmortization",
        ),
        components=(_GAAP_DEPRECIATION, _GAAP_AMORTIZATION),
    ),

    # --- Balance sheet ---
    BalanceConcept.TOTAL_ASSETS: ConceptMapping(
        tags=("us-gaap:Assets", "TotalAssets"),
        keywords=LABEL_KEYWORDS["total_assets"],
        hints=_balance_hints("totalassets"),
    ),
    BalanceConcept.TOTAL_LIABILITIES: ConceptMapping(
        tags=("us-gaap:Liabilities", "TotalLiabilities"),
        keywords=LABEL_KEYWORDS["total_liabilities"],
        hints=_balance_hints("totalliabilities"),
    ),
    BalanceConcept.TOTAL_EQUITY: ConceptMapping(
        tags=(
            "us-gaap:StockholdersEquity",
            "us-gaap:StockholdersEquityIncludingPortionAttributableToNoncontrollingInterest",
            "us-gaap:Equity",
            "TotalEquity",
        ),
        keywords=LABEL_KEYWORDS["total_equity"],
        hints=_balance_hints("totalequity"),
    ),
    BalanceConcept.OPERATING_ASSETS: ConceptMapping(tags=(
        "us-gaap:PropertyPlantAndEquipmentNet",
        "us-gaap:PropertyPlantAndEquipment",
        "PPE",
    )),
    BalanceConcept.NON_INTEREST_BEARING_LIABILITIES: ConceptMapping(
        tags=(
            "us-gaap:AccountsPayableCurrent",
            "us-gaap:AccountsPayableAndAccruedLiabilitiesCurrent",
            "us-gaap:OtherPayablesAndAccruedLiabilitiesCurrent",
            "TradePayables",
            "AccountsPayableCurrent",
        ),
        components=_GAAP_OPERATING_LIABILITIES,
        expected_components=2,
    ),
    BalanceConcept.ACCOUNTS_RECEIVABLE: ConceptMapping(tags=(
        "us-gaap:AccountsReceivableNetCurrent",
        "us-gaap:ReceivablesNetCurrent",
        "AccountsReceivable",
    )),
    BalanceConcept.INVENTORY: ConceptMapping(tags=(
        "us-gaap:InventoryNet",
        "us-gaap:Inventory",
        "Inventory",
    )),
    BalanceConcept.CASH: ConceptMapping(tags=(
        "us-gaap:CashAndCashEquivalentsAtCarryingValue",
        "us-gaap:CashCashEquivalentsAndShortTermInvestments",
        "us-gaap:Cash",
        "CashAndCashEquivalents",
        "Cash",
    )),
    BalanceConcept.INTEREST_BEARING_DEBT: ConceptMapping(
        tags=(
            "us-gaap:DebtCurrentAndNoncurrent",
            "us-gaap:LongTermDebt",
            "us-gaap:DebtInstrumentCarryingAmount",
            "InterestBearingDebt",
        ),
        components=_GAAP_DEBT_COMPONENTS,
        components_first=True,
    ),

    # --- Cash flow statement ---
    CashFlowConcept.OPERATING_CASH_FLOW: ConceptMapping(
        tags=(
            "us-gaap:NetCashProvidedByUsedInOperatingActivities",
            "us-gaap:NetCashProvidedByUsedInOperatingActivitiesContinuingOperations",
            "OperatingCashFlow",
        ),
        hints=_cash_flow_hints("operatingcashflow"),
    ),
    CashFlowConcept.INVESTING_CASH_FLOW: ConceptMapping(
        tags=(
            "us-gaap:NetCashProvidedByUsedInInvestingActivities",
            "us-gaap:NetCashProvidedByUsedInInvestingActivitiesContinuingOperations",
            "InvestingCashFlow",
        ),
        hints=_cash_flow_hints("investingcashflow"),
    ),
    CashFlowConcept.FINANCING_CASH_FLOW: ConceptMapping(
        tags=(
            "us-gaap:NetCashProvidedByUsedInFinancingActivities",
            "us-gaap:NetCashProvidedByUsedInFinancingActivitiesContinuingOperations",
            "FinancingCashFlow",
        ),
        hints=_cash_flow_hints("financingcashflow"),
    ),
    CashFlowConcept.CAPEX_PPE: ConceptMapping(tags=(
        "us-gaap:PaymentsToAcquirePropertyPlantAndEquipment",
        "us-gaap:PaymentsToAcquireProductiveAssets",
        "us-gaap:CapitalExpenditure",
        "PaymentsToAcquirePropertyPlantAndEquipment",
        "PurchasesOfPropertyPlantAndEquipment",
        "CAPEX",
    )),
    CashFlowConcept.CAPEX_INTANGIBLE: ConceptMapping(tags=(
        "us-gaap:PaymentsToAcquireIntangibleAssets",
        "us-gaap:PaymentsToDevelopSoftware",
        "PaymentsToAcquireIntangibleAssets",
        "PurchasesOfIntangibleAssets",
    )),
}


TAG_TABLE: dict[Taxonomy, dict[Concept, ConceptMapping]] = {
    Taxonomy.IFRS: _IFRS,
    Taxonomy.GAAP: _GAAP,
}

# Prefixes that identify each taxonomy when the caller does not say
TAXONOMY_PREFIXES: dict[Taxonomy, tuple[str, ...]] = {
    Taxonomy.GAAP: ("us-gaap",),
    Taxonomy.IFRS: ("ifrs-full", "ifrs", "dart", "kasb"),
}


def get_mapping(taxonomy: Taxonomy, concept: Concept) -> ConceptMapping:
    """Look up the tag mapping for a concept; derived concepts have none."""
    try:
        return TAG_TABLE[taxonomy][concept]
    except KeyError:
        raise KeyError(f"No tag mapping for {concept.value!r} in {taxonomy.value}") from None


def all_tags(mapping: ConceptMapping) -> list[str]:
    """Every tag a mapping could match, direct tags first, de-duplicated in order."""
    tags = list(mapping.tags)
    for group in mapping.components or ():
        tags.extend(group.tags)
    return list(dict.fromkeys(tags))
