"""Period normalization: raw context dates → PeriodDescriptor.

Classification rules (calendar-year filers):
  instant                              → FY, fiscal year = instant year
  start = {end year}-01-01             → YTD, quarter from end month
  exact calendar quarter               → Q with that quarter
  01-01 .. 12-31 across a year change  → FY, quarter 4
  anything else                        → FY, no quarter

A Jan 1 – Dec 31 span within one year is therefore "12M(YTD)": the
year-start rule is checked first, which also keeps off-by-a-few-days
year ends (e.g. 52/53-week years ending Dec 28) in the YTD bucket.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from xbrl_resolver.models import PeriodDescriptor, PeriodType, quarter_for_month

log = logging.getLogger(__name__)

MIN_SHIFT_YEAR = 1900
MAX_SHIFT_YEAR = 2100

_QUARTER_BOUNDS: dict[int, tuple[tuple[int, int], tuple[int, int]]] = {
    1: ((1, 1), (3, 31)),
    2: ((4, 1), (6, 30)),
    3: ((7, 1), (9, 30)),
    4: ((10, 1), (12, 31)),
}


def parse_date(text: str | None) -> date | None:
    """Parse an ISO date ('2025-09-30', also tolerating a time suffix)."""
    if not text:
        return None
    text = text.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        log.debug("Unparseable period date: %r", text)
        return None


def period_label(period_type: PeriodType, quarter: int | None) -> str:
    if period_type == PeriodType.Q and quarter:
        return f"Q{quarter}(3M)"
    if period_type == PeriodType.YTD:
        return f"{quarter * 3}M(YTD)" if quarter else "YTD"
    return "FY"


def classify_period(
    start: date | None = None,
    end: date | None = None,
    instant: date | None = None,
) -> PeriodDescriptor | None:
    """Build a PeriodDescriptor from raw dates; None if no usable period."""
    if instant is not None:
        return PeriodDescriptor(
            period_type=PeriodType.FY,
            instant=instant,
            fiscal_year=instant.year,
            label=period_label(PeriodType.FY, None),
        )

    if start is None or end is None:
        return None

    fiscal_year = end.year
    period_type = PeriodType.FY
    quarter: int | None = None

    if (start.month, start.day) == (1, 1) and start.year == fiscal_year:
        period_type = PeriodType.YTD
        quarter = quarter_for_month(end.month)
    else:
        for q, (q_start, q_end) in _QUARTER_BOUNDS.items():
            if (
                start.year == end.year
                and (start.month, start.day) == q_start
                and (end.month, end.day) == q_end
            ):
                period_type = PeriodType.Q
                quarter = q
                break

    return PeriodDescriptor(
        period_type=period_type,
        start_date=start,
        end_date=end,
        fiscal_year=fiscal_year,
        quarter=quarter,
        label=period_label(period_type, quarter),
    )


def _shift_date(d: date, years: int) -> date | None:
    target = d.year + years
    if not MIN_SHIFT_YEAR <= target <= MAX_SHIFT_YEAR:
        return None
    try:
        return d.replace(year=target)
    except ValueError:
        # Feb 29 → Feb 28
        return d.replace(year=target, day=28)


def shift_year(period: PeriodDescriptor, years: int = -1) -> PeriodDescriptor | None:
    """Same month/day, shifted by `years`. None if the result leaves 1900–2100."""
    if period.is_instant:
        shifted = _shift_date(period.instant, years)
        return classify_period(instant=shifted) if shifted else None

    end = _shift_date(period.end_date, years)
    start = _shift_date(period.start_date, years) if period.start_date else None
    if end is None or (period.start_date is not None and start is None):
        log.warning("Cannot shift period %s by %d years", period.describe(), years)
        return None
    if start is None:
        return PeriodDescriptor(
            period_type=period.period_type,
            end_date=end,
            fiscal_year=end.year,
            quarter=period.quarter,
            label=period.label,
        )
    return classify_period(start=start, end=end)


def prior_period_end(anchor: PeriodDescriptor) -> PeriodDescriptor | None:
    """Comparison instant for balance companions: day before the anchor start.

    Instant anchors have no start date; their prior period-end is the same
    day one year earlier.
    """
    if anchor.start_date is not None:
        return classify_period(instant=anchor.start_date - timedelta(days=1))
    return shift_year(anchor, -1)


def validate_period(period: PeriodDescriptor) -> list[str]:
    """Integrity problems with a period, empty if it is sound."""
    problems: list[str] = []
    if period.start_date and period.end_date and period.start_date > period.end_date:
        problems.append(f"start {period.start_date} is after end {period.end_date}")
    if not 2000 <= period.fiscal_year <= 2100:
        problems.append(f"fiscal year {period.fiscal_year} outside 2000–2100")
    if period.quarter is not None and not 1 <= period.quarter <= 4:
        problems.append(f"quarter {period.quarter} outside 1–4")
    return problems
