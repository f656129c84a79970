"""Per-year payment mix of a schedule, for the interest vs principal chart."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Sequence

from .data_models import AmortizationRow, PaymentMixBar
from .utils import ZERO, normalize_money, round_money

PAYMENT_MIX_MAX_BARS = 18
CHART_MAX_HEIGHT_PX = Decimal("190")
CHART_MIN_HEIGHT_PX = Decimal("14")
_TINY = Decimal("0.000001")
_HUNDRED = Decimal("100")


def aggregate_by_year(
    planned_rows: Sequence[AmortizationRow],
    loan_amount: Decimal,
    first_payment_date: date,
    max_bars: int = PAYMENT_MIX_MAX_BARS,
) -> List[PaymentMixBar]:
    """Bucket schedule rows by the calendar year of their due date.

    Principal includes extra payments. Percentages are relative to the year's
    total and to the original loan amount; the cumulative loan percentage is
    capped at 100. Only the first ``max_bars`` years are returned.
    """
    if not planned_rows:
        return []

    totals: Dict[int, Dict[str, Decimal]] = {}
    for row in planned_rows:
        if row.due_date is not None:
            year = row.due_date.year
        else:
            year = first_payment_date.year + (row.month - 1) // 12
        bucket = totals.setdefault(year, {"principal": ZERO, "extra": ZERO, "interest": ZERO})
        bucket["principal"] += row.principal_paid
        bucket["extra"] += row.extra_payment
        bucket["interest"] += row.interest_paid

    years = sorted(totals.items())[: max(0, max_bars)]
    max_year_total = max(
        [Decimal(1)] + [t["principal"] + t["extra"] + t["interest"] for _, t in years]
    )
    original_loan = max(_TINY, normalize_money(loan_amount))

    bars: List[PaymentMixBar] = []
    cumulative_principal = ZERO
    for year, t in years:
        principal_paid = t["principal"] + t["extra"]
        total_paid = principal_paid + t["interest"]
        safe_total = max(_TINY, total_paid)
        cumulative_principal += principal_paid
        bars.append(
            PaymentMixBar(
                year=year,
                principal_paid=round_money(principal_paid),
                extra_paid=round_money(t["extra"]),
                interest_paid=round_money(t["interest"]),
                total_paid=round_money(total_paid),
                principal_pct=principal_paid / safe_total * _HUNDRED,
                interest_pct=t["interest"] / safe_total * _HUNDRED,
                principal_loan_pct=principal_paid / original_loan * _HUNDRED,
                cumulative_principal_loan_pct=min(_HUNDRED, cumulative_principal / original_loan * _HUNDRED),
                column_height_px=max(CHART_MIN_HEIGHT_PX, total_paid / max_year_total * CHART_MAX_HEIGHT_PX),
            )
        )
    return bars
