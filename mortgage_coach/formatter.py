"""Output helpers for the mortgage coach.

This module provides simple functions to render schedules, savings, coaching
tips and the yearly payment mix in a tabular text format. We rely only on
built-in printing and string formatting; the CLI decides what to print.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .data_models import AmortizationRow, CoachSummary, PaymentMixBar, PrepaymentTip, ScenarioResult
from .messages import translate

CURRENCY = "GEL"


def print_summary(scenario: ScenarioResult) -> None:
    """Print the baseline vs planned summary in a human-readable format."""
    baseline = scenario.baseline.summary
    planned = scenario.planned.summary
    print("Summary")
    print("-" * 72)
    print(f"Base payment       : {scenario.payment_used:.2f}")
    print(f"Months (baseline)  : {baseline.months}")
    print(f"Months (planned)   : {planned.months}")
    print(f"Total interest     : {planned.total_interest:.2f}")
    print(f"Total commission   : {planned.total_commission:.2f}")
    print(f"Total paid         : {planned.total_paid:.2f}")
    if scenario.completion_date:
        print(f"Payoff date        : {scenario.completion_date.isoformat()}")
    print(f"Interest saved     : {scenario.interest_saved:.2f}")
    print(f"Commission saved   : {scenario.commission_saved:.2f}")
    print(f"Total saved        : {scenario.total_saved:.2f}")
    if scenario.months_reduced:
        print(f"Term reduction     : {scenario.months_reduced} months")
    print("-" * 72)


def print_schedule(rows: Iterable[AmortizationRow]) -> None:
    """Print the amortization schedule as a simple table."""
    headers = [
        "Month",
        "Date",
        "StartBal",
        "Payment",
        "Principal",
        "Interest",
        "Commission",
        "Extra",
        "EndBal",
        "Saved",
    ]
    print("\t".join(headers))
    for row in rows:
        print(
            "\t".join(
                [
                    str(row.month),
                    row.due_date.isoformat(),
                    f"{row.starting_balance:.2f}",
                    f"{row.total_payment_due:.2f}",
                    f"{row.principal_paid:.2f}",
                    f"{row.interest_paid:.2f}",
                    f"{row.commission_paid:.2f}",
                    f"{row.extra_payment:.2f}",
                    f"{row.ending_balance:.2f}",
                    f"{row.cumulative_interest_saved:.2f}",
                ]
            )
        )


def print_tips(tips: Sequence[PrepaymentTip]) -> None:
    print(f"{'Month':>5s} {'Date':10s} {'Interest':>10s} {'Share':>7s} {'Extra':>10s} {'Saved':>10s}")
    for tip in tips:
        print(
            f"{tip.month:5d} {tip.due_date.isoformat():10s} {tip.interest_paid:10.2f} "
            f"{tip.interest_share_pct:6.1f}% {tip.suggested_extra:10.2f} {tip.estimated_interest_saved:10.2f}"
        )
        print(f"      {tip.reason}")


def print_coach_summary(summary: CoachSummary, language: str = "en") -> None:
    """Print the coach's recommendation as localized sentences."""
    month_label = translate("prepay.month", language)
    best = ", ".join(f"{month_label} {month}" for month in summary.best_months)
    print("=" * 72)
    print(f"{translate('ai.summary.bestMonths', language)}: {best}")
    print(
        f"{translate('ai.summary.strategy', language)}: "
        f"{translate('strategy.' + summary.recommended_strategy.value, language)}"
    )
    print(
        f"{translate('ai.summary.phase', language)}: "
        f"{translate('ai.phase.' + summary.current_phase.value, language)}"
    )
    print(
        f"{translate('ai.summary.extraTier', language)}: "
        f"{translate('ai.tier.' + summary.recommended_tier.value, language)}"
    )
    print(
        translate(
            "ai.summary.impact",
            language,
            extra=f"{summary.recommended_extra:.2f}",
            currency=CURRENCY,
            months=summary.projected_months_cut,
            saved=f"{summary.projected_interest_saved:.2f}",
        )
    )
    print(translate(f"ai.summary.timing.{summary.timing_advice.value}", language))
    print(translate(f"ai.summary.pattern.{summary.payment_pattern.value}", language))
    if summary.budget_risk:
        print(translate("ai.summary.risk", language))
    print("=" * 72)


def print_payment_mix(bars: Sequence[PaymentMixBar]) -> None:
    print(f"{'Year':>4s} {'Principal':>12s} {'Extra':>12s} {'Interest':>12s} {'Total':>12s} {'Prin%':>7s} {'Loan%':>7s}")
    for bar in bars:
        print(
            f"{bar.year:4d} {bar.principal_paid:12.2f} {bar.extra_paid:12.2f} {bar.interest_paid:12.2f} "
            f"{bar.total_paid:12.2f} {bar.principal_pct:6.2f}% {bar.cumulative_principal_loan_pct:6.2f}%"
        )
