"""Convert engine results into JSON-serialisable dictionaries.

Keys use the camelCase names of the persisted record and the web API;
``Decimal`` values become floats and dates ISO strings.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .data_models import (
    AmortizationRow,
    CoachResponse,
    CoachSummary,
    PaymentMixBar,
    PrepaymentTip,
    ScenarioResult,
    ScheduleSummary,
)


def row_to_dict(row: AmortizationRow) -> Dict[str, Any]:
    return {
        "month": row.month,
        "dueDate": row.due_date.isoformat(),
        "startingBalance": float(row.starting_balance),
        "basePayment": float(row.base_payment),
        "commissionPaid": float(row.commission_paid),
        "totalPaymentDue": float(row.total_payment_due),
        "extraPayment": float(row.extra_payment),
        "principalPaid": float(row.principal_paid),
        "interestPaid": float(row.interest_paid),
        "endingBalance": float(row.ending_balance),
        "cumulativeInterest": float(row.cumulative_interest),
        "cumulativeInterestSaved": float(row.cumulative_interest_saved),
    }


def summary_to_dict(summary: ScheduleSummary) -> Dict[str, Any]:
    return {
        "months": summary.months,
        "totalInterest": float(summary.total_interest),
        "totalCommission": float(summary.total_commission),
        "totalPaid": float(summary.total_paid),
    }


def scenario_to_dict(scenario: ScenarioResult, include_rows: bool = True) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "paymentUsed": float(scenario.payment_used),
        "baselineSummary": summary_to_dict(scenario.baseline.summary),
        "planSummary": summary_to_dict(scenario.planned.summary),
        "interestSaved": float(scenario.interest_saved),
        "commissionSaved": float(scenario.commission_saved),
        "totalSaved": float(scenario.total_saved),
        "monthsReduced": scenario.months_reduced,
        "totalInterestToPay": float(scenario.total_interest_to_pay),
        "completionDate": scenario.completion_date.isoformat() if scenario.completion_date else None,
    }
    if include_rows:
        data["planRows"] = [row_to_dict(row) for row in scenario.planned.rows]
    return data


def tip_to_dict(tip: PrepaymentTip) -> Dict[str, Any]:
    return {
        "month": tip.month,
        "dueDate": tip.due_date.isoformat(),
        "interestPaid": float(tip.interest_paid),
        "interestSharePct": float(tip.interest_share_pct),
        "suggestedExtra": float(tip.suggested_extra),
        "estimatedInterestSaved": float(tip.estimated_interest_saved),
        "extraTier": tip.extra_tier.value,
        "phase": tip.phase.value,
        "reason": tip.reason,
    }


def coach_summary_to_dict(summary: Optional[CoachSummary]) -> Optional[Dict[str, Any]]:
    if summary is None:
        return None
    return {
        "bestMonths": list(summary.best_months),
        "recommendedStrategy": summary.recommended_strategy.value,
        "recommendedExtra": float(summary.recommended_extra),
        "recommendedTier": summary.recommended_tier.value,
        "currentPhase": summary.current_phase.value,
        "projectedMonthsCut": summary.projected_months_cut,
        "projectedInterestSaved": float(summary.projected_interest_saved),
        "timingAdvice": summary.timing_advice.value,
        "paymentPattern": summary.payment_pattern.value,
        "budgetRisk": summary.budget_risk,
    }


def coach_response_to_dict(response: CoachResponse) -> Dict[str, Any]:
    return {
        "status": response.status.value,
        "tips": [tip_to_dict(tip) for tip in response.tips],
        "summary": coach_summary_to_dict(response.summary),
        "error": response.error,
    }


def bars_to_list(bars: Sequence[PaymentMixBar]) -> List[Dict[str, Any]]:
    return [
        {
            "year": bar.year,
            "principalPaid": float(bar.principal_paid),
            "extraPaid": float(bar.extra_paid),
            "interestPaid": float(bar.interest_paid),
            "totalPaid": float(bar.total_paid),
            "principalPct": float(bar.principal_pct),
            "interestPct": float(bar.interest_pct),
            "principalLoanPct": float(bar.principal_loan_pct),
            "cumulativePrincipalLoanPct": float(bar.cumulative_principal_loan_pct),
            "columnHeightPx": float(bar.column_height_px),
        }
        for bar in bars
    ]
