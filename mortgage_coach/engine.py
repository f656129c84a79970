"""Core calculation engine for the mortgage coach.

This module implements the financial logic required to build amortization
schedules for an annuity (equal installment) loan with a monthly commission
and ad-hoc extra payments. An extra payment either shortens the term at the
current installment (``reduceTime``) or re-amortizes the remaining balance
over the remaining original term (``reducePayment``).

Results are returned as ``ScheduleResult`` objects: rows rounded to two
decimals plus a summary. ``compute_scenario`` runs the loan twice, without and
with the caller's extras, and derives the savings between the two.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import date
from decimal import Decimal, DecimalException
from typing import Dict, Iterable, List, Optional

from .data_models import (
    AmortizationRow,
    CommissionMode,
    ExtraPayment,
    ExtraPaymentBucket,
    LoanParameters,
    PrepaymentStrategy,
    ScenarioResult,
    ScheduleResult,
    ScheduleSummary,
)
from .errors import InvalidInputError, PaymentTooLowError, ScheduleExceededError
from .utils import ZERO, add_months, normalize_money, round_money

logger = logging.getLogger(__name__)

MAX_SCHEDULE_MONTHS = 1200
BALANCE_EPSILON = Decimal("1e-7")
# An installment must exceed the month's interest by more than this margin.
PAYMENT_MARGIN = Decimal("1e-8")


def calculate_monthly_payment(principal: Decimal, monthly_rate: Decimal, term_months: int) -> Decimal:
    """Return the annuity (equal installment) monthly payment for a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``.
    """
    if monthly_rate == 0:
        return principal / Decimal(term_months)
    factor = (1 + monthly_rate) ** term_months
    return principal * (monthly_rate * factor) / (factor - 1)


def calculate_commission(
    starting_balance: Decimal,
    interest_paid: Decimal,
    mode: CommissionMode,
    rate: Decimal,
    fixed: Decimal,
) -> Decimal:
    """Return the commission charged on top of one month's installment.

    ``rate`` is a percentage applied to the month's interest
    (``interestRate``) or to the starting balance (``balanceRate``);
    ``fixed`` is charged as-is every month (``fixed``).
    """
    rate_fraction = max(ZERO, rate) / Decimal(100)
    if mode == CommissionMode.INTEREST_RATE:
        return interest_paid * rate_fraction
    if mode == CommissionMode.BALANCE_RATE:
        return starting_balance * rate_fraction
    if mode == CommissionMode.FIXED:
        return max(ZERO, fixed)
    return ZERO


def normalize_month(month: object) -> int:
    """Round a month number to an integer no smaller than 1."""
    try:
        return max(1, int(math.floor(float(month) + 0.5)))
    except (TypeError, ValueError, OverflowError):
        return 1


def build_extra_payment_map(extras: Iterable[ExtraPayment]) -> Dict[int, ExtraPaymentBucket]:
    """Group extra payments by month, split by strategy.

    Non-positive amounts are skipped; months are clamped to at least 1.
    """
    mapping: Dict[int, ExtraPaymentBucket] = {}
    for extra in extras:
        amount = normalize_money(extra.amount)
        if amount <= 0:
            continue
        month = normalize_month(extra.month)
        bucket = mapping.setdefault(month, ExtraPaymentBucket())
        if extra.strategy == PrepaymentStrategy.REDUCE_PAYMENT:
            bucket.reduce_payment += amount
        else:
            bucket.reduce_time += amount
    return mapping


def compute_schedule(
    principal: Decimal,
    monthly_rate: Decimal,
    payment: Decimal,
    initial_term_months: int,
    extra_map: Optional[Dict[int, ExtraPaymentBucket]] = None,
    *,
    first_payment_date: date,
    commission_mode: CommissionMode = CommissionMode.NONE,
    commission_rate: Decimal = ZERO,
    fixed_commission: Decimal = ZERO,
) -> ScheduleResult:
    """Compute the amortization schedule and summary for a loan.

    Parameters
    ----------
    principal: Decimal
        The financed amount.
    monthly_rate: Decimal
        Monthly interest rate as a fraction (annual percent / 100 / 12).
    payment: Decimal
        The initial monthly installment (principal and interest).
    initial_term_months: int
        The original term. It is only used to re-amortize the balance after a
        ``reducePayment`` extra, over ``max(1, term - month)`` months.
    extra_map: Dict[int, ExtraPaymentBucket]
        Extra payments keyed by month number.

    Raises
    ------
    PaymentTooLowError
        If the installment does not cover the interest of some month.
    ScheduleExceededError
        If the loan is not repaid within ``MAX_SCHEDULE_MONTHS``.
    """
    extra_map = extra_map or {}
    rows: List[AmortizationRow] = []
    month = 1
    balance = principal
    current_payment = payment
    total_interest = ZERO
    total_commission = ZERO
    total_paid = ZERO
    due_date = first_payment_date

    while balance > BALANCE_EPSILON:
        if month > MAX_SCHEDULE_MONTHS:
            raise ScheduleExceededError(MAX_SCHEDULE_MONTHS)
        starting_balance = balance
        interest_paid = starting_balance * monthly_rate
        if current_payment <= interest_paid + PAYMENT_MARGIN:
            raise PaymentTooLowError()

        # The last installment only needs to clear what is left.
        scheduled_payment = min(current_payment, starting_balance + interest_paid)
        principal_paid = scheduled_payment - interest_paid

        bucket = extra_map.get(month) or ExtraPaymentBucket()
        raw_extra = bucket.total
        available_extra = max(ZERO, starting_balance - principal_paid)
        extra_paid = min(raw_extra, available_extra)
        # Share of the applied extra that asked for a lower installment. It only
        # decides whether to re-amortize; the row keeps the undivided total.
        reduce_payment_share = extra_paid * bucket.reduce_payment / raw_extra if raw_extra > 0 else ZERO

        commission_paid = calculate_commission(
            starting_balance, interest_paid, commission_mode, commission_rate, fixed_commission
        )
        total_payment_due = scheduled_payment + commission_paid
        balance = max(ZERO, starting_balance - principal_paid - extra_paid)

        total_interest += interest_paid
        total_commission += commission_paid
        total_paid += total_payment_due + extra_paid

        rows.append(
            AmortizationRow(
                month=month,
                due_date=due_date,
                starting_balance=round_money(starting_balance),
                base_payment=round_money(scheduled_payment),
                commission_paid=round_money(commission_paid),
                total_payment_due=round_money(total_payment_due),
                extra_payment=round_money(extra_paid),
                principal_paid=round_money(principal_paid),
                interest_paid=round_money(interest_paid),
                ending_balance=round_money(balance),
                cumulative_interest=round_money(total_interest),
            )
        )

        if reduce_payment_share > 0 and balance > BALANCE_EPSILON:
            months_after_current = max(1, initial_term_months - month)
            current_payment = calculate_monthly_payment(balance, monthly_rate, months_after_current)

        month += 1
        due_date = add_months(due_date, 1)

    return ScheduleResult(
        rows=rows,
        summary=ScheduleSummary(
            months=len(rows),
            total_interest=round_money(total_interest),
            total_commission=round_money(total_commission),
            total_paid=round_money(total_paid),
        ),
    )


def schedule_for(
    params: LoanParameters,
    payment: Decimal,
    extra_map: Optional[Dict[int, ExtraPaymentBucket]] = None,
) -> ScheduleResult:
    """Run ``compute_schedule`` with the rate, term, dates and commission of ``params``."""
    return compute_schedule(
        normalize_money(params.principal),
        params.monthly_rate,
        payment,
        max(1, params.term_months),
        extra_map,
        first_payment_date=params.first_payment_date,
        commission_mode=params.commission_mode,
        commission_rate=params.commission_rate,
        fixed_commission=params.fixed_commission,
    )


def compute_scenario(params: LoanParameters, extras: Iterable[ExtraPayment]) -> ScenarioResult:
    """Build the baseline and planned schedules and the savings between them.

    Raises
    ------
    InvalidInputError
        If the principal or the resulting monthly payment is not positive, or
        the amounts are too large to compute.
    PaymentTooLowError, ScheduleExceededError
        Propagated from ``compute_schedule``; no partial result is returned.
    """
    principal = normalize_money(params.principal)
    if principal <= 0:
        raise InvalidInputError("error.loanAmountGt0")
    term = max(1, params.term_months)
    extra_map = build_extra_payment_map(extras)
    try:
        payment = calculate_monthly_payment(principal, params.monthly_rate, term)
        if payment <= 0:
            raise InvalidInputError("error.monthlyPaymentGt0")
        baseline = schedule_for(params, payment)
        planned = schedule_for(params, payment, extra_map)
    except DecimalException as exc:
        # Amounts or terms too large for the 28-digit context.
        logger.debug("Scenario arithmetic failed: %r", exc)
        raise InvalidInputError("error.unableToCalculate") from exc
    logger.debug(
        "Scenario: baseline %d months, planned %d months, %d extra months",
        baseline.summary.months,
        planned.summary.months,
        len(extra_map),
    )

    baseline_by_month = {row.month: row for row in baseline.rows}
    planned_rows = []
    for row in planned.rows:
        baseline_row = baseline_by_month.get(row.month)
        baseline_interest = (
            baseline_row.cumulative_interest if baseline_row is not None else baseline.summary.total_interest
        )
        planned_rows.append(
            replace(row, cumulative_interest_saved=round_money(baseline_interest - row.cumulative_interest))
        )
    planned = ScheduleResult(rows=planned_rows, summary=planned.summary)

    interest_saved = round_money(baseline.summary.total_interest - planned.summary.total_interest)
    commission_saved = round_money(baseline.summary.total_commission - planned.summary.total_commission)
    return ScenarioResult(
        baseline=baseline,
        planned=planned,
        payment_used=payment,
        interest_saved=interest_saved,
        commission_saved=commission_saved,
        total_saved=round_money(interest_saved + commission_saved),
        months_reduced=max(0, baseline.summary.months - planned.summary.months),
    )
