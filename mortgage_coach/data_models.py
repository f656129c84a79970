"""Data models for the mortgage coach.

This module defines dataclasses representing the different entities used by
the engine: the loan parameters and extra (prepayment) contributions supplied
by the caller, and the schedule rows, summaries, coaching tips and chart bars
it produces. Result types are frozen: they are rebuilt wholesale on every
calculation and never mutated afterwards.

Enum values are the wire names used in persisted state and JSON payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class CommissionMode(str, Enum):
    NONE = "none"
    INTEREST_RATE = "interestRate"
    BALANCE_RATE = "balanceRate"
    FIXED = "fixed"


class PrepaymentStrategy(str, Enum):
    """How an extra payment is applied.

    ``REDUCE_TIME`` keeps the installment and shortens the term.
    ``REDUCE_PAYMENT`` keeps the original term and re-amortizes the remaining
    balance, lowering future installments.
    """

    REDUCE_TIME = "reduceTime"
    REDUCE_PAYMENT = "reducePayment"


class InterestPhase(str, Enum):
    INTEREST_HEAVY = "interestHeavy"
    BALANCED = "balanced"
    PRINCIPAL_HEAVY = "principalHeavy"


class ExtraTier(str, Enum):
    SMALL = "small"
    MEANINGFUL = "meaningful"
    AGGRESSIVE = "aggressive"


class TimingAdvice(str, Enum):
    ASAP = "asap"
    KEEP_PLAN = "keepPlan"


class PaymentPattern(str, Enum):
    NONE = "none"
    LUMP_SUM = "lumpSum"
    RECURRING = "recurring"
    MIXED = "mixed"


class CoachStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class LoanParameters:
    """Inputs of one schedule run.

    ``annual_rate`` and ``commission_rate`` are percentages (``11`` means
    11 %). ``principal`` is the financed amount.
    """

    principal: Decimal
    annual_rate: Decimal
    term_months: int
    first_payment_date: date
    commission_mode: CommissionMode = CommissionMode.NONE
    commission_rate: Decimal = Decimal("0")
    fixed_commission: Decimal = Decimal("0")

    @property
    def monthly_rate(self) -> Decimal:
        return max(Decimal("0"), self.annual_rate) / Decimal(100) / Decimal(12)


@dataclass(frozen=True)
class ExtraPayment:
    """A user-entered prepayment made in addition to the installment of ``month``."""

    id: int
    month: int
    amount: Decimal
    strategy: PrepaymentStrategy = PrepaymentStrategy.REDUCE_TIME


@dataclass
class ExtraPaymentBucket:
    """Extra payment totals of one month, split by strategy."""

    reduce_time: Decimal = Decimal("0")
    reduce_payment: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.reduce_time + self.reduce_payment


@dataclass(frozen=True)
class AmortizationRow:
    """One month of an amortization schedule.

    Money fields are rounded to two decimals. ``extra_payment`` is the total
    extra applied in the month regardless of strategy.
    ``cumulative_interest_saved`` is only filled in for a planned schedule,
    by comparison with the baseline row of the same month.
    """

    month: int
    due_date: date
    starting_balance: Decimal
    base_payment: Decimal
    commission_paid: Decimal
    total_payment_due: Decimal
    extra_payment: Decimal
    principal_paid: Decimal
    interest_paid: Decimal
    ending_balance: Decimal
    cumulative_interest: Decimal
    cumulative_interest_saved: Decimal = Decimal("0")


@dataclass(frozen=True)
class ScheduleSummary:
    months: int
    total_interest: Decimal
    total_commission: Decimal
    total_paid: Decimal


@dataclass(frozen=True)
class ScheduleResult:
    rows: List[AmortizationRow]
    summary: ScheduleSummary


@dataclass(frozen=True)
class ScenarioResult:
    """Baseline (no extras) and planned (with extras) schedules side by side."""

    baseline: ScheduleResult
    planned: ScheduleResult
    payment_used: Decimal
    interest_saved: Decimal
    commission_saved: Decimal
    total_saved: Decimal
    months_reduced: int

    @property
    def total_interest_to_pay(self) -> Decimal:
        return self.planned.summary.total_interest

    @property
    def completion_date(self) -> Optional[date]:
        if not self.planned.rows:
            return None
        return self.planned.rows[-1].due_date


@dataclass(frozen=True)
class PrepaymentTip:
    """A candidate month for an extra payment, ranked by interest exposure."""

    month: int
    due_date: date
    interest_paid: Decimal
    interest_share_pct: Decimal
    suggested_extra: Decimal
    estimated_interest_saved: Decimal
    extra_tier: ExtraTier
    phase: InterestPhase
    reason: str = ""


@dataclass(frozen=True)
class CoachSummary:
    best_months: List[int]
    recommended_strategy: PrepaymentStrategy
    recommended_extra: Decimal
    recommended_tier: ExtraTier
    current_phase: InterestPhase
    projected_months_cut: int
    projected_interest_saved: Decimal
    timing_advice: TimingAdvice
    payment_pattern: PaymentPattern
    budget_risk: bool


@dataclass(frozen=True)
class CoachResponse:
    """What a coaching request delivers: status plus tips and summary when connected."""

    status: CoachStatus = CoachStatus.IDLE
    tips: List[PrepaymentTip] = field(default_factory=list)
    summary: Optional[CoachSummary] = None
    error: str = ""


@dataclass(frozen=True)
class PaymentMixBar:
    """Principal/extra/interest totals of one calendar year of a schedule."""

    year: int
    principal_paid: Decimal
    extra_paid: Decimal
    interest_paid: Decimal
    total_paid: Decimal
    principal_pct: Decimal
    interest_pct: Decimal
    principal_loan_pct: Decimal
    cumulative_principal_loan_pct: Decimal
    column_height_px: Decimal
