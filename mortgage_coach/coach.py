"""Prepayment coaching heuristics.

The coach ranks the months of a baseline schedule by interest exposure,
suggests an extra amount for each, and summarizes a recommended strategy. The
projected impact of that recommendation is obtained by re-running the schedule
builder with the recommended extra applied to every month, so actual and
projected scenarios share one implementation.

Everything here is advisory: failures degrade to empty or neutral results
instead of propagating.

``CoachSession`` delivers coaching results after an artificial delay and
discards any delivery whose request token has been superseded.
"""

from __future__ import annotations

import logging
import math
import random
import threading
from dataclasses import replace
from decimal import Decimal, DecimalException
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import (
    AmortizationRow,
    CoachResponse,
    CoachStatus,
    CoachSummary,
    ExtraPayment,
    ExtraPaymentBucket,
    ExtraTier,
    InterestPhase,
    LoanParameters,
    PaymentPattern,
    PrepaymentStrategy,
    PrepaymentTip,
    ScenarioResult,
    ScheduleSummary,
    TimingAdvice,
)
from .engine import calculate_monthly_payment, normalize_month, schedule_for
from .errors import MortgageError
from .messages import reason_templates, translate
from .utils import ZERO, normalize_money, round_money

logger = logging.getLogger(__name__)

DEFAULT_TIP_LIMIT = 4
MIN_SUGGESTED_EXTRA = Decimal("100")
HUNDRED = Decimal("100")


def interest_share_pct(row: AmortizationRow) -> Decimal:
    if row.base_payment <= 0:
        return ZERO
    return row.interest_paid / row.base_payment * HUNDRED


def interest_phase(share_pct: Decimal) -> InterestPhase:
    if share_pct > 60:
        return InterestPhase.INTEREST_HEAVY
    if share_pct >= 30:
        return InterestPhase.BALANCED
    return InterestPhase.PRINCIPAL_HEAVY


def suggested_extra_ratio(share_pct: Decimal) -> Decimal:
    """Fraction of the installment worth adding as extra, by interest share."""
    if share_pct > 60:
        return Decimal("0.24")
    if share_pct >= 30:
        return Decimal("0.12")
    return Decimal("0.04")


def classify_extra_tier(extra_pct_of_payment: Decimal) -> ExtraTier:
    if extra_pct_of_payment < 5:
        return ExtraTier.SMALL
    if extra_pct_of_payment <= 20:
        return ExtraTier.MEANINGFUL
    return ExtraTier.AGGRESSIVE


def build_reason(tip: PrepaymentTip, rank: int, language: str = "en") -> str:
    templates = reason_templates(language)
    template = templates[rank % len(templates)]
    return "{} ({}, {}, {}: {:.1f}%)".format(
        template,
        translate(f"ai.phase.{tip.phase.value}", language),
        translate(f"ai.tier.{tip.extra_tier.value}", language),
        translate("ai.shareMonth", language),
        tip.interest_share_pct,
    )


def generate_tips(
    baseline_rows: Sequence[AmortizationRow],
    baseline_summary: Optional[ScheduleSummary],
    monthly_rate: Decimal,
    limit: int = DEFAULT_TIP_LIMIT,
    language: str = "en",
) -> List[PrepaymentTip]:
    """Rank baseline months by interest exposure and return the top ``limit`` tips.

    The score of a month is its interest plus the interest its starting balance
    would accrue over one month, so months with both high current interest and
    a high remaining balance come first; ties go to the earlier month.
    ``estimated_interest_saved`` is a first-order estimate (extra x rate x
    months remaining), not a re-simulation.

    Returns an empty list when there is no baseline schedule.
    """
    if not baseline_rows or baseline_summary is None:
        return []
    rate = max(ZERO, monthly_rate)
    max_month = baseline_summary.months

    scored: List[Tuple[Decimal, PrepaymentTip]] = []
    for row in baseline_rows:
        share = interest_share_pct(row)
        ratio = suggested_extra_ratio(share)
        suggested_extra = round_money(max(MIN_SUGGESTED_EXTRA, row.base_payment * ratio))
        months_remaining = max(1, max_month - row.month + 1)
        tip = PrepaymentTip(
            month=row.month,
            due_date=row.due_date,
            interest_paid=row.interest_paid,
            interest_share_pct=share,
            suggested_extra=suggested_extra,
            estimated_interest_saved=round_money(suggested_extra * rate * months_remaining),
            extra_tier=classify_extra_tier(ratio * HUNDRED),
            phase=interest_phase(share),
        )
        score = row.interest_paid + row.starting_balance * rate
        scored.append((score, tip))

    scored.sort(key=lambda item: (-item[0], item[1].month))
    return [
        replace(tip, reason=build_reason(tip, rank, language))
        for rank, (_, tip) in enumerate(scored[: max(0, limit)])
    ]


def positive_extras(extras: Iterable[ExtraPayment]) -> List[ExtraPayment]:
    return [extra for extra in extras if normalize_money(extra.amount) > 0]


def is_recurring_pattern(extras: Iterable[ExtraPayment]) -> bool:
    """True when at least three distinct months are mostly consecutive.

    At least 60 % of the gaps between sorted distinct months must be one month
    or less.
    """
    months = sorted({normalize_month(extra.month) for extra in extras})
    if len(months) < 3:
        return False
    links = sum(1 for prev, cur in zip(months, months[1:]) if cur - prev <= 1)
    return links >= math.ceil((len(months) - 1) * 0.6)


def recommend_strategy(extras: Iterable[ExtraPayment]) -> PrepaymentStrategy:
    """Recommend ``reduceTime`` unless the user mostly chooses ``reducePayment``.

    A recurring pattern always gets ``reduceTime``; otherwise the strategies of
    the positive extras are counted and ties go to ``reduceTime``.
    """
    extras = positive_extras(extras)
    if not extras or is_recurring_pattern(extras):
        return PrepaymentStrategy.REDUCE_TIME
    reduce_payment = sum(1 for extra in extras if extra.strategy == PrepaymentStrategy.REDUCE_PAYMENT)
    reduce_time = len(extras) - reduce_payment
    if reduce_payment > reduce_time:
        return PrepaymentStrategy.REDUCE_PAYMENT
    return PrepaymentStrategy.REDUCE_TIME


def detect_payment_pattern(extras: Iterable[ExtraPayment], payment_used: Decimal) -> PaymentPattern:
    extras = positive_extras(extras)
    if not extras:
        return PaymentPattern.NONE
    has_lump_sum = any(normalize_money(extra.amount) >= payment_used * 2 for extra in extras)
    recurring = is_recurring_pattern(extras)
    if has_lump_sum and recurring:
        return PaymentPattern.MIXED
    if has_lump_sum:
        return PaymentPattern.LUMP_SUM
    if recurring or len(extras) > 1:
        return PaymentPattern.RECURRING
    return PaymentPattern.NONE


def detect_timing_advice(extras: Iterable[ExtraPayment], payment_used: Decimal) -> TimingAdvice:
    """``asap`` when a lump sum (2x the installment or more) is scheduled after month 1."""
    for extra in extras:
        if normalize_money(extra.amount) >= payment_used * 2 and normalize_month(extra.month) > 1:
            return TimingAdvice.ASAP
    return TimingAdvice.KEEP_PLAN


def has_budget_risk(extras: Iterable[ExtraPayment], payment_used: Decimal) -> bool:
    return any(normalize_money(extra.amount) > payment_used * 3 for extra in extras)


def estimate_recurring_impact(
    params: LoanParameters,
    baseline_summary: Optional[ScheduleSummary],
    extra_amount: Decimal,
    strategy: PrepaymentStrategy,
) -> Tuple[int, Decimal]:
    """Return ``(months_cut, interest_saved)`` of paying ``extra_amount`` every month.

    The extra is applied with ``strategy`` to months 1..N of the baseline and
    the schedule is rebuilt. Any engine or arithmetic failure yields ``(0, 0)``.
    """
    if baseline_summary is None or extra_amount <= 0:
        return 0, ZERO
    principal = normalize_money(params.principal)
    term = max(1, params.term_months)
    scenario_map: Dict[int, ExtraPaymentBucket] = {}
    for month in range(1, baseline_summary.months + 1):
        if strategy == PrepaymentStrategy.REDUCE_PAYMENT:
            scenario_map[month] = ExtraPaymentBucket(reduce_payment=extra_amount)
        else:
            scenario_map[month] = ExtraPaymentBucket(reduce_time=extra_amount)

    try:
        payment = calculate_monthly_payment(principal, params.monthly_rate, term)
        if payment <= 0:
            return 0, ZERO
        scenario = schedule_for(params, payment, scenario_map)
    except (MortgageError, DecimalException) as exc:
        logger.debug("Uniform extra scenario failed: %s", exc)
        return 0, ZERO
    months_cut = max(0, baseline_summary.months - scenario.summary.months)
    interest_saved = round_money(max(ZERO, baseline_summary.total_interest - scenario.summary.total_interest))
    return months_cut, interest_saved


def build_coach_summary(
    tips: Sequence[PrepaymentTip],
    baseline_rows: Sequence[AmortizationRow],
    baseline_summary: Optional[ScheduleSummary],
    user_extras: Sequence[ExtraPayment],
    payment_used: Decimal,
    params: LoanParameters,
) -> Optional[CoachSummary]:
    """Summarize the tips into one recommendation.

    Returns ``None`` when there is no baseline schedule or no tips.
    """
    if baseline_summary is None or not baseline_rows or not tips:
        return None
    strategy = recommend_strategy(user_extras)
    recommended_extra = round_money(sum((tip.suggested_extra for tip in tips), ZERO) / len(tips))
    extra_pct = recommended_extra / payment_used * HUNDRED if payment_used > 0 else ZERO
    months_cut, interest_saved = estimate_recurring_impact(params, baseline_summary, recommended_extra, strategy)
    return CoachSummary(
        best_months=[tip.month for tip in tips[:3]],
        recommended_strategy=strategy,
        recommended_extra=recommended_extra,
        recommended_tier=classify_extra_tier(extra_pct),
        current_phase=interest_phase(interest_share_pct(baseline_rows[0])),
        projected_months_cut=months_cut,
        projected_interest_saved=interest_saved,
        timing_advice=detect_timing_advice(user_extras, payment_used),
        payment_pattern=detect_payment_pattern(user_extras, payment_used),
        budget_risk=has_budget_risk(user_extras, payment_used),
    )


def coach(
    scenario: Optional[ScenarioResult],
    params: LoanParameters,
    extras: Sequence[ExtraPayment],
    limit: int = DEFAULT_TIP_LIMIT,
    language: str = "en",
) -> CoachResponse:
    """Run the whole coaching step synchronously and return its response."""
    if scenario is None or not scenario.baseline.rows:
        return CoachResponse(CoachStatus.ERROR, error=translate("ai.error.noScheduleData", language))
    baseline = scenario.baseline
    try:
        tips = generate_tips(baseline.rows, baseline.summary, params.monthly_rate, limit, language)
        if not tips:
            return CoachResponse(CoachStatus.ERROR, error=translate("ai.error.noValidTips", language))
        summary = build_coach_summary(
            tips, baseline.rows, baseline.summary, extras, scenario.payment_used, params
        )
    except MortgageError as exc:
        return CoachResponse(CoachStatus.ERROR, error=exc.localized(language))
    return CoachResponse(CoachStatus.CONNECTED, tips=tips, summary=summary)


Scheduler = Callable[[float, Callable[[], None]], Any]


def _timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def immediate_scheduler(delay: float, callback: Callable[[], None]) -> None:
    callback()


class CoachSession:
    """Deferred, last-request-wins delivery of coaching results.

    Every ``request`` and ``invalidate`` issues a new token. A delivery whose
    token is no longer the latest is dropped; the computation itself is cheap
    and is never cancelled.
    """

    def __init__(
        self,
        delay_ms: Tuple[int, int] = (450, 800),
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._delay_ms = delay_ms
        self._scheduler = scheduler or _timer_scheduler
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._token = 0
        self._response = CoachResponse()

    @property
    def token(self) -> int:
        with self._lock:
            return self._token

    def snapshot(self) -> CoachResponse:
        with self._lock:
            return self._response

    def invalidate(self) -> int:
        """Supersede any pending request; a loading or connected session falls back to idle."""
        with self._lock:
            self._token += 1
            status = self._response.status
            if status in (CoachStatus.CONNECTED, CoachStatus.LOADING):
                status = CoachStatus.IDLE
            self._response = CoachResponse(status, error=self._response.error)
            return self._token

    def request(
        self,
        scenario: Optional[ScenarioResult],
        params: LoanParameters,
        extras: Sequence[ExtraPayment],
        language: str = "en",
        limit: int = DEFAULT_TIP_LIMIT,
    ) -> int:
        if scenario is None or not scenario.baseline.rows:
            with self._lock:
                self._response = CoachResponse(
                    CoachStatus.ERROR, error=translate("ai.error.noScheduleData", language)
                )
                return self._token
        with self._lock:
            self._token += 1
            token = self._token
            self._response = CoachResponse(CoachStatus.LOADING)
        extras = list(extras)
        low, high = self._delay_ms
        delay = self._rng.randint(low, max(low, high)) / 1000.0
        self._scheduler(delay, lambda: self._deliver(token, scenario, params, extras, language, limit))
        return token

    def _deliver(
        self,
        token: int,
        scenario: ScenarioResult,
        params: LoanParameters,
        extras: List[ExtraPayment],
        language: str,
        limit: int,
    ) -> None:
        if token != self.token:
            logger.debug("Dropping stale coaching result %d", token)
            return
        response = coach(scenario, params, extras, limit, language)
        with self._lock:
            if token != self._token:
                logger.debug("Dropping stale coaching result %d", token)
                return
            self._response = response
