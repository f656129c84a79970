from datetime import date
from decimal import Decimal

import pytest

from mortgage_coach import coach as coach_module
from mortgage_coach.coach import (
    CoachSession,
    build_coach_summary,
    classify_extra_tier,
    coach,
    detect_payment_pattern,
    detect_timing_advice,
    estimate_recurring_impact,
    generate_tips,
    has_budget_risk,
    immediate_scheduler,
    interest_phase,
    is_recurring_pattern,
    recommend_strategy,
)
from mortgage_coach.data_models import (
    CoachStatus,
    ExtraPayment,
    ExtraTier,
    InterestPhase,
    LoanParameters,
    PaymentPattern,
    PrepaymentStrategy,
    TimingAdvice,
)
from mortgage_coach.engine import compute_scenario
from mortgage_coach.errors import PaymentTooLowError

PAYMENT = Decimal("1000")


def _extra(month, amount, strategy=PrepaymentStrategy.REDUCE_TIME, id=1):
    return ExtraPayment(id=id, month=month, amount=Decimal(str(amount)), strategy=strategy)


class TestClassifiers:
    @pytest.mark.parametrize(
        "share, phase",
        [
            (Decimal("60.1"), InterestPhase.INTEREST_HEAVY),
            (Decimal("60"), InterestPhase.BALANCED),
            (Decimal("30"), InterestPhase.BALANCED),
            (Decimal("29.9"), InterestPhase.PRINCIPAL_HEAVY),
        ],
    )
    def test_interest_phase(self, share, phase):
        assert interest_phase(share) == phase

    @pytest.mark.parametrize(
        "pct, tier",
        [
            (Decimal("4.9"), ExtraTier.SMALL),
            (Decimal("5"), ExtraTier.MEANINGFUL),
            (Decimal("20"), ExtraTier.MEANINGFUL),
            (Decimal("20.1"), ExtraTier.AGGRESSIVE),
        ],
    )
    def test_extra_tier(self, pct, tier):
        assert classify_extra_tier(pct) == tier


class TestPatterns:
    def test_recurring_needs_three_mostly_consecutive_months(self):
        assert is_recurring_pattern([_extra(1, 10), _extra(2, 10), _extra(3, 10)])
        assert is_recurring_pattern([_extra(1, 10), _extra(2, 10), _extra(3, 10), _extra(10, 10)])
        assert not is_recurring_pattern([_extra(1, 10), _extra(2, 10), _extra(5, 10)])
        assert not is_recurring_pattern([_extra(1, 10), _extra(2, 10)])

    def test_pattern_none_without_extras(self):
        assert detect_payment_pattern([], PAYMENT) == PaymentPattern.NONE
        assert detect_payment_pattern([_extra(4, 0)], PAYMENT) == PaymentPattern.NONE

    def test_single_small_extra_is_not_a_pattern(self):
        assert detect_payment_pattern([_extra(4, 500)], PAYMENT) == PaymentPattern.NONE

    def test_lump_sum(self):
        assert detect_payment_pattern([_extra(4, 2000)], PAYMENT) == PaymentPattern.LUMP_SUM

    def test_recurring(self):
        extras = [_extra(1, 500), _extra(2, 500), _extra(3, 500)]
        assert detect_payment_pattern(extras, PAYMENT) == PaymentPattern.RECURRING

    def test_two_scattered_extras_count_as_recurring(self):
        assert detect_payment_pattern([_extra(2, 300), _extra(9, 300)], PAYMENT) == PaymentPattern.RECURRING

    def test_mixed(self):
        extras = [_extra(1, 500), _extra(2, 500), _extra(3, 2500)]
        assert detect_payment_pattern(extras, PAYMENT) == PaymentPattern.MIXED

    def test_timing_advice(self):
        assert detect_timing_advice([_extra(3, 2000)], PAYMENT) == TimingAdvice.ASAP
        assert detect_timing_advice([_extra(1, 2000)], PAYMENT) == TimingAdvice.KEEP_PLAN
        assert detect_timing_advice([_extra(3, 1999)], PAYMENT) == TimingAdvice.KEEP_PLAN

    def test_budget_risk_is_strictly_above_three_installments(self):
        assert not has_budget_risk([_extra(2, 3000)], PAYMENT)
        assert has_budget_risk([_extra(2, "3000.01")], PAYMENT)


class TestRecommendStrategy:
    def test_defaults_to_reduce_time(self):
        assert recommend_strategy([]) == PrepaymentStrategy.REDUCE_TIME

    def test_majority_reduce_payment(self):
        extras = [
            _extra(1, 100, PrepaymentStrategy.REDUCE_PAYMENT),
            _extra(5, 100, PrepaymentStrategy.REDUCE_PAYMENT),
            _extra(9, 100, PrepaymentStrategy.REDUCE_TIME),
        ]
        assert recommend_strategy(extras) == PrepaymentStrategy.REDUCE_PAYMENT

    def test_tie_goes_to_reduce_time(self):
        extras = [
            _extra(1, 100, PrepaymentStrategy.REDUCE_PAYMENT),
            _extra(5, 100, PrepaymentStrategy.REDUCE_TIME),
        ]
        assert recommend_strategy(extras) == PrepaymentStrategy.REDUCE_TIME

    def test_recurring_prefers_reduce_time(self):
        extras = [_extra(month, 100, PrepaymentStrategy.REDUCE_PAYMENT) for month in (1, 2, 3)]
        assert recommend_strategy(extras) == PrepaymentStrategy.REDUCE_TIME


class TestGenerateTips:
    def test_canonical_top_months(self, canonical_scenario, canonical_params):
        baseline = canonical_scenario.baseline
        tips = generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate)
        assert [tip.month for tip in tips] == [1, 2, 3, 4]
        first = tips[0]
        assert first.phase == InterestPhase.BALANCED
        assert first.extra_tier == ExtraTier.MEANINGFUL
        assert first.suggested_extra == (baseline.rows[0].base_payment * Decimal("0.12")).quantize(Decimal("0.01"))
        assert first.estimated_interest_saved > 0
        assert first.reason.endswith("%)")
        assert "Interest share:" in first.reason

    def test_reasons_rotate_through_templates(self, canonical_scenario, canonical_params):
        baseline = canonical_scenario.baseline
        tips = generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate)
        prefixes = {tip.reason.split(" (")[0] for tip in tips}
        assert len(prefixes) == 4

    def test_limit(self, canonical_scenario, canonical_params):
        baseline = canonical_scenario.baseline
        assert len(generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate, limit=2)) == 2
        assert generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate, limit=0) == []

    def test_no_baseline(self):
        assert generate_tips([], None, Decimal("0.01")) == []

    def test_ties_go_to_earlier_month(self):
        params = LoanParameters(Decimal("1200"), Decimal("0"), 12, date(2026, 3, 9))
        baseline = compute_scenario(params, []).baseline
        tips = generate_tips(baseline.rows, baseline.summary, params.monthly_rate)
        assert [tip.month for tip in tips] == [1, 2, 3, 4]
        # 4 % of a 100 installment is below the floor.
        assert tips[0].suggested_extra == Decimal("100.00")
        assert tips[0].phase == InterestPhase.PRINCIPAL_HEAVY

    def test_georgian_reasons(self, canonical_scenario, canonical_params):
        baseline = canonical_scenario.baseline
        english = generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate)
        georgian = generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate, language="ka")
        assert [tip.month for tip in georgian] == [tip.month for tip in english]
        assert georgian[0].reason != english[0].reason


class TestCoachSummary:
    def test_canonical_summary(self, canonical_scenario, canonical_params, canonical_extras):
        baseline = canonical_scenario.baseline
        tips = generate_tips(baseline.rows, baseline.summary, canonical_params.monthly_rate)
        summary = build_coach_summary(
            tips, baseline.rows, baseline.summary, canonical_extras, canonical_scenario.payment_used, canonical_params
        )
        assert summary.best_months == [1, 2, 3]
        assert summary.recommended_strategy == PrepaymentStrategy.REDUCE_TIME
        assert summary.recommended_tier == ExtraTier.MEANINGFUL
        assert summary.current_phase == InterestPhase.BALANCED
        assert summary.timing_advice == TimingAdvice.ASAP
        assert summary.payment_pattern == PaymentPattern.LUMP_SUM
        assert summary.budget_risk is True
        assert summary.projected_months_cut > 0
        assert summary.projected_interest_saved > 0

    def test_no_tips(self, canonical_scenario, canonical_params):
        baseline = canonical_scenario.baseline
        assert build_coach_summary([], baseline.rows, baseline.summary, [], Decimal("1"), canonical_params) is None

    def test_recurring_impact_failure_is_neutral(self, monkeypatch, canonical_scenario, canonical_params):
        def failing_schedule(*args, **kwargs):
            raise PaymentTooLowError()

        monkeypatch.setattr(coach_module, "schedule_for", failing_schedule)
        result = estimate_recurring_impact(
            canonical_params, canonical_scenario.baseline.summary, Decimal("500"), PrepaymentStrategy.REDUCE_TIME
        )
        assert result == (0, Decimal("0"))

    def test_recurring_impact_arithmetic_failure_is_neutral(self, canonical_scenario):
        params = LoanParameters(Decimal("1e27"), Decimal("11"), 84, date(2026, 3, 9))
        result = estimate_recurring_impact(
            params, canonical_scenario.baseline.summary, Decimal("500"), PrepaymentStrategy.REDUCE_TIME
        )
        assert result == (0, Decimal("0"))

    def test_recurring_impact_reduce_payment_keeps_term(self, canonical_scenario, canonical_params):
        months_cut, saved = estimate_recurring_impact(
            canonical_params, canonical_scenario.baseline.summary, Decimal("500"), PrepaymentStrategy.REDUCE_PAYMENT
        )
        assert months_cut == 0
        assert saved > 0


class TestCoach:
    def test_connected(self, canonical_scenario, canonical_params, canonical_extras):
        response = coach(canonical_scenario, canonical_params, canonical_extras)
        assert response.status == CoachStatus.CONNECTED
        assert len(response.tips) == 4
        assert response.summary is not None
        assert response.error == ""

    def test_without_schedule(self, canonical_params):
        response = coach(None, canonical_params, [])
        assert response.status == CoachStatus.ERROR
        assert response.error == "No schedule data. Set loan inputs first."
        assert response.tips == []


class _ManualScheduler:
    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))


class TestCoachSession:
    def test_immediate_delivery(self, canonical_scenario, canonical_params, canonical_extras):
        session = CoachSession(scheduler=immediate_scheduler)
        token = session.request(canonical_scenario, canonical_params, canonical_extras)
        assert token == 1
        assert session.snapshot().status == CoachStatus.CONNECTED

    def test_delay_is_within_range(self, canonical_scenario, canonical_params):
        scheduler = _ManualScheduler()
        session = CoachSession(delay_ms=(450, 800), scheduler=scheduler)
        session.request(canonical_scenario, canonical_params, [])
        delay, _ = scheduler.calls[0]
        assert 0.45 <= delay <= 0.8
        assert session.snapshot().status == CoachStatus.LOADING

    def test_latest_request_wins(self, canonical_scenario, canonical_params):
        scheduler = _ManualScheduler()
        session = CoachSession(scheduler=scheduler)
        session.request(canonical_scenario, canonical_params, [], language="ka")
        session.request(canonical_scenario, canonical_params, [])
        _, stale = scheduler.calls[0]
        _, latest = scheduler.calls[1]

        stale()
        assert session.snapshot().status == CoachStatus.LOADING
        latest()
        response = session.snapshot()
        assert response.status == CoachStatus.CONNECTED
        assert "Interest share" in response.tips[0].reason

    def test_invalidate_drops_pending_delivery(self, canonical_scenario, canonical_params):
        scheduler = _ManualScheduler()
        session = CoachSession(scheduler=scheduler)
        session.request(canonical_scenario, canonical_params, [])
        session.invalidate()
        scheduler.calls[0][1]()
        assert session.snapshot().status == CoachStatus.IDLE
        assert session.snapshot().tips == []

    def test_invalidate_resets_connected(self, canonical_scenario, canonical_params):
        session = CoachSession(scheduler=immediate_scheduler)
        session.request(canonical_scenario, canonical_params, [])
        session.invalidate()
        assert session.snapshot().status == CoachStatus.IDLE

    def test_missing_schedule_sets_error_without_new_token(self, canonical_params):
        session = CoachSession(scheduler=immediate_scheduler)
        assert session.request(None, canonical_params, []) == 0
        response = session.snapshot()
        assert response.status == CoachStatus.ERROR
        assert response.error
