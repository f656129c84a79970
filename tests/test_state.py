import json
from datetime import date
from decimal import Decimal

from mortgage_coach.data_models import (
    CommissionMode,
    ExtraPayment,
    ExtraTier,
    InterestPhase,
    PrepaymentStrategy,
    PrepaymentTip,
)
from mortgage_coach.state import (
    AppState,
    add_extra_payment,
    apply_tip,
    load_state,
    remove_extra_payment,
    save_state,
)


def _tip(month, suggested_extra):
    return PrepaymentTip(
        month=month,
        due_date=date(2026, 3, 9),
        interest_paid=Decimal("2750"),
        interest_share_pct=Decimal("53.5"),
        suggested_extra=Decimal(suggested_extra),
        estimated_interest_saved=Decimal("10"),
        extra_tier=ExtraTier.MEANINGFUL,
        phase=InterestPhase.BALANCED,
    )


class TestDefaults:
    def test_default_state(self):
        state = AppState()
        assert state.language == "en"
        assert state.loan_amount == Decimal("300000")
        assert state.loan_term_months == 84
        assert state.commission_mode == CommissionMode.INTEREST_RATE
        assert [extra.month for extra in state.extra_payments] == [3, 9]
        assert state.next_extra_payment_id == 3

    def test_loan_parameters(self):
        params = AppState().loan_parameters()
        assert params.first_payment_date == date(2026, 3, 9)
        assert params.commission_rate == Decimal("4")

    def test_unparseable_date_falls_back_to_today(self):
        params = AppState(first_payment_date="2026-02-30").loan_parameters()
        assert params.first_payment_date == date.today()


class TestFromDict:
    def test_round_trip(self):
        state = AppState(language="ka", loan_amount=Decimal("150000.5"), commission_mode=CommissionMode.FIXED)
        assert AppState.from_dict(json.loads(json.dumps(state.to_dict()))) == state

    def test_not_a_mapping(self):
        assert AppState.from_dict(["nope"]) == AppState()
        assert AppState.from_dict(None) == AppState()

    def test_malformed_fields_keep_defaults(self):
        state = AppState.from_dict(
            {
                "language": "fr",
                "loanAmount": "lots",
                "annualInterestRate": True,
                "firstPaymentDate": "2026-3-9",
                "commissionMode": "percent",
                "extraPayments": "none",
            }
        )
        assert state == AppState()

    def test_language_is_normalized(self):
        assert AppState.from_dict({"language": "ka"}).language == "ka"
        assert AppState.from_dict({"language": "de"}).language == "en"
        assert AppState.from_dict({"language": ["ka"]}).language == "en"

    def test_negative_values_are_clamped(self):
        state = AppState.from_dict({"loanAmount": -10, "fixedCommission": -2})
        assert state.loan_amount == 0
        assert state.fixed_commission == 0

    def test_legacy_strategy_applies_to_extras_without_one(self):
        state = AppState.from_dict(
            {
                "prepaymentStrategy": "reducePayment",
                "extraPayments": [
                    {"id": 4, "month": 2, "amount": 500},
                    {"id": 5, "month": 6, "amount": 500, "strategy": "reduceTime"},
                ],
            }
        )
        assert [extra.strategy for extra in state.extra_payments] == [
            PrepaymentStrategy.REDUCE_PAYMENT,
            PrepaymentStrategy.REDUCE_TIME,
        ]

    def test_extra_items_are_repaired_or_dropped(self):
        state = AppState.from_dict(
            {
                "extraPayments": [
                    {"id": -1, "month": 2.6, "amount": -5},
                    {"id": 7, "month": "soon", "amount": 100},
                    "garbage",
                    {"month": 0, "amount": 50, "strategy": "both"},
                ]
            }
        )
        assert state.extra_payments == [
            ExtraPayment(id=1, month=3, amount=Decimal("0"), strategy=PrepaymentStrategy.REDUCE_TIME),
            ExtraPayment(id=4, month=1, amount=Decimal("50"), strategy=PrepaymentStrategy.REDUCE_TIME),
        ]

    def test_empty_extra_list_is_kept(self):
        assert AppState.from_dict({"extraPayments": []}).extra_payments == []


class TestEditing:
    def test_add_extra_payment(self):
        state = add_extra_payment(AppState())
        added = state.extra_payments[-1]
        assert (added.id, added.month, added.amount) == (3, 12, Decimal("1000"))
        assert added.strategy == PrepaymentStrategy.REDUCE_TIME

    def test_add_extra_payment_on_short_loan(self):
        state = add_extra_payment(AppState(loan_term_months=6, extra_payments=[]))
        assert state.extra_payments[0].month == 6
        assert state.extra_payments[0].id == 1

    def test_remove_extra_payment(self):
        state = remove_extra_payment(AppState(), 1)
        assert [extra.id for extra in state.extra_payments] == [2]

    def test_apply_tip_merges_into_reduce_time_extra(self):
        state = apply_tip(AppState(), _tip(3, "616.40"))
        assert len(state.extra_payments) == 2
        assert state.extra_payments[0].amount == Decimal("17675.57")

    def test_apply_tip_adds_new_extra(self):
        state = apply_tip(AppState(), _tip(5, "616.40"))
        added = state.extra_payments[-1]
        assert (added.id, added.month, added.amount) == (3, 5, Decimal("616.40"))

    def test_apply_tip_ignores_reduce_payment_extras(self):
        base = AppState(extra_payments=[ExtraPayment(1, 5, Decimal("100"), PrepaymentStrategy.REDUCE_PAYMENT)])
        state = apply_tip(base, _tip(5, "50"))
        assert len(state.extra_payments) == 2

    def test_editing_does_not_mutate(self):
        original = AppState()
        add_extra_payment(original)
        apply_tip(original, _tip(3, "10"))
        assert original == AppState()


class TestPersistence:
    def test_missing_file(self, tmp_path):
        assert load_state(tmp_path / "missing.json") == AppState()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_state(path) == AppState()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "state.json"
        state = add_extra_payment(AppState(language="ka"))
        assert save_state(path, state) is True
        assert load_state(path) == state

    def test_save_failure_returns_false(self, tmp_path):
        assert save_state(tmp_path / "no" / "such" / "dir.json", AppState()) is False
