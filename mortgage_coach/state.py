"""The user's persisted inputs.

``AppState`` is the flat record the application saves and restores: language,
loan inputs and the extra payment list. Restoring is tolerant; a field that is
missing or malformed keeps its default. Loading and saving never raise, since
losing saved inputs only means starting from the defaults again.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from .data_models import CommissionMode, ExtraPayment, LoanParameters, PrepaymentStrategy, PrepaymentTip
from .engine import normalize_month
from .messages import DEFAULT_LANGUAGE, normalize_language
from .utils import ZERO, is_iso_date, normalize_money, parse_iso_date, round_money

logger = logging.getLogger(__name__)

NEW_EXTRA_AMOUNT = Decimal("1000")


def _default_extras() -> List[ExtraPayment]:
    return [
        ExtraPayment(id=1, month=3, amount=Decimal("17059.17"), strategy=PrepaymentStrategy.REDUCE_TIME),
        ExtraPayment(id=2, month=9, amount=Decimal("26700"), strategy=PrepaymentStrategy.REDUCE_TIME),
    ]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


@dataclass
class AppState:
    language: str = DEFAULT_LANGUAGE
    loan_amount: Decimal = Decimal("300000")
    annual_interest_rate: Decimal = Decimal("11")
    loan_term_months: int = 84
    first_payment_date: str = "2026-03-09"
    commission_mode: CommissionMode = CommissionMode.INTEREST_RATE
    commission_rate: Decimal = Decimal("4")
    fixed_commission: Decimal = Decimal("0")
    extra_payments: List[ExtraPayment] = field(default_factory=_default_extras)

    @property
    def next_extra_payment_id(self) -> int:
        return max([0] + [extra.id for extra in self.extra_payments]) + 1

    def loan_parameters(self) -> LoanParameters:
        try:
            first_date = parse_iso_date(self.first_payment_date)
        except ValueError:
            first_date = date.today()
        return LoanParameters(
            principal=normalize_money(self.loan_amount),
            annual_rate=max(ZERO, self.annual_interest_rate),
            term_months=max(1, self.loan_term_months),
            first_payment_date=first_date,
            commission_mode=self.commission_mode,
            commission_rate=max(ZERO, self.commission_rate),
            fixed_commission=max(ZERO, self.fixed_commission),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "AppState":
        """Restore a state record, keeping defaults for anything unusable."""
        state = cls()
        if not isinstance(data, dict):
            return state

        state.language = normalize_language(data.get("language"))
        if _is_number(data.get("loanAmount")):
            state.loan_amount = normalize_money(data["loanAmount"])
        if _is_number(data.get("annualInterestRate")):
            state.annual_interest_rate = normalize_money(data["annualInterestRate"])
        if _is_number(data.get("loanTermMonths")):
            state.loan_term_months = normalize_month(data["loanTermMonths"])
        first_date = data.get("firstPaymentDate")
        if isinstance(first_date, str) and is_iso_date(first_date):
            state.first_payment_date = first_date
        mode = data.get("commissionMode")
        if isinstance(mode, str) and mode in {m.value for m in CommissionMode}:
            state.commission_mode = CommissionMode(mode)
        if _is_number(data.get("commissionRate")):
            state.commission_rate = normalize_money(data["commissionRate"])
        if _is_number(data.get("fixedCommission")):
            state.fixed_commission = normalize_money(data["fixedCommission"])

        # Older records kept one strategy for every extra payment.
        legacy_strategy = _parse_strategy(data.get("prepaymentStrategy")) or PrepaymentStrategy.REDUCE_TIME
        extras = data.get("extraPayments")
        if isinstance(extras, list):
            state.extra_payments = [
                extra
                for extra in (_parse_extra(item, index, legacy_strategy) for index, item in enumerate(extras))
                if extra is not None
            ]
        return state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "loanAmount": float(self.loan_amount),
            "annualInterestRate": float(self.annual_interest_rate),
            "loanTermMonths": self.loan_term_months,
            "firstPaymentDate": self.first_payment_date,
            "commissionMode": self.commission_mode.value,
            "commissionRate": float(self.commission_rate),
            "fixedCommission": float(self.fixed_commission),
            "extraPayments": [
                {
                    "id": extra.id,
                    "month": extra.month,
                    "amount": float(extra.amount),
                    "strategy": extra.strategy.value,
                }
                for extra in self.extra_payments
            ],
        }


def _parse_strategy(value: Any) -> Optional[PrepaymentStrategy]:
    if isinstance(value, str) and value in {s.value for s in PrepaymentStrategy}:
        return PrepaymentStrategy(value)
    return None


def _parse_extra(item: Any, index: int, fallback: PrepaymentStrategy) -> Optional[ExtraPayment]:
    if not isinstance(item, dict):
        return None
    try:
        month = float(item.get("month"))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(month):
        return None
    raw_id = item.get("id")
    if isinstance(raw_id, int) and not isinstance(raw_id, bool) and raw_id > 0:
        extra_id = raw_id
    else:
        extra_id = index + 1
    return ExtraPayment(
        id=extra_id,
        month=normalize_month(month),
        amount=normalize_money(item.get("amount")),
        strategy=_parse_strategy(item.get("strategy")) or fallback,
    )


def add_extra_payment(state: AppState) -> AppState:
    """Append a new 1000 ``reduceTime`` extra in month 12, or the last month of a shorter loan."""
    extra = ExtraPayment(
        id=state.next_extra_payment_id,
        month=min(state.loan_term_months, 12),
        amount=NEW_EXTRA_AMOUNT,
        strategy=PrepaymentStrategy.REDUCE_TIME,
    )
    return replace(state, extra_payments=state.extra_payments + [extra])


def remove_extra_payment(state: AppState, extra_id: int) -> AppState:
    return replace(state, extra_payments=[e for e in state.extra_payments if e.id != extra_id])


def apply_tip(state: AppState, tip: PrepaymentTip) -> AppState:
    """Add a tip's suggested extra to the plan as a ``reduceTime`` payment.

    It is merged into an existing ``reduceTime`` extra of the same month when
    there is one.
    """
    month = normalize_month(tip.month)
    amount = round_money(normalize_money(tip.suggested_extra))
    if amount <= 0:
        return state
    extras = list(state.extra_payments)
    for index, extra in enumerate(extras):
        if extra.month == month and extra.strategy == PrepaymentStrategy.REDUCE_TIME:
            extras[index] = replace(extra, amount=round_money(extra.amount + amount))
            return replace(state, extra_payments=extras)
    extras.append(
        ExtraPayment(
            id=state.next_extra_payment_id,
            month=month,
            amount=amount,
            strategy=PrepaymentStrategy.REDUCE_TIME,
        )
    )
    return replace(state, extra_payments=extras)


def load_state(path: Path) -> AppState:
    """Read a state file; a missing or corrupt file yields the defaults."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return AppState()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", path, exc)
        return AppState()
    return AppState.from_dict(data)


def save_state(path: Path, state: AppState) -> bool:
    """Write a state file. Returns False, after logging, if the write failed."""
    try:
        with path.open("w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2)
    except OSError as exc:
        logger.warning("Could not save state file %s: %s", path, exc)
        return False
    return True
