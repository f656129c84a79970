"""Shared fixtures.

Canonical loan: 300,000 at 11 % over 84 months, first payment 2026-03-09,
no commission unless a test asks for one.
"""

from datetime import date
from decimal import Decimal

import pytest

from mortgage_coach.data_models import CommissionMode, ExtraPayment, LoanParameters, PrepaymentStrategy
from mortgage_coach.engine import compute_scenario


@pytest.fixture
def canonical_params() -> LoanParameters:
    return LoanParameters(
        principal=Decimal("300000"),
        annual_rate=Decimal("11"),
        term_months=84,
        first_payment_date=date(2026, 3, 9),
        commission_mode=CommissionMode.NONE,
    )


@pytest.fixture
def canonical_extras() -> list:
    return [
        ExtraPayment(id=1, month=3, amount=Decimal("17059.17"), strategy=PrepaymentStrategy.REDUCE_TIME),
        ExtraPayment(id=2, month=9, amount=Decimal("26700"), strategy=PrepaymentStrategy.REDUCE_TIME),
    ]


@pytest.fixture
def canonical_scenario(canonical_params, canonical_extras):
    return compute_scenario(canonical_params, canonical_extras)
