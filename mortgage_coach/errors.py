"""Errors raised by the schedule engine.

Each error carries a ``message_key`` and ``params`` so the CLI and the web
API can render it in the user's language via :mod:`mortgage_coach.messages`.
``str(error)`` is the English message.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .messages import translate


class MortgageError(Exception):
    """Base class for failures that abort a schedule computation."""

    message_key = "error.unableToCalculate"

    def __init__(self, message_key: Optional[str] = None, **params: Any) -> None:
        if message_key is not None:
            self.message_key = message_key
        self.params: Dict[str, Any] = params
        super().__init__(translate(self.message_key, "en", **params))

    def localized(self, language: str) -> str:
        return translate(self.message_key, language, **self.params)


class InvalidInputError(MortgageError):
    """Principal or payment is not positive."""

    message_key = "error.loanAmountGt0"


class PaymentTooLowError(MortgageError):
    """The installment does not cover the interest of some month."""

    message_key = "error.paymentTooLow"


class ScheduleExceededError(MortgageError):
    """The loan does not amortize within the hard month cap."""

    message_key = "error.scheduleExceeded"

    def __init__(self, months: int) -> None:
        super().__init__(months=months)
        self.months = months
