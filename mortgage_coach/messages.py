"""Localized text lookup.

Messages are plain ``{name}`` templates keyed by a dotted identifier. Lookup
falls back to English, then to the key itself, so a missing translation never
raises.
"""

from __future__ import annotations

from typing import Any, Dict, List

DEFAULT_LANGUAGE = "en"
LANGUAGES = ("en", "ka")

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "error.loanAmountGt0": "Loan amount must be greater than 0.",
        "error.monthlyPaymentGt0": "Monthly payment must be greater than 0.",
        "error.scheduleExceeded": "Schedule exceeded {months} months. Increase payment to finish the loan.",
        "error.paymentTooLow": (
            "Monthly payment is too low. It does not cover monthly interest, "
            "so the loan cannot be paid off."
        ),
        "error.unableToCalculate": "Unable to calculate schedule with current values.",
        "ai.shareMonth": "Interest share",
        "ai.note": "Tip: earlier extra payments usually save more interest.",
        "ai.statusIdle": "Free coach is ready. Click connect to generate suggestions.",
        "ai.statusLoading": "Analyzing your schedule...",
        "ai.statusConnected": "Connected: simulated AI suggestions generated locally from your mortgage data.",
        "ai.statusError": "AI error: {message}",
        "ai.error.noScheduleData": "No schedule data. Set loan inputs first.",
        "ai.error.noValidTips": "No valid coach tips generated.",
        "ai.error.requestFailed": "Coach simulation failed.",
        "ai.summary.bestMonths": "Best months",
        "ai.summary.strategy": "Best strategy",
        "ai.summary.phase": "Current phase",
        "ai.summary.extraTier": "Suggested extra tier",
        "ai.summary.impact": (
            "If you pay +{extra} {currency}/month, you may cut about {months} months "
            "and save about {saved} {currency} interest."
        ),
        "ai.summary.timing.asap": "Timing: pay lump-sum as early as possible, ideally in the next payment cycle.",
        "ai.summary.timing.keepPlan": "Timing: keep extra payments early in the schedule for bigger savings.",
        "ai.summary.pattern.none": "Pattern: even small recurring extras can reduce total interest.",
        "ai.summary.pattern.lumpSum": "Pattern: one-time lump sum early usually beats waiting.",
        "ai.summary.pattern.recurring": "Pattern: recurring extra payments give steady reduction.",
        "ai.summary.pattern.mixed": "Pattern: combine early lump sum + recurring extras for strongest effect.",
        "ai.summary.risk": (
            "Cashflow warning: extra payment is above 3x monthly payment. "
            "Consider splitting over 2-3 months."
        ),
        "ai.phase.interestHeavy": "Interest-heavy",
        "ai.phase.balanced": "Balanced",
        "ai.phase.principalHeavy": "Principal-heavy",
        "ai.tier.small": "Small boost (<5%)",
        "ai.tier.meaningful": "Meaningful (5%-20%)",
        "ai.tier.aggressive": "Aggressive (>20%)",
        "prepay.month": "Month",
        "strategy.reduceTime": "Reduce loan time",
        "strategy.reducePayment": "Reduce monthly payment",
        "commission.none": "No commission",
        "commission.interestRate": "Percent of interest",
        "commission.balanceRate": "Percent of balance",
        "commission.fixed": "Fixed monthly amount",
    },
    "ka": {
        "error.loanAmountGt0": "სესხის თანხა უნდა იყოს 0-ზე მეტი.",
        "error.monthlyPaymentGt0": "თვიური გადახდა უნდა იყოს 0-ზე მეტი.",
        "error.scheduleExceeded": "გრაფიკმა გადააჭარბა {months} თვეს. გაზარდეთ გადახდა, რომ სესხი დასრულდეს.",
        "error.paymentTooLow": (
            "თვიური გადახდა ძალიან დაბალია. იგი არ ფარავს თვიურ პროცენტს და სესხი ვერ დაიფარება."
        ),
        "error.unableToCalculate": "მიმდინარე პარამეტრებით გამოთვლა ვერ მოხერხდა.",
        "ai.shareMonth": "პროცენტის წილი",
        "ai.note": "რჩევა: რაც უფრო ადრე შეიტანთ დამატებით თანხას, მით მეტ პროცენტს დაზოგავთ.",
        "ai.statusIdle": "უფასო ასისტენტი მზადაა. დააჭირეთ დაკავშირებას და მიიღეთ რეკომენდაციები.",
        "ai.statusLoading": "მიმდინარეობს გრაფიკის ანალიზი...",
        "ai.statusConnected": (
            "დაკავშირებულია: ლოკალურად სიმულირებული AI რეკომენდაციები გენერირებულია თქვენი სესხის მონაცემებით."
        ),
        "ai.statusError": "AI შეცდომა: {message}",
        "ai.error.noScheduleData": "გრაფიკის მონაცემი არ არის. ჯერ შეავსეთ სესხის პარამეტრები.",
        "ai.error.noValidTips": "სარწმუნო რეკომენდაციები ვერ დაგენერირდა.",
        "ai.error.requestFailed": "ასისტენტის სიმულაცია ვერ შესრულდა.",
        "ai.summary.bestMonths": "საუკეთესო თვეები",
        "ai.summary.strategy": "საუკეთესო სტრატეგია",
        "ai.summary.phase": "მიმდინარე ფაზა",
        "ai.summary.extraTier": "რეკომენდებული დამატებითი დონე",
        "ai.summary.impact": (
            "თუ ყოველთვე გადაიხდით +{extra} {currency}-ს, შეიძლება დაახლოებით {months} თვე მოიკლოს "
            "და დაზოგოთ დაახლოებით {saved} {currency} პროცენტი."
        ),
        "ai.summary.timing.asap": "დრო: ერთჯერადი დიდი თანხა ჯობს რაც შეიძლება ადრე, იდეალურად შემდეგ გადახდის ციკლში.",
        "ai.summary.timing.keepPlan": "დრო: დამატებითი გადახდები სესხის ადრეულ ეტაპზე უფრო დიდ დაზოგვას იძლევა.",
        "ai.summary.pattern.none": "შაბლონი: მცირე მაგრამ რეგულარული დამატებითი გადახდაც ამცირებს პროცენტს.",
        "ai.summary.pattern.lumpSum": "შაბლონი: ადრეული ერთჯერადი დიდი გადახდა ხშირად ჯობს გადადებას.",
        "ai.summary.pattern.recurring": "შაბლონი: ყოველთვიური დამატებითი გადახდა სტაბილურ შემცირებას იძლევა.",
        "ai.summary.pattern.mixed": "შაბლონი: ადრეული დიდი თანხა + ყოველთვიური დამატება ყველაზე ძლიერ ეფექტს იძლევა.",
        "ai.summary.risk": (
            "ფულადი ნაკადის გაფრთხილება: დამატებითი გადახდა თვიურ გადასახადზე 3-ჯერ მეტია. სჯობს დაყოთ 2-3 თვეზე."
        ),
        "ai.phase.interestHeavy": "პროცენტზე დატვირთული",
        "ai.phase.balanced": "დაბალანსებული",
        "ai.phase.principalHeavy": "ძირზე დატვირთული",
        "ai.tier.small": "მცირე ზრდა (<5%)",
        "ai.tier.meaningful": "მნიშვნელოვანი (5%-20%)",
        "ai.tier.aggressive": "აგრესიული (>20%)",
        "prepay.month": "თვე",
        "strategy.reduceTime": "ვადის შემცირება",
        "strategy.reducePayment": "თვიური გადახდის შემცირება",
        "commission.none": "საკომისიოს გარეშე",
        "commission.interestRate": "პროცენტის %",
        "commission.balanceRate": "ნაშთის %",
        "commission.fixed": "ფიქსირებული ყოველთვიური თანხა",
    },
}

# Rationale templates for coaching tips, rotated by the tip's rank.
REASON_TEMPLATES: Dict[str, List[str]] = {
    "en": [
        "High interest share this month, so extra payment is very effective.",
        "Remaining balance is still high here, so prepayment impact is strong.",
        "Interest cost is among the highest in this period.",
        "Paying extra now reduces future interest-heavy months.",
    ],
    "ka": [
        "ამ თვეში პროცენტის წილი მაღალია და დამატებითი გადახდა ყველაზე ეფექტურია.",
        "ამ პერიოდში ნაშთი ჯერ კიდევ დიდია, ამიტომ წინსწრებით გადახდა ძლიერად მუშაობს.",
        "ამ მონაკვეთში პროცენტის ღირებულება ერთ-ერთი ყველაზე მაღალია.",
        "ახლა დამატება ამცირებს შემდეგ პროცენტით დატვირთულ თვეებს.",
    ],
}


def normalize_language(language: Any) -> str:
    """Return ``language`` if it is supported, else the default language."""
    return language if language in LANGUAGES else DEFAULT_LANGUAGE


def translate(key: str, language: str = DEFAULT_LANGUAGE, **params: Any) -> str:
    """Return the message for ``key`` with ``{name}`` placeholders substituted.

    Placeholders without a matching parameter are left untouched.
    """
    text = MESSAGES[normalize_language(language)].get(key) or MESSAGES[DEFAULT_LANGUAGE].get(key) or key
    for name, value in params.items():
        text = text.replace("{" + name + "}", str(value))
    return text


def reason_templates(language: str) -> List[str]:
    return REASON_TEMPLATES[normalize_language(language)]
