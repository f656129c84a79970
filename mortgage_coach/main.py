"""Command-line interface for the mortgage coach.

This module uses the ``click`` library to implement a multi-command interface.
Users can compute the planned amortization schedule, view the savings of their
extra payments, ask the coach where extra payments help most and print the
yearly payment mix. Loan inputs can come from a saved state file, with
explicit options taking precedence.
"""

from __future__ import annotations

import csv
import functools
import json
import logging
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import click

from .chart import PAYMENT_MIX_MAX_BARS, aggregate_by_year
from .coach import DEFAULT_TIP_LIMIT, coach as run_coach
from .data_models import CoachStatus, CommissionMode, ExtraPayment, PrepaymentStrategy, ScenarioResult
from .engine import compute_scenario
from .errors import MortgageError
from .formatter import print_coach_summary, print_payment_mix, print_schedule, print_summary, print_tips
from .messages import LANGUAGES
from .serialization import bars_to_list, coach_response_to_dict, row_to_dict, scenario_to_dict
from .state import AppState, load_state, save_state
from .utils import decimal_from_str, is_iso_date

logger = logging.getLogger(__name__)

STRATEGY_ALIASES = {
    "reducetime": PrepaymentStrategy.REDUCE_TIME,
    "time": PrepaymentStrategy.REDUCE_TIME,
    "reducepayment": PrepaymentStrategy.REDUCE_PAYMENT,
    "payment": PrepaymentStrategy.REDUCE_PAYMENT,
}


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("300000") and shorthand with ``k``/``m`` suffixes
    (e.g., "300k" meaning 300_000).
    """
    value = value.strip().lower().replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        amount = decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")
    if not amount.is_finite() or amount < 0:
        raise click.BadParameter(f"Invalid amount: {value}")
    return amount


def parse_extra_strings(values: Tuple[str, ...]) -> List[ExtraPayment]:
    """Parse ``MONTH:AMOUNT[:STRATEGY]`` entries; the strategy defaults to reduceTime."""
    extras: List[ExtraPayment] = []
    for index, item in enumerate(values, start=1):
        parts = item.split(":")
        if len(parts) not in (2, 3):
            raise click.BadParameter(f"Extra payment must be in MONTH:AMOUNT[:STRATEGY] format; got {item}")
        try:
            month = int(parts[0])
        except ValueError:
            raise click.BadParameter(f"Invalid month in extra payment: {item}")
        if month < 1:
            raise click.BadParameter(f"Extra payment month must be 1 or later; got {item}")
        strategy = PrepaymentStrategy.REDUCE_TIME
        if len(parts) == 3:
            key = parts[2].strip().lower()
            if key not in STRATEGY_ALIASES:
                raise click.BadParameter(
                    f"Extra payment strategy must be 'reduceTime' or 'reducePayment'; got {parts[2]}"
                )
            strategy = STRATEGY_ALIASES[key]
        extras.append(ExtraPayment(id=index, month=month, amount=parse_amount(parts[1]), strategy=strategy))
    return extras


def build_state_from_options(
    state_file: Optional[str],
    principal: Optional[str],
    rate: Optional[float],
    term: Optional[int],
    first_payment_date: Optional[str],
    commission_mode: Optional[str],
    commission_rate: Optional[float],
    fixed_commission: Optional[str],
    extra: Tuple[str, ...],
    no_extras: bool,
    language: Optional[str],
) -> AppState:
    state = load_state(Path(state_file)) if state_file else AppState()
    changes: dict = {}
    if principal is not None:
        changes["loan_amount"] = parse_amount(principal)
    if rate is not None:
        if rate < 0:
            raise click.BadParameter("Annual interest rate cannot be negative")
        changes["annual_interest_rate"] = Decimal(str(rate))
    if term is not None:
        if term < 1:
            raise click.BadParameter("Term must be at least one month")
        changes["loan_term_months"] = term
    if first_payment_date is not None:
        if not is_iso_date(first_payment_date):
            raise click.BadParameter(f"First payment date must be YYYY-MM-DD; got {first_payment_date}")
        changes["first_payment_date"] = first_payment_date
    if commission_mode is not None:
        changes["commission_mode"] = CommissionMode(commission_mode)
    if commission_rate is not None:
        changes["commission_rate"] = max(Decimal(0), Decimal(str(commission_rate)))
    if fixed_commission is not None:
        changes["fixed_commission"] = parse_amount(fixed_commission)
    if no_extras:
        changes["extra_payments"] = []
    elif extra:
        changes["extra_payments"] = parse_extra_strings(extra)
    if language is not None:
        changes["language"] = language
    return replace(state, **changes)


def loan_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the loan input options shared by every command."""
    options = [
        click.option("--state-file", "state_file", type=click.Path(dir_okay=False), help="Saved inputs (JSON) used as defaults"),
        click.option("--principal", "-p", "principal", help="Loan amount"),
        click.option("--rate", "-r", "rate", type=float, help="Annual interest rate (percent)"),
        click.option("--term", "-t", "term", type=int, help="Loan term in months"),
        click.option("--first-payment-date", "-s", "first_payment_date", help="First payment date (YYYY-MM-DD)"),
        click.option(
            "--commission-mode",
            "commission_mode",
            type=click.Choice([m.value for m in CommissionMode]),
            help="How the monthly commission is charged",
        ),
        click.option("--commission-rate", "commission_rate", type=float, help="Commission rate (percent)"),
        click.option("--fixed-commission", "fixed_commission", help="Fixed monthly commission"),
        click.option(
            "--extra",
            "extra",
            multiple=True,
            help="Extra payment in MONTH:AMOUNT[:STRATEGY] format, e.g. 3:17059.17:reduceTime",
        ),
        click.option("--no-extras", "no_extras", is_flag=True, help="Ignore saved extra payments"),
        click.option("--language", "language", type=click.Choice(list(LANGUAGES)), help="Message language"),
    ]

    @functools.wraps(func)
    def wrapper(**kwargs: Any) -> Any:
        loan_keys = (
            "state_file",
            "principal",
            "rate",
            "term",
            "first_payment_date",
            "commission_mode",
            "commission_rate",
            "fixed_commission",
            "extra",
            "no_extras",
            "language",
        )
        state = build_state_from_options(**{key: kwargs.pop(key) for key in loan_keys})
        return func(state=state, **kwargs)

    for option in reversed(options):
        wrapper = option(wrapper)
    return wrapper


def run_scenario(state: AppState) -> ScenarioResult:
    try:
        return compute_scenario(state.loan_parameters(), state.extra_payments)
    except MortgageError as exc:
        raise click.ClickException(exc.localized(state.language))


def export_to_json(path: Path, scenario: ScenarioResult) -> None:
    """Export scenario summary and planned schedule to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(scenario_to_dict(scenario), f, indent=2)


def export_to_csv(path: Path, scenario: ScenarioResult) -> None:
    """Export the planned schedule to a CSV file."""
    rows = [row_to_dict(row) for row in scenario.planned.rows]
    header = list(rows[0].keys()) if rows else []
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in rows:
            writer.writerow([row[key] for key in header])


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
def cli(log_level: str) -> None:
    """A command-line mortgage calculator with a prepayment coach."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(state: AppState, output: Optional[str]) -> None:
    """Compute and print the planned amortization schedule."""
    scenario = run_scenario(state)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, scenario)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, scenario)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(scenario)
    print_schedule(scenario.planned.rows)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(state: AppState, output: Optional[str]) -> None:
    """Compute and print only the summary and savings."""
    scenario = run_scenario(state)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump(scenario_to_dict(scenario, include_rows=False), f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(scenario)


@cli.command()
@loan_options
@click.option("--limit", "limit", type=click.IntRange(min=1), default=DEFAULT_TIP_LIMIT, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print the coach response as JSON")
def coach(state: AppState, limit: int, as_json: bool) -> None:
    """Suggest the months where extra payments save the most interest."""
    scenario = run_scenario(state)
    response = run_coach(scenario, state.loan_parameters(), state.extra_payments, limit, state.language)
    if as_json:
        click.echo(json.dumps(coach_response_to_dict(response), indent=2, ensure_ascii=False))
        return
    if response.status != CoachStatus.CONNECTED:
        raise click.ClickException(response.error)
    print_tips(response.tips)
    if response.summary is not None:
        print_coach_summary(response.summary, state.language)


@cli.command()
@loan_options
@click.option("--max-bars", "max_bars", type=click.IntRange(min=1), default=PAYMENT_MIX_MAX_BARS, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print the bars as JSON")
def chart(state: AppState, max_bars: int, as_json: bool) -> None:
    """Print the yearly split of principal, extra and interest payments."""
    scenario = run_scenario(state)
    params = state.loan_parameters()
    bars = aggregate_by_year(scenario.planned.rows, params.principal, params.first_payment_date, max_bars)
    if as_json:
        click.echo(json.dumps(bars_to_list(bars), indent=2))
    else:
        print_payment_mix(bars)


@cli.command("save-state")
@loan_options
def save_state_command(state: AppState) -> None:
    """Write the resolved inputs to --state-file."""
    ctx = click.get_current_context()
    state_file = ctx.params.get("state_file")
    if not state_file:
        raise click.UsageError("--state-file is required")
    if not save_state(Path(state_file), state):
        raise click.ClickException(f"Could not write {state_file}")
    click.echo(f"State saved to {state_file}")


if __name__ == "__main__":
    cli()
