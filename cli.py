import logging
from pathlib import Path

import click
import pandas as pd

from config.constants import LoanType, PaymentFrequency
from config.settings import (
    DEFAULT_AFFORDABILITY_RATE,
    DEFAULT_AFFORDABILITY_TERM,
    DEFAULT_BATCH_SIZE,
    DEFAULT_GENERATION_TIMEOUT,
    LOG_FORMAT,
    LOG_LEVEL,
)
from core.comparison import compare_loans, loan_differences
from core.errors import LoanCalculationError, ScheduleAbortedError
from core.inflation import adjust_for_inflation
from core.loan import Loan
from core.schedule_generator import generate_schedule, generate_schedule_chunked
from utils.formatters import fmt_amount, fmt_break_even, fmt_months, fmt_rate

LOAN_TYPE_CHOICES = [t.value for t in LoanType]
FREQUENCY_CHOICES = [f.value for f in PaymentFrequency]


def loan_options(func):
    """贷款参数公共选项"""
    options = [
        click.option('--loan-type', type=click.Choice(LOAN_TYPE_CHOICES), default=LoanType.MORTGAGE.value, help='Loan type'),
        click.option('--principal', type=str, required=True, help='Loan principal'),
        click.option('--down-payment', type=str, default='0', help='Down payment'),
        click.option('--rate', 'interest_rate', type=str, default=None, help='Annual interest rate (%)'),
        click.option('--term', type=str, default=None, help='Loan term in months'),
        click.option('--frequency', 'payment_frequency', type=click.Choice(FREQUENCY_CHOICES), default=PaymentFrequency.MONTHLY.value, help='Payment frequency'),
        click.option('--extra', 'additional_payment', type=str, default='0', help='Additional principal per payment'),
        click.option('--start-date', type=str, default=None, help='Start date (YYYY-MM-DD)'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_loan(**raw) -> Loan:
    try:
        return Loan.create(**raw)
    except LoanCalculationError as exc:
        raise click.ClickException(str(exc)) from exc


def echo_warnings(loan: Loan):
    for warning in loan.validate().warnings:
        click.echo(f"Warning: {warning}", err=True)


@click.group()
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']), default=LOG_LEVEL, help='Logging level')
def cli(log_level):
    """Loan payment, amortization, affordability and refinance calculator."""
    logging.basicConfig(level=getattr(logging, log_level), format=LOG_FORMAT)


@cli.command()
@loan_options
def payment(**raw):
    """Prints the periodic payment and loan totals."""
    loan = build_loan(**raw)
    echo_warnings(loan)
    click.echo(f"Loan amount: {fmt_amount(loan.total_loan_amount)}")
    click.echo(f"Payment ({loan.payment_frequency.label}): {fmt_amount(loan.payment_amount)}")
    click.echo(f"Number of payments: {loan.number_of_payments}")
    click.echo(f"Total interest: {fmt_amount(loan.total_interest)}")
    click.echo(f"Payoff date: {loan.payoff_date.isoformat()}")


@cli.command()
@loan_options
@click.option('--no-extra', is_flag=True, help='Ignore the additional payment')
@click.option('--chunked', is_flag=True, help='Generate in batches and report progress')
@click.option('--batch-size', type=int, default=DEFAULT_BATCH_SIZE, help='Payments per batch')
@click.option('--timeout', type=float, default=DEFAULT_GENERATION_TIMEOUT, help='Timeout in seconds')
def schedule(no_extra, chunked, batch_size, timeout, **raw):
    """Generates an amortization schedule and outputs it as CSV."""
    loan = build_loan(**raw)
    try:
        if chunked:
            result = generate_schedule_chunked(
                loan,
                batch_size=batch_size,
                timeout=timeout,
                include_additional_payments=not no_extra,
                on_progress=lambda percent, message, step_id=None: click.echo(
                    f"[{percent:5.1f}%] {message}", err=True
                ),
            )
        else:
            result = generate_schedule(loan, include_additional_payments=not no_extra)
    except (LoanCalculationError, ScheduleAbortedError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(result.to_dataframe().to_csv(index=False), nl=False)


@cli.command()
@click.option('--payment', 'desired_payment', type=str, required=True, help='Desired payment per period')
@click.option('--rate', 'interest_rate', type=str, default=str(DEFAULT_AFFORDABILITY_RATE), help='Annual interest rate (%)')
@click.option('--term', type=str, default=str(DEFAULT_AFFORDABILITY_TERM), help='Loan term in months')
@click.option('--frequency', 'payment_frequency', type=click.Choice(FREQUENCY_CHOICES), default=PaymentFrequency.MONTHLY.value, help='Payment frequency')
@click.option('--down-payment', type=str, default='0', help='Down payment')
@click.option('--loan-type', type=click.Choice(LOAN_TYPE_CHOICES), default=LoanType.MORTGAGE.value, help='Loan type')
def affordability(**options):
    """Calculates the largest loan a payment can support."""
    try:
        result = Loan.calculate_affordable_loan(**options)
    except LoanCalculationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Affordable principal: {fmt_amount(result.affordable_principal)}")
    click.echo(f"Total purchase price: {fmt_amount(result.total_purchase_price)}")
    click.echo(f"Down payment: {fmt_amount(result.down_payment)}")
    click.echo(f"Total interest: {fmt_amount(result.total_interest)}")


@cli.command()
@loan_options
@click.option('--new-rate', type=str, required=True, help='New annual interest rate (%)')
@click.option('--new-term', type=str, default=None, help='New term in months (default: original term)')
@click.option('--closing-costs', type=str, default='0', help='Refinance closing costs')
@click.option('--as-of', type=str, default=None, help='Refinance date (YYYY-MM-DD, default: today)')
@click.option('--new-principal', type=str, default=None, help='New loan principal (default: remaining balance)')
@click.option('--new-frequency', type=click.Choice(FREQUENCY_CHOICES), default=None, help='New payment frequency (default: unchanged)')
@click.option('--new-extra', type=str, default='0', help='Additional principal per payment on the new loan')
def refinance(new_rate, new_term, closing_costs, as_of, new_principal, new_frequency, new_extra, **raw):
    """Compares keeping the loan with refinancing the remaining balance."""
    loan = build_loan(**raw)
    try:
        result = loan.calculate_refinance(
            interest_rate=new_rate, term=new_term, closing_costs=closing_costs, as_of=as_of,
            principal=new_principal, payment_frequency=new_frequency, additional_payment=new_extra,
        )
    except LoanCalculationError as exc:
        raise click.ClickException(str(exc)) from exc
    current, new, summary = result.current_loan, result.new_loan, result.comparison
    click.echo(f"Remaining balance: {fmt_amount(current.remaining_balance)} ({current.remaining_payments} payments left)")
    click.echo(f"Current payment: {fmt_amount(current.payment)}")
    click.echo(f"New payment: {fmt_amount(new.payment)} at {fmt_rate(new.interest_rate)} over {fmt_months(new.term)}")
    click.echo(f"Savings per payment: {fmt_amount(summary.monthly_savings)}")
    click.echo(f"Total cost: {fmt_amount(current.total_cost)} now, {fmt_amount(new.total_cost)} refinanced")
    click.echo(f"Lifetime savings: {fmt_amount(summary.lifetime_savings)}")
    click.echo(f"Break-even: {fmt_break_even(summary.break_even_months)}")
    click.echo(f"Worthwhile: {'yes' if summary.is_worthwhile else 'no'}")


@cli.command()
@loan_options
@click.option('--amount', 'extra_amount', type=str, default=None, help='Extra principal per payment (default: --extra)')
def impact(extra_amount, **raw):
    """Shows how an extra payment shortens the loan."""
    loan = build_loan(**raw)
    try:
        result = loan.calculate_additional_payment_impact(extra_amount)
    except LoanCalculationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Payments saved: {result.payments_saved}")
    click.echo(f"Interest saved: {fmt_amount(result.interest_saved)}")
    click.echo(f"Time saved: {result.time_saved_years} yr {result.time_saved_months} mo")
    click.echo(f"New payment: {fmt_amount(result.new_payment)}")
    click.echo(f"New payoff date: {result.new_payoff_date.isoformat()}")


@cli.command()
@loan_options
@click.option('--inflation-rate', type=str, default=None, help='Annual inflation rate (%, default: loan inflation rate)')
@click.option('--csv', 'as_csv', is_flag=True, help='Output the adjusted schedule as CSV')
def inflation(inflation_rate, as_csv, **raw):
    """Discounts the schedule to today's purchasing power."""
    loan = build_loan(**raw)
    rate = inflation_rate if inflation_rate is not None else loan.inflation_rate
    try:
        result = adjust_for_inflation(generate_schedule(loan), rate)
    except LoanCalculationError as exc:
        raise click.ClickException(str(exc)) from exc
    if as_csv:
        click.echo(result.to_dataframe().to_csv(index=False), nl=False)
        return
    summary = result.summary
    click.echo(f"Inflation rate: {fmt_rate(summary.inflation_rate)}")
    click.echo(f"Total payment: {fmt_amount(summary.total_original_payment)}")
    click.echo(f"Inflation adjusted: {fmt_amount(summary.total_inflation_adjusted_payment)}")
    click.echo(f"Savings from inflation: {fmt_amount(summary.savings_from_inflation)}")


@cli.command()
@click.argument('loan_files', nargs=-1, type=click.Path(exists=True, dir_okay=False))
def compare(loan_files):
    """Compares loans saved as JSON files side by side."""
    try:
        loans = [Loan.from_json(Path(path).read_text(encoding='utf-8')) for path in loan_files]
        table = compare_loans(loans)
        differences = loan_differences(loans)
    except LoanCalculationError as exc:
        raise click.ClickException(str(exc)) from exc
    with pd.option_context('display.width', 200, 'display.max_columns', None):
        click.echo(table.to_string(index=False))
    click.echo()
    click.echo(f"Differences against {loans[0].name}:")
    for loan_id, diff in differences.items():
        click.echo(
            f"  {loan_id}: payment {diff['payment_amount']:+,.2f}, "
            f"interest {diff['total_interest']:+,.2f}, total {diff['total_payment']:+,.2f}"
        )


if __name__ == '__main__':
    cli()
