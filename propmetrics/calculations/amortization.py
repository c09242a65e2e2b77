"""
Loan Amortization Calculations

Implements loan payment and amortization schedule calculations,
matching Excel's PMT function, in exact Decimal arithmetic.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta

from propmetrics.calculations.types import MONTHS_PER_YEAR, ONE, ZERO, PaymentType

CENTS = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a currency amount to cents."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_payment(principal: Decimal, annual_rate: Decimal, amortization_months: int) -> Decimal:
    """
    Calculate the fixed monthly payment of a fully amortizing loan.

    Matches Excel's PMT() function: P * r(1+r)^n / ((1+r)^n - 1).

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate as decimal (e.g., 0.06 for 6%)
        amortization_months: Total amortization period in months

    Returns:
        Monthly payment amount (unrounded)
    """
    if principal <= ZERO or amortization_months <= 0:
        return ZERO

    monthly_rate = annual_rate / MONTHS_PER_YEAR

    if monthly_rate == ZERO:
        return principal / amortization_months

    growth = (ONE + monthly_rate) ** amortization_months
    return principal * monthly_rate * growth / (growth - ONE)


def calculate_interest_only_payment(principal: Decimal, annual_rate: Decimal) -> Decimal:
    """Monthly interest on the full principal."""
    if principal <= ZERO:
        return ZERO
    return principal * annual_rate / MONTHS_PER_YEAR


def calculate_monthly_payment(
    principal: Decimal, annual_rate: Decimal, term_years: int, payment_type: PaymentType
) -> Decimal:
    """Monthly payment for either payment type."""
    if payment_type == PaymentType.interest_only:
        return calculate_interest_only_payment(principal, annual_rate)
    return calculate_payment(principal, annual_rate, term_years * 12)


def present_value_of_payments(payment: Decimal, annual_rate: Decimal, months: int) -> Decimal:
    """Present value of a level monthly payment stream."""
    monthly_rate = annual_rate / MONTHS_PER_YEAR
    if monthly_rate == ZERO:
        return payment * months
    return payment * (ONE - (ONE + monthly_rate) ** -months) / monthly_rate


def calculate_remaining_balance(
    principal: Decimal,
    annual_rate: Decimal,
    amortization_months: int,
    payments_completed: int,
) -> Decimal:
    """Calculate remaining loan balance after N payments."""
    monthly_rate = annual_rate / MONTHS_PER_YEAR
    payment = calculate_payment(principal, annual_rate, amortization_months)

    if monthly_rate == ZERO:
        return max(ZERO, principal - payment * payments_completed)

    growth = (ONE + monthly_rate) ** payments_completed
    balance = principal * growth - payment * ((growth - ONE) / monthly_rate)

    return max(ZERO, balance)


def generate_amortization_schedule(
    principal: Decimal,
    annual_rate: Decimal,
    term_years: int,
    payment_type: PaymentType = PaymentType.amortizing,
    total_months: Optional[int] = None,
    start_date: Optional[date] = None,
) -> List[Dict]:
    """
    Generate a month-by-month amortization schedule.

    Interest-only loans carry the full principal to the end of the term;
    amortizing loans pay down to zero over the term.

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate as decimal
        term_years: Amortization term in years
        payment_type: Amortizing or interest-only
        total_months: Number of periods to emit (defaults to the full term)
        start_date: Date of first payment

    Returns:
        List of schedule rows with amounts rounded to cents
    """
    schedule = []
    balance = principal
    monthly_rate = annual_rate / MONTHS_PER_YEAR
    term_months = term_years * 12

    if total_months is None:
        total_months = term_months
    if start_date is None:
        start_date = date.today()

    payment = calculate_monthly_payment(principal, annual_rate, term_years, payment_type)

    for period in range(1, total_months + 1):
        period_date = start_date + relativedelta(months=period - 1)
        interest = balance * monthly_rate

        if payment_type == PaymentType.interest_only:
            principal_pmt = ZERO
            period_payment = interest
        else:
            principal_pmt = min(payment - interest, balance)
            period_payment = principal_pmt + interest

        ending_balance = max(ZERO, balance - principal_pmt)

        schedule.append(
            {
                "period": period,
                "date": period_date.isoformat(),
                "beginning_balance": quantize_money(balance),
                "payment": quantize_money(period_payment),
                "interest": quantize_money(interest),
                "principal": quantize_money(principal_pmt),
                "ending_balance": quantize_money(ending_balance),
            }
        )

        balance = ending_balance

        # Stop if balance is paid off
        if quantize_money(balance) == ZERO:
            break

    return schedule


def calculate_total_interest(schedule: List[Dict]) -> Decimal:
    """Calculate total interest paid over the schedule."""
    return sum((row["interest"] for row in schedule), ZERO)
