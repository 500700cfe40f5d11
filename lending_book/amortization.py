"""
Amortization Module

Fixed-installment (French system) amortization: turns a principal, a nominal
annual rate, a term and a start date into an installment amount and a
per-period repayment schedule. Pure and deterministic; used both for persisted
loan creation and for non-persisting previews.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, List
import calendar

from .exceptions import InvalidInputError
from .money import round_money, to_decimal, ZERO

# 50 years of monthly installments
MAX_TERM_COUNT = 600


@dataclass
class ScheduleEntry:
    """Single period of an amortization schedule"""
    number: int
    due_date: date
    amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    remaining_balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number': self.number,
            'due_date': self.due_date.isoformat(),
            'amount': str(self.amount),
            'principal_portion': str(self.principal_portion),
            'interest_portion': str(self.interest_portion),
            'remaining_balance': str(self.remaining_balance)
        }


@dataclass
class LoanCalculation:
    """Result of an amortization computation"""
    principal: Decimal
    annual_rate_percent: Decimal
    term_count: int
    start_date: date
    installment_amount: Decimal
    total_amount: Decimal
    total_interest: Decimal
    end_date: date
    schedule: List[ScheduleEntry] = field(default_factory=list)

    @property
    def monthly_rate(self) -> Decimal:
        return monthly_rate(self.annual_rate_percent)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'principal': str(self.principal),
            'annual_rate_percent': str(self.annual_rate_percent),
            'term_count': self.term_count,
            'start_date': self.start_date.isoformat(),
            'installment_amount': str(self.installment_amount),
            'total_amount': str(self.total_amount),
            'total_interest': str(self.total_interest),
            'end_date': self.end_date.isoformat(),
            'schedule': [entry.to_dict() for entry in self.schedule]
        }


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping to the last day of the target month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Nominal annual percentage to periodic monthly rate"""
    return annual_rate_percent / Decimal('100') / Decimal('12')


def _validate(principal: Any, annual_rate_percent: Any, term_count: Any):
    principal = to_decimal(principal, "principal")
    annual_rate_percent = to_decimal(annual_rate_percent, "annual_rate_percent")

    if principal <= ZERO:
        raise InvalidInputError("Principal must be positive", {"principal": str(principal)})
    if annual_rate_percent < ZERO:
        raise InvalidInputError(
            "Interest rate cannot be negative",
            {"annual_rate_percent": str(annual_rate_percent)}
        )
    if isinstance(term_count, bool) or not isinstance(term_count, int):
        try:
            term_count = int(str(term_count))
        except ValueError:
            raise InvalidInputError(f"Term count '{term_count}' is not an integer")
    if term_count <= 0:
        raise InvalidInputError("Term count must be positive", {"term_count": term_count})
    if term_count > MAX_TERM_COUNT:
        raise InvalidInputError(
            f"Term count cannot exceed {MAX_TERM_COUNT} months",
            {"term_count": term_count}
        )

    return principal, annual_rate_percent, term_count


def installment_amount(principal: Decimal, rate: Decimal, term_count: int) -> Decimal:
    """Fixed installment for a monthly rate, rounded to cents"""
    return round_money(_exact_installment(principal, rate, term_count))


def _exact_installment(principal: Decimal, rate: Decimal, term_count: int) -> Decimal:
    """
    Unrounded fixed installment

    Standard annuity formula: P * [r(1+r)^n] / [(1+r)^n - 1]
    """
    if rate == ZERO:
        # No interest - simple division
        return principal / Decimal(term_count)

    factor = (Decimal('1') + rate) ** term_count
    return principal * (rate * factor) / (factor - Decimal('1'))


def compute_schedule(
    principal: Any,
    annual_rate_percent: Any,
    term_count: Any,
    start_date: date
) -> LoanCalculation:
    """
    Compute the fixed installment and full repayment schedule of a loan

    Args:
        principal: Amount lent, must be positive
        annual_rate_percent: Nominal annual interest rate in percent, e.g. 24 for 24%
        term_count: Number of monthly installments, between 1 and MAX_TERM_COUNT
        start_date: Loan start; installment i is due start_date + i months

    Returns:
        LoanCalculation with installment, totals, end date and schedule

    Raises:
        InvalidInputError: If any parameter is out of range or unparseable
    """
    principal, annual_rate_percent, term_count = _validate(
        principal, annual_rate_percent, term_count
    )
    rate = monthly_rate(annual_rate_percent)

    exact = _exact_installment(principal, rate, term_count)
    installment = round_money(exact)
    total_amount = round_money(installment * term_count)
    total_interest = round_money(total_amount - principal)

    # The running balance stays unrounded; only emitted fields are rounded
    schedule = []
    remaining = principal
    for number in range(1, term_count + 1):
        interest = remaining * rate
        principal_portion = exact - interest
        remaining = max(ZERO, remaining - principal_portion)

        schedule.append(ScheduleEntry(
            number=number,
            due_date=add_months(start_date, number),
            amount=installment,
            principal_portion=round_money(principal_portion),
            interest_portion=round_money(interest),
            remaining_balance=round_money(remaining)
        ))

    return LoanCalculation(
        principal=round_money(principal),
        annual_rate_percent=annual_rate_percent,
        term_count=term_count,
        start_date=start_date,
        installment_amount=installment,
        total_amount=total_amount,
        total_interest=total_interest,
        end_date=add_months(start_date, term_count),
        schedule=schedule
    )
