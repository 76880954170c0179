"""
Repayment Schedule Module

Builds a loan and its installment schedule at disbursement. Installment
amounts are integers that add up to the principal exactly; due dates fall one
calendar month apart, starting one month after disbursement.
"""

from datetime import date, datetime, timezone
from typing import List, Optional, Tuple, Union
import calendar
import uuid

from .currency import normalize_currency_code
from .exceptions import InvalidCurrencyCode, InvalidScheduleParameters
from .models import Loan, LoanStatus, RepaymentStatus, ScheduledRepayment


DateLike = Union[date, datetime, str]


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping the day to the end of the target month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def coerce_date(value: DateLike) -> date:
    """Accept a date, a datetime (its calendar date) or an ISO 8601 date or datetime string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            raise InvalidScheduleParameters(f"Invalid date: {value!r}")
    raise InvalidScheduleParameters(f"Expected a date, got {type(value).__name__}")


def _check_positive_int(name: str, value) -> None:
    # bool is an int subclass but never a meaningful amount or count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScheduleParameters(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidScheduleParameters(f"{name} must be positive, got {value}")


def validate_schedule_parameters(principal: int, terms: int) -> None:
    """
    Reject parameters that cannot produce a valid schedule

    Raises:
        InvalidScheduleParameters: If principal or terms is not a positive
            integer, or principal is smaller than terms (some installments
            would be zero)
    """
    _check_positive_int("principal", principal)
    _check_positive_int("terms", terms)
    if principal < terms:
        raise InvalidScheduleParameters(
            f"principal {principal} cannot be split into {terms} non-zero installments"
        )


def installment_amounts(principal: int, terms: int) -> List[int]:
    """
    Split a principal into ``terms`` integer installments

    Each installment is the remaining principal divided by the remaining
    number of terms, rounded up, so uneven minor units land on the earliest
    installments. The amounts always add up to ``principal``.

    >>> installment_amounts(10000, 3)
    [3334, 3333, 3333]
    """
    validate_schedule_parameters(principal, terms)

    amounts = []
    remaining = principal
    for i in range(terms):
        amount = -(-remaining // (terms - i))
        amounts.append(amount)
        remaining -= amount
    return amounts


def due_dates(start_date: date, terms: int) -> List[date]:
    """Due dates one, two, ... ``terms`` months after the start date"""
    return [add_months(start_date, i + 1) for i in range(terms)]


def generate_schedule(
    owner_id: str,
    principal: int,
    currency_code: str,
    terms: int,
    start_date: DateLike,
    now: Optional[datetime] = None
) -> Tuple[Loan, List[ScheduledRepayment]]:
    """
    Create a loan and its full installment schedule

    Args:
        owner_id: Borrower reference
        principal: Principal in minor currency units
        currency_code: ISO 4217 code of the loan
        terms: Number of monthly installments
        start_date: Disbursement date; the first installment is due a month later
        now: Record timestamp (defaults to the current UTC time)

    Returns:
        (Loan, installments ordered by due date)

    Raises:
        InvalidScheduleParameters: If the parameters cannot produce a schedule
    """
    amounts = installment_amounts(principal, terms)
    disbursed_date = coerce_date(start_date)
    try:
        currency_code = normalize_currency_code(currency_code)
    except InvalidCurrencyCode as e:
        raise InvalidScheduleParameters(str(e)) from e

    now = now or datetime.now(timezone.utc)

    loan = Loan(
        id=str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        owner_id=owner_id,
        principal_amount=principal,
        currency_code=currency_code,
        terms=terms,
        outstanding_amount=principal,
        disbursed_date=disbursed_date,
        status=LoanStatus.DUE
    )

    installments = [
        ScheduledRepayment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan.id,
            installment_number=number,
            amount=amount,
            outstanding_amount=amount,
            currency_code=currency_code,
            due_date=due_date,
            status=RepaymentStatus.DUE
        )
        for number, (amount, due_date) in enumerate(
            zip(amounts, due_dates(disbursed_date, terms)), start=1
        )
    ]

    return loan, installments
